from __future__ import annotations


class TrainingError(RuntimeError):
    """Raised when the classifier cannot be trained on the supplied data."""
