from __future__ import annotations

from typing import Protocol

from jax_image_classification.core.domain.entities.prediction import Prediction
from jax_image_classification.core.domain.utils.metrics import MulticlassMetrics


class ReporterPort(Protocol):
    """Human-readable progress output (console, UI, ...)."""

    def progress(self, message: str) -> None: ...

    def metrics(self, *, title: str, metrics: MulticlassMetrics, class_labels: tuple[str, ...]) -> None: ...

    def prediction(self, prediction: Prediction) -> None: ...
