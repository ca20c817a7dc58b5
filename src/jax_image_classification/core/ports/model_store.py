from __future__ import annotations

from pathlib import Path
from typing import Protocol

from jax_image_classification.core.domain.pipeline.base import TrainedModel


class ModelStorePort(Protocol):
    """Port for persisting a trained model as a single file."""

    def save(self, model: TrainedModel, path: str | Path) -> Path: ...

    def load(self, path: str | Path) -> TrainedModel:
        """Raise FileNotFoundError when `path` does not exist."""
        ...

    def copy(self, source: str | Path, destination: str | Path) -> Path: ...
