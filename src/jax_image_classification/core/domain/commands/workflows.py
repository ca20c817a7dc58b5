from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from jax_image_classification.core.domain.commands.train import TrainCommand
from jax_image_classification.core.domain.pipeline.conversion import KeyOrdinality


@dataclass(frozen=True)
class TrainImageClassifierCommand:
    """Everything the training workflow needs; passed explicitly, never global."""

    images_dir: Path
    output_model_path: Path
    predict_model_path: Path
    images_for_predictions_dir: Path
    seed: int = 1
    test_fraction: float = 0.2
    key_ordinality: KeyOrdinality = "by_occurrence"
    head: TrainCommand = field(default_factory=TrainCommand)


@dataclass(frozen=True)
class PredictImagesCommand:
    model_path: Path
    images_dir: Path
