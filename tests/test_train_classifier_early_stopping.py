from __future__ import annotations

import numpy as np
import pytest

from jax_image_classification.core.domain.commands.train import TrainCommand
from jax_image_classification.core.domain.entities.dataset import ArrayDataset
from jax_image_classification.core.domain.errors.training import TrainingError
from jax_image_classification.core.use_cases.train_classifier import TrainClassifierUseCase


def _tiny_multiclass_dataset(*, with_valid: bool = True) -> ArrayDataset:
    rng = np.random.default_rng(0)
    # Small deterministic dataset; labels are imbalanced-ish but contain all classes.
    y = np.asarray(([0] * 60) + ([1] * 25) + ([2] * 5), dtype=np.int32)
    return ArrayDataset(
        x_train=rng.normal(size=(90, 6)).astype(np.float32),
        y_train=y,
        x_valid=rng.normal(size=(90, 6)).astype(np.float32) if with_valid else None,
        y_valid=y if with_valid else None,
        class_names=("a", "b", "c"),
    )


def test_early_stopping_on_validation_accuracy_triggers_when_no_learning() -> None:
    # With lr=0, params won't change, so validation accuracy can't improve.
    # With patience=2, training should stop after epoch 3.
    use_case = TrainClassifierUseCase(dataset_provider=_tiny_multiclass_dataset())
    cmd = TrainCommand(
        epochs=20,
        batch_size=16,
        learning_rate=0.0,
        early_stopping_patience=2,
    )
    result = use_case.run(cmd)

    assert len(result.history) == 3
    assert result.history[-1]["epoch"] == 3
    assert result.best_epoch == 1


def test_no_validation_rows_disables_early_stopping() -> None:
    use_case = TrainClassifierUseCase(dataset_provider=_tiny_multiclass_dataset(with_valid=False))
    result = use_case.run(TrainCommand(epochs=4, batch_size=32, learning_rate=0.0, early_stopping_patience=1))

    assert len(result.history) == 4
    assert result.history[-1]["valid/acc"] is None
    assert result.best_epoch is None


def test_single_class_is_rejected() -> None:
    ds = ArrayDataset(
        x_train=np.zeros((4, 3), dtype=np.float32),
        y_train=np.zeros((4,), dtype=np.int32),
        class_names=("only",),
    )
    with pytest.raises(TrainingError):
        TrainClassifierUseCase(dataset_provider=ds).run(TrainCommand(epochs=1))
