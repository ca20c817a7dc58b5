from __future__ import annotations

import numpy as np

from jax_image_classification.core.domain.commands.train import TrainCommand
from jax_image_classification.core.domain.entities.base import Batch
from jax_image_classification.core.domain.entities.dataset import DatasetInfo
from jax_image_classification.core.ports.dataset_provider import DatasetProviderPort
from jax_image_classification.core.use_cases.train_classifier import TrainClassifierUseCase


class _TinyDataset(DatasetProviderPort):
    def __init__(self) -> None:
        rng = np.random.default_rng(0)
        self._x_train = rng.normal(size=(128, 8)).astype(np.float32)
        self._y_train = rng.integers(0, 3, size=(128,), dtype=np.int32)
        self._x_valid = rng.normal(size=(64, 8)).astype(np.float32)
        self._y_valid = rng.integers(0, 3, size=(64,), dtype=np.int32)
        self._info = DatasetInfo(num_classes=3, input_shape=(8,))

    @property
    def info(self) -> DatasetInfo:
        return self._info

    def iter_batches(self, *, split: str, batch_size: int, shuffle: bool, seed: int):
        x, y = (self._x_train, self._y_train) if split == "train" else (self._x_valid, self._y_valid)
        idx = np.arange(len(x))
        if shuffle:
            np.random.default_rng(seed).shuffle(idx)
        for start in range(0, len(x), batch_size):
            sel = idx[start : start + batch_size]
            yield Batch(x=x[sel], y=y[sel])


def test_train_classifier_runs_one_epoch() -> None:
    use_case = TrainClassifierUseCase(dataset_provider=_TinyDataset())
    result = use_case.run(
        TrainCommand(
            epochs=1,
            batch_size=16,
            learning_rate=1e-2,
            weight_decay=1e-3,
            adamw_b1=0.85,
            adamw_b2=0.98,
            adamw_eps=1e-7,
            adamw_eps_root=0.0,
            adamw_nesterov=True,
        )
    )
    assert result.history
    assert result.history[-1]["epoch"] == 1
    assert result.history[-1]["valid/acc"] is not None
    assert result.best_epoch == 1


def test_train_classifier_logs_with_trainer_source() -> None:
    events = []

    class _Sink:
        def log(self, *, step, metrics):
            events.append(metrics)

    TrainClassifierUseCase(dataset_provider=_TinyDataset(), metrics_sink=_Sink()).run(
        TrainCommand(epochs=2, batch_size=32, log_every_steps=2)
    )
    assert events
    assert all(e["source"] == "ImageClassificationTrainer" for e in events)
    assert any(e.get("phase") == "Training" and e.get("epoch") == 2 for e in events)
