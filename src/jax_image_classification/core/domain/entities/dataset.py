from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from .base import Batch, DatasetSplit


@dataclass(frozen=True)
class DatasetInfo:
    """Metadata required by the core training loop."""

    num_classes: int
    input_shape: tuple[int, ...]
    train_size: int | None = None
    valid_size: int | None = None
    test_size: int | None = None
    class_names: tuple[str, ...] | None = None


class ArrayDataset:
    """Supervised arrays already held in memory (e.g. bottleneck features).

    The "valid" and "test" splits both read the validation arrays.
    """

    def __init__(
        self,
        *,
        x_train: np.ndarray,
        y_train: np.ndarray,
        x_valid: np.ndarray | None = None,
        y_valid: np.ndarray | None = None,
        class_names: tuple[str, ...],
    ) -> None:
        self._x_train = np.asarray(x_train, dtype=np.float32)
        self._y_train = np.asarray(y_train, dtype=np.int32)
        if x_valid is None or y_valid is None:
            x_valid = np.zeros((0, *self._x_train.shape[1:]), dtype=np.float32)
            y_valid = np.zeros((0,), dtype=np.int32)
        self._x_valid = np.asarray(x_valid, dtype=np.float32)
        self._y_valid = np.asarray(y_valid, dtype=np.int32)

        self._info = DatasetInfo(
            num_classes=len(class_names),
            input_shape=tuple(self._x_train.shape[1:]),
            train_size=len(self._x_train),
            valid_size=len(self._x_valid),
            class_names=tuple(class_names),
        )

    @property
    def info(self) -> DatasetInfo:
        return self._info

    def iter_batches(
        self,
        *,
        split: DatasetSplit,
        batch_size: int,
        shuffle: bool,
        seed: int,
    ) -> Iterable[Batch]:
        if split == "train":
            x, y = self._x_train, self._y_train
        else:
            x, y = self._x_valid, self._y_valid

        n = len(x)
        idx = np.arange(n)
        if shuffle:
            rng = np.random.default_rng(seed)
            rng.shuffle(idx)

        for start in range(0, n, batch_size):
            sel = idx[start : start + batch_size]
            yield Batch(x=x[sel], y=y[sel])
