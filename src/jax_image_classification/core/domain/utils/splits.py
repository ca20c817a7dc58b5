from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from jax_image_classification.core.domain.entities.data_view import DataView


@dataclass(frozen=True)
class TrainTestData:
    train_set: DataView
    test_set: DataView


def shuffle_rows(view: DataView, *, seed: int) -> DataView:
    """Return the rows of `view` in a seeded random order."""

    rng = np.random.default_rng(seed)
    return view.take(rng.permutation(view.num_rows))


def holdout_size(num_rows: int, test_fraction: float) -> int:
    """Rows that go to the test split: round half up, clamped to [0, num_rows]."""

    if not 0.0 <= test_fraction <= 1.0:
        raise ValueError(f"test_fraction must be in [0, 1], got {test_fraction}")
    return min(num_rows, max(0, int(np.floor(num_rows * test_fraction + 0.5))))


def train_test_split(view: DataView, *, test_fraction: float = 0.2, seed: int | None = None) -> TrainTestData:
    """Split rows into disjoint train/test views.

    The first rows go to train and the tail to test, so callers that already
    shuffled keep their order. Passing `seed` permutes the rows first.
    """

    n = view.num_rows
    n_test = holdout_size(n, test_fraction)

    idx = np.arange(n)
    if seed is not None:
        idx = np.random.default_rng(seed).permutation(n)

    n_train = n - n_test
    return TrainTestData(train_set=view.take(idx[:n_train]), test_set=view.take(idx[n_train:]))
