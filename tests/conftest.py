from __future__ import annotations

import os

# Ensure tests run on CPU-only machines even if JAX is installed with CUDA extras.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

from collections.abc import Sequence
from pathlib import Path

import numpy as np
import pytest

from jax_image_classification.adapters.right.model_store_zip import ZipModelStore
from jax_image_classification.core.domain.entities.model import FeaturizerSpec


class ByteStatsFeaturizer:
    """Deterministic stand-in for the Keras backbone: byte mean/std plus a 4-bin histogram."""

    spec = FeaturizerSpec(architecture="byte_stats", image_size=0, weights="none")

    def featurize(self, images: Sequence[bytes]) -> np.ndarray:
        rows = []
        for b in images:
            arr = np.frombuffer(bytes(b), dtype=np.uint8).astype(np.float32) / 255.0
            hist = np.histogram(arr, bins=4, range=(0.0, 1.0))[0] / max(1, len(arr))
            rows.append(np.concatenate([[arr.mean(), arr.std()], hist]))
        return np.asarray(rows, dtype=np.float32).reshape(len(images), 6)


# cat images are dark, dog images are bright
_PIXEL_BASE = {"cat": 10, "dog": 240}


def fake_image_bytes(label: str, i: int) -> bytes:
    base = _PIXEL_BASE.get(label, 128)
    delta = i if base < 128 else -i
    return bytes([base + delta] * 48 + [base] * 16)


def make_image_tree(root: Path, counts: dict[str, int]) -> Path:
    for label, n in counts.items():
        d = root / label
        d.mkdir(parents=True, exist_ok=True)
        for i in range(n):
            (d / f"{label}{i}.jpg").write_bytes(fake_image_bytes(label, i))
    return root


@pytest.fixture
def featurizer() -> ByteStatsFeaturizer:
    return ByteStatsFeaturizer()


@pytest.fixture
def model_store() -> ZipModelStore:
    return ZipModelStore(featurizer_factory=lambda spec: ByteStatsFeaturizer())


@pytest.fixture
def cat_dog_tree(tmp_path: Path) -> Path:
    return make_image_tree(tmp_path / "photos", {"cat": 3, "dog": 3})


class CollectingReporter:
    def __init__(self) -> None:
        self.lines: list[str] = []
        self.metrics_seen: list[tuple[str, tuple[str, ...]]] = []
        self.predictions = []

    def progress(self, message: str) -> None:
        self.lines.append(message)

    def metrics(self, *, title, metrics, class_labels) -> None:
        self.metrics_seen.append((title, tuple(class_labels)))

    def prediction(self, prediction) -> None:
        self.predictions.append(prediction)


def make_train_command(root: Path, *, epochs: int = 60):
    from jax_image_classification.core.domain.commands.train import TrainCommand
    from jax_image_classification.core.domain.commands.workflows import TrainImageClassifierCommand

    return TrainImageClassifierCommand(
        images_dir=root / "inputs" / "images" / "photos",
        output_model_path=root / "outputs" / "imageClassifier.zip",
        predict_model_path=root / "inputs" / "MLNETModel" / "imageClassifier.zip",
        images_for_predictions_dir=root / "inputs" / "test-images",
        # a large holdout keeps both classes in the validation rows that pick the best epoch
        test_fraction=0.5,
        head=TrainCommand(epochs=epochs, batch_size=4, learning_rate=0.1, early_stopping_patience=0),
    )


@pytest.fixture
def assets_root(tmp_path: Path) -> Path:
    root = tmp_path / "assets"
    make_image_tree(root / "inputs" / "images" / "photos", {"cat": 6, "dog": 6})
    samples = root / "inputs" / "test-images"
    samples.mkdir(parents=True)
    (samples / "cat100.jpg").write_bytes(fake_image_bytes("cat", 7))
    predict_dir = root / "inputs" / "images-for-predictions"
    predict_dir.mkdir(parents=True)
    (predict_dir / "cat100.jpg").write_bytes(fake_image_bytes("cat", 8))
    (predict_dir / "dog100.jpg").write_bytes(fake_image_bytes("dog", 8))
    return root


@pytest.fixture
def trained(assets_root: Path, featurizer: ByteStatsFeaturizer, model_store: ZipModelStore):
    from jax_image_classification.adapters.right.data_loaders.image_folder import ImageFolderSource
    from jax_image_classification.core.use_cases.train_image_classifier import TrainImageClassifierUseCase

    reporter = CollectingReporter()
    use_case = TrainImageClassifierUseCase(
        image_source=ImageFolderSource(),
        featurizer=featurizer,
        model_store=model_store,
        reporter=reporter,
    )
    result = use_case.run(make_train_command(assets_root))
    return result, reporter
