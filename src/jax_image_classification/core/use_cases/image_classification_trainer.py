from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import jax
import jax.numpy as jnp
import numpy as np

from jax_image_classification.core.domain.commands.train import TrainCommand
from jax_image_classification.core.domain.entities.data_view import DataView
from jax_image_classification.core.domain.entities.dataset import ArrayDataset
from jax_image_classification.core.domain.entities.model import FeaturizerSpec, MlpClassifierFns, Params
from jax_image_classification.core.domain.errors.model import ModelFormatError, ModelSchemaError
from jax_image_classification.core.domain.utils.metrics import softmax
from jax_image_classification.core.ports.image_featurizer import ImageFeaturizerPort
from jax_image_classification.core.ports.metrics_sink import MetricsSinkPort
from jax_image_classification.core.use_cases.train_classifier import LOG_SOURCE, TrainClassifierUseCase

FeaturizerFactory = Callable[[FeaturizerSpec], ImageFeaturizerPort]


@dataclass(frozen=True)
class ImageClassificationTrainer:
    """Transfer-learning trainer stage.

    Encoded images are run through the frozen backbone once (the bottleneck
    pass), then a softmax head is trained on the resulting features. The
    validation view, when given, picks the best epoch and stops training
    early.
    """

    featurizer: ImageFeaturizerPort
    feature_column: str = "image"
    label_column: str = "label_as_key"
    score_column: str = "score"
    predicted_label_column: str = "predicted_label"
    validation_set: DataView | None = None
    command: TrainCommand = field(default_factory=TrainCommand)
    metrics_sink: MetricsSinkPort | None = None
    name: str = "image_classification"

    def _bottleneck(self, view: DataView, dataset: str) -> np.ndarray:
        started = time.perf_counter()
        features = self.featurizer.featurize(list(view.column(self.feature_column)))
        if self.metrics_sink:
            self.metrics_sink.log(
                step=0,
                metrics={
                    "source": LOG_SOURCE,
                    "phase": "Bottleneck Computation",
                    "dataset": dataset,
                    "image_count": int(view.num_rows),
                    "seconds": round(time.perf_counter() - started, 3),
                },
            )
        return features

    def fit(self, view: DataView) -> "FittedImageClassifier":
        fitted, _ = self._fit(view)
        return fitted

    def fit_transform(self, view: DataView) -> tuple["FittedImageClassifier", DataView]:
        """Fit, then score the training rows from the bottleneck features already computed."""

        fitted, x_train = self._fit(view)
        return fitted, fitted.transform_features(view, x_train)

    def _fit(self, view: DataView) -> tuple["FittedImageClassifier", np.ndarray]:
        label_schema = view.column_schema(self.label_column)
        if label_schema.kind != "key" or not label_schema.key_values:
            raise ModelSchemaError(f"label column '{self.label_column}' must be a key column with key values")
        class_names = label_schema.key_values

        x_train = self._bottleneck(view, "Train")
        y_train = np.asarray(view.column(self.label_column), dtype=np.int32)

        x_valid = y_valid = None
        if self.validation_set is not None and self.validation_set.num_rows > 0:
            x_valid = self._bottleneck(self.validation_set, "Validation")
            y_valid = np.asarray(self.validation_set.column(self.label_column), dtype=np.int32)

        dataset = ArrayDataset(
            x_train=x_train,
            y_train=y_train,
            x_valid=x_valid,
            y_valid=y_valid,
            class_names=class_names,
        )
        model_fns = MlpClassifierFns(hidden_sizes=tuple(self.command.hidden_sizes))
        result = TrainClassifierUseCase(
            dataset_provider=dataset,
            metrics_sink=self.metrics_sink,
            model_fns=model_fns,
        ).run(self.command)

        fitted = FittedImageClassifier(
            featurizer=self.featurizer,
            params=jax.tree_util.tree_map(np.asarray, result.params),
            hidden_sizes=model_fns.hidden_sizes,
            key_values=class_names,
            feature_column=self.feature_column,
            label_column=self.label_column,
            score_column=self.score_column,
            predicted_label_column=self.predicted_label_column,
            name=self.name,
        )
        return fitted, x_train


class FittedImageClassifier:
    kind = "image_classification"

    def __init__(
        self,
        *,
        featurizer: ImageFeaturizerPort,
        params: Params,
        hidden_sizes: tuple[int, ...],
        key_values: tuple[str, ...],
        feature_column: str,
        label_column: str,
        score_column: str,
        predicted_label_column: str,
        name: str,
    ) -> None:
        self.name = name
        self._featurizer = featurizer
        self._params = params
        self._model = MlpClassifierFns(hidden_sizes=tuple(hidden_sizes))
        self.key_values = tuple(key_values)
        self.feature_column = feature_column
        self.label_column = label_column
        self.score_column = score_column
        self.predicted_label_column = predicted_label_column
        self._apply = jax.jit(lambda p, x: self._model.apply(p, x, is_training=False))

    @property
    def input_columns(self) -> tuple[str, ...]:
        return (self.feature_column,)

    @property
    def output_columns(self) -> tuple[str, ...]:
        return (self.score_column, self.predicted_label_column)

    def transform(self, view: DataView) -> DataView:
        images = list(view.column(self.feature_column))
        if any(not isinstance(img, (bytes, bytearray)) for img in images):
            raise ModelSchemaError(f"column '{self.feature_column}' must hold encoded image bytes")

        return self.transform_features(view, self._featurizer.featurize(images))

    def transform_features(self, view: DataView, features: np.ndarray) -> DataView:
        """Score rows whose bottleneck features are already known."""

        logits = np.asarray(self._apply(self._params, jnp.asarray(features, dtype=jnp.float32)))
        scores = softmax(logits).astype(np.float32)
        keys = np.argmax(scores, axis=-1).astype(np.int32) if len(scores) else np.zeros((0,), dtype=np.int32)

        view = view.with_column(self.score_column, scores, kind="vector", key_values=self.key_values)
        return view.with_column(self.predicted_label_column, keys, kind="key", key_values=self.key_values)

    def to_manifest(self) -> dict[str, Any]:
        spec = self._featurizer.spec
        return {
            "kind": self.kind,
            "name": self.name,
            "feature_column": self.feature_column,
            "label_column": self.label_column,
            "score_column": self.score_column,
            "predicted_label_column": self.predicted_label_column,
            "key_values": list(self.key_values),
            "hidden_sizes": list(self._model.hidden_sizes),
            "num_layers": len(self._params),
            "featurizer": {
                "architecture": spec.architecture,
                "image_size": int(spec.image_size),
                "weights": spec.weights,
            },
        }

    def tensors(self) -> dict[str, np.ndarray]:
        flat = {}
        for i, layer in enumerate(self._params):
            flat[f"layer_{i}.w"] = np.asarray(layer["w"], dtype=np.float32)
            flat[f"layer_{i}.b"] = np.asarray(layer["b"], dtype=np.float32)
        return flat

    @classmethod
    def from_manifest(
        cls,
        manifest: Mapping[str, Any],
        tensors: Mapping[str, np.ndarray],
        *,
        featurizer_factory: FeaturizerFactory,
        **_: Any,
    ) -> "FittedImageClassifier":
        try:
            params = [
                {"w": tensors[f"layer_{i}.w"], "b": tensors[f"layer_{i}.b"]}
                for i in range(int(manifest["num_layers"]))
            ]
        except KeyError as e:
            raise ModelFormatError(f"missing tensor {e} for stage '{manifest.get('name')}'") from None

        spec = FeaturizerSpec(**manifest["featurizer"])
        return cls(
            featurizer=featurizer_factory(spec),
            params=params,
            hidden_sizes=tuple(manifest.get("hidden_sizes", ())),
            key_values=tuple(manifest["key_values"]),
            feature_column=manifest["feature_column"],
            label_column=manifest["label_column"],
            score_column=manifest["score_column"],
            predicted_label_column=manifest["predicted_label_column"],
            name=manifest["name"],
        )
