from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from pathlib import Path

import numpy as np

from jax_image_classification.core.domain.commands.workflows import PredictImagesCommand
from jax_image_classification.core.domain.entities.data_view import ColumnSchema, DataView
from jax_image_classification.core.domain.entities.images import InMemoryImageRecord
from jax_image_classification.core.domain.entities.prediction import Prediction
from jax_image_classification.core.domain.errors.model import ModelSchemaError
from jax_image_classification.core.domain.pipeline.base import TrainedModel
from jax_image_classification.core.ports.image_source import ImageSourcePort
from jax_image_classification.core.ports.metrics_sink import MetricsSinkPort
from jax_image_classification.core.ports.model_store import ModelStorePort
from jax_image_classification.core.ports.reporter import ReporterPort

LOG_SOURCE = "PredictImages"

# Shape of the rows fed to a loaded model, one per InMemoryImageRecord.
IN_MEMORY_INPUT_SCHEMA = (
    ColumnSchema(name="image", kind="bytes"),
    ColumnSchema(name="label", kind="text"),
    ColumnSchema(name="image_file_name", kind="text"),
)


def label_from_scores(scores: Sequence[float], class_labels: Sequence[str]) -> str:
    """Map the arg-max score back to its class name."""

    if len(scores) != len(class_labels):
        raise ModelSchemaError(f"got {len(scores)} scores for {len(class_labels)} class labels")
    return class_labels[int(np.argmax(np.asarray(scores)))]


class PredictionEngine:
    """Single-item inference over a trained model.

    There is no unloaded state: construction either yields a ready engine or
    raises.
    """

    def __init__(
        self,
        model: TrainedModel,
        *,
        score_column: str = "score",
        predicted_label_column: str = "predicted_label",
    ) -> None:
        available = {c.name for c in IN_MEMORY_INPUT_SCHEMA}
        missing = [c for c in model.pipeline.required_columns if c not in available]
        if missing:
            raise ModelSchemaError(
                f"model expects input columns {missing} which in-memory images do not provide"
            )
        self._model = model
        self._score_column = score_column
        self._predicted_label_column = predicted_label_column
        self._output_schema: tuple[ColumnSchema, ...] | None = None

    @classmethod
    def load(cls, path: str | Path, *, model_store: ModelStorePort) -> "PredictionEngine":
        return cls(model_store.load(path))

    @staticmethod
    def _to_view(records: Sequence[InMemoryImageRecord]) -> DataView:
        return DataView(
            {
                "image": [r.image_bytes for r in records],
                "label": [r.label for r in records],
                "image_file_name": [r.image_file_name for r in records],
            },
            IN_MEMORY_INPUT_SCHEMA,
        )

    @property
    def output_schema(self) -> tuple[ColumnSchema, ...]:
        if self._output_schema is None:
            self._output_schema = self._model.pipeline.transform(self._to_view([])).schema
        return self._output_schema

    def class_labels(self) -> tuple[str, ...]:
        """Ordered class names, read from the score column's key metadata."""

        for col in self.output_schema:
            if col.name == self._score_column:
                if col.key_values is None:
                    raise ModelSchemaError(f"score column '{col.name}' carries no class labels")
                return col.key_values
        raise ModelSchemaError(f"model does not produce a '{self._score_column}' column")

    def predict(self, record: InMemoryImageRecord) -> Prediction:
        out = self._model.pipeline.transform(self._to_view([record]))
        scores = tuple(float(s) for s in out.column(self._score_column)[0])
        predicted = str(out.column(self._predicted_label_column)[0])
        class_labels = self.class_labels()

        by_index = label_from_scores(scores, class_labels)
        if by_index != predicted:
            raise ModelSchemaError(
                f"predicted label '{predicted}' disagrees with arg-max of scores '{by_index}'"
            )

        return Prediction(
            image_file_name=record.image_file_name,
            predicted_label=predicted,
            scores=scores,
            class_labels=class_labels,
        )

    def predict_many(self, records: Iterable[InMemoryImageRecord]) -> list[Prediction]:
        return [self.predict(r) for r in records]


def predict_and_report(
    engine: PredictionEngine,
    images: Sequence[InMemoryImageRecord],
    *,
    reporter: ReporterPort | None = None,
    metrics_sink: MetricsSinkPort | None = None,
    source: str = LOG_SOURCE,
) -> list[Prediction]:
    """Predict every image, timing the first (warm-up) call apart from the rest."""

    started = time.perf_counter()
    predictions = engine.predict_many(images[:1])
    first_ms = (time.perf_counter() - started) * 1000.0

    started = time.perf_counter()
    predictions += engine.predict_many(images[1:])
    rest_ms = (time.perf_counter() - started) * 1000.0

    if reporter:
        if predictions:
            reporter.progress(f"First prediction took: {first_ms:.0f} ms")
        if len(predictions) > 1:
            reporter.progress(
                f"Remaining {len(predictions) - 1} predictions took: {rest_ms:.0f} ms "
                f"({rest_ms / (len(predictions) - 1):.0f} ms each)"
            )
        for p in predictions:
            reporter.prediction(p)

    if metrics_sink:
        for i, p in enumerate(predictions):
            metrics_sink.log(
                step=i,
                metrics={
                    "source": source,
                    "event": "prediction",
                    "image_file_name": p.image_file_name,
                    "predicted_label": p.predicted_label,
                    "probability": p.probability,
                },
            )
    return predictions


class PredictImagesUseCase:
    def __init__(
        self,
        *,
        model_store: ModelStorePort,
        image_source: ImageSourcePort,
        metrics_sink: MetricsSinkPort | None = None,
        reporter: ReporterPort | None = None,
    ) -> None:
        self._store = model_store
        self._images = image_source
        self._metrics = metrics_sink
        self._reporter = reporter

    def run(self, command: PredictImagesCommand) -> list[Prediction]:
        if self._reporter:
            self._reporter.progress(f"Loading model from: {command.model_path}")
        engine = PredictionEngine.load(command.model_path, model_store=self._store)

        images = list(self._images.load_in_memory_images(command.images_dir, use_folder_name_as_label=False))
        if self._metrics:
            self._metrics.log(
                step=0,
                metrics={
                    "source": LOG_SOURCE,
                    "event": "model_loaded",
                    "model_path": str(command.model_path),
                    "class_labels": list(engine.class_labels()),
                    "image_count": len(images),
                },
            )

        return predict_and_report(engine, images, reporter=self._reporter, metrics_sink=self._metrics)
