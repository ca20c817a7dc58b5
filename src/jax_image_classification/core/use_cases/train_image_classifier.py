from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from jax_image_classification.core.domain.commands.workflows import TrainImageClassifierCommand
from jax_image_classification.core.domain.entities.data_view import DataView
from jax_image_classification.core.domain.entities.prediction import Prediction
from jax_image_classification.core.domain.errors.training import TrainingError
from jax_image_classification.core.domain.pipeline.base import Pipeline, TrainedModel
from jax_image_classification.core.domain.pipeline.conversion import MapKeyToValue, MapValueToKey
from jax_image_classification.core.domain.pipeline.images import LoadRawImageBytes
from jax_image_classification.core.domain.utils.metrics import MulticlassMetrics, evaluate_multiclass
from jax_image_classification.core.domain.utils.splits import shuffle_rows, train_test_split
from jax_image_classification.core.ports.image_featurizer import ImageFeaturizerPort
from jax_image_classification.core.ports.image_source import ImageSourcePort
from jax_image_classification.core.ports.metrics_sink import MetricsSinkPort
from jax_image_classification.core.ports.model_store import ModelStorePort
from jax_image_classification.core.ports.reporter import ReporterPort
from jax_image_classification.core.use_cases.image_classification_trainer import ImageClassificationTrainer
from jax_image_classification.core.use_cases.predict_images import PredictionEngine, predict_and_report

LOG_SOURCE = "TrainImageClassifier"
METRICS_TITLE = "Transfer Learning"


@dataclass(frozen=True)
class TrainImageClassifierResult:
    model: TrainedModel
    metrics: MulticlassMetrics
    class_labels: tuple[str, ...]
    output_model_path: Path
    predict_model_path: Path
    sample_predictions: list[Prediction]


class TrainImageClassifierUseCase:
    """Enumerate, shuffle, split, fit, evaluate, save, copy, then try one prediction.

    Steps run in order and none is retried; errors propagate to the caller.
    """

    def __init__(
        self,
        *,
        image_source: ImageSourcePort,
        featurizer: ImageFeaturizerPort,
        model_store: ModelStorePort,
        metrics_sink: MetricsSinkPort | None = None,
        reporter: ReporterPort | None = None,
    ) -> None:
        self._images = image_source
        self._featurizer = featurizer
        self._store = model_store
        self._metrics = metrics_sink
        self._reporter = reporter

    def _progress(self, message: str) -> None:
        if self._reporter:
            self._reporter.progress(message)

    def _log(self, metrics: dict[str, Any]) -> None:
        if self._metrics:
            self._metrics.log(step=0, metrics={"source": LOG_SOURCE, **metrics})

    def load_dataset(self, command: TrainImageClassifierCommand) -> DataView:
        """Enumerate the labeled images, shuffle them, encode labels and read the bytes."""

        records = list(self._images.load_images(command.images_dir, use_folder_name_as_label=True))
        if not records:
            raise TrainingError(f"no images found under {command.images_dir}")
        view = shuffle_rows(DataView.from_records(records), seed=command.seed)

        prep = Pipeline(
            [
                MapValueToKey(output_column="label_as_key", input_column="label", ordinality=command.key_ordinality),
                LoadRawImageBytes(output_column="image", input_column="image_path"),
            ]
        )
        return prep.fit(view).transform(view)

    def build_pipeline(self, command: TrainImageClassifierCommand, validation_set: DataView) -> Pipeline:
        return Pipeline(
            [
                ImageClassificationTrainer(
                    featurizer=self._featurizer,
                    feature_column="image",
                    label_column="label_as_key",
                    validation_set=validation_set,
                    command=command.head,
                    metrics_sink=self._metrics,
                ),
                MapKeyToValue(output_column="predicted_label", input_column="predicted_label"),
            ]
        )

    def run(self, command: TrainImageClassifierCommand) -> TrainImageClassifierResult:
        dataset = self.load_dataset(command)
        class_labels = dataset.column_schema("label_as_key").key_values or ()

        split = train_test_split(dataset, test_fraction=command.test_fraction)
        train_set, test_set = split.train_set, split.test_set
        self._log(
            {
                "event": "dataset_split",
                "images": dataset.num_rows,
                "train": train_set.num_rows,
                "validation": test_set.num_rows,
                "class_labels": list(class_labels),
            }
        )

        pipeline = self.build_pipeline(command, test_set)

        self._progress(
            "*** Training the image classification model with DNN Transfer Learning "
            "on top of the selected pre-trained model/architecture ***"
        )
        started = time.perf_counter()
        trained = pipeline.fit(train_set)
        elapsed = time.perf_counter() - started
        self._progress(f"Training with transfer learning took: {elapsed:.0f} seconds")
        self._log({"event": "fit_done", "seconds": round(elapsed, 3)})

        model = TrainedModel(pipeline=trained, input_schema=train_set.schema)

        metrics = self.evaluate(model, test_set, class_labels)

        saved = self._store.save(model, command.output_model_path)
        self._progress(f"Model saved to: {saved}")
        copied = self._store.copy(saved, command.predict_model_path)
        self._progress(f"Model copied to: {copied}")
        self._log({"event": "model_saved", "output_model_path": str(saved), "predict_model_path": str(copied)})

        sample = self.try_single_prediction(model, command.images_for_predictions_dir)

        return TrainImageClassifierResult(
            model=model,
            metrics=metrics,
            class_labels=tuple(class_labels),
            output_model_path=saved,
            predict_model_path=copied,
            sample_predictions=sample,
        )

    def evaluate(self, model: TrainedModel, test_set: DataView, class_labels: tuple[str, ...]) -> MulticlassMetrics:
        self._progress("Making predictions in bulk for evaluating model's quality...")
        started = time.perf_counter()

        predictions = model.pipeline.transform(test_set)
        metrics = evaluate_multiclass(
            np.asarray(predictions.column("label_as_key")),
            np.asarray(predictions.column("score")).reshape(-1, len(class_labels)),
            num_classes=len(class_labels),
        )
        if self._reporter:
            self._reporter.metrics(title=METRICS_TITLE, metrics=metrics, class_labels=class_labels)

        elapsed = time.perf_counter() - started
        self._progress(f"Predicting and Evaluation took: {elapsed:.0f} seconds")
        self._log(
            {
                "event": "evaluation",
                "micro_accuracy": metrics.micro_accuracy,
                "macro_accuracy": metrics.macro_accuracy,
                "log_loss": metrics.log_loss,
                "log_loss_reduction": metrics.log_loss_reduction,
                "seconds": round(elapsed, 3),
            }
        )
        return metrics

    def try_single_prediction(self, model: TrainedModel, images_dir: Path) -> list[Prediction]:
        """Predict the first sample image, the way an end-user app would."""

        engine = PredictionEngine(model)
        first = next(iter(self._images.load_in_memory_images(images_dir, use_folder_name_as_label=False)), None)
        if first is None:
            self._progress(f"No images to predict under {images_dir}")
            return []
        return predict_and_report(
            engine,
            [first],
            reporter=self._reporter,
            metrics_sink=self._metrics,
            source=LOG_SOURCE,
        )
