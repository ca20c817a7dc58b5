from __future__ import annotations

from typing import Optional

import inject

from jax_image_classification.core.ports.image_featurizer import ImageFeaturizerPort
from jax_image_classification.core.ports.image_source import ImageSourcePort
from jax_image_classification.core.ports.metrics_sink import MetricsSinkPort
from jax_image_classification.core.ports.model_store import ModelStorePort
from jax_image_classification.core.ports.reporter import ReporterPort
from jax_image_classification.core.use_cases.predict_images import PredictImagesUseCase
from jax_image_classification.core.use_cases.train_image_classifier import TrainImageClassifierUseCase


# pylint: disable=invalid-name
def get_dependencies_injection_config(
    *,
    image_source: ImageSourcePort,
    model_store: ModelStorePort,
    metrics_sink: MetricsSinkPort,
    reporter: Optional[ReporterPort] = None,
    featurizer: Optional[ImageFeaturizerPort] = None,
):
    """Return an inject binder function.

    The training use case is only bound when a featurizer is supplied; the
    predictor rebuilds its backbone from the saved model instead.
    """

    def configure_dependencies_injection(binder: inject.Binder) -> None:
        binder.bind(ImageSourcePort, image_source)
        binder.bind(ModelStorePort, model_store)
        binder.bind(MetricsSinkPort, metrics_sink)
        if reporter is not None:
            binder.bind(ReporterPort, reporter)

        binder.bind(
            PredictImagesUseCase,
            PredictImagesUseCase(
                model_store=model_store,
                image_source=image_source,
                metrics_sink=metrics_sink,
                reporter=reporter,
            ),
        )

        if featurizer is not None:
            binder.bind(ImageFeaturizerPort, featurizer)
            binder.bind(
                TrainImageClassifierUseCase,
                TrainImageClassifierUseCase(
                    image_source=image_source,
                    featurizer=featurizer,
                    model_store=model_store,
                    metrics_sink=metrics_sink,
                    reporter=reporter,
                ),
            )

    return configure_dependencies_injection


def configure_injections(
    *,
    image_source: ImageSourcePort,
    model_store: ModelStorePort,
    metrics_sink: MetricsSinkPort,
    reporter: Optional[ReporterPort] = None,
    featurizer: Optional[ImageFeaturizerPort] = None,
) -> None:
    """Configure inject with this app's runtime bindings.

    Safe to call multiple times (clears previous bindings).
    """

    config = get_dependencies_injection_config(
        image_source=image_source,
        model_store=model_store,
        metrics_sink=metrics_sink,
        reporter=reporter,
        featurizer=featurizer,
    )

    if inject.is_configured():
        inject.clear_and_configure(config)
    else:
        inject.configure(config)
