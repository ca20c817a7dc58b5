from __future__ import annotations

import os
import traceback
import warnings
from pathlib import Path
from typing import Optional

import inject
import typer

# Default to CPU unless explicitly overridden by the user.
# This avoids noisy CUDA plugin initialization errors on machines without CUDA libraries.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

# Reduce known-noisy warning coming from TF/Keras in some environments.
warnings.filterwarnings(
    "ignore",
    message=r"In the future `np\.object` will be defined as the corresponding NumPy scalar\.",
    category=FutureWarning,
)

from jax_image_classification.adapters.left.inject_config import configure_injections
from jax_image_classification.adapters.right.console_report import ConsoleReporter
from jax_image_classification.adapters.right.data_loaders.image_folder import ImageFolderSource
from jax_image_classification.adapters.right.featurizers.keras_backbone import ARCHITECTURES, KerasBackboneFeaturizer
from jax_image_classification.adapters.right.metrics_jsonl import (
    CompositeMetricsSink,
    JsonlFileMetricsSink,
    SourceFilteredMetricsSink,
    source_prefix_filter,
)
from jax_image_classification.adapters.right.metrics_stdout import StdoutMetricsSink
from jax_image_classification.adapters.right.model_store_zip import ZipModelStore
from jax_image_classification.core.domain.commands.train import TrainCommand
from jax_image_classification.core.domain.commands.workflows import PredictImagesCommand, TrainImageClassifierCommand
from jax_image_classification.core.ports.metrics_sink import MetricsSinkPort
from jax_image_classification.core.use_cases.predict_images import PredictImagesUseCase
from jax_image_classification.core.use_cases.train_classifier import LOG_SOURCE as TRAINER_LOG_SOURCE
from jax_image_classification.core.use_cases.train_image_classifier import TrainImageClassifierUseCase

MODEL_FILE_NAME = "imageClassifier.zip"

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _build_metrics_sink(*, log_path: str, verbose: bool) -> MetricsSinkPort:
    """Stdout shows trainer events only (all events with --verbose); JSONL gets everything."""

    stdout_metrics: MetricsSinkPort = StdoutMetricsSink()
    if not verbose:
        stdout_metrics = SourceFilteredMetricsSink(stdout_metrics, predicate=source_prefix_filter(TRAINER_LOG_SOURCE))
    if log_path:
        return CompositeMetricsSink(stdout_metrics, JsonlFileMetricsSink(path=log_path))
    return stdout_metrics


def _finish(*, wait: bool, message: str, failed: bool) -> None:
    if wait:
        typer.pause(info=message)
    if failed:
        raise typer.Exit(code=1)


@app.command()
def train(
    assets_dir: Path = typer.Option(Path("assets"), help="Root of the assets/ tree"),
    images_dir: Optional[Path] = typer.Option(None, help="Training images, one subfolder per label [default: <assets>/inputs/images/photos]"),
    prediction_images_dir: Optional[Path] = typer.Option(
        None, help="Images for the sample prediction [default: <assets>/inputs/test-images]"
    ),
    output_model_path: Optional[Path] = typer.Option(None, help=f"[default: <assets>/outputs/{MODEL_FILE_NAME}]"),
    predict_model_path: Optional[Path] = typer.Option(
        None, help=f"Where the predictor reads the model [default: <assets>/inputs/MLNETModel/{MODEL_FILE_NAME}]"
    ),
    architecture: str = typer.Option("resnet_v2_101", help=f"Pre-trained backbone: {' | '.join(ARCHITECTURES)}"),
    image_size: int = typer.Option(224, min=32),
    epochs: int = typer.Option(200, min=1),
    batch_size: int = typer.Option(10, min=1),
    lr: float = typer.Option(0.01),
    weight_decay: float = typer.Option(0.0),
    hidden: list[int] = typer.Option([], help="Repeatable hidden sizes for the head: --hidden 256"),
    patience: int = typer.Option(20, min=0, help="Early-stopping patience in epochs (0 disables)"),
    seed: int = typer.Option(1),
    test_fraction: float = typer.Option(0.2, min=0.0, max=0.9),
    key_ordinality: str = typer.Option("by_occurrence", help="Label key order: by_occurrence | by_value"),
    log_path: str = typer.Option("", help="If set, append every log event as JSONL to this path"),
    verbose: bool = typer.Option(False, "--verbose", help="Print events from every source, not just the trainer"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for a key press before exiting"),
) -> None:
    """Train the image classifier with transfer learning and publish it for the predictor."""

    failed = False
    try:
        key_ordinality = key_ordinality.lower().strip()
        if key_ordinality not in {"by_occurrence", "by_value"}:
            raise typer.BadParameter("key_ordinality must be one of: by_occurrence, by_value")

        command = TrainImageClassifierCommand(
            images_dir=images_dir or assets_dir / "inputs" / "images" / "photos",
            output_model_path=output_model_path or assets_dir / "outputs" / MODEL_FILE_NAME,
            predict_model_path=predict_model_path or assets_dir / "inputs" / "MLNETModel" / MODEL_FILE_NAME,
            images_for_predictions_dir=prediction_images_dir or assets_dir / "inputs" / "test-images",
            seed=seed,
            test_fraction=test_fraction,
            key_ordinality=key_ordinality,  # type: ignore[arg-type]
            head=TrainCommand(
                epochs=epochs,
                batch_size=batch_size,
                seed=seed,
                learning_rate=lr,
                weight_decay=weight_decay,
                hidden_sizes=tuple(hidden),
                early_stopping_patience=patience,
            ),
        )

        metrics = _build_metrics_sink(log_path=log_path, verbose=verbose)
        featurizer = KerasBackboneFeaturizer(architecture=architecture, image_size=image_size)
        configure_injections(
            image_source=ImageFolderSource(),
            model_store=ZipModelStore(featurizer_factory=KerasBackboneFeaturizer.from_spec),
            metrics_sink=metrics,
            reporter=ConsoleReporter(),
            featurizer=featurizer,
        )

        metrics.log(
            step=0,
            metrics={
                "source": "cli",
                "event": "run_start",
                "command": "train",
                "architecture": architecture,
                "epochs": epochs,
                "batch_size": batch_size,
                "lr": lr,
                "seed": seed,
                "test_fraction": test_fraction,
            },
        )

        use_case = inject.instance(TrainImageClassifierUseCase)
        result = use_case.run(command)
        typer.echo(f"Training complete; classes: {list(result.class_labels)}")
    except Exception:  # pylint: disable=broad-exception-caught
        typer.echo(traceback.format_exc(), err=True)
        failed = True

    _finish(wait=wait, message="Press any key to finish", failed=failed)


@app.command()
def predict(
    assets_dir: Path = typer.Option(Path("assets"), help="Root of the assets/ tree"),
    model_path: Optional[Path] = typer.Option(None, help=f"[default: <assets>/inputs/MLNETModel/{MODEL_FILE_NAME}]"),
    images_dir: Optional[Path] = typer.Option(None, help="Images to classify [default: <assets>/inputs/images-for-predictions]"),
    log_path: str = typer.Option("", help="If set, append every log event as JSONL to this path"),
    verbose: bool = typer.Option(False, "--verbose", help="Print structured events to stdout"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for a key press before exiting"),
) -> None:
    """Load the trained model and classify every image in a folder."""

    failed = False
    try:
        command = PredictImagesCommand(
            model_path=model_path or assets_dir / "inputs" / "MLNETModel" / MODEL_FILE_NAME,
            images_dir=images_dir or assets_dir / "inputs" / "images-for-predictions",
        )
        configure_injections(
            image_source=ImageFolderSource(),
            model_store=ZipModelStore(featurizer_factory=KerasBackboneFeaturizer.from_spec),
            metrics_sink=_build_metrics_sink(log_path=log_path, verbose=verbose),
            reporter=ConsoleReporter(),
        )
        use_case = inject.instance(PredictImagesUseCase)
        use_case.run(command)
    except Exception:  # pylint: disable=broad-exception-caught
        typer.echo(traceback.format_exc(), err=True)
        failed = True

    _finish(wait=wait, message="Press any key to end the app..", failed=failed)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
