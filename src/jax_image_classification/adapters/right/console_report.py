from __future__ import annotations

import typer

from jax_image_classification.core.domain.entities.prediction import Prediction
from jax_image_classification.core.domain.utils.metrics import MulticlassMetrics
from jax_image_classification.core.ports.reporter import ReporterPort

_RULE = "*" * 60


def format_prediction_line(prediction: Prediction) -> str:
    return (
        f"Image Filename : [{prediction.image_file_name}], "
        f"Predicted Label : [{prediction.predicted_label}], "
        f"Probability : [{prediction.probability}]"
    )


def format_multiclass_metrics(title: str, metrics: MulticlassMetrics, class_labels: tuple[str, ...]) -> list[str]:
    lines = [
        _RULE,
        f"*    Metrics for {title} multi-class classification model",
        "*" + "-" * 59,
        f"    AccuracyMacro = {metrics.macro_accuracy:.4f}, a value between 0 and 1, the closer to 1, the better",
        f"    AccuracyMicro = {metrics.micro_accuracy:.4f}, a value between 0 and 1, the closer to 1, the better",
        f"    LogLoss = {metrics.log_loss:.4f}, the closer to 0, the better",
        f"    LogLossReduction = {metrics.log_loss_reduction:.4f}, the closer to 1, the better",
        f"    Top-{metrics.top_k} Accuracy = {metrics.top_k_accuracy:.4f}",
    ]
    for label, loss in zip(class_labels, metrics.per_class_log_loss):
        lines.append(f"    LogLoss for class {label} = {loss:.4f}, the closer to 0, the better")
    lines.append(_RULE)
    return lines


class ConsoleReporter(ReporterPort):
    def progress(self, message: str) -> None:
        typer.echo(message)

    def metrics(self, *, title: str, metrics: MulticlassMetrics, class_labels: tuple[str, ...]) -> None:
        for line in format_multiclass_metrics(title, metrics, class_labels):
            typer.echo(line)

    def prediction(self, prediction: Prediction) -> None:
        typer.echo(format_prediction_line(prediction))
