from __future__ import annotations

from typing import Any

from jax_image_classification.core.ports.metrics_sink import MetricsSinkPort


class StdoutMetricsSink(MetricsSinkPort):
    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        source = metrics.get("source")
        items = ", ".join(f"{k}={v}" for k, v in metrics.items() if k != "source")
        prefix = f"[step={step}] [Source={source}]" if source else f"[step={step}]"
        print(f"{prefix} {items}")
