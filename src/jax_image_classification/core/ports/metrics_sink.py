from __future__ import annotations

from typing import Any, Protocol


class MetricsSinkPort(Protocol):
    """Port for structured log events (stdout, JSONL, etc.).

    Events carry a `source` tag naming the component that emitted them, so
    sinks can filter by origin.
    """

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        ...
