from __future__ import annotations

import json

from jax_image_classification.adapters.right.metrics_jsonl import (
    CompositeMetricsSink,
    JsonlFileMetricsSink,
    SourceFilteredMetricsSink,
    source_prefix_filter,
)


class _ListSink:
    def __init__(self) -> None:
        self.events: list[tuple[int, dict]] = []

    def log(self, *, step, metrics) -> None:
        self.events.append((step, metrics))


def test_jsonl_metrics_sink_writes_valid_lines(tmp_path) -> None:
    p = tmp_path / "metrics.jsonl"
    sink = JsonlFileMetricsSink(path=p)

    sink.log(step=0, metrics={"event": "start", "lr": 1e-3})
    sink.log(step=10, metrics={"train/loss": 0.5, "train/acc": 0.9, "class_labels": ("cat", "dog")})

    text = p.read_text(encoding="utf-8").strip()
    lines = [ln for ln in text.splitlines() if ln.strip()]
    assert len(lines) == 2

    rec0 = json.loads(lines[0])
    assert rec0["step"] == 0
    assert rec0["metrics"]["event"] == "start"

    rec1 = json.loads(lines[1])
    assert rec1["step"] == 10
    assert "train/loss" in rec1["metrics"]
    assert rec1["metrics"]["class_labels"] == ["cat", "dog"]


def test_source_filter_keeps_only_matching_sources() -> None:
    inner = _ListSink()
    sink = SourceFilteredMetricsSink(inner, predicate=source_prefix_filter("ImageClassificationTrainer"))

    sink.log(step=1, metrics={"source": "ImageClassificationTrainer", "epoch": 1})
    sink.log(step=2, metrics={"source": "TrainImageClassifier", "event": "fit_done"})
    sink.log(step=3, metrics={"event": "untagged"})

    assert [s for s, _ in inner.events] == [1]


def test_composite_tees_to_every_sink() -> None:
    a, b = _ListSink(), _ListSink()
    CompositeMetricsSink(a, None, b).log(step=5, metrics={"x": 1})
    assert a.events == b.events == [(5, {"x": 1})]
