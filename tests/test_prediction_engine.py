from __future__ import annotations

import pytest

from jax_image_classification.core.domain.entities.images import InMemoryImageRecord
from jax_image_classification.core.domain.errors.model import ModelSchemaError
from jax_image_classification.core.domain.pipeline import LoadRawImageBytes
from jax_image_classification.core.domain.pipeline.base import TrainedModel, TrainedPipeline
from jax_image_classification.core.use_cases.predict_images import PredictionEngine, label_from_scores

from conftest import fake_image_bytes


def test_same_image_twice_gives_identical_prediction(trained) -> None:
    result, _ = trained
    engine = PredictionEngine(result.model)
    record = InMemoryImageRecord(image_bytes=fake_image_bytes("cat", 2), image_file_name="cat2.jpg")

    first = engine.predict(record)
    second = engine.predict(record)

    assert first == second
    assert first.image_file_name == "cat2.jpg"


def test_class_labels_follow_score_order(trained) -> None:
    result, _ = trained
    engine = PredictionEngine(result.model)

    assert engine.class_labels() == result.class_labels
    names = {c.name for c in engine.output_schema}
    assert {"score", "predicted_label"} <= names


def test_predict_many_keeps_input_order(trained) -> None:
    result, _ = trained
    engine = PredictionEngine(result.model)
    records = [
        InMemoryImageRecord(image_bytes=fake_image_bytes("dog", 1), image_file_name="a.jpg"),
        InMemoryImageRecord(image_bytes=fake_image_bytes("cat", 1), image_file_name="b.jpg"),
    ]

    predictions = engine.predict_many(records)

    assert [p.image_file_name for p in predictions] == ["a.jpg", "b.jpg"]
    assert [p.predicted_label for p in predictions] == ["dog", "cat"]


def test_model_needing_file_paths_is_rejected() -> None:
    model = TrainedModel(
        pipeline=TrainedPipeline([LoadRawImageBytes(output_column="image", input_column="image_path")]),
        input_schema=(),
    )
    with pytest.raises(ModelSchemaError, match="image_path"):
        PredictionEngine(model)


def test_label_from_scores() -> None:
    assert label_from_scores([0.1, 0.7, 0.2], ["a", "b", "c"]) == "b"
    with pytest.raises(ModelSchemaError):
        label_from_scores([0.5, 0.5], ["a", "b", "c"])
