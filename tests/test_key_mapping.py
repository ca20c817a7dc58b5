from __future__ import annotations

import pytest

from jax_image_classification.core.domain.entities.data_view import DataView
from jax_image_classification.core.domain.errors.model import ModelSchemaError
from jax_image_classification.core.domain.pipeline import MapKeyToValue, MapValueToKey, Pipeline

LABELS = ["people", "food", "cosmos", "food", "paintings", "interiors", "people"]


def test_keys_follow_first_seen_order() -> None:
    fitted = MapValueToKey(output_column="label_as_key", input_column="label").fit(DataView({"label": LABELS}))
    assert fitted.key_values == ("people", "food", "cosmos", "paintings", "interiors")


def test_keys_by_value_are_sorted() -> None:
    fitted = MapValueToKey(output_column="label_as_key", input_column="label", ordinality="by_value").fit(
        DataView({"label": LABELS})
    )
    assert fitted.key_values == ("cosmos", "food", "interiors", "paintings", "people")


def test_label_round_trip() -> None:
    view = DataView({"label": LABELS})
    trained = Pipeline(
        [
            MapValueToKey(output_column="label_as_key", input_column="label"),
            MapKeyToValue(output_column="decoded", input_column="label_as_key"),
        ]
    ).fit(view)

    out = trained.transform(view)

    assert out.column_schema("label_as_key").kind == "key"
    assert list(out.column("decoded")) == LABELS
    assert set(out.column("label_as_key").tolist()) == {0, 1, 2, 3, 4}


def test_unseen_value_is_a_schema_error() -> None:
    fitted = MapValueToKey(output_column="k", input_column="label").fit(DataView({"label": ["a", "b"]}))
    with pytest.raises(ModelSchemaError):
        fitted.transform(DataView({"label": ["c"]}))


def test_key_to_value_needs_key_metadata() -> None:
    with pytest.raises(ModelSchemaError):
        MapKeyToValue(output_column="out", input_column="label").fit(DataView({"label": ["a"]}))
