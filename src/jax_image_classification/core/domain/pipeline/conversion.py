from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from jax_image_classification.core.domain.entities.data_view import DataView
from jax_image_classification.core.domain.errors.model import ModelSchemaError

KeyOrdinality = Literal["by_occurrence", "by_value"]


@dataclass(frozen=True)
class MapValueToKey:
    """Encode a text column as dense integer keys.

    Keys follow first-seen order (`by_occurrence`) or sorted order (`by_value`).
    """

    output_column: str
    input_column: str
    ordinality: KeyOrdinality = "by_occurrence"
    name: str = "map_value_to_key"

    def fit(self, view: DataView) -> "FittedValueToKey":
        seen: dict[str, None] = {}
        for v in view.column(self.input_column):
            if v is not None:
                seen.setdefault(str(v), None)
        values = list(seen)
        if self.ordinality == "by_value":
            values.sort()
        elif self.ordinality != "by_occurrence":
            raise ValueError(f"unknown key ordinality: {self.ordinality}")
        return FittedValueToKey(
            name=self.name,
            output_column=self.output_column,
            input_column=self.input_column,
            key_values=tuple(values),
        )


@dataclass(frozen=True)
class FittedValueToKey:
    name: str
    output_column: str
    input_column: str
    key_values: tuple[str, ...]
    kind: str = "map_value_to_key"

    @property
    def input_columns(self) -> tuple[str, ...]:
        return (self.input_column,)

    @property
    def output_columns(self) -> tuple[str, ...]:
        return (self.output_column,)

    def encode(self, value: str) -> int:
        try:
            return self.key_values.index(value)
        except ValueError:
            raise ModelSchemaError(
                f"value '{value}' in column '{self.input_column}' was not seen during fit; known: {list(self.key_values)}"
            ) from None

    def transform(self, view: DataView) -> DataView:
        keys = np.asarray([self.encode(str(v)) for v in view.column(self.input_column)], dtype=np.int32)
        return view.with_column(self.output_column, keys, kind="key", key_values=self.key_values)

    def to_manifest(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "output_column": self.output_column,
            "input_column": self.input_column,
            "key_values": list(self.key_values),
        }

    def tensors(self) -> dict[str, np.ndarray]:
        return {}

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any], tensors: Mapping[str, np.ndarray], **_: Any) -> "FittedValueToKey":
        return cls(
            name=manifest["name"],
            output_column=manifest["output_column"],
            input_column=manifest["input_column"],
            key_values=tuple(manifest["key_values"]),
        )


@dataclass(frozen=True)
class MapKeyToValue:
    """Decode an integer key column back to text using its key metadata."""

    output_column: str
    input_column: str
    name: str = "map_key_to_value"

    def fit(self, view: DataView) -> "FittedKeyToValue":
        col = view.column_schema(self.input_column)
        if col.kind != "key" or col.key_values is None:
            raise ModelSchemaError(f"column '{self.input_column}' is not a key column with key values")
        return FittedKeyToValue(
            name=self.name,
            output_column=self.output_column,
            input_column=self.input_column,
            key_values=col.key_values,
        )


@dataclass(frozen=True)
class FittedKeyToValue:
    name: str
    output_column: str
    input_column: str
    key_values: tuple[str, ...]
    kind: str = "map_key_to_value"

    @property
    def input_columns(self) -> tuple[str, ...]:
        return (self.input_column,)

    @property
    def output_columns(self) -> tuple[str, ...]:
        return (self.output_column,)

    def decode(self, key: int) -> str:
        if not 0 <= key < len(self.key_values):
            raise ModelSchemaError(f"key {key} out of range for {len(self.key_values)} values")
        return self.key_values[key]

    def transform(self, view: DataView) -> DataView:
        labels = [self.decode(int(k)) for k in view.column(self.input_column)]
        return view.with_column(self.output_column, labels, kind="text")

    def to_manifest(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "output_column": self.output_column,
            "input_column": self.input_column,
            "key_values": list(self.key_values),
        }

    def tensors(self) -> dict[str, np.ndarray]:
        return {}

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any], tensors: Mapping[str, np.ndarray], **_: Any) -> "FittedKeyToValue":
        return cls(
            name=manifest["name"],
            output_column=manifest["output_column"],
            input_column=manifest["input_column"],
            key_values=tuple(manifest["key_values"]),
        )
