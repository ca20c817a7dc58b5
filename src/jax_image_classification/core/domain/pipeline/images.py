from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from jax_image_classification.core.domain.entities.data_view import DataView


@dataclass(frozen=True)
class LoadRawImageBytes:
    """Replace image paths by the file contents; relative paths resolve against `image_folder`.

    Nothing is learned, so the stage is its own fitted form.
    """

    output_column: str
    input_column: str
    image_folder: str = ""
    name: str = "load_raw_image_bytes"
    kind: str = "load_raw_image_bytes"

    @property
    def input_columns(self) -> tuple[str, ...]:
        return (self.input_column,)

    @property
    def output_columns(self) -> tuple[str, ...]:
        return (self.output_column,)

    def fit(self, view: DataView) -> "LoadRawImageBytes":
        view.column_schema(self.input_column)
        return self

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if not p.is_absolute() and self.image_folder:
            p = Path(self.image_folder) / p
        return p

    def transform(self, view: DataView) -> DataView:
        data = [self._resolve(str(p)).read_bytes() for p in view.column(self.input_column)]
        return view.with_column(self.output_column, data, kind="bytes")

    def to_manifest(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "output_column": self.output_column,
            "input_column": self.input_column,
            "image_folder": self.image_folder,
        }

    def tensors(self) -> dict[str, np.ndarray]:
        return {}

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any], tensors: Mapping[str, np.ndarray], **_: Any) -> "LoadRawImageBytes":
        return cls(
            output_column=manifest["output_column"],
            input_column=manifest["input_column"],
            image_folder=manifest.get("image_folder", ""),
            name=manifest["name"],
        )
