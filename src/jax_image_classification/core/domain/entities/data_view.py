from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

ColumnKind = Literal["text", "bytes", "key", "vector", "number"]


@dataclass(frozen=True)
class ColumnSchema:
    """Name and type of one column.

    `key_values` holds the ordered label list for `key` columns (index -> label)
    and the slot names for `vector` score columns.
    """

    name: str
    kind: ColumnKind
    key_values: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "key_values": list(self.key_values) if self.key_values is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ColumnSchema":
        key_values = data.get("key_values")
        return cls(
            name=str(data["name"]),
            kind=data["kind"],
            key_values=tuple(str(k) for k in key_values) if key_values is not None else None,
        )


def _infer_kind(values: Sequence[Any]) -> ColumnKind:
    if isinstance(values, np.ndarray):
        if values.ndim > 1:
            return "vector"
        return "number"
    for v in values:
        if v is None:
            continue
        if isinstance(v, (bytes, bytearray)):
            return "bytes"
        if isinstance(v, str):
            return "text"
        if isinstance(v, np.ndarray):
            return "vector"
        return "number"
    return "text"


class DataView:
    """Immutable column-oriented table.

    Columns are plain lists (text/bytes) or NumPy arrays (keys, numbers,
    vectors). Every operation returns a new view; the source is never mutated.
    """

    def __init__(
        self,
        columns: Mapping[str, Sequence[Any]],
        schema: Iterable[ColumnSchema] | None = None,
    ) -> None:
        self._columns: dict[str, Sequence[Any]] = dict(columns)

        lengths = {len(v) for v in self._columns.values()}
        if len(lengths) > 1:
            raise ValueError(f"all columns must have the same length, got {sorted(lengths)}")
        self._num_rows = lengths.pop() if lengths else 0

        given = {c.name: c for c in (schema or ())}
        self._schema: dict[str, ColumnSchema] = {}
        for name, values in self._columns.items():
            self._schema[name] = given.get(name) or ColumnSchema(name=name, kind=_infer_kind(values))

    @classmethod
    def from_records(cls, records: Iterable[Any]) -> "DataView":
        """Build a view from dataclass records; one column per field."""

        rows = list(records)
        if not rows:
            return cls({})
        names = [f.name for f in dataclasses.fields(rows[0])]
        return cls({name: [getattr(r, name) for r in rows] for name in names})

    @property
    def num_rows(self) -> int:
        return self._num_rows

    def __len__(self) -> int:
        return self._num_rows

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(self._columns)

    @property
    def schema(self) -> tuple[ColumnSchema, ...]:
        return tuple(self._schema.values())

    def column_schema(self, name: str) -> ColumnSchema:
        if name not in self._schema:
            raise KeyError(f"column '{name}' not found; available: {list(self._columns)}")
        return self._schema[name]

    def column(self, name: str) -> Sequence[Any]:
        if name not in self._columns:
            raise KeyError(f"column '{name}' not found; available: {list(self._columns)}")
        return self._columns[name]

    def with_column(
        self,
        name: str,
        values: Sequence[Any],
        *,
        kind: ColumnKind | None = None,
        key_values: tuple[str, ...] | None = None,
    ) -> "DataView":
        """Return a copy with `name` added (or replaced)."""

        columns = dict(self._columns)
        columns[name] = values
        schema = {k: v for k, v in self._schema.items() if k != name}
        schema[name] = ColumnSchema(name=name, kind=kind or _infer_kind(values), key_values=key_values)
        return DataView(columns, schema.values())

    def take(self, indices: Sequence[int] | np.ndarray) -> "DataView":
        idx = np.asarray(indices, dtype=np.int64)
        columns: dict[str, Sequence[Any]] = {}
        for name, values in self._columns.items():
            if isinstance(values, np.ndarray):
                columns[name] = values[idx]
            else:
                columns[name] = [values[i] for i in idx.tolist()]
        return DataView(columns, self._schema.values())

    def rows(self) -> Iterator[dict[str, Any]]:
        names = list(self._columns)
        for i in range(self._num_rows):
            yield {name: self._columns[name][i] for name in names}
