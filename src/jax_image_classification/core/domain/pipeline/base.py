from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from jax_image_classification.core.domain.entities.data_view import ColumnSchema, DataView


class FittedStage(Protocol):
    """A stage whose parameters have been learned; applies them to any view."""

    kind: str
    name: str

    @property
    def input_columns(self) -> tuple[str, ...]: ...

    @property
    def output_columns(self) -> tuple[str, ...]: ...

    def transform(self, view: DataView) -> DataView: ...

    def to_manifest(self) -> dict[str, Any]:
        """JSON-serializable description, excluding tensors."""
        ...

    def tensors(self) -> dict[str, np.ndarray]:
        """Learned arrays to persist alongside the manifest."""
        ...


class Stage(Protocol):
    """An unfitted stage.

    A stage may also define `fit_transform(view) -> (fitted, output)` to hand
    the next stage its output without a second pass over the data.
    """

    name: str

    def fit(self, view: DataView) -> FittedStage: ...


class Pipeline:
    """Ordered list of named stages.

    Fitting is sequential: each stage is fit on the view produced by the
    previous fitted stage, then transforms it for the next one.
    """

    def __init__(self, stages: Sequence[Stage] = ()) -> None:
        self._stages: list[Stage] = list(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return tuple(self._stages)

    def fit(self, view: DataView) -> "TrainedPipeline":
        fitted: list[FittedStage] = []
        current = view
        for i, stage in enumerate(self._stages):
            # The last stage's output is not needed to finish fitting.
            if i == len(self._stages) - 1:
                fitted.append(stage.fit(current))
                break
            fit_transform = getattr(stage, "fit_transform", None)
            if fit_transform is not None:
                f, current = fit_transform(current)
            else:
                f = stage.fit(current)
                current = f.transform(current)
            fitted.append(f)
        return TrainedPipeline(fitted)


class TrainedPipeline:
    def __init__(self, stages: Sequence[FittedStage]) -> None:
        self._stages: list[FittedStage] = list(stages)

    @property
    def stages(self) -> tuple[FittedStage, ...]:
        return tuple(self._stages)

    @property
    def required_columns(self) -> tuple[str, ...]:
        """Input columns read by some stage and not produced by an earlier one."""

        produced: set[str] = set()
        required: list[str] = []
        for stage in self._stages:
            for col in stage.input_columns:
                if col not in produced and col not in required:
                    required.append(col)
            produced.update(stage.output_columns)
        return tuple(required)

    def transform(self, view: DataView) -> DataView:
        for stage in self._stages:
            view = stage.transform(view)
        return view


@dataclass(frozen=True)
class TrainedModel:
    """A fitted pipeline plus the schema of the data it was trained on."""

    pipeline: TrainedPipeline
    input_schema: tuple[ColumnSchema, ...]
