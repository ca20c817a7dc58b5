"""Staged fit/transform pipeline.

A pipeline is an explicit ordered list of named stages; there is no fluent
estimator chaining.
"""

from .base import FittedStage, Pipeline, Stage, TrainedModel, TrainedPipeline
from .conversion import FittedKeyToValue, FittedValueToKey, MapKeyToValue, MapValueToKey
from .images import LoadRawImageBytes

__all__ = [
	"FittedKeyToValue",
	"FittedStage",
	"FittedValueToKey",
	"LoadRawImageBytes",
	"MapKeyToValue",
	"MapValueToKey",
	"Pipeline",
	"Stage",
	"TrainedModel",
	"TrainedPipeline",
]
