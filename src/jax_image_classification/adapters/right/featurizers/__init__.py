
from .keras_backbone import ARCHITECTURES, KerasBackboneFeaturizer

__all__ = [
	"ARCHITECTURES",
	"KerasBackboneFeaturizer",
]
