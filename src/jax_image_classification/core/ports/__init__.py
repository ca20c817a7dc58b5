from .dataset_provider import DatasetProviderPort
from .image_featurizer import ImageFeaturizerPort
from .image_source import ImageSourcePort
from .metrics_sink import MetricsSinkPort
from .model_store import ModelStorePort
from .reporter import ReporterPort

__all__ = [
	"DatasetProviderPort",
	"ImageFeaturizerPort",
	"ImageSourcePort",
	"MetricsSinkPort",
	"ModelStorePort",
	"ReporterPort",
]
