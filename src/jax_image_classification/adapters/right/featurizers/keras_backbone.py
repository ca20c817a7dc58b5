from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import tensorflow as tf

from jax_image_classification.core.domain.entities.model import FeaturizerSpec
from jax_image_classification.core.ports.image_featurizer import ImageFeaturizerPort

# architecture name -> (constructor, preprocess_input)
_ARCHITECTURES = {
    "resnet_v2_101": (tf.keras.applications.ResNet101V2, tf.keras.applications.resnet_v2.preprocess_input),
    "resnet_v2_50": (tf.keras.applications.ResNet50V2, tf.keras.applications.resnet_v2.preprocess_input),
    "mobilenet_v2": (tf.keras.applications.MobileNetV2, tf.keras.applications.mobilenet_v2.preprocess_input),
    "inception_v3": (tf.keras.applications.InceptionV3, tf.keras.applications.inception_v3.preprocess_input),
}

ARCHITECTURES = tuple(_ARCHITECTURES)


class KerasBackboneFeaturizer(ImageFeaturizerPort):
    """Frozen ImageNet backbone from `tf.keras.applications`.

    Images are decoded and resized by TensorFlow, then pooled to one vector
    per image (global average pooling over the last conv block).
    """

    def __init__(
        self,
        *,
        architecture: str = "resnet_v2_101",
        image_size: int = 224,
        weights: str = "imagenet",
        batch_size: int = 32,
    ) -> None:
        if architecture not in _ARCHITECTURES:
            raise ValueError(f"architecture must be one of: {', '.join(ARCHITECTURES)}")

        ctor, preprocess = _ARCHITECTURES[architecture]
        self._spec = FeaturizerSpec(architecture=architecture, image_size=int(image_size), weights=weights)
        self._preprocess = preprocess
        self._batch_size = batch_size

        self._model = ctor(
            include_top=False,
            weights=weights,
            input_shape=(image_size, image_size, 3),
            pooling="avg",
        )
        self._model.trainable = False
        self._feature_dim = int(self._model.output_shape[-1])

    @classmethod
    def from_spec(cls, spec: FeaturizerSpec) -> "KerasBackboneFeaturizer":
        return cls(architecture=spec.architecture, image_size=spec.image_size, weights=spec.weights)

    @property
    def spec(self) -> FeaturizerSpec:
        return self._spec

    def _decode(self, data: bytes) -> tf.Tensor:
        image = tf.io.decode_image(data, channels=3, expand_animations=False)
        image = tf.image.resize(image, (self._spec.image_size, self._spec.image_size))
        return tf.cast(image, tf.float32)

    def featurize(self, images: Sequence[bytes]) -> np.ndarray:
        if not images:
            return np.zeros((0, self._feature_dim), dtype=np.float32)

        out = []
        for start in range(0, len(images), self._batch_size):
            batch = tf.stack([self._decode(b) for b in images[start : start + self._batch_size]])
            features = self._model(self._preprocess(batch), training=False)
            out.append(np.asarray(features, dtype=np.float32))
        return np.concatenate(out, axis=0)
