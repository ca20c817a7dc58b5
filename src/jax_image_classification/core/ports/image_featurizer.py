from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import numpy as np

from jax_image_classification.core.domain.entities.model import FeaturizerSpec


class ImageFeaturizerPort(Protocol):
    """Port for the pre-trained backbone that turns encoded images into bottleneck features.

    Image decoding and the network itself live in adapters (TensorFlow/Keras).
    """

    @property
    def spec(self) -> FeaturizerSpec: ...

    def featurize(self, images: Sequence[bytes]) -> np.ndarray:
        """Return an array of shape (len(images), feature_dim)."""
        ...
