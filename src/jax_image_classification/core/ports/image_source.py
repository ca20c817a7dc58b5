from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from jax_image_classification.core.domain.entities.images import ImageRecord, InMemoryImageRecord


class ImageSourcePort(Protocol):
    """Port for enumerating labeled images (local folders, buckets, ...)."""

    def load_images(self, folder: str | Path, *, use_folder_name_as_label: bool = True) -> Iterable[ImageRecord]: ...

    def load_in_memory_images(
        self, folder: str | Path, *, use_folder_name_as_label: bool = True
    ) -> Iterable[InMemoryImageRecord]: ...
