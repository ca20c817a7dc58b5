from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageRecord:
    """An image on disk tagged with its class label."""

    image_path: str
    label: str


@dataclass(frozen=True)
class InMemoryImageRecord:
    """Raw image bytes loaded up front, for one-shot predictions."""

    image_bytes: bytes
    label: str | None = None
    image_file_name: str = ""
