from __future__ import annotations

import os
from collections.abc import Collection, Iterable, Iterator
from pathlib import Path

from jax_image_classification.core.domain.entities.images import ImageRecord, InMemoryImageRecord
from jax_image_classification.core.ports.image_source import ImageSourcePort


def _walk_files(folder: Path) -> Iterator[Path]:
    """Regular files under `folder`, recursively, in sorted order."""

    for dirpath, dirnames, filenames in os.walk(folder):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path


def _label_from_file_name(name: str) -> str:
    # "cat12.jpg" -> "cat": the leading run of letters.
    for i, ch in enumerate(name):
        if not ch.isalpha():
            return name[:i]
    return name


def _normalize_extensions(extensions: Collection[str] | None) -> frozenset[str] | None:
    if extensions is None:
        return None
    return frozenset(e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions)


def _iter_labeled_files(
    folder: Path,
    *,
    use_folder_name_as_label: bool,
    extensions: frozenset[str] | None,
) -> Iterator[tuple[Path, str]]:
    if use_folder_name_as_label:
        # Only files below a class subfolder carry a label.
        roots = sorted(p for p in folder.iterdir() if p.is_dir())
    else:
        roots = [folder]

    for root in roots:
        for path in _walk_files(root):
            if extensions is not None and path.suffix.lower() not in extensions:
                continue
            label = path.parent.name if use_folder_name_as_label else _label_from_file_name(path.name)
            yield path, label


def _check_folder(folder: str | Path) -> Path:
    p = Path(folder)
    if not p.is_dir():
        raise FileNotFoundError(f"image folder not found: {p}")
    return p


def load_images_from_directory(
    folder: str | Path,
    use_folder_name_as_label: bool = True,
    *,
    extensions: Collection[str] | None = None,
) -> Iterator[ImageRecord]:
    """Lazily enumerate images under `folder` as (path, label) records.

    With `use_folder_name_as_label`, every immediate subfolder is a class and
    each file is labeled by its immediate parent folder name. Otherwise the
    whole tree is walked and the label is the leading letters of the file
    name. Raises FileNotFoundError right away when `folder` is missing.
    """

    root = _check_folder(folder)
    exts = _normalize_extensions(extensions)

    def _gen() -> Iterator[ImageRecord]:
        for path, label in _iter_labeled_files(root, use_folder_name_as_label=use_folder_name_as_label, extensions=exts):
            yield ImageRecord(image_path=str(path), label=label)

    return _gen()


def load_in_memory_images_from_directory(
    folder: str | Path,
    use_folder_name_as_label: bool = True,
    *,
    extensions: Collection[str] | None = None,
) -> Iterator[InMemoryImageRecord]:
    """Same enumeration as `load_images_from_directory`, with the bytes read up front per file."""

    root = _check_folder(folder)
    exts = _normalize_extensions(extensions)

    def _gen() -> Iterator[InMemoryImageRecord]:
        for path, label in _iter_labeled_files(root, use_folder_name_as_label=use_folder_name_as_label, extensions=exts):
            yield InMemoryImageRecord(image_bytes=path.read_bytes(), label=label, image_file_name=path.name)

    return _gen()


class ImageFolderSource(ImageSourcePort):
    """Local-directory image source."""

    def __init__(self, *, extensions: Collection[str] | None = None) -> None:
        self._extensions = extensions

    def load_images(self, folder: str | Path, *, use_folder_name_as_label: bool = True) -> Iterable[ImageRecord]:
        return load_images_from_directory(folder, use_folder_name_as_label, extensions=self._extensions)

    def load_in_memory_images(
        self, folder: str | Path, *, use_folder_name_as_label: bool = True
    ) -> Iterable[InMemoryImageRecord]:
        return load_in_memory_images_from_directory(folder, use_folder_name_as_label, extensions=self._extensions)
