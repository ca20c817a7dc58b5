from __future__ import annotations

import json
import os
import shutil
import zipfile
from pathlib import Path
from typing import Any

import numpy as np
from safetensors import SafetensorError
from safetensors.numpy import load as load_tensors
from safetensors.numpy import save as save_tensors

from jax_image_classification.core.domain.entities.data_view import ColumnSchema
from jax_image_classification.core.domain.errors.model import ModelFormatError
from jax_image_classification.core.domain.pipeline.base import FittedStage, TrainedModel, TrainedPipeline
from jax_image_classification.core.domain.pipeline.conversion import FittedKeyToValue, FittedValueToKey
from jax_image_classification.core.domain.pipeline.images import LoadRawImageBytes
from jax_image_classification.core.ports.model_store import ModelStorePort
from jax_image_classification.core.use_cases.image_classification_trainer import (
    FeaturizerFactory,
    FittedImageClassifier,
)

FORMAT_VERSION = 1
MANIFEST_NAME = "manifest.json"
TENSORS_NAME = "tensors.safetensors"

_STAGE_KINDS: dict[str, Any] = {
    FittedValueToKey.kind: FittedValueToKey,
    FittedKeyToValue.kind: FittedKeyToValue,
    LoadRawImageBytes.kind: LoadRawImageBytes,
    FittedImageClassifier.kind: FittedImageClassifier,
}


class ZipModelStore(ModelStorePort):
    """Stores a trained pipeline as one .zip file.

    Layout:
      manifest.json         format version, input schema, one entry per stage
      tensors.safetensors   learned arrays, keyed "stage_<i>/<name>"

    The backbone itself is not stored; stages record which pre-trained network
    they used and `featurizer_factory` rebuilds it on load.
    """

    def __init__(self, *, featurizer_factory: FeaturizerFactory) -> None:
        self._featurizer_factory = featurizer_factory

    def save(self, model: TrainedModel, path: str | Path) -> Path:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)

        stages = []
        tensors: dict[str, np.ndarray] = {}
        for i, stage in enumerate(model.pipeline.stages):
            stages.append(stage.to_manifest())
            for name, arr in stage.tensors().items():
                tensors[f"stage_{i}/{name}"] = np.ascontiguousarray(arr)

        manifest = {
            "format_version": FORMAT_VERSION,
            "input_schema": [c.to_dict() for c in model.input_schema],
            "stages": stages,
        }

        with zipfile.ZipFile(out, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2))
            if tensors:
                zf.writestr(TENSORS_NAME, save_tensors(tensors))
        return out

    def load(self, path: str | Path) -> TrainedModel:
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(f"model file not found: {p}")

        try:
            with zipfile.ZipFile(p, mode="r") as zf:
                names = set(zf.namelist())
                if MANIFEST_NAME not in names:
                    raise ModelFormatError(f"{p} has no {MANIFEST_NAME}")
                manifest = json.loads(zf.read(MANIFEST_NAME).decode("utf-8"))
                tensors = load_tensors(zf.read(TENSORS_NAME)) if TENSORS_NAME in names else {}
        except zipfile.BadZipFile as e:
            raise ModelFormatError(f"{p} is not a model archive: {e}") from e
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ModelFormatError(f"{p} has an unreadable manifest: {e}") from e
        except SafetensorError as e:
            raise ModelFormatError(f"{p} has unreadable tensors: {e}") from e

        if not isinstance(manifest, dict):
            raise ModelFormatError(f"{p} manifest must be a JSON object, got {type(manifest).__name__}")

        version = manifest.get("format_version")
        if version != FORMAT_VERSION:
            raise ModelFormatError(f"unsupported model format version {version!r} (expected {FORMAT_VERSION})")

        stages: list[FittedStage] = []
        entries = manifest.get("stages", [])
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise ModelFormatError(f"{p} manifest 'stages' must be a list of objects")

        for i, entry in enumerate(entries):
            cls = _STAGE_KINDS.get(entry.get("kind"))
            if cls is None:
                raise ModelFormatError(f"unknown stage kind {entry.get('kind')!r} in {p}")
            prefix = f"stage_{i}/"
            stage_tensors = {k[len(prefix) :]: v for k, v in tensors.items() if k.startswith(prefix)}
            try:
                stages.append(cls.from_manifest(entry, stage_tensors, featurizer_factory=self._featurizer_factory))
            except ModelFormatError:
                raise
            except (KeyError, TypeError, ValueError) as e:
                raise ModelFormatError(f"stage {i} in {p} is malformed: {e!r}") from e

        try:
            input_schema = tuple(ColumnSchema.from_dict(c) for c in manifest.get("input_schema", []))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ModelFormatError(f"{p} has a malformed input schema: {e!r}") from e
        return TrainedModel(pipeline=TrainedPipeline(stages), input_schema=input_schema)

    def copy(self, source: str | Path, destination: str | Path) -> Path:
        """Copy a saved model byte-for-byte, replacing any existing file."""

        dst = Path(destination)
        os.makedirs(dst.parent, exist_ok=True)
        shutil.copyfile(source, dst)
        return dst
