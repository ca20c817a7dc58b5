from __future__ import annotations

import json
import zipfile
from pathlib import Path

import pytest

from jax_image_classification.core.domain.entities.images import InMemoryImageRecord
from jax_image_classification.core.domain.errors.model import ModelFormatError
from jax_image_classification.core.use_cases.predict_images import PredictionEngine

from conftest import fake_image_bytes


def test_reloaded_model_predicts_like_the_trained_one(trained, model_store) -> None:
    result, _ = trained
    record = InMemoryImageRecord(image_bytes=fake_image_bytes("dog", 3), image_file_name="dog3.jpg")

    in_memory = PredictionEngine(result.model).predict(record)
    reloaded = PredictionEngine.load(result.output_model_path, model_store=model_store).predict(record)

    assert reloaded.predicted_label == in_memory.predicted_label
    assert reloaded.class_labels == in_memory.class_labels
    assert reloaded.scores == pytest.approx(in_memory.scores, abs=1e-6)


def test_manifest_describes_every_stage(trained) -> None:
    result, _ = trained

    with zipfile.ZipFile(result.output_model_path) as zf:
        manifest = json.loads(zf.read("manifest.json"))
        assert "tensors.safetensors" in zf.namelist()

    assert manifest["format_version"] == 1
    assert [s["kind"] for s in manifest["stages"]] == ["image_classification", "map_key_to_value"]
    assert manifest["stages"][0]["featurizer"]["architecture"] == "byte_stats"


def test_copy_overwrites_destination(trained, model_store, tmp_path: Path) -> None:
    result, _ = trained
    dst = tmp_path / "elsewhere" / "model.zip"
    dst.parent.mkdir()
    dst.write_bytes(b"stale")

    model_store.copy(result.output_model_path, dst)

    assert dst.read_bytes() == result.output_model_path.read_bytes()


def test_missing_model_raises_file_not_found(model_store, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        model_store.load(tmp_path / "nope.zip")


def test_garbage_file_raises_model_format_error(model_store, tmp_path: Path) -> None:
    p = tmp_path / "garbage.zip"
    p.write_bytes(b"definitely not a zip archive")
    with pytest.raises(ModelFormatError):
        model_store.load(p)


def test_unsupported_version_raises_model_format_error(model_store, tmp_path: Path) -> None:
    p = tmp_path / "future.zip"
    with zipfile.ZipFile(p, "w") as zf:
        zf.writestr("manifest.json", json.dumps({"format_version": 99, "stages": []}))
    with pytest.raises(ModelFormatError, match="version"):
        model_store.load(p)


def test_unknown_stage_kind_raises_model_format_error(model_store, tmp_path: Path) -> None:
    p = tmp_path / "odd.zip"
    with zipfile.ZipFile(p, "w") as zf:
        zf.writestr("manifest.json", json.dumps({"format_version": 1, "stages": [{"kind": "mystery"}]}))
    with pytest.raises(ModelFormatError, match="mystery"):
        model_store.load(p)


def _write_archive(path: Path, manifest_bytes: bytes, tensors: bytes | None = None) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("manifest.json", manifest_bytes)
        if tensors is not None:
            zf.writestr("tensors.safetensors", tensors)
    return path


def test_corrupt_tensor_blob_raises_model_format_error(model_store, tmp_path: Path) -> None:
    manifest = json.dumps({"format_version": 1, "stages": []}).encode("utf-8")
    p = _write_archive(tmp_path / "bad_tensors.zip", manifest, b"\x00garbage")
    with pytest.raises(ModelFormatError, match="tensors"):
        model_store.load(p)


def test_list_shaped_manifest_raises_model_format_error(model_store, tmp_path: Path) -> None:
    p = _write_archive(tmp_path / "list.zip", b"[1, 2]")
    with pytest.raises(ModelFormatError, match="JSON object"):
        model_store.load(p)


def test_non_utf8_manifest_raises_model_format_error(model_store, tmp_path: Path) -> None:
    p = _write_archive(tmp_path / "latin1.zip", b"\xff\xfe\x00{")
    with pytest.raises(ModelFormatError):
        model_store.load(p)


def test_stage_with_unexpected_fields_raises_model_format_error(trained, model_store, tmp_path: Path) -> None:
    result, _ = trained
    with zipfile.ZipFile(result.output_model_path) as zf:
        manifest = json.loads(zf.read("manifest.json"))
        tensors = zf.read("tensors.safetensors")
    manifest["stages"][0]["featurizer"]["unexpected"] = 1

    p = _write_archive(tmp_path / "extra_field.zip", json.dumps(manifest).encode("utf-8"), tensors)
    with pytest.raises(ModelFormatError, match="stage 0"):
        model_store.load(p)
