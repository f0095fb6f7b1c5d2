"""Tests for the OpenCV cascade backend and its loading."""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

from facelens.config import Settings
from facelens.ml.classifier import (
    DEFAULT_CASCADE,
    CascadeParams,
    OpenCVCascade,
    load_cascade,
    resolve_cascade_path,
)

PARAMS = CascadeParams(min_size=25, max_size=1000, shift_factor=0.2, scale_factor=1.1)


@pytest.fixture(scope="module")
def bundled_model() -> bytes:
    return resolve_cascade_path(Settings()).read_bytes()


@pytest.fixture()
def cascade(bundled_model: bytes) -> OpenCVCascade:
    return OpenCVCascade.load(bundled_model, name="frontal")


class TestResolveCascadePath:
    def test_defaults_to_bundled_frontal_face_model(self) -> None:
        path = resolve_cascade_path(Settings())
        assert path.name == DEFAULT_CASCADE
        assert path.parent == Path(cv2.data.haarcascades)

    def test_configured_path_wins(self, tmp_path: Path) -> None:
        custom = tmp_path / "custom.xml"
        assert resolve_cascade_path(Settings(cascade_path=str(custom))) == custom


class TestLoad:
    def test_rejects_non_utf8_bytes(self) -> None:
        with pytest.raises(ValueError, match="UTF-8"):
            OpenCVCascade.load(b"\xff\xfe\x00garbage")

    def test_rejects_text_that_is_not_a_cascade(self) -> None:
        with pytest.raises(ValueError, match="Failed to parse"):
            OpenCVCascade.load(b"this is not a cascade model")

    def test_load_cascade_reads_configured_file(self, tmp_path: Path, bundled_model: bytes) -> None:
        model_file = tmp_path / "faces.xml"
        model_file.write_bytes(bundled_model)
        cascade = load_cascade(Settings(cascade_path=str(model_file), min_neighbors=5))
        assert cascade.model_name == "faces"

    def test_load_cascade_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_cascade(Settings(cascade_path=str(tmp_path / "missing.xml")))


class TestRun:
    def test_flat_image_has_no_detections(self, cascade: OpenCVCascade) -> None:
        samples = np.full(120 * 160, 128, dtype=np.uint8)
        assert cascade.run(samples, 120, 160, PARAMS) == []

    def test_rotated_scan_is_rejected(self, cascade: OpenCVCascade) -> None:
        samples = np.zeros(40 * 40, dtype=np.uint8)
        with pytest.raises(ValueError, match="rotated"):
            cascade.run(samples, 40, 40, PARAMS, angle=15.0)

    def test_sample_count_must_match_dimensions(self, cascade: OpenCVCascade) -> None:
        with pytest.raises(ValueError):
            cascade.run(np.zeros(100, dtype=np.uint8), 20, 20, PARAMS)

    def test_reusable_across_runs(self, cascade: OpenCVCascade) -> None:
        rng = np.random.default_rng(7)
        samples = rng.integers(0, 256, size=96 * 96, dtype=np.uint8)
        first = cascade.run(samples, 96, 96, PARAMS)
        second = cascade.run(samples, 96, 96, PARAMS)
        assert first == second
        for detection in first:
            assert detection.scale >= PARAMS.min_size
            assert detection.score >= 1
