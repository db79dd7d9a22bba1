from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

cv2 = pytest.importorskip("cv2")

from gearscan.services.gear_geometry import Region, crop_region, decode_image, normalize_image  # type: ignore[import-not-found]  # noqa: E402
from gearscan.services.gear_samples import load_gear_samples, render_sample_capture  # type: ignore[import-not-found]  # noqa: E402


def test_render_keeps_text_inside_recognition_window() -> None:
    image = decode_image(render_sample_capture(["Critical Hit Chance 12%", "Effect Resistance Set"]))
    assert image.shape == (1080, 1920, 3)

    window = crop_region(image, Region(x=600, y=160, width=440, height=760))
    assert int(window.max()) > 0
    # Nothing is drawn outside the window.
    assert int(image.sum()) == int(window.sum())


def test_rendered_capture_is_dark_text_after_normalization() -> None:
    image = decode_image(render_sample_capture(["Epic Ring"]))
    normalized = normalize_image(image)
    assert normalized.image.ndim == 2
    assert float(np.median(normalized.image)) == 255.0
    assert int(normalized.image.min()) < 64


def test_load_gear_samples_reads_files_and_synthetic(tmp_path: Path) -> None:
    ok, encoded = cv2.imencode(".png", np.zeros((1080, 1920, 3), dtype=np.uint8))
    assert ok
    (tmp_path / "shot.png").write_bytes(encoded.tobytes())
    manifest = tmp_path / "manifest.json"
    manifest.write_text(
        json.dumps(
            {
                "samples": [
                    {"file": "shot.png", "expected": {"set": "Rage"}},
                    {"file": "missing.png", "expected": {"set": "Rage"}},
                    {"name": "drawn", "synthetic": ["Epic Ring"], "expected": {"grade": "Epic"}},
                    {"file": "shot.png"},
                ]
            }
        ),
        encoding="utf-8",
    )

    samples = load_gear_samples(manifest, tmp_path)

    assert [row.name for row in samples] == ["shot.png", "drawn"]
    assert samples[0].image_bytes == encoded.tobytes()
    assert samples[1].expected == {"grade": "Epic"}


def test_load_gear_samples_without_manifest(tmp_path: Path) -> None:
    assert load_gear_samples(tmp_path / "manifest.json", tmp_path) == []
