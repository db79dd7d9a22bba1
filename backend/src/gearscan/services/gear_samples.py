from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .gear_geometry import REGION_WIDTH, TARGET_HEIGHT, calculate_region, require_cv2
from .gear_models import OcrInputError

SYNTHETIC_WIDTH = 1920
LINE_STEP = 64
TEXT_MARGIN = 20


@dataclass(frozen=True)
class GearSample:
    name: str
    image_bytes: bytes
    expected: dict[str, object]


def render_sample_capture(
    lines: list[str],
    width: int = SYNTHETIC_WIDTH,
    height: int = TARGET_HEIGHT,
) -> bytes:
    """Draw ``lines`` as light-on-dark UI text inside the recognition window.

    Returns PNG bytes. The text is scaled down until the widest line fits
    the 440 px window, so every line reaches the OCR engine uncut.
    """
    cv2 = require_cv2()
    region = calculate_region(width, height)
    canvas = np.zeros((height, width, 3), dtype=np.uint8)
    font = cv2.FONT_HERSHEY_DUPLEX
    thickness = 2

    scale = 1.2
    usable = REGION_WIDTH - 2 * TEXT_MARGIN
    while scale > 0.5:
        widest = max((cv2.getTextSize(line, font, scale, thickness)[0][0] for line in lines), default=0)
        if widest <= usable:
            break
        scale -= 0.1

    x = region.x + TEXT_MARGIN
    y = region.y + TEXT_MARGIN + LINE_STEP
    for line in lines:
        cv2.putText(canvas, line, (x, y), font, scale, (235, 235, 235), thickness, cv2.LINE_AA)
        y += LINE_STEP

    ok, encoded = cv2.imencode(".png", canvas)
    if not ok:
        raise OcrInputError("failed to encode synthetic capture")
    return encoded.tobytes()


def load_gear_samples(manifest_path: Path, assets_dir: Path) -> list[GearSample]:
    """Load manifest samples; ``synthetic`` entries are rendered on the fly.

    Entries point either at a screenshot via ``file`` or list the UI text
    lines to draw via ``synthetic``. Entries whose file is missing are
    dropped.
    """
    if not manifest_path.exists():
        return []
    payload = json.loads(manifest_path.read_text(encoding="utf-8"))
    raw_samples = payload.get("samples") if isinstance(payload, dict) else None
    if not isinstance(raw_samples, list):
        return []

    samples: list[GearSample] = []
    for raw in raw_samples:
        if not isinstance(raw, dict):
            continue
        expected = raw.get("expected")
        if not isinstance(expected, dict):
            continue

        synthetic = raw.get("synthetic")
        rel = raw.get("file")
        if isinstance(synthetic, list):
            name = str(raw.get("name") or "synthetic")
            lines = [str(line) for line in synthetic]
            samples.append(GearSample(name, render_sample_capture(lines), expected))
        elif isinstance(rel, str) and rel.strip():
            image_path = assets_dir / rel
            if image_path.exists():
                samples.append(GearSample(rel, image_path.read_bytes(), expected))
    return samples
