from __future__ import annotations

import numpy as np
import pytest

cv2 = pytest.importorskip("cv2")

from gearscan.services.gear_geometry import decode_image, normalize_image  # type: ignore[import-not-found]  # noqa: E402
from gearscan.services.gear_models import InvalidImageError, OcrInputError  # type: ignore[import-not-found]  # noqa: E402


def test_normalize_inverts_grays_and_resizes() -> None:
    image = np.full((1125, 2436, 3), 255, dtype=np.uint8)
    normalized = normalize_image(image)

    assert normalized.image.shape == (1080, 2339)
    assert int(normalized.image.max()) == 0
    assert normalized.source_size == (2436, 1125)
    assert (normalized.region.x, normalized.region.y) == (858, 182)
    assert (normalized.region.width, normalized.region.height) == (440, 760)


def test_normalize_keeps_1080_frame_size() -> None:
    image = np.zeros((1080, 1920, 3), dtype=np.uint8)
    normalized = normalize_image(image)
    assert normalized.image.shape == (1080, 1920)
    assert int(normalized.image.min()) == 255


def test_normalize_rejects_empty_image() -> None:
    with pytest.raises(InvalidImageError):
        normalize_image(np.zeros((0, 0, 3), dtype=np.uint8))


def test_decode_image_rejects_bad_payloads() -> None:
    with pytest.raises(OcrInputError):
        decode_image(b"")
    with pytest.raises(OcrInputError):
        decode_image(b"not an image")


def test_decode_image_round_trip_shape() -> None:
    ok, encoded = cv2.imencode(".png", np.zeros((40, 60, 3), dtype=np.uint8))
    assert ok
    assert decode_image(encoded.tobytes()).shape == (40, 60, 3)
