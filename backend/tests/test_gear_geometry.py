from __future__ import annotations

import numpy as np
import pytest

from gearscan.services.gear_geometry import (  # type: ignore[import-not-found]
    REGION_HEIGHT,
    REGION_WIDTH,
    Region,
    calculate_region,
    crop_region,
    resize_to_1080,
)
from gearscan.services.gear_models import InvalidImageError  # type: ignore[import-not-found]


def test_region_extent_is_fixed() -> None:
    for width, height in ((1920, 1080), (2436, 1125), (2280, 1080), (800, 600), (3840, 2160)):
        region = calculate_region(width, height)
        assert (region.width, region.height) == (REGION_WIDTH, REGION_HEIGHT)


def test_region_origin_uses_720_basis() -> None:
    assert calculate_region(1920, 1080) == Region(x=600, y=160, width=440, height=760)
    assert calculate_region(2436, 1125) == Region(x=858, y=182, width=440, height=760)


def test_region_truncates_toward_zero() -> None:
    region = calculate_region(699, 759)
    assert region.x == -10
    assert region.y == 0


@pytest.mark.parametrize(("width", "height"), [(0, 1080), (1920, 0), (-5, 100)])
def test_region_rejects_non_positive_size(width: int, height: int) -> None:
    with pytest.raises(InvalidImageError):
        calculate_region(width, height)


def test_resize_passes_through_1080() -> None:
    image = np.zeros((1080, 1920), dtype=np.uint8)
    assert resize_to_1080(image) is image


def test_resize_scales_taller_capture() -> None:
    pytest.importorskip("cv2")
    image = np.zeros((1125, 2436), dtype=np.uint8)
    resized = resize_to_1080(image)
    assert resized.shape == (1080, 2339)


def test_resize_scales_shorter_capture() -> None:
    pytest.importorskip("cv2")
    image = np.zeros((720, 1280, 3), dtype=np.uint8)
    resized = resize_to_1080(image)
    assert resized.shape == (1080, 1920, 3)


def test_resize_rejects_empty_image() -> None:
    with pytest.raises(InvalidImageError):
        resize_to_1080(np.zeros((0, 10), dtype=np.uint8))


def test_crop_region_clamps_to_bounds() -> None:
    image = np.arange(100 * 200, dtype=np.uint16).reshape(100, 200)
    crop = crop_region(image, Region(x=-10, y=50, width=440, height=760))
    assert crop.shape == (50, 200)
    assert crop[0, 0] == image[50, 0]


def test_crop_region_without_overlap_raises() -> None:
    image = np.zeros((100, 200), dtype=np.uint8)
    with pytest.raises(InvalidImageError):
        crop_region(image, Region(x=500, y=0, width=440, height=760))
