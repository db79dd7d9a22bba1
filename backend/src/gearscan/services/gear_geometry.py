from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from .gear_models import InvalidImageError, OcrDependencyError, OcrInputError

TARGET_HEIGHT = 1080
REGION_WIDTH = 440
REGION_HEIGHT = 760
# Horizontal centering basis. Wider than REGION_WIDTH, so the window sits
# left of center.
REGION_CENTER_BASIS = 720


@dataclass(frozen=True)
class Region:
    x: int
    y: int
    width: int
    height: int

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "w": self.width, "h": self.height}


@dataclass(frozen=True)
class NormalizedImage:
    image: np.ndarray
    region: Region
    source_size: tuple[int, int]


def require_cv2() -> Any:
    try:
        import cv2  # type: ignore
    except Exception as exc:  # noqa: BLE001
        raise OcrDependencyError("opencv-python-headless is required") from exc
    return cv2


def _image_size(image: np.ndarray) -> tuple[int, int]:
    if image is None or image.ndim < 2 or image.size == 0:
        raise InvalidImageError("invalid image size")
    h, w = image.shape[:2]
    if w <= 0 or h <= 0:
        raise InvalidImageError("invalid image size")
    return int(w), int(h)


def decode_image(image_bytes: bytes) -> np.ndarray:
    if not image_bytes:
        raise OcrInputError("empty image bytes")
    cv2 = require_cv2()
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    image = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if image is None:
        raise OcrInputError("failed to decode image bytes")
    return image


def invert_colors(image: np.ndarray) -> np.ndarray:
    _image_size(image)
    cv2 = require_cv2()
    return cv2.bitwise_not(image)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    _image_size(image)
    if image.ndim == 2:
        return image
    cv2 = require_cv2()
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def resize_to_1080(image: np.ndarray) -> np.ndarray:
    """Scale ``image`` to 1080 px tall, keeping the aspect ratio.

    Common phone captures: 2436x1125, 2280x1080, 2220x1080, 2160x1080 and
    1920x1080. Images already 1080 px tall are returned as-is.
    """
    w, h = _image_size(image)
    if h == TARGET_HEIGHT:
        return image

    cv2 = require_cv2()
    scale = TARGET_HEIGHT / float(h)
    new_w = max(1, int(round(w * scale)))
    interpolation = cv2.INTER_AREA if h > TARGET_HEIGHT else cv2.INTER_CUBIC
    return cv2.resize(image, (new_w, TARGET_HEIGHT), interpolation=interpolation)


def calculate_region(width: int, height: int) -> Region:
    """Fixed 440x760 recognition window centered on a 720x760 basis.

    ``width``/``height`` are the dimensions of the capture before it was
    rescaled to 1080 px.
    """
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"invalid image size {width}x{height}")
    # int() truncates toward zero for captures narrower than the basis.
    x = int((width - REGION_CENTER_BASIS) / 2)
    y = int((height - REGION_HEIGHT) / 2)
    return Region(x=x, y=y, width=REGION_WIDTH, height=REGION_HEIGHT)


def normalize_image(image: np.ndarray) -> NormalizedImage:
    source_w, source_h = _image_size(image)
    processed = invert_colors(image)
    processed = to_grayscale(processed)
    processed = resize_to_1080(processed)
    region = calculate_region(source_w, source_h)
    return NormalizedImage(
        image=processed,
        region=region,
        source_size=(source_w, source_h),
    )


def crop_region(image: np.ndarray, region: Region) -> np.ndarray:
    w, h = _image_size(image)
    x0 = min(max(0, region.x), w)
    y0 = min(max(0, region.y), h)
    x1 = min(w, region.x + region.width)
    y1 = min(h, region.y + region.height)
    if x1 <= x0 or y1 <= y0:
        raise InvalidImageError(
            f"region {region.to_dict()} does not overlap image {w}x{h}"
        )
    return image[y0:y1, x0:x1].copy()
