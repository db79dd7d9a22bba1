from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .gear_geometry import crop_region, decode_image, normalize_image
from .gear_models import GearOcrError, ItemRecord, OcrInputError
from .gear_parser import assemble_item, classify_lines, split_lines
from .tesseract_gateway import RecognitionGateway, TesseractGateway

logger = logging.getLogger("gearscan.ocr")

COLUMN_MODE = "single_column"


@dataclass(frozen=True)
class BatchOutcome:
    item: ItemRecord | None
    error_code: str | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.item is not None

    def to_dict(self) -> dict[str, object]:
        if self.item is not None:
            return {"ok": True, "item": self.item.to_dict()}
        return {
            "ok": False,
            "error": {"code": self.error_code, "message": self.message},
        }


def recognize_gear(
    *,
    image_bytes: bytes,
    gateway: RecognitionGateway | None = None,
    legacy_set_spelling: bool = False,
    keep_debug_images: bool = False,
) -> tuple[dict[str, object], dict[str, object] | None]:
    """Read one item inspection screenshot into an :class:`ItemRecord`.

    Returns ``(result, artifacts)``. ``result["item"]`` holds the record and
    ``result["debug"]`` the recognition window and raw OCR lines.
    ``artifacts`` holds the intermediate images when ``keep_debug_images``
    is set, otherwise ``None``.
    """
    started = time.perf_counter()
    gateway = gateway or TesseractGateway()

    image = decode_image(image_bytes)
    normalized = normalize_image(image)
    del image

    text = gateway.recognize(normalized.image, normalized.region, COLUMN_MODE)
    lines = split_lines(text)
    logger.debug("ocr lines=%d region=%s", len(lines), normalized.region.to_dict())

    scan = classify_lines(lines, legacy_set_spelling=legacy_set_spelling)
    item = assemble_item(scan)

    h, w = normalized.image.shape[:2]
    result: dict[str, object] = {
        "item": item,
        "debug": {
            "region": normalized.region.to_dict(),
            "sourceSize": {"w": normalized.source_size[0], "h": normalized.source_size[1]},
            "normalizedSize": {"w": int(w), "h": int(h)},
            "lines": lines,
            "headerLine": scan.header_line,
            "footerLine": scan.footer_line,
            "elapsedMs": round((time.perf_counter() - started) * 1000.0, 2),
        },
    }

    artifacts: dict[str, object] | None = None
    if keep_debug_images:
        artifacts = {
            "normalized": normalized.image,
            "region": crop_region(normalized.image, normalized.region),
        }
    return result, artifacts


def recognize_gear_file(
    path: Path | str,
    *,
    gateway: RecognitionGateway | None = None,
    legacy_set_spelling: bool = False,
    keep_debug_images: bool = False,
) -> tuple[dict[str, object], dict[str, object] | None]:
    image_path = Path(path)
    if not image_path.is_file():
        raise OcrInputError(f"image not found: {image_path}")
    return recognize_gear(
        image_bytes=image_path.read_bytes(),
        gateway=gateway,
        legacy_set_spelling=legacy_set_spelling,
        keep_debug_images=keep_debug_images,
    )


def _recognize_one(
    image_bytes: bytes,
    gateway: RecognitionGateway,
    legacy_set_spelling: bool,
) -> BatchOutcome:
    try:
        result, _ = recognize_gear(
            image_bytes=image_bytes,
            gateway=gateway,
            legacy_set_spelling=legacy_set_spelling,
        )
    except GearOcrError as exc:
        return BatchOutcome(item=None, error_code=exc.code, message=str(exc))
    return BatchOutcome(item=result["item"])  # type: ignore[arg-type]


def recognize_gear_batch(
    images: Mapping[str, bytes],
    *,
    gateway: RecognitionGateway | None = None,
    legacy_set_spelling: bool = False,
    max_workers: int = 4,
) -> dict[str, BatchOutcome]:
    """Recognize several screenshots in parallel, keyed like ``images``.

    A failing screenshot yields a :class:`BatchOutcome` with its error code;
    the other entries are unaffected.
    """
    gateway = gateway or TesseractGateway()
    outcomes: dict[str, BatchOutcome] = {}
    if not images:
        return outcomes

    workers = max(1, min(max_workers, len(images)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_map = {
            executor.submit(_recognize_one, payload, gateway, legacy_set_spelling): key
            for key, payload in images.items()
        }
        for future in as_completed(future_map):
            key = future_map[future]
            try:
                outcomes[key] = future.result()
            except Exception as exc:  # noqa: BLE001
                logger.exception("gear ocr failed unexpectedly key=%s", key)
                outcomes[key] = BatchOutcome(
                    item=None,
                    error_code="OCR_UNKNOWN_ERROR",
                    message=str(exc),
                )

    failed = sum(1 for row in outcomes.values() if not row.ok)
    logger.info("gear ocr batch finished total=%d failed=%d", len(outcomes), failed)
    return {key: outcomes[key] for key in images}
