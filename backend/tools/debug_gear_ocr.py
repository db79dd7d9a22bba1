from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = BACKEND_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from gearscan.services.gear_models import GearOcrError, OcrDependencyError  # noqa: E402
from gearscan.services.gear_ocr import recognize_gear_file  # noqa: E402
from gearscan.services.tesseract_gateway import TesseractConfig, TesseractGateway  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Debug normalization, recognition window and parsing for a gear screenshot."
    )
    parser.add_argument("image", type=Path, help="Path to screenshot image")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=BACKEND_DIR / ".cache" / "gear_ocr_debug",
        help="Directory for debug outputs",
    )
    parser.add_argument(
        "--legacy-set-spelling",
        action="store_true",
        help="Match Lifesteal footers with the historical 'fifesteal' spelling",
    )
    return parser.parse_args()


def _save_image(path: Path, image: object) -> None:
    try:
        import cv2  # type: ignore
    except Exception as exc:  # noqa: BLE001
        raise OcrDependencyError("opencv-python-headless is required to save debug images") from exc

    path.parent.mkdir(parents=True, exist_ok=True)
    ok = cv2.imwrite(str(path), image)
    if not ok:
        raise RuntimeError(f"failed to write image: {path}")


def main() -> None:
    args = parse_args()
    image_path = args.image.resolve()
    output_dir = args.output_dir.resolve()

    gateway = TesseractGateway(TesseractConfig.from_env())
    result, artifacts = recognize_gear_file(
        image_path,
        gateway=gateway,
        legacy_set_spelling=args.legacy_set_spelling,
        keep_debug_images=True,
    )

    if artifacts is None:
        raise RuntimeError("no debug artifacts returned")

    _save_image(output_dir / "normalized.png", artifacts["normalized"])
    _save_image(output_dir / "region.png", artifacts["region"])

    debug = result.get("debug", {})
    print("[Region]", debug.get("region"))
    print("[Raw OCR lines]")
    for idx, line in enumerate(debug.get("lines", [])):
        print(f"  {idx:02d}: {line}")

    item = result["item"]
    print("[Item]")
    print(json.dumps(item.to_dict(), ensure_ascii=False, indent=2))  # type: ignore[attr-defined]
    print("[Output files]", output_dir)


if __name__ == "__main__":
    try:
        main()
    except GearOcrError as exc:
        print(f"[ERROR] {exc.code}: {exc}")
        raise SystemExit(1) from exc
