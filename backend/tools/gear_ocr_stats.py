from __future__ import annotations

import argparse
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = BACKEND_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from gearscan.services.gear_ocr import recognize_gear_batch  # noqa: E402
from gearscan.services.gear_samples import load_gear_samples  # noqa: E402
from gearscan.services.tesseract_gateway import TesseractConfig, TesseractGateway  # noqa: E402


DEFAULT_MANIFEST = BACKEND_DIR / "tests" / "assets" / "gear_samples" / "manifest.json"
DEFAULT_ASSETS_DIR = BACKEND_DIR / "tests" / "assets" / "gear_samples"
FIELDS = ("type", "grade", "main", "subStats", "set")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute gear OCR success stats for screenshot dataset.")
    parser.add_argument("--manifest", type=Path, default=DEFAULT_MANIFEST)
    parser.add_argument("--assets-dir", type=Path, default=DEFAULT_ASSETS_DIR)
    parser.add_argument("--workers", type=int, default=4)
    parser.add_argument("--legacy-set-spelling", action="store_true")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    manifest_path = args.manifest.resolve()
    assets_dir = args.assets_dir.resolve()

    if not manifest_path.exists():
        raise FileNotFoundError(f"manifest not found: {manifest_path}")

    samples = load_gear_samples(manifest_path, assets_dir)
    if not samples:
        raise RuntimeError("no usable samples found in manifest")

    images = {sample.name: sample.image_bytes for sample in samples}
    expected_by_file = {sample.name: sample.expected for sample in samples}

    outcomes = recognize_gear_batch(
        images,
        gateway=TesseractGateway(TesseractConfig.from_env()),
        legacy_set_spelling=args.legacy_set_spelling,
        max_workers=args.workers,
    )

    ok_images = 0
    total_hits = 0
    total_fields = 0
    errors: dict[str, int] = {}
    for rel, outcome in outcomes.items():
        expected = expected_by_file[rel]
        if outcome.item is None:
            code = str(outcome.error_code)
            errors[code] = errors.get(code, 0) + 1
            total_fields += len(FIELDS)
            print(f"[FAIL] {rel} error={code} message={outcome.message}")
            continue

        got = outcome.item.to_dict()
        hits = 0
        for field in FIELDS:
            total_fields += 1
            if field in expected and got.get(field) == expected[field]:
                hits += 1
                total_hits += 1

        image_ok = hits == len(FIELDS)
        if image_ok:
            ok_images += 1
        print(f"[{'PASS' if image_ok else 'FAIL'}] {rel} fields={hits}/{len(FIELDS)} got={got}")

    total_images = len(outcomes)
    image_rate = (ok_images / total_images) if total_images else 0.0
    field_rate = (total_hits / total_fields) if total_fields else 0.0
    print("\n=== Gear OCR Success Stats ===")
    print(f"images_passed: {ok_images}/{total_images} ({image_rate:.2%})")
    print(f"fields_correct: {total_hits}/{total_fields} ({field_rate:.2%})")
    if errors:
        print(f"errors: {errors}")


if __name__ == "__main__":
    main()
