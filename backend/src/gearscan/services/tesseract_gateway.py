from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

import numpy as np

from .gear_geometry import Region, require_cv2, crop_region
from .gear_models import OcrDependencyError, OcrEngineUnavailableError, OcrTimeoutError
from .settings import env_bool, env_float, env_int, env_str

logger = logging.getLogger("gearscan.tesseract")

# Tesseract page segmentation modes by layout name.
PAGE_SEG_MODES = {
    "single_column": 4,
    "single_block": 6,
    "single_line": 7,
}


class RecognitionGateway(Protocol):
    def recognize(
        self,
        image: np.ndarray,
        region: Region,
        column_mode: str = "single_column",
    ) -> str: ...


@dataclass(frozen=True)
class TesseractConfig:
    lang: str = "eng"
    oem: int = 3
    config_profile: str = ""
    tessdata_dir: str = ""
    timeout_seconds: float = 15.0
    serialize: bool = False

    @classmethod
    def from_env(cls) -> "TesseractConfig":
        return cls(
            lang=env_str("OCR_TESSERACT_LANG", "eng"),
            oem=env_int("OCR_TESSERACT_OEM", 3),
            config_profile=env_str("OCR_TESSERACT_PROFILE", ""),
            tessdata_dir=env_str("OCR_TESSDATA_DIR", ""),
            timeout_seconds=max(1.0, env_float("OCR_TIMEOUT_SECONDS", 15.0)),
            serialize=env_bool("OCR_SERIALIZE", False),
        )

    def build_args(self, column_mode: str) -> str:
        psm = PAGE_SEG_MODES.get(column_mode)
        if psm is None:
            raise ValueError(f"unsupported column mode: {column_mode}")
        parts = [f"--oem {self.oem}", f"--psm {psm}"]
        if self.tessdata_dir:
            parts.append(f'--tessdata-dir "{self.tessdata_dir}"')
        # Named config files go last, after all flags.
        if self.config_profile:
            parts.append(self.config_profile)
        return " ".join(parts)


def _require_pytesseract() -> Any:
    try:
        import pytesseract  # type: ignore
    except Exception as exc:  # noqa: BLE001
        raise OcrDependencyError("pytesseract is required") from exc
    return pytesseract


class TesseractGateway:
    """Runs Tesseract over the recognition window of a normalized capture."""

    def __init__(self, config: TesseractConfig | None = None) -> None:
        self.config = config or TesseractConfig()
        self._lock = Lock() if self.config.serialize else None

    def recognize(
        self,
        image: np.ndarray,
        region: Region,
        column_mode: str = "single_column",
    ) -> str:
        pytesseract = _require_pytesseract()
        crop = crop_region(image, region)
        args = self.config.build_args(column_mode)

        if self._lock is None:
            return self._run(pytesseract, crop, args)
        with self._lock:
            return self._run(pytesseract, crop, args)

    def _run(self, pytesseract: Any, crop: np.ndarray, args: str) -> str:
        try:
            text = pytesseract.image_to_string(
                crop,
                lang=self.config.lang,
                config=args,
                timeout=self.config.timeout_seconds,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise OcrEngineUnavailableError(
                "pytesseract failed: tesseract is not installed or not in PATH"
            ) from exc
        except RuntimeError as exc:
            # pytesseract signals a killed subprocess with a bare RuntimeError.
            if "timeout" in str(exc).lower():
                raise OcrTimeoutError(
                    f"tesseract exceeded timeout {self.config.timeout_seconds:.2f}s"
                ) from exc
            raise OcrEngineUnavailableError(f"tesseract OCR failed: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            raise OcrEngineUnavailableError(f"tesseract OCR failed: {exc}") from exc

        logger.debug("tesseract returned chars=%d args=%s", len(text or ""), args)
        return text or ""


def _profile_candidates(config: TesseractConfig) -> list[Path]:
    profile = Path(config.config_profile)
    if profile.is_absolute():
        return [profile]
    roots = [config.tessdata_dir, os.getenv("TESSDATA_PREFIX", "").strip()]
    return [Path(root) / "configs" / config.config_profile for root in roots if root]


def _tesseract_version(tesseract_cmd: str) -> str:
    proc = subprocess.run(
        [tesseract_cmd, "--version"],
        check=False,
        capture_output=True,
        text=True,
        timeout=5,
    )
    version_line = (proc.stdout or proc.stderr or "").splitlines()
    return version_line[0] if version_line else ""


def inspect_ocr_runtime(config: TesseractConfig | None = None) -> dict[str, object]:
    """Report which parts of the OCR stack are usable with ``config``."""
    config = config or TesseractConfig()
    errors: list[str] = []
    status: dict[str, object] = {
        "opencv": False,
        "pytesseract": False,
        "tesseract_cmd": "",
        "tesseract_version": "",
        "tesseract_langs": [],
        "lang": config.lang,
        "oem": config.oem,
        "config_profile": config.config_profile,
        "config_profile_path": "",
        "tessdata_dir": config.tessdata_dir,
        "serialize": config.serialize,
        "errors": errors,
    }

    try:
        require_cv2()
        status["opencv"] = True
    except OcrDependencyError as exc:
        errors.append(f"opencv unavailable: {exc}")

    if config.tessdata_dir and not Path(config.tessdata_dir).is_dir():
        errors.append(f"tessdata dir not found: {config.tessdata_dir}")

    if config.config_profile:
        found = next((path for path in _profile_candidates(config) if path.is_file()), None)
        if found is None:
            errors.append(f"config profile {config.config_profile!r} not found in tessdata configs")
        else:
            status["config_profile_path"] = str(found)

    try:
        pytesseract = _require_pytesseract()
    except OcrDependencyError as exc:
        errors.append(f"pytesseract unavailable: {exc}")
        return status
    status["pytesseract"] = True

    tesseract_cmd = shutil.which("tesseract") or ""
    status["tesseract_cmd"] = tesseract_cmd
    if not tesseract_cmd:
        errors.append("tesseract binary not found in PATH")
        return status

    try:
        status["tesseract_version"] = _tesseract_version(tesseract_cmd)
    except Exception as exc:  # noqa: BLE001
        errors.append(f"failed to read tesseract version: {exc}")

    try:
        langs = list(pytesseract.get_languages(config=""))
    except Exception as exc:  # noqa: BLE001
        errors.append(f"failed to query tesseract languages: {exc}")
        return status
    status["tesseract_langs"] = langs
    missing = [lang for lang in config.lang.split("+") if lang not in langs]
    if missing:
        errors.append(f"language pack missing: {', '.join(missing)}")
    return status
