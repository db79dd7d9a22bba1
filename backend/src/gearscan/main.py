import asyncio
import logging
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .services.gear_models import (
    GearOcrError,
    GearParseError,
    InvalidImageError,
    OcrDependencyError,
    OcrEngineUnavailableError,
    OcrInputError,
    OcrTimeoutError,
    StatDecodeError,
)
from .services.gear_ocr import recognize_gear, recognize_gear_batch
from .services.gear_parser import assemble_item, classify_lines, split_lines
from .services.settings import env_bool, env_float, env_int, env_str
from .services.tesseract_gateway import (
    TesseractConfig,
    TesseractGateway,
    inspect_ocr_runtime,
)


app = FastAPI(title="Gear Scan API")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("gearscan.main")


APP_HOST = env_str("HOST", "0.0.0.0")
APP_PORT = env_int("PORT", 8000)
APP_VERSION = env_str("APP_VERSION", "dev")
APP_COMMIT = env_str("COMMIT_SHA", "unknown")
OCR_MAX_UPLOAD_MB = env_float("OCR_MAX_UPLOAD_MB", 8.0)
OCR_MAX_UPLOAD_BYTES = max(1, int(OCR_MAX_UPLOAD_MB * 1024 * 1024))
OCR_TIMEOUT_SECONDS = max(1.0, env_float("OCR_TIMEOUT_SECONDS", 15.0))
OCR_BATCH_WORKERS = max(1, env_int("OCR_BATCH_WORKERS", 4))
OCR_BATCH_MAX_FILES = max(1, env_int("OCR_BATCH_MAX_FILES", 16))
OCR_LEGACY_SET_SPELLING = env_bool("OCR_LEGACY_SET_SPELLING", False)

TESSERACT_CONFIG = TesseractConfig.from_env()
_gateway = TesseractGateway(TESSERACT_CONFIG)


def _ocr_error(
    *,
    status_code: int,
    code: str,
    message: str,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error": {
                "code": code,
                "message": message,
            },
        },
    )


def _gear_error(exc: GearOcrError) -> JSONResponse:
    if isinstance(exc, StatDecodeError):
        logger.exception("stat decoder table mismatch")
        status_code = 500
    elif isinstance(exc, (GearParseError, InvalidImageError)):
        status_code = 422
    elif isinstance(exc, OcrInputError):
        status_code = 400
    elif isinstance(exc, OcrTimeoutError):
        logger.warning("tesseract timed out: %s", exc)
        status_code = 504
    elif isinstance(exc, (OcrDependencyError, OcrEngineUnavailableError)):
        logger.exception("ocr dependency unavailable")
        status_code = 503
    else:
        logger.exception("ocr processing failed")
        status_code = 500
    return _ocr_error(status_code=status_code, code=exc.code, message=str(exc))


def _legacy_flag(request: Request) -> bool:
    raw = (request.query_params.get("legacySetSpelling") or "").strip().lower()
    if not raw:
        return OCR_LEGACY_SET_SPELLING
    return raw in ("1", "true", "yes", "on")


@app.middleware("http")
async def request_log_middleware(request: Request, call_next):
    started = time.perf_counter()
    method = request.method
    path = request.url.path
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.exception(
            "request failed method=%s path=%s duration_ms=%.2f",
            method,
            path,
            elapsed_ms,
        )
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        method,
        path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.on_event("startup")
def _startup_log() -> None:
    logger.info(
        "startup config host=%s port=%s version=%s commit=%s",
        APP_HOST,
        APP_PORT,
        APP_VERSION,
        APP_COMMIT,
    )
    logger.info(
        "startup config ocr_max_upload_mb=%.2f ocr_timeout_seconds=%.2f batch_workers=%d batch_max_files=%d",
        OCR_MAX_UPLOAD_MB,
        OCR_TIMEOUT_SECONDS,
        OCR_BATCH_WORKERS,
        OCR_BATCH_MAX_FILES,
    )
    logger.info(
        "startup config tesseract_lang=%s oem=%s profile=%s tessdata_dir=%s serialize=%s legacy_set_spelling=%s",
        TESSERACT_CONFIG.lang,
        TESSERACT_CONFIG.oem,
        TESSERACT_CONFIG.config_profile or "(none)",
        TESSERACT_CONFIG.tessdata_dir or "(default)",
        TESSERACT_CONFIG.serialize,
        OCR_LEGACY_SET_SPELLING,
    )


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/api/ocr/runtime")
def ocr_runtime() -> dict[str, object]:
    return inspect_ocr_runtime(TESSERACT_CONFIG)


async def _read_uploads(request: Request, field: str) -> list[tuple[str, bytes]] | JSONResponse:
    content_type = (request.headers.get("content-type") or "").lower()
    if "multipart/form-data" not in content_type:
        return _ocr_error(
            status_code=400,
            code="INVALID_CONTENT_TYPE",
            message=f"multipart/form-data with '{field}' field is required",
        )

    max_files = 1 if field == "image" else OCR_BATCH_MAX_FILES
    content_length_raw = (request.headers.get("content-length") or "").strip()
    if content_length_raw:
        try:
            content_length = int(content_length_raw)
            if content_length > OCR_MAX_UPLOAD_BYTES * max_files:
                return _ocr_error(
                    status_code=413,
                    code="FILE_TOO_LARGE",
                    message=(
                        f"request payload exceeds {OCR_MAX_UPLOAD_MB:.2f} MB "
                        f"per file for {max_files} file(s)"
                    ),
                )
        except ValueError:
            pass

    try:
        form = await request.form()
    except Exception:  # noqa: BLE001
        logger.exception("ocr form parse failed")
        return _ocr_error(
            status_code=503,
            code="MULTIPART_UNAVAILABLE",
            message=(
                "multipart parser unavailable. Install dependency: "
                "pip install python-multipart"
            ),
        )

    uploads = form.getlist(field)
    if not uploads:
        return _ocr_error(
            status_code=400,
            code="MISSING_IMAGE",
            message=f"{field} field is required",
        )
    if len(uploads) > max_files:
        return _ocr_error(
            status_code=413,
            code="TOO_MANY_FILES",
            message=f"at most {max_files} file(s) per request, got {len(uploads)}",
        )

    out: list[tuple[str, bytes]] = []
    for idx, image in enumerate(uploads):
        image_content_type = str(getattr(image, "content_type", "")).lower()
        if image_content_type and not image_content_type.startswith("image/"):
            return _ocr_error(
                status_code=400,
                code="INVALID_IMAGE_TYPE",
                message="image file is required",
            )

        if hasattr(image, "read"):
            payload = await image.read()
        else:
            payload = str(image).encode("utf-8")
        if not payload:
            return _ocr_error(
                status_code=400,
                code="EMPTY_IMAGE",
                message="empty image payload",
            )
        if len(payload) > OCR_MAX_UPLOAD_BYTES:
            return _ocr_error(
                status_code=413,
                code="FILE_TOO_LARGE",
                message=f"image payload exceeds {OCR_MAX_UPLOAD_MB:.2f} MB limit",
            )
        name = str(getattr(image, "filename", "") or f"image_{idx}")
        out.append((name, payload))
    return out


@app.post("/api/ocr/gear", response_model=None)
async def ocr_gear(request: Request) -> object:
    uploads = await _read_uploads(request, "image")
    if isinstance(uploads, JSONResponse):
        return uploads
    _, payload = uploads[0]

    try:
        result, _ = await asyncio.wait_for(
            asyncio.to_thread(
                recognize_gear,
                image_bytes=payload,
                gateway=_gateway,
                legacy_set_spelling=_legacy_flag(request),
            ),
            timeout=OCR_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.exception("ocr timed out")
        return _ocr_error(
            status_code=504,
            code="OCR_TIMEOUT",
            message=f"ocr exceeded timeout {OCR_TIMEOUT_SECONDS:.2f}s",
        )
    except GearOcrError as exc:
        return _gear_error(exc)
    except Exception:
        logger.exception("unexpected ocr failure")
        return _ocr_error(
            status_code=500,
            code="OCR_UNKNOWN_ERROR",
            message="unexpected OCR failure",
        )

    item = result["item"]
    return {
        "ok": True,
        "item": item.to_dict(),  # type: ignore[attr-defined]
        "debug": result.get("debug", {}),
    }


@app.post("/api/ocr/gear-batch", response_model=None)
async def ocr_gear_batch(request: Request) -> object:
    uploads = await _read_uploads(request, "images")
    if isinstance(uploads, JSONResponse):
        return uploads

    # Duplicate filenames would collide as keys.
    images = {f"{idx}:{name}": payload for idx, (name, payload) in enumerate(uploads)}
    try:
        outcomes = await asyncio.wait_for(
            asyncio.to_thread(
                recognize_gear_batch,
                images,
                gateway=_gateway,
                legacy_set_spelling=_legacy_flag(request),
                max_workers=OCR_BATCH_WORKERS,
            ),
            timeout=OCR_TIMEOUT_SECONDS * len(images),
        )
    except asyncio.TimeoutError:
        logger.exception("ocr batch timed out")
        return _ocr_error(
            status_code=504,
            code="OCR_TIMEOUT",
            message="ocr batch exceeded timeout",
        )

    results: list[dict[str, object]] = []
    for key, outcome in outcomes.items():
        _, _, name = key.partition(":")
        results.append({"file": name, **outcome.to_dict()})
    return {"ok": True, "results": results}


@app.post("/api/gear/parse-text", response_model=None)
async def parse_gear_text(payload: dict[str, object]) -> object:
    raw_text = payload.get("text")
    raw_lines = payload.get("lines")
    if isinstance(raw_text, str):
        lines = split_lines(raw_text)
    elif isinstance(raw_lines, list):
        lines = [str(row) for row in raw_lines if isinstance(row, str) and row]
    else:
        raise HTTPException(status_code=400, detail="'text' string or 'lines' list is required")

    legacy = payload.get("legacySetSpelling")
    legacy_set_spelling = legacy if isinstance(legacy, bool) else OCR_LEGACY_SET_SPELLING

    try:
        scan = classify_lines(lines, legacy_set_spelling=legacy_set_spelling)
        item = assemble_item(scan)
    except GearOcrError as exc:
        return _gear_error(exc)

    return {
        "ok": True,
        "item": item.to_dict(),
        "debug": {
            "lines": lines,
            "headerLine": scan.header_line,
            "footerLine": scan.footer_line,
        },
    }
