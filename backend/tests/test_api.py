from __future__ import annotations

import numpy as np
import pytest

pytest.importorskip("httpx")
from fastapi.testclient import TestClient  # noqa: E402

from gearscan import main  # type: ignore[import-not-found]  # noqa: E402


class FakeGateway:
    def __init__(self, text: str) -> None:
        self.text = text

    def recognize(self, image, region, column_mode="single_column") -> str:  # noqa: ANN001
        return self.text


@pytest.fixture()
def client() -> TestClient:
    return TestClient(main.app)


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"ok": True}


def test_parse_text_success(client: TestClient) -> None:
    resp = client.post(
        "/api/gear/parse-text",
        json={"lines": ["Epic Necklace", "Health 1200", "Critical Hit Chance 12%", "Defense Set"]},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["item"]["main"] == {"stat": "Health", "value": 1200.0, "percent": False}
    assert body["item"]["set"] == "Defense"
    assert body["debug"]["headerLine"] == 0


@pytest.mark.parametrize(
    ("text", "code", "status"),
    [
        ("nothing here", "HEADER_NOT_FOUND", 422),
        ("Epic Ring\nAttack 20", "SET_NOT_FOUND", 422),
        ("Epic Ring\nRage Set", "NO_STATS_FOUND", 422),
        ("Epic Ring\nEffectiveness 12\nRage Set", "STAT_DECODE_FAILED", 500),
    ],
)
def test_parse_text_errors(client: TestClient, text: str, code: str, status: int) -> None:
    resp = client.post("/api/gear/parse-text", json={"text": text})
    assert resp.status_code == status
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == code


def test_parse_text_legacy_flag(client: TestClient) -> None:
    resp = client.post(
        "/api/gear/parse-text",
        json={"text": "Epic Ring\nAttack 20\nLifesteal Set", "legacySetSpelling": True},
    )
    assert resp.json()["item"]["set"] == "Speed"


def test_parse_text_requires_payload(client: TestClient) -> None:
    assert client.post("/api/gear/parse-text", json={}).status_code == 400


def test_ocr_gear_rejects_non_multipart(client: TestClient) -> None:
    resp = client.post("/api/ocr/gear", json={"image": "x"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_CONTENT_TYPE"


def test_ocr_gear_upload(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    cv2 = pytest.importorskip("cv2")
    monkeypatch.setattr(
        main,
        "_gateway",
        FakeGateway("Heroic Boots\nSpeed 40\nHealth 5%\nSpeed Set"),
    )
    ok, encoded = cv2.imencode(".png", np.zeros((1080, 1920, 3), dtype=np.uint8))
    assert ok

    resp = client.post(
        "/api/ocr/gear",
        files={"image": ("shot.png", encoded.tobytes(), "image/png")},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["item"]["type"] == "Boots"
    assert body["item"]["subStats"] == [{"stat": "HealthPercent", "value": 5.0, "percent": True}]
    assert body["debug"]["region"] == {"x": 600, "y": 160, "w": 440, "h": 760}


def test_ocr_gear_undecodable_upload(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    pytest.importorskip("cv2")
    monkeypatch.setattr(main, "_gateway", FakeGateway(""))
    resp = client.post(
        "/api/ocr/gear",
        files={"image": ("shot.png", b"garbage", "image/png")},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "OCR_INPUT_ERROR"


def test_ocr_gear_batch(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    cv2 = pytest.importorskip("cv2")
    monkeypatch.setattr(main, "_gateway", FakeGateway("Rare Ring\nAttack 30\nRage Set"))
    ok, encoded = cv2.imencode(".png", np.zeros((1080, 1920, 3), dtype=np.uint8))
    assert ok

    resp = client.post(
        "/api/ocr/gear-batch",
        files=[
            ("images", ("a.png", encoded.tobytes(), "image/png")),
            ("images", ("b.png", b"garbage", "image/png")),
        ],
    )
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert [row["file"] for row in results] == ["a.png", "b.png"]
    assert results[0]["item"]["set"] == "Rage"
    assert results[1]["error"]["code"] == "OCR_INPUT_ERROR"


def test_ocr_gear_batch_rejects_too_many_files(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "OCR_BATCH_MAX_FILES", 1)
    monkeypatch.setattr(main, "_gateway", FakeGateway("Rare Ring\nAttack 30\nRage Set"))
    resp = client.post(
        "/api/ocr/gear-batch",
        files=[
            ("images", ("a.png", b"one", "image/png")),
            ("images", ("b.png", b"two", "image/png")),
        ],
    )
    assert resp.status_code == 413
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "TOO_MANY_FILES"


def test_ocr_gear_batch_caps_total_content_length(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "OCR_MAX_UPLOAD_BYTES", 64)
    monkeypatch.setattr(main, "OCR_BATCH_MAX_FILES", 2)
    resp = client.post(
        "/api/ocr/gear-batch",
        files=[("images", ("a.png", b"x" * 32, "image/png"))],
    )
    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "FILE_TOO_LARGE"
