# pylint: disable=missing-module-docstring,missing-function-docstring
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.testclient import WebSocketTestSession

from config import AppConfig
from controller.timings import ControllerTimings
from observability import logger
from server.app import create_app


CONFIG = AppConfig(
    env="test",
    log_level="INFO",
    host="127.0.0.1",
    port=0,
    recognition_lang="en-US",
    default_client_class="desktop",
    call_start_timeout_ms=15_000,
    enable_json_logs=False,
)

FAST = ControllerTimings(
    no_speech_desktop_ms=60_000,
    no_speech_mobile_ms=60_000,
    restart_debounce_ms=5,
    error_restart_debounce_ms=5,
    listen_start_delay_ms=5,
    handoff_delay_ms=5,
    call_start_timeout_ms=5_000,
    call_end_settle_ms=10,
    end_call_settle_ms=10,
    call_failure_cooldown_ms=10,
    resume_delay_ms=10,
    try_again_fallback_ms=50,
)


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    # create_app() reconfigures the process-wide sink; restore it afterwards
    monkeypatch.setattr(logger, "_print", logger._print)  # pylint: disable=protected-access
    return TestClient(create_app(CONFIG, timings=FAST))


def receive_until(ws: WebSocketTestSession, msg_type: str, limit: int = 50) -> list[dict[str, Any]]:
    seen: list[dict[str, Any]] = []
    for _ in range(limit):
        msg = ws.receive_json()
        seen.append(msg)
        if msg["type"] == msg_type:
            return seen
    raise AssertionError(f"{msg_type} not received; got {[m['type'] for m in seen]}")


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ws_wake_flow_reaches_call_start(client: TestClient):
    with client.websocket_connect("/ws?client=mobile") as ws:
        first = ws.receive_json()
        assert first["type"] == "SESSION_INIT"
        assert first["client_class"] == "mobile"

        receive_until(ws, "REQUEST_PERMISSION")
        ws.send_json({"type": "PERMISSION_RESULT", "granted": True})

        seen = receive_until(ws, "RECOGNITION_START_REQUEST")
        start = seen[-1]
        assert start["session_token"] == 1
        assert start["lang"] == "en-US"
        assert start["continuous"] is False

        ws.send_json({"type": "RECOGNITION_START", "session_token": 1})
        ws.send_json({"type": "RECOGNITION_RESULT", "session_token": 1, "transcripts": ["hey anna"]})

        seen = receive_until(ws, "CALL_START_REQUEST")
        assert seen[-1]["call_token"] == 1
        states = [m["state"] for m in seen if m["type"] == "DETECTOR_STATE"]
        assert states[-2:] == ["detected", "calling"]


def test_ws_survives_bad_input(client: TestClient):
    with client.websocket_connect("/ws") as ws:
        receive_until(ws, "REQUEST_PERMISSION")

        ws.send_text("{broken")
        ws.send_bytes(b"\x00\x01")
        ws.send_json({"type": "NOPE"})
        ws.send_json({"type": "PERMISSION_RESULT", "granted": False, "reason": "blocked"})

        seen = receive_until(ws, "NOTICE")
        assert seen[-1]["notice"] == "mic_access_denied"
        assert seen[-1]["severity"] == "destructive"
