# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
import json
from typing import Any, Callable

import pytest

import adapters.recognition.remote as recognition_remote_mod
import session.gateway as gateway_mod
from config import AppConfig
from controller.enums.client_class import ClientClass
from controller.enums.detector_state import DetectorState
from controller.timings import ControllerTimings
from session.connection_status import ConnectionStatus
from session.gateway import SessionGateway
from session.wake_session import WakeSession


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
    call_start_timeout_ms=500,
    call_end_settle_ms=10,
    end_call_settle_ms=10,
    call_failure_cooldown_ms=10,
    resume_delay_ms=10,
    try_again_fallback_ms=50,
)


async def collect_until(session: WakeSession, msg_type: str, timeout_s: float = 2.0) -> list[dict[str, Any]]:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    seen: list[dict[str, Any]] = []
    while True:
        seen.extend(session.drain_control())
        if any(m["type"] == msg_type for m in seen):
            return seen
        if loop.time() > deadline:
            raise AssertionError(f"{msg_type} never sent; got {[m['type'] for m in seen]}")
        await asyncio.sleep(0.005)


async def wait_for(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


async def send(gw: SessionGateway, **fields: Any) -> None:
    await gw.on_json_message(json.dumps(fields))


async def connected_and_listening(gw: SessionGateway, client: str | None = None) -> WakeSession:
    session = await gw.on_ws_connect(client=client)
    await collect_until(session, "REQUEST_PERMISSION")
    await send(gw, type="PERMISSION_RESULT", granted=True)
    await collect_until(session, "RECOGNITION_START_REQUEST")
    await send(gw, type="RECOGNITION_START", session_token=1)
    return session


def test_connect_sends_session_init_then_requests_permission():
    async def scenario() -> None:
        gw = SessionGateway(config=CONFIG, timings=FAST)
        session = await gw.on_ws_connect()

        assert session.connection_status is ConnectionStatus.UP
        seen = await collect_until(session, "REQUEST_PERMISSION")
        assert seen[0]["type"] == "SESSION_INIT"
        assert seen[0]["session_id"] == session.session_id
        assert seen[0]["client_class"] == "desktop"

        await gw.on_ws_disconnect(reason="test")
        assert session.connection_status is ConnectionStatus.DOWN

    asyncio.run(scenario())


def test_full_wake_and_call_flow():
    async def scenario() -> None:
        gw = SessionGateway(config=CONFIG, timings=FAST)
        session = await connected_and_listening(gw)
        assert gw.controller is not None
        assert gw.controller.is_listening

        await send(gw, type="RECOGNITION_RESULT", session_token=1, transcripts=["Hey Anna"])
        seen = await collect_until(session, "CALL_START_REQUEST")
        types = [m["type"] for m in seen]
        assert "RECOGNITION_STOP_REQUEST" in types
        assert next(m for m in seen if m["type"] == "NOTICE")["notice"] == "wake_word_detected"
        start = next(m for m in seen if m["type"] == "CALL_START_REQUEST")
        assert start["call_token"] == 1

        await send(gw, type="CALL_START_RESULT", call_token=1, ok=True)
        await send(gw, type="CALL_STATUS", status="ongoing")
        controller = gw.controller
        await wait_for(lambda: not controller.is_transitioning)
        assert controller.detector_state is DetectorState.CALLING

        await send(gw, type="END_CALL")
        seen = await collect_until(session, "CALL_END_REQUEST")
        assert next(m for m in seen if m["type"] == "CALL_END_REQUEST")["call_token"] == 1

        await send(gw, type="CALL_END_RESULT", call_token=1, ok=True)
        seen = await collect_until(session, "RECOGNITION_START_REQUEST")
        types = [m["type"] for m in seen]
        assert "CALL_ENDED" in types
        restart = next(m for m in seen if m["type"] == "RECOGNITION_START_REQUEST")
        assert restart["session_token"] == 2

        await gw.on_ws_disconnect(reason="test")

    asyncio.run(scenario())


def test_failed_call_start_is_reported_to_client():
    async def scenario() -> None:
        gw = SessionGateway(config=CONFIG, timings=FAST)
        session = await connected_and_listening(gw)

        await send(gw, type="START_CONVERSATION")
        await collect_until(session, "CALL_START_REQUEST")
        await send(gw, type="CALL_START_RESULT", call_token=1, ok=False, reason="no agent")

        seen = await collect_until(session, "RECOGNITION_START_REQUEST")
        status = next(m for m in seen if m["type"] == "CALL_STATUS")
        assert status["status"] == "error"
        notice = next(m for m in seen if m["type"] == "NOTICE")
        assert notice["notice"] == "call_start_failed"
        assert gw.controller is not None
        assert gw.controller.state.last_error == "call_start_failed:CallSessionError: no agent"

        await gw.on_ws_disconnect(reason="test")

    asyncio.run(scenario())


def test_malformed_message_is_logged_and_dropped(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(gateway_mod, "log_event", emitted.append)

    async def scenario() -> None:
        gw = SessionGateway(config=CONFIG, timings=FAST)
        await gw.on_ws_connect()

        await gw.on_json_message("{not json")
        await send(gw, type="MIC_START")

        assert gw.controller is not None
        assert gw.controller.detector_state is DetectorState.INITIALIZING
        await gw.on_ws_disconnect(reason="test")

    asyncio.run(scenario())

    rejected = [e for e in emitted if e["event_type"] == "CLIENT_MESSAGE_REJECTED"]
    assert [e["error_type"] for e in rejected] == ["MalformedMessage", "UnknownMessageType"]
    assert rejected[0]["payload_preview"] == "{not json"


def test_report_for_unknown_session_token_is_dropped(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(recognition_remote_mod, "log_event", emitted.append)

    async def scenario() -> None:
        gw = SessionGateway(config=CONFIG, timings=FAST)
        await connected_and_listening(gw)

        await send(gw, type="RECOGNITION_RESULT", session_token=9, transcripts=["hey anna"])

        assert gw.controller is not None
        assert gw.controller.detector_state is DetectorState.LISTENING
        await gw.on_ws_disconnect(reason="test")

    asyncio.run(scenario())

    dropped = [e for e in emitted if e["event_type"] == "RECOGNITION_REPORT_DROPPED"]
    assert dropped[0]["session_token"] == 9


def test_client_class_from_query(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(gateway_mod, "log_event", emitted.append)

    async def scenario() -> None:
        gw = SessionGateway(config=CONFIG, timings=FAST)
        session = await gw.on_ws_connect(client="Mobile")
        assert session.client_class is ClientClass.MOBILE
        assert gw.controller is not None
        assert gw.controller.state.client_class is ClientClass.MOBILE
        await gw.on_ws_disconnect(reason="test")

        gw = SessionGateway(config=CONFIG, timings=FAST)
        session = await gw.on_ws_connect(client="tablet")
        assert session.client_class is ClientClass.DESKTOP
        await gw.on_ws_disconnect(reason="test")

    asyncio.run(scenario())

    assert any(e["event_type"] == "UNKNOWN_CLIENT_CLASS" for e in emitted)


def test_message_before_connect_is_logged(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(gateway_mod, "log_event", emitted.append)

    gw = SessionGateway(config=CONFIG)
    asyncio.run(gw.on_json_message(json.dumps({"type": "RETRY"})))
    asyncio.run(gw.on_ws_disconnect(reason="test"))

    assert [e["event_type"] for e in emitted] == [
        "MESSAGE_WITHOUT_SESSION",
        "WS_DISCONNECT_WITHOUT_SESSION",
    ]
