"""
Session gateway.

Responsibilities:
- Owns WakeSession lifecycle (one per WebSocket connection)
- Tracks connection_status independently of controller state
- Wires the remote recognition adapter, call session and host
- Routes inbound JSON control messages -> adapters / controller
- Rejects malformed client messages without dropping the connection

NOT responsible for:
- Writing to the socket (the route's writer task drains the session's
  control queue)
- Any controller logic
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING
from uuid import uuid4

from adapters.call.remote import RemoteCallSession
from adapters.host.remote import RemoteHost
from adapters.recognition.base import PermissionResult
from adapters.recognition.remote import RemoteRecognitionAdapter
from controller.enums.client_class import ClientClass
from controller.facade import WakeWordController
from controller.timings import ControllerTimings
from observability.logger import log_event
from protocol.messages import (
    CallEndResultMessage,
    CallMessagesMessage,
    CallStartResultMessage,
    CallStatusMessage,
    ClientMessage,
    ClientProtocolError,
    EndCallMessage,
    PermissionResultMessage,
    RecognitionEndMessage,
    RecognitionErrorMessage,
    RecognitionResultMessage,
    RecognitionStartMessage,
    RetryMessage,
    StartConversationMessage,
    decode_client_message,
    encode_session_init,
)
from session.connection_status import ConnectionStatus
from session.wake_session import WakeSession
from spec import CLIENT_MESSAGE_PREVIEW_CHARS

if TYPE_CHECKING:
    from config import AppConfig


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """One gateway == one WebSocket connection == one controller."""

    def __init__(
        self,
        *,
        config: AppConfig,
        timings: ControllerTimings | None = None,
    ) -> None:
        self._config = config
        self._timings = timings or ControllerTimings(
            call_start_timeout_ms=config.call_start_timeout_ms,
        )
        self.session: WakeSession | None = None
        self._recognition: RemoteRecognitionAdapter | None = None
        self._call_session: RemoteCallSession | None = None

    @property
    def controller(self) -> WakeWordController | None:
        return self.session.controller if self.session is not None else None

    async def on_ws_connect(self, *, client: str | None = None) -> WakeSession:
        """
        Called when a WebSocket connection is established.

        Builds the session, enqueues SESSION_INIT and mounts the controller
        (which requests microphone permission).
        """
        session_id = _new_session_id()
        client_class = self._resolve_client_class(client, session_id)

        session = WakeSession(session_id=session_id, client_class=client_class)
        session.connection_status = ConnectionStatus.UP
        self.session = session

        self._recognition = RemoteRecognitionAdapter(
            send=session.enqueue_control,
            session_id=session_id,
        )
        self._call_session = RemoteCallSession(
            send=session.enqueue_control,
            session_id=session_id,
        )
        session.attach_recognition_adapter(self._recognition)
        session.attach_call_session(self._call_session)
        session.attach_host(RemoteHost(send=session.enqueue_control))

        # Controller must be created AFTER collaborators are attached
        session.attach_controller(
            WakeWordController(
                session=session,
                timings=self._timings,
                recognition_lang=self._config.recognition_lang,
            )
        )

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_CONNECTED",
            **session.log_context(),
        })

        session.enqueue_control(
            encode_session_init(session_id=session_id, client_class=client_class)
        )

        assert session.controller is not None
        await session.controller.mount()
        return session

    async def on_ws_disconnect(self, reason: str | None = None) -> None:
        """Called when the WebSocket disconnects."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return

        session = self.session
        if session.controller is not None:
            await session.controller.dispose()

        session.connection_status = ConnectionStatus.DOWN

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_DISCONNECTED",
            "reason": reason,
            **session.log_context(),
        })

    async def on_json_message(self, payload: str) -> None:
        """Decode one client message and route it."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:CLIENT_MESSAGE_PREVIEW_CHARS],
            })
            return

        try:
            msg = decode_client_message(payload)
        except ClientProtocolError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CLIENT_MESSAGE_REJECTED",
                "session_id": self.session.session_id,
                "error_type": type(e).__name__,
                "error": str(e),
                "payload_preview": payload[:CLIENT_MESSAGE_PREVIEW_CHARS],
            })
            return

        await self._route(msg)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def _route(self, msg: ClientMessage) -> None:
        controller = self.controller
        recognition = self._recognition
        call_session = self._call_session
        assert controller is not None, "Controller must exist before routing"
        assert recognition is not None and call_session is not None

        # Recognition reports
        if isinstance(msg, PermissionResultMessage):
            recognition.resolve_permission(
                PermissionResult(
                    granted=msg.granted,
                    supported=msg.supported,
                    reason=msg.reason,
                )
            )
        elif isinstance(msg, RecognitionStartMessage):
            await recognition.report_start(msg.session_token)
        elif isinstance(msg, RecognitionResultMessage):
            await recognition.report_result(msg.session_token, msg.transcripts)
        elif isinstance(msg, RecognitionErrorMessage):
            await recognition.report_error(msg.session_token, msg.error)
        elif isinstance(msg, RecognitionEndMessage):
            await recognition.report_end(msg.session_token)

        # Call session reports
        elif isinstance(msg, CallStartResultMessage):
            call_session.resolve_start(msg.call_token, ok=msg.ok, reason=msg.reason)
        elif isinstance(msg, CallEndResultMessage):
            call_session.resolve_end(msg.call_token, ok=msg.ok, reason=msg.reason)
        elif isinstance(msg, CallStatusMessage):
            await controller.report_call_status(msg.status)
        elif isinstance(msg, CallMessagesMessage):
            await controller.report_messages(msg.messages)

        # Host requests
        elif isinstance(msg, StartConversationMessage):
            await controller.trigger()
        elif isinstance(msg, EndCallMessage):
            await controller.end_call()
        elif isinstance(msg, RetryMessage):
            await controller.retry()

    def _resolve_client_class(self, raw: str | None, session_id: str) -> ClientClass:
        default = ClientClass(self._config.default_client_class)
        if raw is None:
            return default
        try:
            return ClientClass(raw.lower())
        except ValueError:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_CLIENT_CLASS",
                "session_id": session_id,
                "client": raw,
                "fallback": default.value,
            })
            return default
