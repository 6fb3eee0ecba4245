"""
Browser-side recognition, bridged over the session WebSocket.

The client runs the platform speech recognizer. This adapter turns adapter
calls into control messages and routes the client's session reports back
into the per-session RecognitionSessionEvents binder.

Core model:
- One binder per open session token; the client echoes the token on every
  report.
- Reports for a token this adapter no longer tracks (stopped or ended) are
  dropped here. The controller would discard them anyway.
- request_permission() resolves when the client answers PERMISSION_RESULT.
  A new request supersedes an unanswered one.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Iterable

from adapters.recognition.base import (
    PermissionResult,
    RecognitionAdapter,
    RecognitionOptions,
    RecognitionSessionEvents,
)
from observability.logger import log_event
from protocol.messages import (
    encode_recognition_start,
    encode_recognition_stop,
    encode_request_permission,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


class RemoteRecognitionAdapter(RecognitionAdapter):
    """
    RecognitionAdapter whose capability lives on the connected client.

    send:
        Enqueues one control message for the client. Must not block.
    """

    def __init__(
        self,
        *,
        send: Callable[[dict[str, Any]], None],
        session_id: str,
    ) -> None:
        self._send = send
        self._session_id = session_id
        self._sessions: dict[int, RecognitionSessionEvents] = {}
        self._permission: asyncio.Future[PermissionResult] | None = None

    # ------------------------------------------------------------------
    # RecognitionAdapter
    # ------------------------------------------------------------------

    async def request_permission(self) -> PermissionResult:
        if self._permission is not None and not self._permission.done():
            self._permission.cancel()

        future: asyncio.Future[PermissionResult] = asyncio.get_running_loop().create_future()
        self._permission = future
        self._send(encode_request_permission())
        return await future

    async def start_session(
        self,
        token: int,
        options: RecognitionOptions,
        events: RecognitionSessionEvents,
    ) -> None:
        self._sessions[token] = events
        self._send(encode_recognition_start(session_token=token, options=options))

    async def stop_session(self, token: int) -> None:
        if self._sessions.pop(token, None) is None:
            return
        self._send(encode_recognition_stop(session_token=token))

    # ------------------------------------------------------------------
    # Client reports (called by SessionGateway)
    # ------------------------------------------------------------------

    def resolve_permission(self, result: PermissionResult) -> bool:
        """Complete the outstanding permission request. False if none."""
        future = self._permission
        if future is None or future.done():
            self._drop("PERMISSION_RESULT", None)
            return False
        self._permission = None
        future.set_result(result)
        return True

    async def report_start(self, token: int) -> None:
        events = self._lookup("RECOGNITION_START", token)
        if events is not None:
            await events.on_start()

    async def report_result(self, token: int, transcripts: Iterable[str]) -> None:
        events = self._lookup("RECOGNITION_RESULT", token)
        if events is not None:
            await events.on_result(transcripts)

    async def report_error(self, token: int, code: str) -> None:
        events = self._lookup("RECOGNITION_ERROR", token)
        if events is not None:
            await events.on_error(code)

    async def report_end(self, token: int) -> None:
        # The session is over on the client; forget it before reporting.
        events = self._sessions.pop(token, None)
        if events is None:
            self._drop("RECOGNITION_END", token)
            return
        await events.on_end()

    def open_sessions(self) -> tuple[int, ...]:
        return tuple(sorted(self._sessions))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lookup(self, kind: str, token: int) -> RecognitionSessionEvents | None:
        events = self._sessions.get(token)
        if events is None:
            self._drop(kind, token)
        return events

    def _drop(self, kind: str, token: int | None) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "RECOGNITION_REPORT_DROPPED",
            "session_id": self._session_id,
            "report": kind,
            "session_token": token,
        })
