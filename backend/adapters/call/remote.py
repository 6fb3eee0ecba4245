"""
Browser-side call session, bridged over the session WebSocket.

start_call() / end_call() send a request carrying the call token and wait
for the client's CALL_START_RESULT / CALL_END_RESULT with the same token.
The controller owns both timeouts; a cancelled start or end simply forgets
its pending future, and a late result for it is dropped.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

from adapters.call.base import CallSession
from observability.logger import log_event
from protocol.messages import encode_call_end, encode_call_start


def _now_ms() -> int:
    return int(time.time() * 1000)


class CallSessionError(Exception):
    """The client reported that a call operation failed."""


class RemoteCallSession(CallSession):
    """CallSession whose voice SDK lives on the connected client."""

    def __init__(
        self,
        *,
        send: Callable[[dict[str, Any]], None],
        session_id: str,
    ) -> None:
        self._send = send
        self._session_id = session_id
        self._pending_start: dict[int, asyncio.Future[None]] = {}
        self._pending_end: dict[int, asyncio.Future[None]] = {}

    async def start_call(self, call_token: int) -> None:
        await self._request(
            self._pending_start,
            call_token,
            encode_call_start(call_token=call_token),
        )

    async def end_call(self, call_token: int) -> None:
        await self._request(
            self._pending_end,
            call_token,
            encode_call_end(call_token=call_token),
        )

    # ------------------------------------------------------------------
    # Client reports (called by SessionGateway)
    # ------------------------------------------------------------------

    def resolve_start(self, call_token: int, *, ok: bool, reason: str = "") -> bool:
        return self._resolve(self._pending_start, "CALL_START_RESULT", call_token, ok, reason)

    def resolve_end(self, call_token: int, *, ok: bool, reason: str = "") -> bool:
        return self._resolve(self._pending_end, "CALL_END_RESULT", call_token, ok, reason)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        pending: dict[int, asyncio.Future[None]],
        call_token: int,
        msg: dict[str, Any],
    ) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        pending[call_token] = future
        try:
            self._send(msg)
            await future
        finally:
            if pending.get(call_token) is future:
                del pending[call_token]

    def _resolve(
        self,
        pending: dict[int, asyncio.Future[None]],
        kind: str,
        call_token: int,
        ok: bool,
        reason: str,
    ) -> bool:
        future = pending.get(call_token)
        if future is None or future.done():
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_REPORT_DROPPED",
                "session_id": self._session_id,
                "report": kind,
                "call_token": call_token,
            })
            return False

        if ok:
            future.set_result(None)
        else:
            future.set_exception(CallSessionError(reason or "call_session_error"))
        return True
