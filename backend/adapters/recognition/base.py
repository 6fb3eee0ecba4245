"""
Recognition adapter contract.

This module defines the *interface only*: no restart policy, timeouts,
error classification or controller decisions live here.

Key invariants:
- Session tokens are owned by the controller (monotonic). Adapters never
  generate or mutate tokens.
- The adapter reports session activity through the RecognitionSessionEvents
  binder it was handed for that session; it never calls the reducer.
- stop_session(token) is a request to stop producing output for that
  session as quickly as possible. It is idempotent.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Iterable

from controller.enums.recognition_error import RecognitionErrorCode
from controller.events import (
    Event,
    EventType,
    RecognitionEnded,
    RecognitionError,
    RecognitionResult,
    RecognitionStarted,
)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class RecognitionOptions:
    """Per-session recognition settings."""

    lang: str
    interim_results: bool
    continuous: bool


@dataclass(frozen=True)
class PermissionResult:
    """
    Outcome of a microphone permission request.

    supported:
        False when the platform has no speech-recognition capability at all;
        `granted` is meaningless in that case.
    """

    granted: bool
    supported: bool = True
    reason: str = ""


class RecognitionSessionEvents:
    """
    Event sink bound to one recognition session.

    Every callback stamps the session token, so the controller can drop
    anything a superseded session says after it was replaced.
    """

    def __init__(
        self,
        *,
        session_token: int,
        emit_event: Callable[[Event], Coroutine[Any, Any, None]],
        now_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self.session_token = session_token
        self._emit = emit_event
        self._now_ms = now_ms

    async def on_start(self) -> None:
        await self._emit(
            RecognitionStarted(
                event_type=EventType.RECOGNITION_STARTED,
                ts_ms=self._now_ms(),
                session_token=self.session_token,
            )
        )

    async def on_result(self, transcripts: Iterable[str]) -> None:
        """transcripts: best alternative of each result, in order."""
        await self._emit(
            RecognitionResult(
                event_type=EventType.RECOGNITION_RESULT,
                ts_ms=self._now_ms(),
                session_token=self.session_token,
                transcripts=tuple(transcripts),
            )
        )

    async def on_error(self, code: str) -> None:
        await self._emit(
            RecognitionError(
                event_type=EventType.RECOGNITION_ERROR,
                ts_ms=self._now_ms(),
                session_token=self.session_token,
                code=RecognitionErrorCode.parse(code),
                raw_code=code,
            )
        )

    async def on_end(self) -> None:
        await self._emit(
            RecognitionEnded(
                event_type=EventType.RECOGNITION_ENDED,
                ts_ms=self._now_ms(),
                session_token=self.session_token,
            )
        )


class RecognitionAdapter(ABC):
    """
    Abstract interface for a speech-recognition capability.

    Implementations are responsible for:
    - Asking for microphone permission
    - Opening one recognition session per start_session() call
    - Reporting start / result / error / end through the session binder

    Non-responsibilities:
    - No restart policy or debouncing
    - No no-speech watchdog (the controller owns that timer)
    - No wake-phrase matching
    """

    @abstractmethod
    async def request_permission(self) -> PermissionResult:
        """
        Ask for microphone access.

        Exceptions are treated as a denial by the runtime.
        """
        raise NotImplementedError

    @abstractmethod
    async def start_session(
        self,
        token: int,
        options: RecognitionOptions,
        events: RecognitionSessionEvents,
    ) -> None:
        """
        Open a new recognition session for `token`.

        Returning means the start was issued, not that the session started;
        the start is confirmed by events.on_start(). Raising means the start
        failed outright.
        """
        raise NotImplementedError

    @abstractmethod
    async def stop_session(self, token: int) -> None:
        """
        Stop the session for `token`.

        Contract:
        - Idempotent: unknown or already stopped tokens are a no-op.
        - Must not raise for a session that already ended.
        """
        raise NotImplementedError
