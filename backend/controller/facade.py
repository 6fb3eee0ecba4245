"""
Public controller facade.

WakeWordController is what a host embeds: it builds the runtime for one
WakeSession and turns host calls into controller events. It holds no
controller logic of its own.
"""

from __future__ import annotations

import time
from typing import Iterable

from context.transcript import TranscriptMessage
from controller.enums.call_status import CallStatus
from controller.enums.detector_state import DetectorState
from controller.events import (
    CallMessagesUpdated,
    CallStatusChanged,
    ControllerDisposed,
    ControllerMounted,
    EndCallRequested,
    Event,
    EventType,
    ManualTrigger,
    RetryRequested,
)
from controller.runtime import Runtime
from controller.runtime_context import RuntimeExecutionContext
from controller.state_dataclass import ControllerState
from controller.timings import ControllerTimings
from session.wake_session import WakeSession
from spec import RECOGNITION_LANG_DEFAULT


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class WakeWordController:
    """
    One controller per mounted host.

    Lifecycle:
        controller = WakeWordController(session=...)
        await controller.mount()       # requests microphone permission
        ...                            # trigger / end_call / report_* / retry
        await controller.dispose()     # releases timers, tasks, recognition
    """

    def __init__(
        self,
        *,
        session: WakeSession,
        timings: ControllerTimings | None = None,
        recognition_lang: str = RECOGNITION_LANG_DEFAULT,
    ) -> None:
        self._session = session
        self._runtime = Runtime(
            initial_state=ControllerState(
                client_class=session.client_class,
                recognition_lang=recognition_lang,
                timings=timings or ControllerTimings(),
            ),
            context=RuntimeExecutionContext(session=session),
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._runtime.state

    @property
    def detector_state(self) -> DetectorState:
        return self._runtime.state.detector_state

    @property
    def is_listening(self) -> bool:
        return self._runtime.state.is_listening

    @property
    def is_transitioning(self) -> bool:
        return self._runtime.state.is_transitioning

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    # ------------------------------------------------------------------
    # Host -> controller
    # ------------------------------------------------------------------

    async def mount(self) -> None:
        await self._emit(ControllerMounted(event_type=EventType.CONTROLLER_MOUNTED, ts_ms=_now_ms()))

    async def trigger(self) -> None:
        """Manual trigger: start a conversation without the wake phrase."""
        await self._emit(ManualTrigger(event_type=EventType.MANUAL_TRIGGER, ts_ms=_now_ms()))

    async def end_call(self) -> None:
        """End the active call. Idempotent; extra calls are logged and ignored."""
        await self._emit(EndCallRequested(event_type=EventType.END_CALL_REQUESTED, ts_ms=_now_ms()))

    async def retry(self) -> None:
        """Leave the error state and request permission again."""
        await self._emit(RetryRequested(event_type=EventType.RETRY_REQUESTED, ts_ms=_now_ms()))

    async def report_call_status(self, status: CallStatus) -> None:
        await self._emit(
            CallStatusChanged(
                event_type=EventType.CALL_STATUS_CHANGED,
                ts_ms=_now_ms(),
                status=status,
            )
        )

    async def report_messages(self, messages: Iterable[TranscriptMessage]) -> None:
        await self._emit(
            CallMessagesUpdated(
                event_type=EventType.CALL_MESSAGES_UPDATED,
                ts_ms=_now_ms(),
                messages=tuple(messages),
            )
        )

    async def dispose(self) -> None:
        """Stop recognition, cancel every timer and task. Terminal."""
        await self._emit(ControllerDisposed(event_type=EventType.CONTROLLER_DISPOSED, ts_ms=_now_ms()))
        await self._runtime.wait_idle()
        await self._runtime.shutdown()

    async def _emit(self, event: Event) -> None:
        await self._runtime.handle_event(event)
