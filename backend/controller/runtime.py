"""
Runtime execution shell for a single wake-word controller.

Responsibilities:
- Own controller state
- Call pure reducer
- Execute commands with side effects (recognition, call session, host)
- Schedule and cancel timers
- Convert timer expiry and task completion into token-stamped events
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING, Any, Callable

from adapters.recognition.base import RecognitionOptions, RecognitionSessionEvents
from controller.commands import (
    CancelCallEnd,
    CancelCallStart,
    CancelTimer,
    Command,
    EndCall,
    ForwardMessages,
    LogEvent,
    NotifyCallEnded,
    NotifyStatus,
    PublishState,
    RequestPermission,
    StartCall,
    StartRecognition,
    StartTimer,
    StopRecognition,
    SurfaceNotice,
)
from controller.events import (
    CallEndCompleted,
    CallEndFailed,
    CallEndTimeout,
    CallStartFailed,
    CallStartSucceeded,
    CallStartTimeout,
    CapabilityUnsupported,
    Event,
    EventType,
    HandoffDelayElapsed,
    NoSpeechTimeout,
    PermissionDenied,
    PermissionGranted,
    RecognitionStartFailed,
    RestartDue,
    ResumeElapsed,
    SettleElapsed,
    TryAgainFallback,
)
from controller.reducer import reduce
from controller.state_dataclass import ControllerState
from observability import metrics
from observability.logger import log_event


if TYPE_CHECKING:
    from controller.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for a single controller.

    Responsibilities:
    - Own the authoritative controller state
    - Act as the universal event sink for the controller
      (host calls, recognition callbacks, task results, timer events)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects
    - Schedule and cancel timers

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - Events are processed strictly in FIFO order; an event raised while
      commands execute is queued, never reduced re-entrantly
    - All side effects occur *after* state has been updated
    - Runtime never performs controller logic itself

    Non-responsibilities:
    - Transport concerns (WebSocket, message encoding)
    - Restart policy, error classification, wake-phrase matching
    """

    def __init__(
        self,
        *,
        initial_state: ControllerState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context

        self._queue: deque[Event] = deque()
        self._dispatching = False

        self._timers: dict[str, asyncio.Task[None]] = {}

        # call_token -> in-flight start_call() task
        self._call_start_tasks: dict[int, asyncio.Task[None]] = {}
        # (call_token, task) of the in-flight end_call(), at most one
        self._call_end: tuple[int, asyncio.Task[None]] | None = None
        self._permission_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ControllerState:
        """
        Return the current immutable controller state.

        The returned object must be treated as read-only; it is only
        replaced internally by Runtime via the reducer.
        """
        return self._state

    async def handle_event(self, event: Event) -> None:
        """
        Process an event through the controller pipeline.

        Processing steps:
        1. Append the event to the FIFO
        2. If no dispatch is in progress, drain the FIFO: reduce, swap in the
           new state, execute every emitted command in order

        If a dispatch is already in progress (a command, callback or timer
        raised this event), the event is only queued; the active dispatcher
        picks it up after the current event's commands.
        """
        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                current = self._queue.popleft()
                self._state, commands = reduce(self._state, current)
                for cmd in commands:
                    await self._execute_command(cmd)
        finally:
            self._dispatching = False

    async def wait_idle(self) -> None:
        """Yield until no dispatch is in progress and the FIFO is empty."""
        while self._dispatching or self._queue:
            if not self._dispatching:
                # Queued without a dispatcher (previous dispatch raised)
                await self.handle_event(self._queue.popleft())
                continue
            await asyncio.sleep(0)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels all in-flight timers and tasks and waits for them to finish.
        Safe to call from inside a task the runtime owns.
        """
        current = asyncio.current_task()
        pending: list[asyncio.Task[None]] = []

        for timer_id in list(self._timers.keys()):
            task = self._timers.pop(timer_id)
            if task is not current:
                task.cancel()
                pending.append(task)

        tasks = list(self._call_start_tasks.values())
        self._call_start_tasks.clear()
        if self._call_end is not None:
            tasks.append(self._call_end[1])
        if self._permission_task is not None:
            tasks.append(self._permission_task)
        self._call_end = None
        self._permission_task = None

        for task in tasks:
            if task is not current and not task.done():
                task.cancel()
                pending.append(task)

        self._queue.clear()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
                "connection_status": self._ctx.connection_status.value,
            })

        # ------------------------------------------------------------
        # Permission
        # ------------------------------------------------------------

        elif isinstance(cmd, RequestPermission):
            if self._permission_task is not None and not self._permission_task.done():
                self._permission_task.cancel()
            self._permission_task = asyncio.create_task(self._run_permission())

        # ------------------------------------------------------------
        # Recognition
        # ------------------------------------------------------------

        elif isinstance(cmd, StartRecognition):
            await self._start_recognition(cmd)

        elif isinstance(cmd, StopRecognition):
            adapter = self._ctx.recognition_adapter
            assert adapter is not None, "Recognition adapter missing"
            try:
                await adapter.stop_session(cmd.session_token)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                # Stop is best-effort; the token is already released in state.
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "RECOGNITION_STOP_FAILED",
                    "session_id": self._ctx.session_id,
                    "session_token": cmd.session_token,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })

        # ------------------------------------------------------------
        # Call session
        # ------------------------------------------------------------

        elif isinstance(cmd, StartCall):
            self._cancel_call_start(cmd.call_token)
            self._call_start_tasks[cmd.call_token] = asyncio.create_task(
                self._run_start_call(cmd.call_token)
            )
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_START_EXECUTED",
                "session_id": self._ctx.session_id,
                "call_token": cmd.call_token,
            })

        elif isinstance(cmd, CancelCallStart):
            self._cancel_call_start(cmd.call_token)

        elif isinstance(cmd, EndCall):
            if self._call_end is not None and not self._call_end[1].done():
                # The reducer allows one end_call() at a time; a second one
                # here means a logic error upstream.
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "CALL_END_ALREADY_RUNNING",
                    "session_id": self._ctx.session_id,
                    "call_token": cmd.call_token,
                })
                return
            self._call_end = (
                cmd.call_token,
                asyncio.create_task(self._run_end_call(cmd.call_token)),
            )

        elif isinstance(cmd, CancelCallEnd):
            self._cancel_call_end(cmd.call_token)

        # ------------------------------------------------------------
        # Host callbacks
        # ------------------------------------------------------------

        elif isinstance(cmd, NotifyStatus):
            self._notify_host("on_call_status_change", lambda h: h.on_call_status_change(cmd.status))

        elif isinstance(cmd, NotifyCallEnded):
            self._notify_host("on_end_call", lambda h: h.on_end_call())

        elif isinstance(cmd, ForwardMessages):
            self._notify_host("on_messages_update", lambda h: h.on_messages_update(cmd.messages))

        elif isinstance(cmd, SurfaceNotice):
            self._notify_host("on_notice", lambda h: h.on_notice(cmd.notice))

        elif isinstance(cmd, PublishState):
            self._notify_host(
                "on_state_change",
                lambda h: h.on_state_change(cmd.state, dict(cmd.flags)),
            )

        # ------------------------------------------------------------
        # Timers
        # ------------------------------------------------------------

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
                token=cmd.token,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    def _notify_host(self, callback: str, call: Callable[[Any], None]) -> None:
        """Invoke a host callback; a failing host must not stop the controller."""
        host = self._ctx.host
        if host is None:
            return
        try:
            call(host)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "HOST_CALLBACK_FAILED",
                "session_id": self._ctx.session_id,
                "callback": callback,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    async def _start_recognition(self, cmd: StartRecognition) -> None:
        adapter = self._ctx.recognition_adapter
        assert adapter is not None, "Recognition adapter missing"

        events = RecognitionSessionEvents(
            session_token=cmd.session_token,
            emit_event=self.handle_event,
            now_ms=_now_ms,
        )
        options = RecognitionOptions(
            lang=cmd.lang,
            interim_results=cmd.interim_results,
            continuous=cmd.continuous,
        )

        try:
            await adapter.start_session(cmd.session_token, options, events)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            await self.handle_event(
                RecognitionStartFailed(
                    event_type=EventType.RECOGNITION_START_FAILED,
                    ts_ms=_now_ms(),
                    session_token=cmd.session_token,
                    reason=f"{type(exc).__name__}: {exc}",
                )
            )
            return

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "RECOGNITION_START_EXECUTED",
            "session_id": self._ctx.session_id,
            "session_token": cmd.session_token,
        })

    # ------------------------------------------------------------------
    # Long-running operations (tracked tasks)
    # ------------------------------------------------------------------

    async def _run_permission(self) -> None:
        adapter = self._ctx.recognition_adapter
        assert adapter is not None, "Recognition adapter missing"

        timer_id = metrics.start_timer("permission_latency")
        event: Event
        try:
            result = await adapter.request_permission()
        except asyncio.CancelledError:
            metrics.discard_timer(timer_id)
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            event = PermissionDenied(
                event_type=EventType.PERMISSION_DENIED,
                ts_ms=_now_ms(),
                reason=f"{type(exc).__name__}: {exc}",
            )
        else:
            if not result.supported:
                event = CapabilityUnsupported(
                    event_type=EventType.CAPABILITY_UNSUPPORTED,
                    ts_ms=_now_ms(),
                )
            elif result.granted:
                event = PermissionGranted(
                    event_type=EventType.PERMISSION_GRANTED,
                    ts_ms=_now_ms(),
                )
            else:
                event = PermissionDenied(
                    event_type=EventType.PERMISSION_DENIED,
                    ts_ms=_now_ms(),
                    reason=result.reason or "denied",
                )

        metrics.stop_timer(
            timer_id,
            session_id=self._ctx.session_id,
            details={"outcome": event.event_type.value},
        )
        if self._permission_task is asyncio.current_task():
            self._permission_task = None
        await self.handle_event(event)

    async def _run_start_call(self, call_token: int) -> None:
        call_session = self._ctx.call_session
        assert call_session is not None, "Call session missing"

        timer_id = metrics.start_timer("call_start_latency")
        event: Event
        try:
            await call_session.start_call(call_token)
        except asyncio.CancelledError:
            metrics.discard_timer(timer_id)
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            event = CallStartFailed(
                event_type=EventType.CALL_START_FAILED,
                ts_ms=_now_ms(),
                call_token=call_token,
                reason=f"{type(exc).__name__}: {exc}",
            )
        else:
            event = CallStartSucceeded(
                event_type=EventType.CALL_START_SUCCEEDED,
                ts_ms=_now_ms(),
                call_token=call_token,
            )

        metrics.stop_timer(
            timer_id,
            session_id=self._ctx.session_id,
            state=self._state.detector_state.value,
            details={"call_token": call_token, "outcome": event.event_type.value},
        )

        # Detach before emitting: the reducer may answer with CancelCallStart
        # for this token, which must not cancel the task doing the dispatch.
        if self._call_start_tasks.get(call_token) is asyncio.current_task():
            del self._call_start_tasks[call_token]
        await self.handle_event(event)

    async def _run_end_call(self, call_token: int) -> None:
        call_session = self._ctx.call_session
        assert call_session is not None, "Call session missing"

        timer_id = metrics.start_timer("call_end_latency")
        event: Event
        try:
            await call_session.end_call(call_token)
        except asyncio.CancelledError:
            metrics.discard_timer(timer_id)
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            event = CallEndFailed(
                event_type=EventType.CALL_END_FAILED,
                ts_ms=_now_ms(),
                call_token=call_token,
                reason=f"{type(exc).__name__}: {exc}",
            )
        else:
            event = CallEndCompleted(
                event_type=EventType.CALL_END_COMPLETED,
                ts_ms=_now_ms(),
                call_token=call_token,
            )

        metrics.stop_timer(
            timer_id,
            session_id=self._ctx.session_id,
            state=self._state.detector_state.value,
            details={"call_token": call_token, "outcome": event.event_type.value},
        )

        # Detach before emitting, as for call start
        if self._call_end is not None and self._call_end[1] is asyncio.current_task():
            self._call_end = None
        await self.handle_event(event)

    def _cancel_call_end(self, call_token: int) -> None:
        if self._call_end is None or self._call_end[0] != call_token:
            return
        _, task = self._call_end
        self._call_end = None
        if not task.done():
            task.cancel()
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_END_CANCELLED",
                "session_id": self._ctx.session_id,
                "call_token": call_token,
            })

    def _cancel_call_start(self, call_token: int) -> None:
        task = self._call_start_tasks.pop(call_token, None)
        if task is not None and not task.done():
            task.cancel()
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CALL_START_CANCELLED",
                "session_id": self._ctx.session_id,
                "call_token": call_token,
            })

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
        token: int,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        # Cancel existing timer if present (idempotent)
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            # Fired: no longer cancellable under this id
            if self._timers.get(timer_id) is asyncio.current_task():
                del self._timers[timer_id]

            event = self._construct_timeout_event(
                timer_id=timer_id,
                timeout_event_type=timeout_event_type,
                token=token,
            )
            await self.handle_event(event)

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _construct_timeout_event(
        self,
        *,
        timer_id: str,
        timeout_event_type: EventType,
        token: int,
    ) -> Event:
        """
        Construct the timeout event for an expired timer.

        The token is the one the timer was armed with, not the current one,
        so a timer that outlived its session or call is rejected by the
        reducer.
        """
        ts = _now_ms()

        if timeout_event_type is EventType.NO_SPEECH_TIMEOUT:
            return NoSpeechTimeout(event_type=timeout_event_type, ts_ms=ts, session_token=token)

        if timeout_event_type is EventType.RESTART_DUE:
            return RestartDue(event_type=timeout_event_type, ts_ms=ts)

        if timeout_event_type is EventType.HANDOFF_DELAY_ELAPSED:
            return HandoffDelayElapsed(event_type=timeout_event_type, ts_ms=ts, call_token=token)

        if timeout_event_type is EventType.CALL_START_TIMEOUT:
            return CallStartTimeout(event_type=timeout_event_type, ts_ms=ts, call_token=token)

        if timeout_event_type is EventType.CALL_END_TIMEOUT:
            return CallEndTimeout(event_type=timeout_event_type, ts_ms=ts, call_token=token)

        if timeout_event_type is EventType.SETTLE_ELAPSED:
            return SettleElapsed(event_type=timeout_event_type, ts_ms=ts, call_token=token)

        if timeout_event_type is EventType.RESUME_ELAPSED:
            return ResumeElapsed(event_type=timeout_event_type, ts_ms=ts, call_token=token)

        if timeout_event_type is EventType.TRY_AGAIN_FALLBACK:
            return TryAgainFallback(event_type=timeout_event_type, ts_ms=ts)

        # This should never happen if reducer is correct
        raise ValueError(
            f"Unknown timeout event type: {timeout_event_type} "
            f"for timer_id: {timer_id}"
        )

    # ------------------------------------------------------------------
    # Introspection (tests / diagnostics)
    # ------------------------------------------------------------------

    def active_timers(self) -> tuple[str, ...]:
        return tuple(sorted(self._timers))

    def pending_call_starts(self) -> tuple[int, ...]:
        return tuple(sorted(self._call_start_tasks))

    def pending_call_end(self) -> int | None:
        return None if self._call_end is None else self._call_end[0]
