# pylint: disable=too-many-lines
"""
Pure controller reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (phase, event) pair is handled or explicitly ignored (logged).
- Token-safe: events from a superseded recognition session, call attempt or
  timer are ignored.
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

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
from controller.enums.call_status import CallConnection, CallStatus
from controller.enums.notice import Notice
from controller.enums.recognition_error import ErrorPolicy, classify
from controller.enums.trigger import TriggerReason
from controller.events import (
    CallEndCompleted,
    CallEndFailed,
    CallEndTimeout,
    CallEvent,
    CallMessagesUpdated,
    CallStartFailed,
    CallStartSucceeded,
    CallStartTimeout,
    CallStatusChanged,
    CapabilityUnsupported,
    ControllerDisposed,
    ControllerMounted,
    EndCallRequested,
    Event,
    EventType,
    HandoffDelayElapsed,
    ManualTrigger,
    NoSpeechTimeout,
    PermissionDenied,
    PermissionGranted,
    RecognitionEnded,
    RecognitionError,
    RecognitionEvent,
    RecognitionResult,
    RecognitionStarted,
    RecognitionStartFailed,
    RestartDue,
    ResumeElapsed,
    RetryRequested,
    SettleElapsed,
    TryAgainFallback,
)
from controller.phases import Calling, Detected, Errored, Initializing, Listening
from controller.state_dataclass import ControllerState
from controller.tokens import SessionTokens
from controller.wake_phrase import build_transcript, matched_variant
from spec import RECOGNITION_CONTINUOUS, RECOGNITION_INTERIM_RESULTS


Result = tuple[ControllerState, tuple[Command, ...]]

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_NO_SPEECH = "no_speech_timeout"
TIMER_RESTART = "recognition_restart"
TIMER_HANDOFF = "handoff_delay"
TIMER_CALL_START = "call_start_timeout"
TIMER_CALL_END = "call_end_timeout"
TIMER_CALL_SETTLE = "call_settle"
TIMER_RESUME = "resume_listening"
TIMER_TRY_AGAIN = "try_again_fallback"

ALL_TIMERS: tuple[str, ...] = (
    TIMER_NO_SPEECH,
    TIMER_RESTART,
    TIMER_HANDOFF,
    TIMER_CALL_START,
    TIMER_CALL_END,
    TIMER_CALL_SETTLE,
    TIMER_RESUME,
    TIMER_TRY_AGAIN,
)


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: ControllerState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.detector_state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "tokens": {
                "recognition": state.tokens.recognition,
                "call": state.tokens.call,
            },
            "flags": state.flags(),
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(state: ControllerState, event: Event, reason: str) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _transition(
    prev: ControllerState,
    new: ControllerState,
    event: Event,
    source: str,
) -> tuple[Command, ...]:
    """State-change log, plus PublishState when the detector state moved."""
    cmds: list[Command] = []
    if prev.detector_state is not new.detector_state:
        cmds.append(
            PublishState(
                state=new.detector_state,
                flags=tuple(new.flags().items()),
            )
        )
    cmds.append(
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": prev.detector_state.value,
                "to_state": new.detector_state.value,
                "source": source,
            },
        )
    )
    return tuple(cmds)


def _cancel(*timer_ids: str) -> tuple[Command, ...]:
    return tuple(CancelTimer(timer_id=t) for t in timer_ids)


def _defensive_stop(state: ControllerState) -> tuple[Command, ...]:
    """
    Stop whatever recognition session may still be open.

    Emitted on every exit from LISTENING and on every call-end path, even
    when the state says no session is live. StopRecognition is idempotent.
    """
    token = state.live_session_token or state.tokens.recognition
    if token == 0:
        return ()
    return (StopRecognition(session_token=token), CancelTimer(timer_id=TIMER_NO_SPEECH))


def _release_session(phase: Listening) -> Listening:
    """Forget the live session; is_listening becomes false immediately."""
    return replace(phase, session_token=0, started=False)


def _schedule_restart(delay_ms: int) -> StartTimer:
    return StartTimer(
        timer_id=TIMER_RESTART,
        duration_ms=delay_ms,
        timeout_event_type=EventType.RESTART_DUE,
    )


def _bump_call_token(tokens: SessionTokens) -> SessionTokens:
    return replace(tokens, call=tokens.call + 1)


def _bump_recognition_token(tokens: SessionTokens) -> SessionTokens:
    return replace(tokens, recognition=tokens.recognition + 1)


def _is_stale_call_event(state: ControllerState, event: CallEvent) -> bool:
    return event.call_token == 0 or event.call_token != state.tokens.call


# =============================================================================
# Shared transitions
# =============================================================================

def _enter_error(
    state: ControllerState,
    event: Event,
    reason: str,
    notice: Notice,
) -> Result:
    new_state = replace(
        state,
        phase=Errored(reason=reason),
        last_error=reason,
    )
    return new_state, _logs_last(
        _defensive_stop(state)
        + _cancel(*ALL_TIMERS)
        + (
            SurfaceNotice(notice=notice),
            _log(new_state, event, "enter_error", {"reason": reason}),
        )
        + _transition(state, new_state, event, "enter_error")
    )


def _enter_listening(
    state: ControllerState,
    event: Event,
    *,
    source: str,
    start_delay_ms: int,
) -> Result:
    """Enter LISTENING with no live session and schedule the first start."""
    new_state = replace(state, phase=Listening())
    return new_state, _logs_last(
        (_schedule_restart(start_delay_ms),)
        + _transition(state, new_state, event, source)
    )


def _begin_resume(state: ControllerState, event: Event, source: str) -> Result:
    """
    Move to LISTENING while still transitioning.

    Recognition stays blocked until ResumeElapsed for the current call token.
    """
    new_state = replace(state, phase=Listening(resuming=True))
    return new_state, _logs_last(
        (
            StartTimer(
                timer_id=TIMER_RESUME,
                duration_ms=state.timings.resume_delay_ms,
                timeout_event_type=EventType.RESUME_ELAPSED,
                token=state.tokens.call,
            ),
        )
        + _transition(state, new_state, event, source)
    )


def _start_recognition(state: ControllerState, event: Event) -> Result:
    """
    Open a new recognition session.

    Any previous handle (opened but never started) is torn down first;
    the new session always gets a fresh token.
    """
    assert isinstance(state.phase, Listening)

    cmds: list[Command] = []
    if state.phase.has_live_session:
        cmds.append(StopRecognition(session_token=state.phase.session_token))

    tokens = _bump_recognition_token(state.tokens)
    new_state = replace(
        state,
        tokens=tokens,
        phase=Listening(session_token=tokens.recognition),
    )
    cmds.append(
        StartRecognition(
            session_token=tokens.recognition,
            lang=state.recognition_lang,
            interim_results=RECOGNITION_INTERIM_RESULTS,
            continuous=RECOGNITION_CONTINUOUS,
        )
    )
    cmds.append(
        _log(
            new_state,
            event,
            "start_recognition",
            {"session_token": tokens.recognition},
        )
    )
    return new_state, _logs_last(tuple(cmds))


def _enter_detected(
    state: ControllerState,
    event: Event,
    reason: TriggerReason,
    details: dict[str, Any],
) -> Result:
    """LISTENING -> DETECTED: stop recognition, clear timers, arm handoff."""
    tokens = _bump_call_token(state.tokens)
    new_state = replace(
        state,
        tokens=tokens,
        phase=Detected(reason=reason, call_token=tokens.call),
    )

    cmds: tuple[Command, ...] = (
        _defensive_stop(state)
        + _cancel(TIMER_NO_SPEECH, TIMER_RESTART, TIMER_RESUME)
        + (
            StartTimer(
                timer_id=TIMER_HANDOFF,
                duration_ms=state.timings.handoff_delay_ms,
                timeout_event_type=EventType.HANDOFF_DELAY_ELAPSED,
                token=tokens.call,
            ),
        )
    )
    if reason is TriggerReason.WAKE_PHRASE:
        cmds += (SurfaceNotice(notice=Notice.WAKE_WORD_DETECTED),)

    return new_state, _logs_last(
        cmds
        + (_log(new_state, event, reason.value, details),)
        + _transition(state, new_state, event, reason.value)
    )


def _enter_settling(
    state: ControllerState,
    event: Event,
    *,
    settle_ms: int,
    source: str,
    extra: tuple[Command, ...] = (),
) -> Result:
    """Mark the call as settling and arm the settle timer."""
    assert isinstance(state.phase, Calling)

    new_state = replace(
        state,
        phase=replace(state.phase, start_in_flight=False, ending=False, settling=True),
    )
    return new_state, _logs_last(
        extra
        + (
            StartTimer(
                timer_id=TIMER_CALL_SETTLE,
                duration_ms=settle_ms,
                timeout_event_type=EventType.SETTLE_ELAPSED,
                token=state.phase.call_token,
            ),
            _log(new_state, event, source, {"settle_ms": settle_ms}),
        )
        + _transition(state, new_state, event, source)
    )


# =============================================================================
# Phase: INITIALIZING
# =============================================================================

def _reduce_initializing(state: ControllerState, event: Event) -> Result:
    phase = state.phase
    assert isinstance(phase, Initializing)

    if isinstance(event, ControllerMounted):
        return state, (
            RequestPermission(),
            PublishState(
                state=state.detector_state,
                flags=tuple(state.flags().items()),
            ),
            _log(state, event, "request_permission", {"source": "mounted"}),
        )

    if isinstance(event, PermissionGranted):
        granted = replace(state, permission_granted=True)
        new_state, cmds = _enter_listening(
            granted,
            event,
            source="permission_granted",
            start_delay_ms=state.timings.listen_start_delay_ms,
        )
        return new_state, _logs_last(_cancel(TIMER_TRY_AGAIN) + cmds)

    if isinstance(event, PermissionDenied):
        return _enter_error(
            state, event, f"permission_denied:{event.reason}", Notice.MIC_ACCESS_DENIED
        )

    if isinstance(event, CapabilityUnsupported):
        return _enter_error(
            state, event, "recognition_unsupported", Notice.RECOGNITION_UNSUPPORTED
        )

    if isinstance(event, TryAgainFallback):
        if not phase.fallback_armed:
            return _ignore(state, event, "fallback_not_armed")
        # Permission flow stalled: go straight to listening. A real denial
        # resurfaces as a not-allowed recognition error.
        return _enter_listening(
            state,
            event,
            source="try_again_fallback",
            start_delay_ms=state.timings.listen_start_delay_ms,
        )

    if isinstance(event, EndCallRequested):
        return _ignore(state, event, "no_active_call")

    return _ignore(state, event, "initializing_unhandled")


# =============================================================================
# Phase: LISTENING
# =============================================================================

def _on_recognition_error(state: ControllerState, event: RecognitionError) -> Result:
    phase = state.phase
    assert isinstance(phase, Listening)

    policy = classify(event.code)
    details = {"code": event.code.value, "raw_code": event.raw_code, "policy": policy.value}

    if policy is ErrorPolicy.MARK_IDLE:
        # Keep the token: the session's on-end still decides the restart.
        new_state = replace(state, phase=replace(phase, started=False))
        return new_state, (
            CancelTimer(timer_id=TIMER_NO_SPEECH),
            _log(new_state, event, "recognition_aborted", details),
        )

    if policy is ErrorPolicy.FATAL:
        return _enter_error(state, event, "recognition_not_allowed", Notice.MIC_ACCESS_DENIED)

    delay_ms = (
        state.timings.restart_debounce_ms
        if policy is ErrorPolicy.RESTART_SOON
        else state.timings.error_restart_debounce_ms
    )
    new_state = replace(state, phase=_release_session(phase))
    cmds: tuple[Command, ...] = (
        StopRecognition(session_token=phase.session_token),
        CancelTimer(timer_id=TIMER_NO_SPEECH),
        _schedule_restart(delay_ms),
    )
    if policy is ErrorPolicy.RESTART_LATER:
        cmds += (SurfaceNotice(notice=Notice.RECOGNITION_INTERRUPTED),)

    return new_state, _logs_last(
        cmds + (_log(new_state, event, "recognition_error_restart", {**details, "delay_ms": delay_ms}),)
    )


def _on_recognition_result(state: ControllerState, event: RecognitionResult) -> Result:
    phase = state.phase
    assert isinstance(phase, Listening)

    transcript = build_transcript(event.transcripts)
    cancel_watchdog = CancelTimer(timer_id=TIMER_NO_SPEECH)

    if phase.resuming:
        return state, (
            cancel_watchdog,
            _log(state, event, "ignore", {"reason": "result_while_transitioning"}),
        )

    variant = matched_variant(transcript)
    if variant is None:
        return state, (
            cancel_watchdog,
            _log(state, event, "heard", {"transcript": transcript}),
        )

    new_state, cmds = _enter_detected(
        state,
        event,
        TriggerReason.WAKE_PHRASE,
        {"transcript": transcript, "variant": variant},
    )
    return new_state, _logs_last((cancel_watchdog,) + cmds)


def _reduce_listening(state: ControllerState, event: Event) -> Result:
    phase = state.phase
    assert isinstance(phase, Listening)

    # ------------------------------------------------------------------
    # Recognition session events (token already validated)
    # ------------------------------------------------------------------
    if isinstance(event, RecognitionStarted):
        if phase.started:
            return _ignore(state, event, "recognition_already_started")
        new_state = replace(state, phase=replace(phase, started=True))
        return new_state, (
            StartTimer(
                timer_id=TIMER_NO_SPEECH,
                duration_ms=state.timings.no_speech_ms(state.client_class),
                timeout_event_type=EventType.NO_SPEECH_TIMEOUT,
                token=event.session_token,
            ),
            _log(new_state, event, "recognition_started", {"session_token": event.session_token}),
        )

    if isinstance(event, RecognitionResult):
        return _on_recognition_result(state, event)

    if isinstance(event, RecognitionError):
        return _on_recognition_error(state, event)

    if isinstance(event, RecognitionEnded):
        new_state = replace(state, phase=_release_session(phase))
        return new_state, (
            CancelTimer(timer_id=TIMER_NO_SPEECH),
            _schedule_restart(state.timings.restart_debounce_ms),
            _log(new_state, event, "recognition_ended_restart", {"session_token": event.session_token}),
        )

    if isinstance(event, RecognitionStartFailed):
        new_state = replace(state, phase=_release_session(phase))
        return new_state, (
            _schedule_restart(state.timings.error_restart_debounce_ms),
            _log(new_state, event, "recognition_start_failed", {"reason": event.reason}),
        )

    if isinstance(event, NoSpeechTimeout):
        new_state = replace(state, phase=_release_session(phase))
        return new_state, (
            StopRecognition(session_token=event.session_token),
            _schedule_restart(state.timings.restart_debounce_ms),
            _log(new_state, event, "no_speech_restart", {"session_token": event.session_token}),
        )

    # ------------------------------------------------------------------
    # Restart policy: revalidate at fire time, drop rather than queue
    # ------------------------------------------------------------------
    if isinstance(event, RestartDue):
        if phase.resuming:
            return _ignore(state, event, "restart_while_transitioning")
        if phase.started:
            return _ignore(state, event, "restart_while_listening")
        return _start_recognition(state, event)

    # ------------------------------------------------------------------
    # Host
    # ------------------------------------------------------------------
    if isinstance(event, ManualTrigger):
        if phase.resuming:
            return _ignore(state, event, "manual_trigger_while_transitioning")
        return _enter_detected(state, event, TriggerReason.MANUAL, {})

    if isinstance(event, EndCallRequested):
        return _ignore(state, event, "no_active_call")

    # ------------------------------------------------------------------
    # Post-call resume
    # ------------------------------------------------------------------
    if isinstance(event, ResumeElapsed):
        if not phase.resuming or _is_stale_call_event(state, event):
            return _ignore(state, event, "resume_stale")
        new_state = replace(state, phase=Listening())
        return new_state, _logs_last(
            _defensive_stop(state)
            + (
                _schedule_restart(state.timings.restart_debounce_ms),
                _log(new_state, event, "resume_listening", {"call_token": event.call_token}),
            )
        )

    return _ignore(state, event, "listening_unhandled")


# =============================================================================
# Phase: DETECTED
# =============================================================================

def _reduce_detected(state: ControllerState, event: Event) -> Result:
    phase = state.phase
    assert isinstance(phase, Detected)

    if isinstance(event, HandoffDelayElapsed):
        if _is_stale_call_event(state, event):
            return _ignore(state, event, "handoff_stale")
        new_state = replace(
            state,
            phase=Calling(
                call_token=phase.call_token,
                connection=CallConnection.REQUESTED,
                start_in_flight=True,
            ),
        )
        return new_state, _logs_last(
            (
                StartCall(call_token=phase.call_token),
                StartTimer(
                    timer_id=TIMER_CALL_START,
                    duration_ms=state.timings.call_start_timeout_ms,
                    timeout_event_type=EventType.CALL_START_TIMEOUT,
                    token=phase.call_token,
                ),
                _log(new_state, event, "start_call", {"call_token": phase.call_token}),
            )
            + _transition(state, new_state, event, "handoff")
        )

    if isinstance(event, EndCallRequested):
        # Handoff not yet started: abandon it and resume listening.
        new_state, cmds = _begin_resume(state, event, "handoff_cancelled")
        return new_state, _logs_last(
            _cancel(TIMER_HANDOFF)
            + (
                NotifyStatus(status=CallStatus.ENDED),
                NotifyCallEnded(),
            )
            + cmds
        )

    if isinstance(event, ManualTrigger):
        return _ignore(state, event, "already_transitioning")

    return _ignore(state, event, "detected_unhandled")


# =============================================================================
# Phase: CALLING
# =============================================================================

def _on_call_start_failure(
    state: ControllerState,
    event: CallStartFailed | CallStartTimeout,
) -> Result:
    phase = state.phase
    assert isinstance(phase, Calling)

    reason = (
        f"call_start_failed:{event.reason}"
        if isinstance(event, CallStartFailed)
        else "call_start_timeout"
    )
    failed = replace(state, last_error=reason)
    return _enter_settling(
        failed,
        event,
        settle_ms=state.timings.call_failure_cooldown_ms,
        source="call_start_failed",
        extra=(
            CancelTimer(timer_id=TIMER_CALL_START),
            CancelCallStart(call_token=phase.call_token),
            NotifyStatus(status=CallStatus.ERROR),
            SurfaceNotice(notice=Notice.CALL_START_FAILED),
            _log(failed, event, "call_start_failure", {"reason": reason}),
        ),
    )


def _reduce_calling(state: ControllerState, event: Event) -> Result:
    phase = state.phase
    assert isinstance(phase, Calling)

    if isinstance(event, CallEvent) and _is_stale_call_event(state, event):
        return _ignore(state, event, "call_event_stale")

    # ------------------------------------------------------------------
    # Start path outcome
    # ------------------------------------------------------------------
    if isinstance(event, CallStartSucceeded):
        if not phase.start_in_flight:
            return _ignore(state, event, "call_start_not_in_flight")
        new_state = replace(state, phase=replace(phase, start_in_flight=False))
        return new_state, (
            CancelTimer(timer_id=TIMER_CALL_START),
            _log(new_state, event, "call_started", {"call_token": phase.call_token}),
        )

    if isinstance(event, (CallStartFailed, CallStartTimeout)):
        if not phase.start_in_flight:
            return _ignore(state, event, "call_start_not_in_flight")
        return _on_call_start_failure(state, event)

    # ------------------------------------------------------------------
    # Explicit end path
    # ------------------------------------------------------------------
    if isinstance(event, EndCallRequested):
        if phase.ending:
            return _ignore(state, event, "call_already_ending")
        if phase.settling:
            return _ignore(state, event, "call_already_ended")

        new_state = replace(
            state,
            phase=replace(phase, ending=True, start_in_flight=False),
        )
        cmds: tuple[Command, ...] = _defensive_stop(state) + _cancel(
            TIMER_CALL_START, TIMER_HANDOFF, TIMER_RESTART, TIMER_RESUME
        )
        if phase.start_in_flight:
            cmds += (CancelCallStart(call_token=phase.call_token),)
        return new_state, _logs_last(
            cmds
            + (
                EndCall(call_token=phase.call_token),
                StartTimer(
                    timer_id=TIMER_CALL_END,
                    duration_ms=state.timings.call_end_timeout_ms,
                    timeout_event_type=EventType.CALL_END_TIMEOUT,
                    token=phase.call_token,
                ),
                _log(new_state, event, "end_call", {"call_token": phase.call_token}),
            )
        )

    # A terminal status that arrived first already settled the call and
    # cleared `ending`, so these are dropped without notifying twice.
    if isinstance(event, CallEndCompleted):
        if not phase.ending:
            return _ignore(state, event, "call_end_not_in_flight")
        return _enter_settling(
            state,
            event,
            settle_ms=state.timings.end_call_settle_ms,
            source="call_end_completed",
            extra=(
                CancelTimer(timer_id=TIMER_CALL_END),
                NotifyStatus(status=CallStatus.ENDED),
                NotifyCallEnded(),
            ),
        )

    if isinstance(event, (CallEndFailed, CallEndTimeout)):
        if not phase.ending:
            return _ignore(state, event, "call_end_not_in_flight")
        reason = (
            f"call_end_failed:{event.reason}"
            if isinstance(event, CallEndFailed)
            else "call_end_timeout"
        )
        failed = replace(state, last_error=reason)
        return _enter_settling(
            failed,
            event,
            settle_ms=state.timings.end_call_settle_ms,
            source="call_end_failed",
            extra=(
                CancelTimer(timer_id=TIMER_CALL_END),
                CancelCallEnd(call_token=phase.call_token),
                NotifyStatus(status=CallStatus.ERROR),
                NotifyCallEnded(),
                SurfaceNotice(notice=Notice.CALL_END_FAILED),
                _log(failed, event, "call_end_failure", {"reason": reason}),
            ),
        )

    # ------------------------------------------------------------------
    # Settle -> resume
    # ------------------------------------------------------------------
    if isinstance(event, SettleElapsed):
        if not phase.settling:
            return _ignore(state, event, "settle_not_pending")
        return _begin_resume(state, event, "call_settled")

    if isinstance(event, ManualTrigger):
        return _ignore(state, event, "call_in_progress")

    return _ignore(state, event, "calling_unhandled")


# =============================================================================
# Phase: ERROR
# =============================================================================

def _reduce_errored(state: ControllerState, event: Event) -> Result:
    if isinstance(event, RetryRequested):
        new_state = replace(
            state,
            phase=Initializing(fallback_armed=True),
            permission_granted=False,
            last_error=None,
        )
        return new_state, _logs_last(
            (
                RequestPermission(),
                StartTimer(
                    timer_id=TIMER_TRY_AGAIN,
                    duration_ms=state.timings.try_again_fallback_ms,
                    timeout_event_type=EventType.TRY_AGAIN_FALLBACK,
                ),
                _log(new_state, event, "retry", {"previous_error": state.last_error}),
            )
            + _transition(state, new_state, event, "retry")
        )

    return _ignore(state, event, "in_error_state")


# =============================================================================
# Phase-independent events
# =============================================================================

def _on_call_status(state: ControllerState, event: CallStatusChanged) -> Result:
    """
    Interpret a status reported by the external call session.

    The status is always forwarded to the host first. A terminal status ends
    the call even while an explicit end_call() is in flight; that end is
    abandoned and its late result ignored.
    """
    phase = state.phase
    forward = NotifyStatus(status=event.status)
    details = {"status": event.status.value}

    if event.status.is_terminal:
        if isinstance(phase, Calling) and not phase.settling:
            extra: tuple[Command, ...] = (forward,) + _defensive_stop(state) + _cancel(
                TIMER_CALL_START, TIMER_CALL_END, TIMER_HANDOFF, TIMER_RESTART, TIMER_RESUME
            )
            if phase.start_in_flight:
                extra += (CancelCallStart(call_token=phase.call_token),)
            if phase.ending:
                extra += (CancelCallEnd(call_token=phase.call_token),)
            extra += (NotifyCallEnded(),)
            return _enter_settling(
                state,
                event,
                settle_ms=state.timings.call_end_settle_ms,
                source="call_terminated",
                extra=extra,
            )
        return state, (forward, _log(state, event, "status_forwarded", details))

    connection = CallConnection(event.status.value)

    if isinstance(phase, Calling):
        if not phase.is_active:
            return state, (forward, _log(state, event, "status_forwarded", details))
        new_state = replace(state, phase=replace(phase, connection=connection))
        return new_state, (forward, _log(new_state, event, "call_connection", details))

    if isinstance(phase, (Listening, Detected)):
        # A call was started outside the handoff path: adopt it.
        if isinstance(phase, Detected):
            tokens = state.tokens
            call_token = phase.call_token
        else:
            tokens = _bump_call_token(state.tokens)
            call_token = tokens.call
        new_state = replace(
            state,
            tokens=tokens,
            phase=Calling(call_token=call_token, connection=connection),
        )
        return new_state, _logs_last(
            (forward,)
            + _defensive_stop(state)
            + _cancel(TIMER_NO_SPEECH, TIMER_RESTART, TIMER_HANDOFF, TIMER_RESUME)
            + (_log(new_state, event, "external_call_adopted", {**details, "call_token": call_token}),)
            + _transition(state, new_state, event, "external_call")
        )

    return state, (forward, _log(state, event, "status_forwarded", details))


def _on_disposed(state: ControllerState, event: ControllerDisposed) -> Result:
    new_state = replace(state, disposed=True)
    cmds: tuple[Command, ...] = _defensive_stop(state) + _cancel(*ALL_TIMERS)
    if state.is_api_calling:
        cmds += (CancelCallStart(call_token=state.tokens.call),)
    return new_state, _logs_last(cmds + (_log(new_state, event, "disposed"),))


# =============================================================================
# Reducer entrypoint
# =============================================================================

_PHASE_REDUCERS: dict[type, Callable[[ControllerState, Event], Result]] = {
    Initializing: _reduce_initializing,
    Listening: _reduce_listening,
    Detected: _reduce_detected,
    Calling: _reduce_calling,
    Errored: _reduce_errored,
}


def reduce(state: ControllerState, event: Event) -> Result:
    """
    Pure reducer for the wake-word controller.

    Given the current state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (phase, event) pair is handled or explicitly ignored
    - Token-safe: stale recognition sessions and call attempts are ignored
    """
    if state.disposed:
        return _ignore(state, event, "disposed")

    if isinstance(event, ControllerDisposed):
        return _on_disposed(state, event)

    if isinstance(event, CallMessagesUpdated):
        return state, (
            ForwardMessages(messages=event.messages),
            _log(state, event, "messages_forwarded", {"count": len(event.messages)}),
        )

    if isinstance(event, CallStatusChanged):
        return _on_call_status(state, event)

    # ------------------------------------------------------------------
    # Stale recognition gating
    # ------------------------------------------------------------------
    if isinstance(event, RecognitionEvent):
        live = state.live_session_token
        if event.session_token == 0 or event.session_token != live:
            return _ignore(state, event, "recognition_session_stale")

    if isinstance(event, ControllerMounted) and not isinstance(state.phase, Initializing):
        return _ignore(state, event, "already_mounted")

    return _PHASE_REDUCERS[type(state.phase)](state, event)
