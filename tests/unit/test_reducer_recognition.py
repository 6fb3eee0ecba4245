# pylint: disable=missing-module-docstring,missing-function-docstring
from dataclasses import replace

from controller.commands import (
    CancelTimer,
    Command,
    LogEvent,
    PublishState,
    RequestPermission,
    StartRecognition,
    StartTimer,
    StopRecognition,
    SurfaceNotice,
)
from controller.enums.client_class import ClientClass
from controller.enums.detector_state import DetectorState
from controller.enums.notice import Notice
from controller.enums.recognition_error import RecognitionErrorCode
from controller.enums.trigger import TriggerReason
from controller.events import (
    CapabilityUnsupported,
    ControllerMounted,
    EventType,
    ManualTrigger,
    NoSpeechTimeout,
    PermissionDenied,
    PermissionGranted,
    RecognitionEnded,
    RecognitionError,
    RecognitionResult,
    RecognitionStarted,
    RecognitionStartFailed,
    RestartDue,
)
from controller.phases import Detected, Errored, Initializing, Listening
from controller.reducer import (
    TIMER_HANDOFF,
    TIMER_NO_SPEECH,
    TIMER_RESTART,
    reduce,
)
from controller.state_dataclass import ControllerState
from controller.tokens import SessionTokens


# ---------------------------------------------------------------------
# Event helpers (mirror runtime construction)
# ---------------------------------------------------------------------

def mounted() -> ControllerMounted:
    return ControllerMounted(event_type=EventType.CONTROLLER_MOUNTED, ts_ms=0)


def granted() -> PermissionGranted:
    return PermissionGranted(event_type=EventType.PERMISSION_GRANTED, ts_ms=0)


def denied(reason: str = "denied") -> PermissionDenied:
    return PermissionDenied(event_type=EventType.PERMISSION_DENIED, ts_ms=0, reason=reason)


def restart_due() -> RestartDue:
    return RestartDue(event_type=EventType.RESTART_DUE, ts_ms=0)


def started(token: int) -> RecognitionStarted:
    return RecognitionStarted(event_type=EventType.RECOGNITION_STARTED, ts_ms=0, session_token=token)


def result(token: int, *transcripts: str) -> RecognitionResult:
    return RecognitionResult(
        event_type=EventType.RECOGNITION_RESULT,
        ts_ms=0,
        session_token=token,
        transcripts=transcripts,
    )


def error(token: int, code: str) -> RecognitionError:
    return RecognitionError(
        event_type=EventType.RECOGNITION_ERROR,
        ts_ms=0,
        session_token=token,
        code=RecognitionErrorCode.parse(code),
        raw_code=code,
    )


def ended(token: int) -> RecognitionEnded:
    return RecognitionEnded(event_type=EventType.RECOGNITION_ENDED, ts_ms=0, session_token=token)


def manual() -> ManualTrigger:
    return ManualTrigger(event_type=EventType.MANUAL_TRIGGER, ts_ms=0)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def listening_state(token: int = 1, *, started_: bool = True, **kwargs) -> ControllerState:
    return ControllerState(
        phase=Listening(session_token=token, started=started_),
        tokens=SessionTokens(recognition=token, call=0),
        permission_granted=True,
        **kwargs,
    )


def decisions(commands: tuple[Command, ...]) -> list[str]:
    """Extract decision strings from LogEvent commands."""
    return [c.event["decision"] for c in commands if isinstance(c, LogEvent)]


def of_type(commands: tuple[Command, ...], cls: type) -> list:
    return [c for c in commands if isinstance(c, cls)]


def timers_started(commands: tuple[Command, ...]) -> dict[str, StartTimer]:
    return {c.timer_id: c for c in commands if isinstance(c, StartTimer)}


# ---------------------------------------------------------------------
# 1. Mount / permission
# ---------------------------------------------------------------------

def test_mount_requests_permission_and_publishes_initial_state():
    state = ControllerState()

    new_state, commands = reduce(state, mounted())

    assert new_state == state
    assert len(of_type(commands, RequestPermission)) == 1
    published = of_type(commands, PublishState)
    assert [p.state for p in published] == [DetectorState.INITIALIZING]


def test_permission_granted_enters_listening_and_schedules_first_start():
    state = ControllerState()

    new_state, commands = reduce(state, granted())

    assert new_state.detector_state is DetectorState.LISTENING
    assert new_state.permission_granted is True
    assert not new_state.is_listening
    timers = timers_started(commands)
    assert timers[TIMER_RESTART].duration_ms == state.timings.listen_start_delay_ms
    assert not of_type(commands, StartRecognition)


def test_permission_denied_enters_error_with_notice():
    new_state, commands = reduce(ControllerState(), denied("blocked"))

    assert isinstance(new_state.phase, Errored)
    assert new_state.last_error == "permission_denied:blocked"
    assert [n.notice for n in of_type(commands, SurfaceNotice)] == [Notice.MIC_ACCESS_DENIED]


def test_capability_unsupported_enters_error_with_notice():
    event = CapabilityUnsupported(event_type=EventType.CAPABILITY_UNSUPPORTED, ts_ms=0)

    new_state, commands = reduce(ControllerState(), event)

    assert new_state.detector_state is DetectorState.ERROR
    assert [n.notice for n in of_type(commands, SurfaceNotice)] == [Notice.RECOGNITION_UNSUPPORTED]


def test_second_mount_is_ignored():
    state = listening_state()

    new_state, commands = reduce(state, mounted())

    assert new_state == state
    assert decisions(commands) == ["ignore"]


# ---------------------------------------------------------------------
# 2. Session start / tokens
# ---------------------------------------------------------------------

def test_restart_due_opens_session_with_fresh_token():
    state = ControllerState(phase=Listening(), permission_granted=True)

    new_state, commands = reduce(state, restart_due())

    starts = of_type(commands, StartRecognition)
    assert len(starts) == 1
    assert starts[0].session_token == 1
    assert starts[0].lang == "en-US"
    assert starts[0].interim_results is True
    assert starts[0].continuous is False
    assert new_state.live_session_token == 1
    assert not new_state.is_listening


def test_new_start_tears_down_unstarted_previous_handle():
    state = listening_state(token=1, started_=False)

    new_state, commands = reduce(state, restart_due())

    assert [c.session_token for c in of_type(commands, StopRecognition)] == [1]
    assert [c.session_token for c in of_type(commands, StartRecognition)] == [2]
    # Stop precedes start
    kinds = [type(c) for c in commands if isinstance(c, (StopRecognition, StartRecognition))]
    assert kinds == [StopRecognition, StartRecognition]
    assert new_state.tokens.recognition == 2


def test_two_on_start_events_only_live_handle_counts():
    state = ControllerState(phase=Listening(), permission_granted=True)
    state, _ = reduce(state, restart_due())  # session 1
    state, _ = reduce(state, restart_due())  # session 2 supersedes 1

    state_after_old, commands = reduce(state, started(1))
    assert state_after_old == state
    assert not state_after_old.is_listening
    assert decisions(commands) == ["ignore"]

    state_after_new, _ = reduce(state, started(2))
    assert state_after_new.is_listening


def test_on_start_arms_no_speech_watchdog_per_client_class():
    desktop = listening_state(started_=False)
    mobile = listening_state(started_=False, client_class=ClientClass.MOBILE)

    _, desktop_cmds = reduce(desktop, started(1))
    _, mobile_cmds = reduce(mobile, started(1))

    assert timers_started(desktop_cmds)[TIMER_NO_SPEECH].duration_ms == 10_000
    assert timers_started(mobile_cmds)[TIMER_NO_SPEECH].duration_ms == 6_000
    assert timers_started(mobile_cmds)[TIMER_NO_SPEECH].token == 1


# ---------------------------------------------------------------------
# 3. Stale handles
# ---------------------------------------------------------------------

def test_stale_handle_events_leave_state_unchanged():
    state = listening_state(token=2)

    for event in (started(1), result(1, "hey anna"), ended(1), error(1, "network")):
        new_state, commands = reduce(state, event)
        assert new_state == state
        assert decisions(commands) == ["ignore"]
        assert commands[0].event["details"]["reason"] == "recognition_session_stale"


def test_recognition_events_outside_listening_are_stale():
    state = ControllerState(
        phase=Detected(reason=TriggerReason.MANUAL, call_token=1),
        tokens=SessionTokens(recognition=1, call=1),
    )

    new_state, commands = reduce(state, result(1, "hey anna"))

    assert new_state == state
    assert decisions(commands) == ["ignore"]


def test_stale_no_speech_timer_is_ignored():
    state = listening_state(token=3)
    event = NoSpeechTimeout(event_type=EventType.NO_SPEECH_TIMEOUT, ts_ms=0, session_token=2)

    new_state, _ = reduce(state, event)

    assert new_state == state


# ---------------------------------------------------------------------
# 4. Results / matcher
# ---------------------------------------------------------------------

def test_non_matching_result_keeps_listening():
    state = listening_state()

    new_state, commands = reduce(state, result(1, "completely unrelated sentence"))

    assert new_state == state
    assert CancelTimer(timer_id=TIMER_NO_SPEECH) in commands
    assert "heard" in decisions(commands)


def test_wake_phrase_result_enters_detected():
    state = listening_state()

    new_state, commands = reduce(state, result(1, "Hey Anna", "how are you"))

    assert isinstance(new_state.phase, Detected)
    assert new_state.phase.reason is TriggerReason.WAKE_PHRASE
    assert new_state.phase.call_token == 1
    assert new_state.is_transitioning
    assert not new_state.is_listening

    assert [c.session_token for c in of_type(commands, StopRecognition)] == [1]
    handoff = timers_started(commands)[TIMER_HANDOFF]
    assert handoff.token == 1
    assert handoff.duration_ms == state.timings.handoff_delay_ms
    assert [n.notice for n in of_type(commands, SurfaceNotice)] == [Notice.WAKE_WORD_DETECTED]
    assert [p.state for p in of_type(commands, PublishState)] == [DetectorState.DETECTED]


def test_result_while_resuming_is_dropped():
    state = ControllerState(phase=Listening(resuming=True), tokens=SessionTokens(recognition=1, call=1))

    # No live session while resuming, so even the previous token is stale
    new_state, _ = reduce(state, result(1, "hey anna"))

    assert new_state == state


# ---------------------------------------------------------------------
# 5. Errors / end
# ---------------------------------------------------------------------

def test_no_speech_error_restarts_after_short_debounce():
    state = listening_state()

    new_state, commands = reduce(state, error(1, "no-speech"))

    assert new_state.live_session_token == 0
    assert not new_state.is_listening
    assert [c.session_token for c in of_type(commands, StopRecognition)] == [1]
    assert timers_started(commands)[TIMER_RESTART].duration_ms == 500
    assert not of_type(commands, SurfaceNotice)


def test_aborted_error_only_marks_idle():
    state = listening_state()

    new_state, commands = reduce(state, error(1, "aborted"))

    assert isinstance(new_state.phase, Listening)
    assert new_state.phase.session_token == 1
    assert not new_state.is_listening
    assert not of_type(commands, StopRecognition)
    assert not timers_started(commands)


def test_end_after_abort_still_restarts():
    state, _ = reduce(listening_state(), error(1, "aborted"))

    new_state, commands = reduce(state, ended(1))

    assert new_state.live_session_token == 0
    assert timers_started(commands)[TIMER_RESTART].duration_ms == 500


def test_other_error_restarts_later_with_notice():
    state = listening_state()

    new_state, commands = reduce(state, error(1, "network"))

    assert new_state.live_session_token == 0
    assert timers_started(commands)[TIMER_RESTART].duration_ms == 1_000
    assert [n.notice for n in of_type(commands, SurfaceNotice)] == [Notice.RECOGNITION_INTERRUPTED]


def test_unknown_error_code_is_treated_as_transient():
    state = listening_state()

    _, commands = reduce(state, error(1, "some-new-browser-code"))

    assert timers_started(commands)[TIMER_RESTART].duration_ms == 1_000


def test_not_allowed_enters_error_without_restart():
    state = listening_state()

    new_state, commands = reduce(state, error(1, "not-allowed"))

    assert new_state.detector_state is DetectorState.ERROR
    assert [n.notice for n in of_type(commands, SurfaceNotice)] == [Notice.MIC_ACCESS_DENIED]
    assert not timers_started(commands)
    assert CancelTimer(timer_id=TIMER_RESTART) in commands

    # A restart timer that already fired is refused
    after_restart, restart_cmds = reduce(new_state, restart_due())
    assert after_restart == new_state
    assert not of_type(restart_cmds, StartRecognition)


def test_on_end_restarts_after_short_debounce():
    state = listening_state()

    new_state, commands = reduce(state, ended(1))

    assert not new_state.is_listening
    assert CancelTimer(timer_id=TIMER_NO_SPEECH) in commands
    assert timers_started(commands)[TIMER_RESTART].duration_ms == 500


def test_start_failure_releases_handle_and_restarts_later():
    state = listening_state(started_=False)
    event = RecognitionStartFailed(
        event_type=EventType.RECOGNITION_START_FAILED,
        ts_ms=0,
        session_token=1,
        reason="RuntimeError: busy",
    )

    new_state, commands = reduce(state, event)

    assert new_state.live_session_token == 0
    assert timers_started(commands)[TIMER_RESTART].duration_ms == 1_000


def test_no_speech_timeout_stops_and_restarts():
    state = listening_state()
    event = NoSpeechTimeout(event_type=EventType.NO_SPEECH_TIMEOUT, ts_ms=0, session_token=1)

    new_state, commands = reduce(state, event)

    assert new_state.live_session_token == 0
    assert [c.session_token for c in of_type(commands, StopRecognition)] == [1]
    assert timers_started(commands)[TIMER_RESTART].duration_ms == 500


# ---------------------------------------------------------------------
# 6. Restart policy
# ---------------------------------------------------------------------

def test_restart_due_while_listening_is_dropped():
    state = listening_state()

    new_state, commands = reduce(state, restart_due())

    assert new_state == state
    assert not of_type(commands, StartRecognition)


def test_restart_due_while_resuming_is_dropped():
    state = ControllerState(phase=Listening(resuming=True), tokens=SessionTokens(recognition=1, call=1))

    new_state, commands = reduce(state, restart_due())

    assert new_state == state
    assert not of_type(commands, StartRecognition)


def test_restart_due_outside_listening_is_dropped():
    state = ControllerState(phase=Initializing())

    new_state, commands = reduce(state, restart_due())

    assert new_state == state
    assert decisions(commands) == ["ignore"]


# ---------------------------------------------------------------------
# 7. Manual trigger
# ---------------------------------------------------------------------

def test_manual_trigger_enters_detected_without_wake_notice():
    state = listening_state()

    new_state, commands = reduce(state, manual())

    assert isinstance(new_state.phase, Detected)
    assert new_state.phase.reason is TriggerReason.MANUAL
    assert not of_type(commands, SurfaceNotice)
    assert [c.session_token for c in of_type(commands, StopRecognition)] == [1]


def test_manual_trigger_refused_while_resuming():
    state = ControllerState(phase=Listening(resuming=True), tokens=SessionTokens(recognition=1, call=1))

    new_state, _ = reduce(state, manual())

    assert new_state == state


def test_manual_trigger_does_not_bump_recognition_token():
    state = replace(listening_state(), tokens=SessionTokens(recognition=4, call=2))
    state = replace(state, phase=Listening(session_token=4, started=True))

    new_state, _ = reduce(state, manual())

    assert new_state.tokens == SessionTokens(recognition=4, call=3)
