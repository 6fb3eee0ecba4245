"""
Unified event definitions for the controller reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Events coming from a recognition session, a call attempt or a timer carry
the token they belong to; the reducer discards them when that token is no
longer the live one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from context.transcript import TranscriptMessage
from controller.enums.call_status import CallStatus
from controller.enums.recognition_error import RecognitionErrorCode


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (phase, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Lifecycle / permission
    # ------------------------------------------------------------------
    CONTROLLER_MOUNTED = "CONTROLLER_MOUNTED"
    CONTROLLER_DISPOSED = "CONTROLLER_DISPOSED"
    PERMISSION_GRANTED = "PERMISSION_GRANTED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CAPABILITY_UNSUPPORTED = "CAPABILITY_UNSUPPORTED"
    RETRY_REQUESTED = "RETRY_REQUESTED"
    TRY_AGAIN_FALLBACK = "TRY_AGAIN_FALLBACK"

    # ------------------------------------------------------------------
    # Recognition session
    # ------------------------------------------------------------------
    RECOGNITION_STARTED = "RECOGNITION_STARTED"
    RECOGNITION_RESULT = "RECOGNITION_RESULT"
    RECOGNITION_ERROR = "RECOGNITION_ERROR"
    RECOGNITION_ENDED = "RECOGNITION_ENDED"
    RECOGNITION_START_FAILED = "RECOGNITION_START_FAILED"
    NO_SPEECH_TIMEOUT = "NO_SPEECH_TIMEOUT"
    RESTART_DUE = "RESTART_DUE"

    # ------------------------------------------------------------------
    # Host
    # ------------------------------------------------------------------
    MANUAL_TRIGGER = "MANUAL_TRIGGER"
    END_CALL_REQUESTED = "END_CALL_REQUESTED"

    # ------------------------------------------------------------------
    # Call handoff
    # ------------------------------------------------------------------
    HANDOFF_DELAY_ELAPSED = "HANDOFF_DELAY_ELAPSED"
    CALL_START_SUCCEEDED = "CALL_START_SUCCEEDED"
    CALL_START_FAILED = "CALL_START_FAILED"
    CALL_START_TIMEOUT = "CALL_START_TIMEOUT"
    CALL_END_TIMEOUT = "CALL_END_TIMEOUT"
    CALL_STATUS_CHANGED = "CALL_STATUS_CHANGED"
    CALL_MESSAGES_UPDATED = "CALL_MESSAGES_UPDATED"
    CALL_END_COMPLETED = "CALL_END_COMPLETED"
    CALL_END_FAILED = "CALL_END_FAILED"
    SETTLE_ELAPSED = "SETTLE_ELAPSED"
    RESUME_ELAPSED = "RESUME_ELAPSED"


# =============================================================================
# Base Events
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class RecognitionEvent(Event):
    """
    Base class for events emitted by one recognition session.

    The reducer MUST ignore events whose session_token is not the live one.
    """

    session_token: int


@dataclass(frozen=True)
class CallEvent(Event):
    """Base class for events scoped to one call attempt."""

    call_token: int


# =============================================================================
# Lifecycle / Permission
# =============================================================================

@dataclass(frozen=True)
class ControllerMounted(Event):
    """Host mounted the controller; permission flow begins."""


@dataclass(frozen=True)
class ControllerDisposed(Event):
    """Host unmounted the controller; release everything."""


@dataclass(frozen=True)
class PermissionGranted(Event):
    """Microphone permission granted."""


@dataclass(frozen=True)
class PermissionDenied(Event):
    """Microphone permission denied (or the request itself failed)."""
    reason: str


@dataclass(frozen=True)
class CapabilityUnsupported(Event):
    """The platform has no speech-recognition capability."""


@dataclass(frozen=True)
class RetryRequested(Event):
    """User asked to leave ERROR."""


@dataclass(frozen=True)
class TryAgainFallback(Event):
    """Permission flow did not settle within the fallback window."""


# =============================================================================
# Recognition Session Events
# =============================================================================

@dataclass(frozen=True)
class RecognitionStarted(RecognitionEvent):
    """Session emitted its start event."""


@dataclass(frozen=True)
class RecognitionResult(RecognitionEvent):
    """
    Interim or final result.

    transcripts holds the best alternative of every result in the event,
    in order, exactly as the platform returned them.
    """
    transcripts: tuple[str, ...]


@dataclass(frozen=True)
class RecognitionError(RecognitionEvent):
    """Session reported an error."""
    code: RecognitionErrorCode
    raw_code: str = ""


@dataclass(frozen=True)
class RecognitionEnded(RecognitionEvent):
    """Session ended (after a result, a stop, an abort or an error)."""


@dataclass(frozen=True)
class RecognitionStartFailed(RecognitionEvent):
    """The adapter raised while starting the session."""
    reason: str


@dataclass(frozen=True)
class NoSpeechTimeout(RecognitionEvent):
    """No result arrived within the no-speech window."""


@dataclass(frozen=True)
class RestartDue(Event):
    """Restart debounce elapsed; revalidated at fire time."""


# =============================================================================
# Host Events
# =============================================================================

@dataclass(frozen=True)
class ManualTrigger(Event):
    """Host asked to start a conversation now."""


@dataclass(frozen=True)
class EndCallRequested(Event):
    """Host invoked end_call()."""


# =============================================================================
# Call Handoff Events
# =============================================================================

@dataclass(frozen=True)
class HandoffDelayElapsed(CallEvent):
    """Handoff delay after DETECTED elapsed."""


@dataclass(frozen=True)
class CallStartSucceeded(CallEvent):
    """start_call() resolved."""


@dataclass(frozen=True)
class CallStartFailed(CallEvent):
    """start_call() raised."""
    reason: str


@dataclass(frozen=True)
class CallStartTimeout(CallEvent):
    """start_call() did not settle within the hard timeout."""


@dataclass(frozen=True)
class CallStatusChanged(Event):
    """
    The external call session reported a status.

    Not token-scoped: the call session does not know controller tokens.
    The reducer interprets the status against the current phase.
    """
    status: CallStatus


@dataclass(frozen=True)
class CallMessagesUpdated(Event):
    """The call session published its current transcript/response log."""
    messages: tuple[TranscriptMessage, ...]


@dataclass(frozen=True)
class CallEndCompleted(CallEvent):
    """end_call() resolved."""


@dataclass(frozen=True)
class CallEndFailed(CallEvent):
    """end_call() raised."""
    reason: str


@dataclass(frozen=True)
class CallEndTimeout(CallEvent):
    """end_call() did not settle within the call-end timeout."""


@dataclass(frozen=True)
class SettleElapsed(CallEvent):
    """Settle delay after a call ended (or failed to start) elapsed."""


@dataclass(frozen=True)
class ResumeElapsed(CallEvent):
    """Resume delay elapsed; recognition may be re-armed."""
