"""
Side-effect command definitions for the controller.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from context.transcript import TranscriptMessage
from controller.enums.call_status import CallStatus
from controller.enums.detector_state import DetectorState
from controller.enums.notice import Notice
from controller.events import EventType


# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Permission
    REQUEST_PERMISSION = "REQUEST_PERMISSION"

    # Recognition
    START_RECOGNITION = "START_RECOGNITION"
    STOP_RECOGNITION = "STOP_RECOGNITION"

    # Call session
    START_CALL = "START_CALL"
    CANCEL_CALL_START = "CANCEL_CALL_START"
    END_CALL = "END_CALL"
    CANCEL_CALL_END = "CANCEL_CALL_END"

    # Host
    NOTIFY_STATUS = "NOTIFY_STATUS"
    NOTIFY_CALL_ENDED = "NOTIFY_CALL_ENDED"
    FORWARD_MESSAGES = "FORWARD_MESSAGES"
    SURFACE_NOTICE = "SURFACE_NOTICE"
    PUBLISH_STATE = "PUBLISH_STATE"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Permission Commands
# =============================================================================

@dataclass(frozen=True)
class RequestPermission(Command):
    """Ask the platform for microphone permission."""
    command_type: CommandType = CommandType.REQUEST_PERMISSION


# =============================================================================
# Recognition Commands
# =============================================================================

@dataclass(frozen=True)
class StartRecognition(Command):
    """Open a new recognition session stamped with session_token."""
    session_token: int
    lang: str
    interim_results: bool
    continuous: bool
    command_type: CommandType = CommandType.START_RECOGNITION


@dataclass(frozen=True)
class StopRecognition(Command):
    """Stop the recognition session with session_token (idempotent)."""
    session_token: int
    command_type: CommandType = CommandType.STOP_RECOGNITION


# =============================================================================
# Call Session Commands
# =============================================================================

@dataclass(frozen=True)
class StartCall(Command):
    """
    Invoke the call session's start_call().

    The runtime must emit exactly one CallStartSucceeded or CallStartFailed
    for call_token, unless the attempt is cancelled first.
    """
    call_token: int
    command_type: CommandType = CommandType.START_CALL


@dataclass(frozen=True)
class CancelCallStart(Command):
    """Abandon an outstanding start_call() (timeout or supersession)."""
    call_token: int
    command_type: CommandType = CommandType.CANCEL_CALL_START


@dataclass(frozen=True)
class EndCall(Command):
    """
    Invoke the call session's end_call().

    The runtime must emit exactly one CallEndCompleted or CallEndFailed
    for call_token, unless the attempt is cancelled first.
    """
    call_token: int
    command_type: CommandType = CommandType.END_CALL


@dataclass(frozen=True)
class CancelCallEnd(Command):
    """Abandon an outstanding end_call() (timeout or terminal status)."""
    call_token: int
    command_type: CommandType = CommandType.CANCEL_CALL_END


# =============================================================================
# Host Commands
# =============================================================================

@dataclass(frozen=True)
class NotifyStatus(Command):
    """Invoke the host's status-change callback."""
    status: CallStatus
    command_type: CommandType = CommandType.NOTIFY_STATUS


@dataclass(frozen=True)
class NotifyCallEnded(Command):
    """Invoke the host's call-ended callback."""
    command_type: CommandType = CommandType.NOTIFY_CALL_ENDED


@dataclass(frozen=True)
class ForwardMessages(Command):
    """Pass the call's message log to the host."""
    messages: tuple[TranscriptMessage, ...]
    command_type: CommandType = CommandType.FORWARD_MESSAGES


@dataclass(frozen=True)
class SurfaceNotice(Command):
    """Ask the host to show a user-visible notice."""
    notice: Notice
    command_type: CommandType = CommandType.SURFACE_NOTICE


@dataclass(frozen=True)
class PublishState(Command):
    """Tell the host the detector state changed (status rendering)."""
    state: DetectorState
    flags: tuple[tuple[str, bool], ...]
    command_type: CommandType = CommandType.PUBLISH_STATE


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start (or replace) a named timer.

    On expiration, the runtime must inject the specified timeout event,
    stamped with `token` where the event type is token-scoped.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    token: int = 0
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
