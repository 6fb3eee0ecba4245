"""
Controller phases (tagged union).

Each phase is a frozen dataclass carrying only the guard sub-state that is
meaningful in it, so combinations such as "listening while a call is
ending" cannot be represented. The session guard flags exposed by
ControllerState are derived from the phase, never stored.

Rules:
- Pure data, no behavior beyond read-only derivations.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from controller.enums.call_status import CallConnection
from controller.enums.detector_state import DetectorState
from controller.enums.trigger import TriggerReason


@dataclass(frozen=True)
class Initializing:
    """Waiting for microphone permission."""

    # True while the try-again fallback timer is outstanding
    fallback_armed: bool = False

    @property
    def detector_state(self) -> DetectorState:
        return DetectorState.INITIALIZING


@dataclass(frozen=True)
class Listening:
    """
    Listening for the wake phrase.

    session_token:
        Token of the live recognition session, 0 when none is open.
    started:
        The live session has emitted its start event.
    resuming:
        A call just ended; recognition stays blocked until the resume
        delay elapses.
    """

    session_token: int = 0
    started: bool = False
    resuming: bool = False

    @property
    def detector_state(self) -> DetectorState:
        return DetectorState.LISTENING

    @property
    def has_live_session(self) -> bool:
        return self.session_token != 0


@dataclass(frozen=True)
class Detected:
    """Wake phrase or manual trigger accepted; handoff delay running."""

    reason: TriggerReason
    call_token: int

    @property
    def detector_state(self) -> DetectorState:
        return DetectorState.DETECTED


@dataclass(frozen=True)
class Calling:
    """
    The external call session owns the microphone.

    start_in_flight:
        start_call() is outstanding (at most one per call token).
    ending:
        An explicit end_call() is in flight.
    settling:
        A terminal status, a finished end_call() or a failed start was
        processed; waiting for the settle delay before listening again.
    """

    call_token: int
    connection: CallConnection = CallConnection.REQUESTED
    start_in_flight: bool = False
    ending: bool = False
    settling: bool = False

    @property
    def detector_state(self) -> DetectorState:
        return DetectorState.CALLING

    @property
    def is_active(self) -> bool:
        """Neither ending nor settling: the call is live or starting."""
        return not self.ending and not self.settling


@dataclass(frozen=True)
class Errored:
    """Fatal for the current session; only an explicit retry leaves it."""

    reason: str

    @property
    def detector_state(self) -> DetectorState:
        return DetectorState.ERROR


Phase = Union[Initializing, Listening, Detected, Calling, Errored]
