"""
Authoritative controller state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- Guard flags are derived from the phase; they cannot drift out of sync.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from controller.enums.client_class import ClientClass
from controller.enums.detector_state import DetectorState
from controller.phases import Calling, Detected, Initializing, Listening, Phase
from controller.timings import ControllerTimings
from controller.tokens import SessionTokens
from spec import RECOGNITION_LANG_DEFAULT


@dataclass(frozen=True)
class ControllerState:
    """Immutable snapshot of all controller-owned state."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    phase: Phase = field(default_factory=Initializing)
    disposed: bool = False

    # ------------------------------------------------------------------
    # Token tracking
    # ------------------------------------------------------------------
    tokens: SessionTokens = field(default_factory=SessionTokens)

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------
    permission_granted: bool = False

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------
    client_class: ClientClass = ClientClass.DESKTOP
    recognition_lang: str = RECOGNITION_LANG_DEFAULT
    timings: ControllerTimings = field(default_factory=ControllerTimings)

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def detector_state(self) -> DetectorState:
        return self.phase.detector_state

    @property
    def is_listening(self) -> bool:
        return isinstance(self.phase, Listening) and self.phase.started

    @property
    def is_transitioning(self) -> bool:
        phase = self.phase
        if isinstance(phase, Detected):
            return True
        if isinstance(phase, Calling):
            return phase.start_in_flight or phase.settling
        if isinstance(phase, Listening):
            return phase.resuming
        return False

    @property
    def is_call_ending(self) -> bool:
        return isinstance(self.phase, Calling) and self.phase.ending

    @property
    def is_api_calling(self) -> bool:
        return isinstance(self.phase, Calling) and self.phase.start_in_flight

    @property
    def live_session_token(self) -> int:
        """Token of the open recognition session, 0 if none."""
        if isinstance(self.phase, Listening):
            return self.phase.session_token
        return 0

    def flags(self) -> dict[str, bool]:
        """Guard flags as a plain dict (logging, client snapshots)."""
        return {
            "is_listening": self.is_listening,
            "is_transitioning": self.is_transitioning,
            "is_call_ending": self.is_call_ending,
            "is_api_calling": self.is_api_calling,
        }
