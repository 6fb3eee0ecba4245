"""
Reasons a handoff to the call session was initiated.
"""

from __future__ import annotations

from enum import Enum


class TriggerReason(str, Enum):
    """What moved the controller from LISTENING to DETECTED."""

    WAKE_PHRASE = "wake_phrase"
    MANUAL = "manual"
