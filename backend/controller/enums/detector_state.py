"""
Authoritative detector state enumeration.

Rules:
- This enum defines ONLY the externally visible lifecycle states.
- No behavior, no helper methods, no side effects.
- The value is derived from the controller phase; transitions are
  defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class DetectorState(str, Enum):
    """
    Mutually exclusive lifecycle states of the wake-word controller.

    initializing -> listening -> detected -> calling -> (listening | error)
    ERROR is absorbing until an explicit retry returns to INITIALIZING.
    """

    INITIALIZING = "initializing"
    LISTENING = "listening"
    DETECTED = "detected"
    CALLING = "calling"
    ERROR = "error"
