"""
Call status vocabulary shared by the call session, the controller and the host.
"""

from __future__ import annotations

from enum import Enum


class CallStatus(str, Enum):
    """Status values reported by the external call session."""

    CONNECTING = "connecting"
    ONGOING = "ongoing"
    ENDED = "ended"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (CallStatus.ENDED, CallStatus.ERROR)


class CallConnection(str, Enum):
    """
    Controller-side view of the call while in CALLING.

    REQUESTED: start_call() issued, no status reported yet.
    """

    REQUESTED = "requested"
    CONNECTING = "connecting"
    ONGOING = "ongoing"
