"""
Client class enumeration.

Mobile-class clients get a shorter no-speech watchdog.
"""

from __future__ import annotations

from enum import Enum

from spec import CLIENT_CLASS_DESKTOP, CLIENT_CLASS_MOBILE


class ClientClass(str, Enum):
    """Device class of the hosting client."""

    DESKTOP = CLIENT_CLASS_DESKTOP
    MOBILE = CLIENT_CLASS_MOBILE
