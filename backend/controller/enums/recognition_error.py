"""
Recognition error codes and their handling policy.

Codes mirror the platform speech-recognition error vocabulary. Anything the
platform reports outside the known set is classified as OTHER.
"""

from __future__ import annotations

from enum import Enum


class RecognitionErrorCode(str, Enum):
    """Error codes emitted by a recognition session."""

    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    NOT_ALLOWED = "not-allowed"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    LANGUAGE_NOT_SUPPORTED = "language-not-supported"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str) -> RecognitionErrorCode:
        """Map a raw platform code onto the enum; unknown codes become OTHER."""
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


class ErrorPolicy(str, Enum):
    """
    How the controller reacts to a recognition error.

    RESTART_SOON:
        Benign and expected (no speech). Stop, restart after a short debounce.
    MARK_IDLE:
        Expected when the controller itself stopped the session. Mark
        not-listening, nothing else.
    FATAL:
        Permission problem. Enter ERROR, surface a notice, never auto-retry.
    RESTART_LATER:
        Transient. Stop, restart after a longer debounce.
    """

    RESTART_SOON = "restart_soon"
    MARK_IDLE = "mark_idle"
    FATAL = "fatal"
    RESTART_LATER = "restart_later"


def classify(code: RecognitionErrorCode) -> ErrorPolicy:
    """Return the handling policy for a recognition error code."""
    if code is RecognitionErrorCode.NO_SPEECH:
        return ErrorPolicy.RESTART_SOON
    if code is RecognitionErrorCode.ABORTED:
        return ErrorPolicy.MARK_IDLE
    if code is RecognitionErrorCode.NOT_ALLOWED:
        return ErrorPolicy.FATAL
    return ErrorPolicy.RESTART_LATER
