"""
User-visible notice codes.

The controller decides *that* something must be surfaced; the host decides
how it is worded and rendered.
"""

from __future__ import annotations

from enum import Enum


class Notice(str, Enum):
    """Stable notice codes sent to the host."""

    WAKE_WORD_DETECTED = "wake_word_detected"
    MIC_ACCESS_DENIED = "mic_access_denied"
    RECOGNITION_UNSUPPORTED = "recognition_unsupported"
    RECOGNITION_INTERRUPTED = "recognition_interrupted"
    CALL_START_FAILED = "call_start_failed"
    CALL_END_FAILED = "call_end_failed"

    @property
    def severity(self) -> str:
        if self in (
            Notice.MIC_ACCESS_DENIED,
            Notice.RECOGNITION_UNSUPPORTED,
            Notice.CALL_START_FAILED,
        ):
            return "destructive"
        return "info"
