"""
Controller timing bundle.

A frozen snapshot of every delay the reducer schedules. Defaults come from
spec.py; AppConfig may override selected values, and tests shrink them to
keep runtime tests fast. The reducer never reads the timing constants
directly, only this bundle.
"""

from __future__ import annotations

from dataclasses import dataclass

from controller.enums.client_class import ClientClass
from spec import (
    CALL_END_SETTLE_MS,
    CALL_FAILURE_COOLDOWN_MS,
    CALL_START_TIMEOUT_MS,
    CALL_END_TIMEOUT_MS,
    END_CALL_SETTLE_MS,
    ERROR_RESTART_DEBOUNCE_MS,
    HANDOFF_DELAY_MS,
    LISTEN_START_DELAY_MS,
    NO_SPEECH_TIMEOUT_DESKTOP_MS,
    NO_SPEECH_TIMEOUT_MOBILE_MS,
    RESTART_DEBOUNCE_MS,
    RESUME_DELAY_MS,
    TRY_AGAIN_FALLBACK_MS,
)


@dataclass(frozen=True)
class ControllerTimings:
    """All controller delays in milliseconds."""

    no_speech_desktop_ms: int = NO_SPEECH_TIMEOUT_DESKTOP_MS
    no_speech_mobile_ms: int = NO_SPEECH_TIMEOUT_MOBILE_MS
    restart_debounce_ms: int = RESTART_DEBOUNCE_MS
    error_restart_debounce_ms: int = ERROR_RESTART_DEBOUNCE_MS
    listen_start_delay_ms: int = LISTEN_START_DELAY_MS
    handoff_delay_ms: int = HANDOFF_DELAY_MS
    call_start_timeout_ms: int = CALL_START_TIMEOUT_MS
    call_end_timeout_ms: int = CALL_END_TIMEOUT_MS
    call_end_settle_ms: int = CALL_END_SETTLE_MS
    end_call_settle_ms: int = END_CALL_SETTLE_MS
    call_failure_cooldown_ms: int = CALL_FAILURE_COOLDOWN_MS
    resume_delay_ms: int = RESUME_DELAY_MS
    try_again_fallback_ms: int = TRY_AGAIN_FALLBACK_MS

    def no_speech_ms(self, client_class: ClientClass) -> int:
        """No-speech watchdog duration for the given client class."""
        if client_class is ClientClass.MOBILE:
            return self.no_speech_mobile_ms
        return self.no_speech_desktop_ms
