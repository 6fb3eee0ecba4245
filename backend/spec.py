"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for all behavioral invariants of the wake-word
controller.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Wake phrase
# =============================================================================

WAKE_PHRASES_EXACT: Final[Tuple[str, ...]] = ("hey anna", "hi anna")

# Phonetic salutation variants the recognizer tends to produce
WAKE_SALUTATION_VARIANTS: Final[Tuple[str, ...]] = (
    "hey", "hi", "hay", "hei", "ay", "hello", "helo", "heya", "hiya", "eh", "ey",
)

# Near-homophones of the assistant's name
WAKE_NAME_VARIANTS: Final[Tuple[str, ...]] = (
    "anna", "ana", "enna", "hannah", "hanna", "onna", "ahna", "anah", "annuh",
)

# =============================================================================
# Recognition session
# =============================================================================

RECOGNITION_LANG_DEFAULT: Final[str] = "en-US"
RECOGNITION_INTERIM_RESULTS: Final[bool] = True
# One utterance window per session
RECOGNITION_CONTINUOUS: Final[bool] = False

# No-speech watchdog, armed on every on-start
NO_SPEECH_TIMEOUT_DESKTOP_MS: Final[int] = 10_000
NO_SPEECH_TIMEOUT_MOBILE_MS: Final[int] = 6_000

# Restart debounce after a session ends or hears nothing
RESTART_DEBOUNCE_MS: Final[int] = 500
# Longer debounce after unexpected errors / start failures
ERROR_RESTART_DEBOUNCE_MS: Final[int] = 1_000
# Delay between entering LISTENING and the first recognition start
LISTEN_START_DELAY_MS: Final[int] = 1_000

# =============================================================================
# Call handoff
# =============================================================================

HANDOFF_DELAY_MS: Final[int] = 500
CALL_START_TIMEOUT_MS: Final[int] = 15_000
# Upper bound on an explicit end_call() before the call is treated as ended
CALL_END_TIMEOUT_MS: Final[int] = 10_000

# Settle after the call session reports a terminal status
CALL_END_SETTLE_MS: Final[int] = 2_000
# Settle after an explicit end_call() has completed
END_CALL_SETTLE_MS: Final[int] = 1_000
# Cooldown after a failed / timed-out call start
CALL_FAILURE_COOLDOWN_MS: Final[int] = 2_000
# Listening, but transitioning, before recognition is re-armed
RESUME_DELAY_MS: Final[int] = 1_000

# =============================================================================
# Permission flow
# =============================================================================

TRY_AGAIN_FALLBACK_MS: Final[int] = 3_000

# =============================================================================
# Client classes
# =============================================================================

CLIENT_CLASS_DESKTOP: Final[str] = "desktop"
CLIENT_CLASS_MOBILE: Final[str] = "mobile"
CLIENT_CLASSES: Final[Tuple[str, ...]] = (CLIENT_CLASS_DESKTOP, CLIENT_CLASS_MOBILE)

# =============================================================================
# Transport
# =============================================================================

CLIENT_MESSAGE_PREVIEW_CHARS: Final[int] = 100
