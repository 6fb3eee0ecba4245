"""
Wake-phrase matching.

Pure functions, no state. Matching is deliberately over-permissive: a
false activation from background chatter is preferred over an assistant
that never answers.

Policy, in order:
1. Exact substring match of a canonical phrase ("hey anna", "hi anna").
2. Fuzzy: every salutation variant crossed with every name variant; the
   text matches if it contains the literal two-word phrase, or both
   tokens independently, or the name token alone.

Containment is plain substring containment, so "ana" also matches inside
longer words.
"""

from __future__ import annotations

from typing import Iterable

from spec import (
    WAKE_NAME_VARIANTS,
    WAKE_PHRASES_EXACT,
    WAKE_SALUTATION_VARIANTS,
)


def build_transcript(alternatives: Iterable[str]) -> str:
    """
    Join the best transcript of every result into one lowercase string.

    Results are joined with a single space.
    """
    return " ".join(alt.lower() for alt in alternatives)


def matched_variant(text: str) -> str | None:
    """
    Return the phrase or token that triggered a match, None otherwise.

    `text` is expected to be lowercase already (see build_transcript()).
    """
    if not text or not text.strip():
        return None

    for phrase in WAKE_PHRASES_EXACT:
        if phrase in text:
            return phrase

    for salutation in WAKE_SALUTATION_VARIANTS:
        for name in WAKE_NAME_VARIANTS:
            phrase = f"{salutation} {name}"
            if phrase in text:
                return phrase
            if salutation in text and name in text:
                return f"{salutation}+{name}"
            if name in text:
                return name

    return None


def detect_wake_phrase(text: str) -> bool:
    """Return True if `text` contains the wake phrase."""
    return matched_variant(text) is not None
