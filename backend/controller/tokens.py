"""
Session token container for recognition sessions and call attempts.

Rules:
- Tokens are monotonic integers.
- They are owned and incremented ONLY by the controller reducer.
- This module defines structure, not behavior.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionTokens:
    """
    Immutable container for the most recently issued tokens.

    Semantics:
    - A value of 0 means "nothing has been issued yet".
    - Once a token is issued, it is never reused.
    - Events carrying any other token are stale and are discarded.
    """

    recognition: int = 0
    call: int = 0
