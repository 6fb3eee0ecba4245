"""
Call session contract.

The call session is the external conversational voice session the
controller hands the microphone to. It is specified only at its boundary:

- start_call(call_token) resolves once the call was accepted, raises if it
  could not be started.
- end_call(call_token) resolves once the call was torn down, raises on
  failure.
- Status changes (connecting / ongoing / ended / error) and transcript
  updates are reported to the controller by the host, not returned here.

The call token is controller-owned; implementations only echo it (e.g. to
correlate a remote acknowledgement).
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CallSession(ABC):
    """Abstract external call session."""

    @abstractmethod
    async def start_call(self, call_token: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def end_call(self, call_token: int) -> None:
        raise NotImplementedError
