"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution (recognition adapter, call session, host).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero controller logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Protocol, runtime_checkable

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from adapters.recognition.base import (
        PermissionResult,
        RecognitionOptions,
        RecognitionSessionEvents,
    )
    from context.transcript import TranscriptMessage
    from controller.enums.call_status import CallStatus
    from controller.enums.detector_state import DetectorState
    from controller.enums.notice import Notice
    from session.wake_session import WakeSession


# ---------------------------------------------------------------------
# Adapter Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class RecognitionAdapterProtocol(Protocol):
    async def request_permission(self) -> PermissionResult: ...
    async def start_session(
        self,
        token: int,
        options: RecognitionOptions,
        events: RecognitionSessionEvents,
    ) -> None: ...
    async def stop_session(self, token: int) -> None: ...


@runtime_checkable
class CallSessionProtocol(Protocol):
    async def start_call(self, call_token: int) -> None: ...
    async def end_call(self, call_token: int) -> None: ...


@runtime_checkable
class HostProtocol(Protocol):
    """
    Callbacks into the hosting application.

    All callbacks are synchronous and must not block; a host that needs IO
    should enqueue and return.
    """

    def on_call_status_change(self, status: CallStatus) -> None: ...
    def on_messages_update(self, messages: tuple[TranscriptMessage, ...]) -> None: ...
    def on_end_call(self) -> None: ...
    def on_notice(self, notice: Notice) -> None: ...
    def on_state_change(self, state: DetectorState, flags: Mapping[str, bool]) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Call the recognition adapter and the call session
    - Invoke host callbacks
    - Observe connection state

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Make controller decisions
    """

    def __init__(self, session: WakeSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.session.connection_status

    # ----------------------------
    # Collaborators
    # ----------------------------

    @property
    def recognition_adapter(self) -> RecognitionAdapterProtocol | None:
        return self.session.recognition_adapter

    @property
    def call_session(self) -> CallSessionProtocol | None:
        return self.session.call_session

    @property
    def host(self) -> HostProtocol | None:
        return self.session.host
