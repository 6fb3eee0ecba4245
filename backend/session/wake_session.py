"""
Wake session container.

- Owns the collaborators one controller works with (recognition adapter,
  call session, host)
- Owns connection status (mutable, gateway-controlled)
- Owns the outbound control queue drained by the WebSocket writer
- NOT a state machine
- Contains no controller logic
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from controller.enums.client_class import ClientClass
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from controller.facade import WakeWordController


# ---------------------------------------------------------------------
# WakeSession
# ---------------------------------------------------------------------


@dataclass
class WakeSession:
    """Mutable runtime container for a single controller instance."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)
    client_class: ClientClass = ClientClass.DESKTOP

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Collaborators (concrete, side-effectful)
    # ------------------------------------------------------------------

    recognition_adapter: Any = None  # Type: RecognitionAdapterProtocol in practice
    call_session: Any = None  # Type: CallSessionProtocol in practice
    host: Any = None  # Type: HostProtocol in practice

    # ------------------------------------------------------------------
    # Controller (owns runtime + authoritative state)
    # ------------------------------------------------------------------

    controller: WakeWordController | None = None

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._control_ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_recognition_adapter(self, adapter: Any) -> None:
        """Attach a recognition adapter (RecognitionAdapterProtocol)."""
        self.recognition_adapter = adapter

    def attach_call_session(self, call_session: Any) -> None:
        """Attach the external call session (CallSessionProtocol)."""
        self.call_session = call_session

    def attach_host(self, host: Any) -> None:
        """Attach host callbacks (HostProtocol)."""
        self.host = host

    def attach_controller(self, controller: WakeWordController) -> None:
        """
        Attach the controller.

        Must be called after the collaborators are attached.
        """
        self.controller = controller

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Return standard logging context for this session."""
        return {
            "session_id": self.session_id,
            "connection_status": self.connection_status.value,
            "client_class": self.client_class.value,
        }

    # ------------------------------------------------------------------
    # Outbound control queue
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for delivery to the client.

        Messages are buffered in FIFO order and later retrieved via
        drain_control().
        """
        self._control_out.append(msg)
        self._control_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """
        Atomically drain all pending control messages.

        Returns:
            A FIFO-ordered tuple of control messages. Returns an empty
            tuple if no messages are pending.

        After this call, the control queue is empty.
        """
        self._control_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_for_control(self) -> tuple[dict[str, Any], ...]:
        """Block until at least one control message is pending, then drain."""
        await self._control_ready.wait()
        return self.drain_control()
