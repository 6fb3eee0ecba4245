"""
Connection status tracking for wake sessions.

Connection lifecycle is tracked separately from the controller:
connection_status: DOWN | UP

This is pure data owned by SessionGateway, not by controller state.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Connection lifecycle status.

    Independent of DetectorState: the controller can be in any state while
    the socket is up, and is disposed once it goes down.
    """
    DOWN = "DOWN"  # Not connected (before accept, after disconnect)
    UP = "UP"      # Active WebSocket connection
