"""
Host callbacks delivered to the connected client.

The hosting UI lives in the browser; each controller callback becomes one
control message on the session WebSocket.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from context.transcript import TranscriptMessage
from controller.enums.call_status import CallStatus
from controller.enums.detector_state import DetectorState
from controller.enums.notice import Notice
from protocol.messages import (
    encode_call_ended,
    encode_call_status,
    encode_detector_state,
    encode_messages,
    encode_notice,
)


class RemoteHost:
    """HostProtocol implementation that enqueues control messages."""

    def __init__(self, *, send: Callable[[dict[str, Any]], None]) -> None:
        self._send = send

    def on_call_status_change(self, status: CallStatus) -> None:
        self._send(encode_call_status(status))

    def on_messages_update(self, messages: tuple[TranscriptMessage, ...]) -> None:
        self._send(encode_messages(messages))

    def on_end_call(self) -> None:
        self._send(encode_call_ended())

    def on_notice(self, notice: Notice) -> None:
        self._send(encode_notice(notice))

    def on_state_change(self, state: DetectorState, flags: Mapping[str, bool]) -> None:
        self._send(encode_detector_state(state, flags))
