# backend/protocol/messages.py
"""
JSON control messages exchanged over the /ws bridge.

In the hosted setup the browser owns the recognition capability (Web Speech
API) and the call session (voice SDK); the server owns the controller. Every
message is one JSON object with a "type" discriminant.

Client → Server:
    PERMISSION_RESULT   {granted, supported, reason}
    RECOGNITION_START   {session_token}
    RECOGNITION_RESULT  {session_token, transcripts: [str]}
    RECOGNITION_ERROR   {session_token, error}
    RECOGNITION_END     {session_token}
    START_CONVERSATION  {}
    CALL_STATUS         {status}
    CALL_MESSAGES       {messages: [TranscriptMessage]}
    CALL_START_RESULT   {call_token, ok, reason}
    CALL_END_RESULT     {call_token, ok, reason}
    END_CALL            {}
    RETRY               {}

Server → Client:
    SESSION_INIT, REQUEST_PERMISSION, RECOGNITION_START_REQUEST,
    RECOGNITION_STOP_REQUEST, CALL_START_REQUEST, CALL_END_REQUEST,
    CALL_STATUS, MESSAGES, CALL_ENDED, NOTICE, DETECTOR_STATE

Usage example:

    try:
        msg = decode_client_message(payload)
    except ClientProtocolError as e:
        log_event({"event_type": "CLIENT_MESSAGE_REJECTED", "error": str(e)})
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Union

from adapters.recognition.base import RecognitionOptions
from context.transcript import TranscriptMessage
from controller.enums.call_status import CallStatus
from controller.enums.client_class import ClientClass
from controller.enums.detector_state import DetectorState
from controller.enums.notice import Notice


# -------------------------
# Exceptions
# -------------------------

class ClientProtocolError(Exception):
    """Base class for client message errors."""


class MalformedMessage(ClientProtocolError):
    """
    Raised when a message is not valid JSON, not an object, or a field is
    missing or has the wrong type. The message must be dropped.
    """


class UnknownMessageType(ClientProtocolError):
    """Raised when the "type" discriminant is not part of the protocol."""


# -------------------------
# Message types
# -------------------------

class ClientMessageType(str, Enum):
    PERMISSION_RESULT = "PERMISSION_RESULT"
    RECOGNITION_START = "RECOGNITION_START"
    RECOGNITION_RESULT = "RECOGNITION_RESULT"
    RECOGNITION_ERROR = "RECOGNITION_ERROR"
    RECOGNITION_END = "RECOGNITION_END"
    START_CONVERSATION = "START_CONVERSATION"
    CALL_STATUS = "CALL_STATUS"
    CALL_MESSAGES = "CALL_MESSAGES"
    CALL_START_RESULT = "CALL_START_RESULT"
    CALL_END_RESULT = "CALL_END_RESULT"
    END_CALL = "END_CALL"
    RETRY = "RETRY"


class ServerMessageType(str, Enum):
    SESSION_INIT = "SESSION_INIT"
    REQUEST_PERMISSION = "REQUEST_PERMISSION"
    RECOGNITION_START_REQUEST = "RECOGNITION_START_REQUEST"
    RECOGNITION_STOP_REQUEST = "RECOGNITION_STOP_REQUEST"
    CALL_START_REQUEST = "CALL_START_REQUEST"
    CALL_END_REQUEST = "CALL_END_REQUEST"
    CALL_STATUS = "CALL_STATUS"
    MESSAGES = "MESSAGES"
    CALL_ENDED = "CALL_ENDED"
    NOTICE = "NOTICE"
    DETECTOR_STATE = "DETECTOR_STATE"


# -------------------------
# Decoded client messages
# -------------------------

@dataclass(frozen=True)
class PermissionResultMessage:
    granted: bool
    supported: bool
    reason: str


@dataclass(frozen=True)
class RecognitionStartMessage:
    session_token: int


@dataclass(frozen=True)
class RecognitionResultMessage:
    session_token: int
    transcripts: tuple[str, ...]


@dataclass(frozen=True)
class RecognitionErrorMessage:
    session_token: int
    error: str


@dataclass(frozen=True)
class RecognitionEndMessage:
    session_token: int


@dataclass(frozen=True)
class StartConversationMessage:
    pass


@dataclass(frozen=True)
class CallStatusMessage:
    status: CallStatus


@dataclass(frozen=True)
class CallMessagesMessage:
    messages: tuple[TranscriptMessage, ...]


@dataclass(frozen=True)
class CallStartResultMessage:
    call_token: int
    ok: bool
    reason: str


@dataclass(frozen=True)
class CallEndResultMessage:
    call_token: int
    ok: bool
    reason: str


@dataclass(frozen=True)
class EndCallMessage:
    pass


@dataclass(frozen=True)
class RetryMessage:
    pass


ClientMessage = Union[
    PermissionResultMessage,
    RecognitionStartMessage,
    RecognitionResultMessage,
    RecognitionErrorMessage,
    RecognitionEndMessage,
    StartConversationMessage,
    CallStatusMessage,
    CallMessagesMessage,
    CallStartResultMessage,
    CallEndResultMessage,
    EndCallMessage,
    RetryMessage,
]


# -------------------------
# Low-level helpers
# -------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _require_int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedMessage(f"{key!r} must be an integer, got {value!r}")
    if value < 1:
        raise MalformedMessage(f"{key!r} must be >= 1, got {value}")
    return value


def _require_bool(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if not isinstance(value, bool):
        raise MalformedMessage(f"{key!r} must be a boolean, got {value!r}")
    return value


def _optional_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    if key not in data:
        return default
    return _require_bool(data, key)


def _optional_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedMessage(f"{key!r} must be a string, got {value!r}")
    return value


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedMessage(f"{key!r} must be a string, got {value!r}")
    return value


def _require_list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if not isinstance(value, list):
        raise MalformedMessage(f"{key!r} must be a list, got {type(value).__name__}")
    return value


# -------------------------
# Client → Server decoding
# -------------------------

def _decode_permission_result(data: Mapping[str, Any]) -> ClientMessage:
    return PermissionResultMessage(
        granted=_require_bool(data, "granted"),
        supported=_optional_bool(data, "supported", True),
        reason=_optional_str(data, "reason"),
    )


def _decode_recognition_result(data: Mapping[str, Any]) -> ClientMessage:
    transcripts = _require_list(data, "transcripts")
    if not all(isinstance(t, str) for t in transcripts):
        raise MalformedMessage("'transcripts' must contain only strings")
    return RecognitionResultMessage(
        session_token=_require_int(data, "session_token"),
        transcripts=tuple(transcripts),
    )


def _decode_call_status(data: Mapping[str, Any]) -> ClientMessage:
    raw = _require_str(data, "status")
    try:
        status = CallStatus(raw)
    except ValueError as e:
        raise MalformedMessage(f"unknown call status {raw!r}") from e
    return CallStatusMessage(status=status)


def _decode_call_messages(data: Mapping[str, Any]) -> ClientMessage:
    messages: list[TranscriptMessage] = []
    for raw in _require_list(data, "messages"):
        if not isinstance(raw, dict):
            raise MalformedMessage("'messages' must contain only objects")
        try:
            messages.append(TranscriptMessage.from_dict(raw))
        except (KeyError, ValueError, TypeError) as e:
            raise MalformedMessage(f"invalid transcript message: {e}") from e
    return CallMessagesMessage(messages=tuple(messages))


_DECODERS: dict[str, Callable[[Mapping[str, Any]], ClientMessage]] = {
    ClientMessageType.PERMISSION_RESULT.value: _decode_permission_result,
    ClientMessageType.RECOGNITION_START.value: lambda d: RecognitionStartMessage(
        session_token=_require_int(d, "session_token"),
    ),
    ClientMessageType.RECOGNITION_RESULT.value: _decode_recognition_result,
    ClientMessageType.RECOGNITION_ERROR.value: lambda d: RecognitionErrorMessage(
        session_token=_require_int(d, "session_token"),
        error=_require_str(d, "error"),
    ),
    ClientMessageType.RECOGNITION_END.value: lambda d: RecognitionEndMessage(
        session_token=_require_int(d, "session_token"),
    ),
    ClientMessageType.START_CONVERSATION.value: lambda d: StartConversationMessage(),
    ClientMessageType.CALL_STATUS.value: _decode_call_status,
    ClientMessageType.CALL_MESSAGES.value: _decode_call_messages,
    ClientMessageType.CALL_START_RESULT.value: lambda d: CallStartResultMessage(
        call_token=_require_int(d, "call_token"),
        ok=_require_bool(d, "ok"),
        reason=_optional_str(d, "reason"),
    ),
    ClientMessageType.CALL_END_RESULT.value: lambda d: CallEndResultMessage(
        call_token=_require_int(d, "call_token"),
        ok=_require_bool(d, "ok"),
        reason=_optional_str(d, "reason"),
    ),
    ClientMessageType.END_CALL.value: lambda d: EndCallMessage(),
    ClientMessageType.RETRY.value: lambda d: RetryMessage(),
}


def decode_client_message(payload: str) -> ClientMessage:
    """
    Decode and validate one client JSON message.

    Raises:
        MalformedMessage: invalid JSON, non-object, bad field
        UnknownMessageType: "type" missing or not part of the protocol
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedMessage(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedMessage(f"message must be an object, got {type(data).__name__}")

    msg_type = data.get("type")
    decoder = _DECODERS.get(msg_type) if isinstance(msg_type, str) else None
    if decoder is None:
        raise UnknownMessageType(f"unknown message type {msg_type!r}")

    return decoder(data)


# -------------------------
# Server → Client encoding
# -------------------------

def _server_message(msg_type: ServerMessageType, **fields: Any) -> dict[str, Any]:
    return {"type": msg_type.value, "ts_ms": _now_ms(), **fields}


def encode_session_init(*, session_id: str, client_class: ClientClass) -> dict[str, Any]:
    return _server_message(
        ServerMessageType.SESSION_INIT,
        session_id=session_id,
        client_class=client_class.value,
    )


def encode_request_permission() -> dict[str, Any]:
    return _server_message(ServerMessageType.REQUEST_PERMISSION)


def encode_recognition_start(*, session_token: int, options: RecognitionOptions) -> dict[str, Any]:
    return _server_message(
        ServerMessageType.RECOGNITION_START_REQUEST,
        session_token=session_token,
        lang=options.lang,
        interim_results=options.interim_results,
        continuous=options.continuous,
    )


def encode_recognition_stop(*, session_token: int) -> dict[str, Any]:
    return _server_message(ServerMessageType.RECOGNITION_STOP_REQUEST, session_token=session_token)


def encode_call_start(*, call_token: int) -> dict[str, Any]:
    return _server_message(ServerMessageType.CALL_START_REQUEST, call_token=call_token)


def encode_call_end(*, call_token: int) -> dict[str, Any]:
    return _server_message(ServerMessageType.CALL_END_REQUEST, call_token=call_token)


def encode_call_status(status: CallStatus) -> dict[str, Any]:
    return _server_message(ServerMessageType.CALL_STATUS, status=status.value)


def encode_messages(messages: tuple[TranscriptMessage, ...]) -> dict[str, Any]:
    return _server_message(
        ServerMessageType.MESSAGES,
        messages=[m.to_dict() for m in messages],
    )


def encode_call_ended() -> dict[str, Any]:
    return _server_message(ServerMessageType.CALL_ENDED)


def encode_notice(notice: Notice) -> dict[str, Any]:
    return _server_message(
        ServerMessageType.NOTICE,
        notice=notice.value,
        severity=notice.severity,
    )


def encode_detector_state(state: DetectorState, flags: Mapping[str, bool]) -> dict[str, Any]:
    return _server_message(
        ServerMessageType.DETECTOR_STATE,
        state=state.value,
        is_listening=bool(flags.get("is_listening", False)),
        is_transitioning=bool(flags.get("is_transitioning", False)),
    )
