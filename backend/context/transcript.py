"""
Transcript / response log entries produced by the call session.

Responsibilities:
- Typed, immutable representation of the call's message log
- Conversion to and from the JSON shape used on the wire

Non-responsibilities:
- No reducer logic
- No ordering or truncation policy (the call session owns the log; the
  controller forwards it untouched)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class MessageType(str, Enum):
    """Kind of log entry."""

    RESPONSE = "response"
    TRANSCRIPTION = "transcription"


@dataclass(frozen=True)
class TranscriptMessage:
    """Single entry of the call's transcript/response log."""

    id: str
    type: MessageType
    content: str
    timestamp: datetime
    role: str | None = None
    is_complete: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.role is not None:
            out["role"] = self.role
        if self.is_complete is not None:
            out["isComplete"] = self.is_complete
        return out

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> TranscriptMessage:
        """
        Build a message from its wire shape.

        Raises:
            KeyError / ValueError / TypeError on malformed input.
        """
        raw_ts = data.get("timestamp")
        if raw_ts is None:
            timestamp = datetime.now(timezone.utc)
        elif isinstance(raw_ts, (int, float)):
            timestamp = datetime.fromtimestamp(raw_ts / 1000.0, tz=timezone.utc)
        else:
            timestamp = datetime.fromisoformat(str(raw_ts).replace("Z", "+00:00"))

        is_complete = data.get("isComplete")
        role = data.get("role")

        return TranscriptMessage(
            id=str(data["id"]),
            type=MessageType(data["type"]),
            content=str(data["content"]),
            timestamp=timestamp,
            role=None if role is None else str(role),
            is_complete=None if is_complete is None else bool(is_complete),
        )
