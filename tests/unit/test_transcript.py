# pylint: disable=missing-module-docstring,missing-function-docstring
from datetime import datetime, timezone

import pytest

from context.transcript import MessageType, TranscriptMessage


def test_from_dict_reads_wire_shape():
    msg = TranscriptMessage.from_dict({
        "id": "m1",
        "type": "transcription",
        "content": "hey anna",
        "timestamp": "2024-05-01T10:00:00Z",
        "role": "user",
        "isComplete": False,
    })

    assert msg.type is MessageType.TRANSCRIPTION
    assert msg.timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert msg.role == "user"
    assert msg.is_complete is False


def test_from_dict_accepts_epoch_millis():
    msg = TranscriptMessage.from_dict({
        "id": 7,
        "type": "response",
        "content": "hello",
        "timestamp": 1_700_000_000_000,
    })

    assert msg.id == "7"
    assert msg.timestamp == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
    assert msg.role is None
    assert msg.is_complete is None


def test_to_dict_omits_unset_optionals():
    msg = TranscriptMessage(
        id="m2",
        type=MessageType.RESPONSE,
        content="hi",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )

    assert msg.to_dict() == {
        "id": "m2",
        "type": "response",
        "content": "hi",
        "timestamp": "2024-01-01T00:00:00+00:00",
    }


def test_from_dict_rejects_unknown_type():
    with pytest.raises(ValueError):
        TranscriptMessage.from_dict({"id": "x", "type": "shout", "content": ""})


def test_from_dict_requires_id():
    with pytest.raises(KeyError):
        TranscriptMessage.from_dict({"type": "response", "content": ""})
