# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger


def test_log_event_emits_valid_jsonl(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    Contract:
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    captured: list[str] = []

    def fake_print(line: str) -> None:
        captured.append(line)

    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", fake_print)

    payload: dict[str, Any] = {
        "event_type": "STATE_CHANGED",
        "tokens": {"recognition": 1, "call": 0},
    }

    logger.log_event(payload)

    # Exactly one line emitted
    assert len(captured) == 1
    assert "\n" not in captured[0]

    # Payload must be preserved exactly
    assert json.loads(captured[0]) == payload


def test_unserializable_event_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)

    logger.log_event({"ts_ms": 5, "event_type": "X", "value": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["ts_ms"] == 5
    assert "original_event_repr" in decoded


def test_configure_silences_and_restores(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(logger, "_print", logger._print)  # pylint: disable=protected-access

    logger.configure(enabled=False)
    logger.log_event({"event_type": "HIDDEN"})
    assert capsys.readouterr().out == ""

    logger.configure(enabled=True)
    logger.log_event({"event_type": "SHOWN"})
    assert json.loads(capsys.readouterr().out) == {"event_type": "SHOWN"}
