# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger


@pytest.fixture(autouse=True)
def _restore_logger_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_min_level", logger._LEVELS["INFO"])  # pylint: disable=protected-access
    monkeypatch.setattr(logger, "_enabled", True)


def capture(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    return captured


def test_log_event_emits_valid_jsonl(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    Contract:
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    captured = capture(monkeypatch)

    payload: dict[str, Any] = {
        "ts_ms": 1,
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    # Exactly one line emitted
    assert len(captured) == 1

    # Must be valid JSON, preserved exactly
    assert json.loads(captured[0]) == payload
    assert "\n" not in captured[0]


def test_log_event_fills_missing_timestamp(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = capture(monkeypatch)

    logger.log_event({"event_type": "TEST"})

    assert isinstance(json.loads(captured[0])["ts_ms"], int)


def test_log_event_drops_events_below_level(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = capture(monkeypatch)
    logger.configure_logging(level="WARNING")

    logger.log_event({"event_type": "A", "level": "INFO"})
    logger.log_event({"event_type": "B", "level": "DEBUG"})
    logger.log_event({"event_type": "C", "level": "ERROR"})
    logger.log_event({"event_type": "D"})

    assert [json.loads(line)["event_type"] for line in captured] == ["C"]


def test_disabled_logging_emits_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = capture(monkeypatch)
    logger.configure_logging(enabled=False)

    logger.log_event({"event_type": "TEST", "level": "ERROR"})

    assert captured == []


def test_unserializable_payload_never_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = capture(monkeypatch)

    logger.log_event({"event_type": "TEST", "payload": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["level"] == "ERROR"
