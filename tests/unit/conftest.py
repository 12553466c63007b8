# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any, Callable, Coroutine

import pytest

from observability import logger
from orchestrator.events import AILinkOpened, Event, EventType
from protocol.errors import LinkClosedError


# ---------------------------------------------------------------------
# Fake links
# ---------------------------------------------------------------------

class FakeTelephonyLink:
    """Records outbound telephony messages; optionally fails on send."""

    def __init__(
        self,
        fail_on_send: bool = False,
        journal: list[tuple[str, dict[str, Any]]] | None = None,
    ) -> None:
        self.sent: list[dict[str, Any]] = []
        self.close_calls = 0
        self.fail_on_send = fail_on_send
        self.journal = journal

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.fail_on_send or self.close_calls:
            raise LinkClosedError("telephony gone")
        self.sent.append(message)
        if self.journal is not None:
            self.journal.append(("telephony", message))

    async def close(self) -> None:
        self.close_calls += 1


class FakeAILink:
    """Records outbound AI events; connect() reports into emit_event."""

    def __init__(
        self,
        emit_event: Callable[[Event], Coroutine[Any, Any, None]] | None = None,
        fail_on_send: bool = False,
        journal: list[tuple[str, dict[str, Any]]] | None = None,
    ) -> None:
        self.emit_event = emit_event
        self.sent: list[dict[str, Any]] = []
        self.close_calls = 0
        self.connect_calls = 0
        self.fail_on_send = fail_on_send
        self.journal = journal

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.emit_event is not None:
            await self.emit_event(AILinkOpened(event_type=EventType.AI_LINK_OPENED, ts_ms=0))

    async def send_event(self, event: dict[str, Any]) -> None:
        if self.fail_on_send or self.close_calls:
            raise LinkClosedError("ai gone")
        self.sent.append(event)
        if self.journal is not None:
            self.journal.append(("ai", event))

    async def close(self) -> None:
        self.close_calls += 1


# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def captured_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Capture every JSONL line written through observability.logger."""
    lines: list[dict[str, Any]] = []
    monkeypatch.setattr(logger, "_print", lambda line: lines.append(json.loads(line)))
    monkeypatch.setattr(logger, "_min_level", 0)
    monkeypatch.setattr(logger, "_enabled", True)
    return lines
