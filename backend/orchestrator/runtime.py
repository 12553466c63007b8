"""
Runtime execution shell for a single bridged call.

Responsibilities:
- Own the bridge state
- Serialize all events from both links through the pure reducer
- Execute commands with side effects (link sends, link closes)
- Convert send failures and teardown completion into events

Non-responsibilities:
- Wire decoding (protocol/)
- Transport lifecycles beyond closing (links, registry)
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING

from orchestrator.reducer import reduce
from orchestrator.commands import (
    AppendInputAudio,
    ClearPlayback,
    CloseLink,
    Command,
    CommitInput,
    ConfigureAISession,
    CreateResponse,
    EndSession,
    LogEvent,
    SendGreeting,
    SendMark,
    SendMedia,
    TruncateUtterance,
)
from orchestrator.enums.link import Link
from orchestrator.enums.state import SessionStatus
from orchestrator.events import (
    Event,
    EventType,
    LinkClosed,
    TeardownComplete,
)
from orchestrator.state_dataclass import BridgeState

from observability.logger import log_event, now_ms

from protocol import realtime, telephony


if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


class Runtime:
    """
    Runtime execution boundary for a single call.

    Responsibilities:
    - Own the authoritative bridge state
    - Act as the universal event sink for the session
      (telephony events, AI events, link failures)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - One event at a time per session: an asyncio.Lock covers the reducer
      call and the execution of every command it emitted
    - Commands run in reducer-emitted order, so a barge-in's truncate and
      clear reach the links before any later audio
    - Follow-up events (send failures, teardown completion) are processed
      inside the same locked step
    """

    def __init__(
        self,
        *,
        initial_state: BridgeState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._lock = asyncio.Lock()
        self._closed = asyncio.Event()

    @property
    def state(self) -> BridgeState:
        """
        Return the current immutable bridge state.

        Read-only for callers; only handle_event replaces it.
        """
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the bridge pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new state
        3. Execute all emitted commands sequentially
        4. Feed any follow-up events back through steps 1-3

        This method is the *only* entry point for events affecting the
        bridge state. Both links converge here.
        """
        async with self._lock:
            pending: deque[Event] = deque([event])
            teardown_reported = False

            while pending:
                current = pending.popleft()
                new_state, commands = reduce(self._state, current)
                self._state = new_state

                for cmd in commands:
                    follow_up = await self._execute_command(cmd)
                    if follow_up is not None:
                        pending.append(follow_up)

                if self._state.status is SessionStatus.CLOSING and not teardown_reported:
                    teardown_reported = True
                    pending.append(
                        TeardownComplete(
                            event_type=EventType.TEARDOWN_COMPLETE,
                            ts_ms=now_ms(),
                        )
                    )

            if self._state.status is SessionStatus.CLOSED:
                self._closed.set()

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> Event | None:
        """
        Execute a single command.

        Returns a LinkClosed event if a send failed, otherwise None.
        """
        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "connection_id": self._ctx.connection_id,
            })
            return None

        if isinstance(cmd, CloseLink):
            await self._close_link(cmd.link, cmd.reason)
            return None

        if isinstance(cmd, EndSession):
            self._ctx.end_session(cmd.reason)
            return None

        # ------------------------------------------------------------
        # AI link
        # ------------------------------------------------------------

        if isinstance(cmd, ConfigureAISession):
            return await self._send_ai(realtime.encode_session_update(cmd.config))

        if isinstance(cmd, SendGreeting):
            for message in realtime.encode_greeting(cmd.prompt):
                failure = await self._send_ai(message)
                if failure is not None:
                    return failure
            return None

        if isinstance(cmd, AppendInputAudio):
            return await self._send_ai(realtime.encode_input_append(cmd.payload))

        if isinstance(cmd, CommitInput):
            return await self._send_ai(realtime.encode_input_commit())

        if isinstance(cmd, CreateResponse):
            return await self._send_ai(realtime.encode_response_create())

        if isinstance(cmd, TruncateUtterance):
            return await self._send_ai(
                realtime.encode_truncate(
                    utterance_id=cmd.utterance_id,
                    elapsed_ms=cmd.elapsed_ms,
                )
            )

        # ------------------------------------------------------------
        # Telephony link
        # ------------------------------------------------------------

        if isinstance(cmd, SendMedia):
            return await self._send_telephony(
                telephony.encode_media(stream_sid=cmd.stream_sid, payload=cmd.payload)
            )

        if isinstance(cmd, SendMark):
            return await self._send_telephony(
                telephony.encode_mark(stream_sid=cmd.stream_sid, name=cmd.name)
            )

        if isinstance(cmd, ClearPlayback):
            return await self._send_telephony(
                telephony.encode_clear(stream_sid=cmd.stream_sid)
            )

        log_event({
            "level": "ERROR",
            "event_type": "COMMAND_NOT_IMPLEMENTED",
            "connection_id": self._ctx.connection_id,
            "session_id": self._state.session_id,
            "command_type": type(cmd).__name__,
        })
        return None

    # ------------------------------------------------------------------
    # Link helpers
    # ------------------------------------------------------------------

    async def _send_ai(self, message: dict[str, object]) -> Event | None:
        link = self._ctx.ai_link
        if link is None:
            return self._send_failed(Link.AI, "ai_link_missing")
        try:
            await link.send_event(message)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return self._send_failed(Link.AI, f"send_failed: {exc!r}")
        return None

    async def _send_telephony(self, message: dict[str, object]) -> Event | None:
        try:
            await self._ctx.telephony_link.send_json(message)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return self._send_failed(Link.TELEPHONY, f"send_failed: {exc!r}")
        return None

    def _send_failed(self, link: Link, reason: str) -> LinkClosed:
        log_event({
            "level": "WARNING",
            "event_type": "LINK_SEND_FAILED",
            "connection_id": self._ctx.connection_id,
            "session_id": self._state.session_id,
            "link": link.value,
            "reason": reason,
        })
        return LinkClosed(
            event_type=EventType.LINK_CLOSED,
            ts_ms=now_ms(),
            link=link,
            reason=reason,
        )

    async def _close_link(self, which: Link, reason: str | None) -> None:
        link = self._ctx.link(which)
        if link is None:
            return
        try:
            await link.close()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # Already-dead transports may fail to close; teardown proceeds
            log_event({
                "level": "WARNING",
                "event_type": "LINK_CLOSE_FAILED",
                "connection_id": self._ctx.connection_id,
                "session_id": self._state.session_id,
                "link": which.value,
                "reason": reason,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return

        log_event({
            "event_type": "LINK_CLOSED",
            "connection_id": self._ctx.connection_id,
            "session_id": self._state.session_id,
            "link": which.value,
            "reason": reason,
        })
