"""
OpenAI Realtime link adapter.

Core model:
- One websocket per call, opened by connect() and never reconnected.
- Inbound server events are decoded by protocol.realtime and awaited into
  the session runtime in arrival order.
- Outbound events are plain dicts built by protocol.realtime encoders.

Failure model:
- Connect failure, receive failure or remote close => LinkClosed(AI).
- Malformed server events are logged and dropped; the call continues.
- There are no retries. A dead link ends the call.

Design constraints:
- Adapter must not call reducer directly.
- Adapter must not own bridge state transitions.
- Adapter must not know about the telephony side.
"""

from __future__ import annotations

import asyncio
import json
import urllib.parse
from typing import Any, Callable, Coroutine

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed

from constants import (
    LOG_PAYLOAD_PREVIEW_CHARS,
    REALTIME_CONNECT_TIMEOUT_S,
    REALTIME_DEFAULT_MODEL,
    REALTIME_DEFAULT_URL,
    REALTIME_MAX_MESSAGE_BYTES,
)
from observability.logger import log_event, now_ms
from orchestrator.enums.link import Link
from orchestrator.events import AILinkOpened, Event, EventType, LinkClosed
from protocol.errors import LinkClosedError, RealtimeProtocolError
from protocol.realtime import decode_server_event


class OpenAIRealtimeLink:
    """
    Session-scoped OpenAI Realtime websocket.

    Public interface (AILinkProtocol):
    - connect(): open the socket, emit AILinkOpened, start receiving
    - send_event(event): send one client event
    - close(): idempotent shutdown, safe to call from the receive loop
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Coroutine[Any, Any, None]],
        api_key: str,
        model: str = REALTIME_DEFAULT_MODEL,
        temperature: float | None = None,
        url: str = REALTIME_DEFAULT_URL,
        connection_id: str | None = None,
    ) -> None:
        self._emit = emit_event
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._url = url
        self._connection_id = connection_id

        self._ws: ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closed: bool = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closed

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    def build_url(self) -> str:
        params: dict[str, str] = {"model": self._model}
        if self._temperature is not None:
            params["temperature"] = str(self._temperature)
        return f"{self._url}?{urllib.parse.urlencode(params)}"

    async def connect(self) -> None:
        """
        Open the websocket.

        Emits AILinkOpened on success, LinkClosed(AI) on failure.
        Never raises.
        """
        if self._closed or self._ws is not None:
            return

        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            self._ws = await ws_connect(
                self.build_url(),
                additional_headers=headers,
                max_size=REALTIME_MAX_MESSAGE_BYTES,
                open_timeout=REALTIME_CONNECT_TIMEOUT_S,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._ws = None
            log_event({
                "level": "ERROR",
                "event_type": "AI_CONNECT_FAILED",
                "connection_id": self._connection_id,
                "exception": type(e).__name__,
                "message": str(e),
            })
            await self._emit(
                LinkClosed(
                    event_type=EventType.LINK_CLOSED,
                    ts_ms=now_ms(),
                    link=Link.AI,
                    reason=f"connect_failed: {e!r}",
                )
            )
            return

        # close() may have run while the handshake was in flight
        if self._closed:
            await self._ws.close()
            self._ws = None
            return

        log_event({
            "event_type": "AI_LINK_OPENED",
            "connection_id": self._connection_id,
            "model": self._model,
        })

        self._recv_task = asyncio.create_task(self._recv_loop())
        await self._emit(AILinkOpened(event_type=EventType.AI_LINK_OPENED, ts_ms=now_ms()))

    async def send_event(self, event: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or self._closed:
            raise LinkClosedError("AI link is not open")
        try:
            await ws.send(json.dumps(event))
        except ConnectionClosed as e:
            raise LinkClosedError(f"AI link closed: {e}") from e

    async def close(self) -> None:
        """
        Close the websocket.

        Idempotent. When invoked from inside the receive loop (teardown
        triggered by a received event) the loop is left to finish on its own.
        """
        if self._closed:
            return
        self._closed = True

        ws = self._ws
        self._ws = None

        rt = self._recv_task
        self._recv_task = None
        if rt is not None and rt is not asyncio.current_task() and not rt.done():
            rt.cancel()

        if ws is not None:
            await ws.close()

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return

        reason = "remote_closed"
        try:
            async for raw in ws:
                if self._closed:
                    return
                await self._handle_message(raw)
        except asyncio.CancelledError:
            return
        except ConnectionClosed as e:
            reason = f"remote_closed: {e}"
        except Exception as e:  # pylint: disable=broad-exception-caught
            reason = f"recv_failed: {e!r}"

        if self._closed:
            return

        await self._emit(
            LinkClosed(
                event_type=EventType.LINK_CLOSED,
                ts_ms=now_ms(),
                link=Link.AI,
                reason=reason,
            )
        )

    async def _handle_message(self, raw: str | bytes) -> None:
        try:
            event = decode_server_event(raw, ts_ms=now_ms())
        except RealtimeProtocolError as e:
            preview = raw if isinstance(raw, str) else repr(raw)
            log_event({
                "level": "WARNING",
                "event_type": "AI_DECODE_ERROR",
                "connection_id": self._connection_id,
                "error": str(e),
                "payload_preview": preview[:LOG_PAYLOAD_PREVIEW_CHARS],
            })
            return

        if event is None:
            return

        await self._emit(event)
