"""
Telephony link over a FastAPI (Starlette) websocket.

Outbound half only: the route's receive loop owns inbound frames and
hands them to SessionGateway.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from protocol.errors import LinkClosedError


class FastAPITelephonyLink:
    """TelephonyLinkProtocol implementation for an accepted websocket."""

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_json(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise LinkClosedError("telephony link is closed")
        try:
            await self._ws.send_text(json.dumps(message))
        except (WebSocketDisconnect, RuntimeError) as e:
            # Starlette raises RuntimeError when sending after close
            self._closed = True
            raise LinkClosedError(f"telephony send failed: {e!r}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._ws.application_state == WebSocketState.CONNECTED:
            await self._ws.close()
