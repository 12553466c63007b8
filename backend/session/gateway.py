"""
Session gateway (telephony ingress).

Responsibilities:
- Decode inbound telephony text frames into bridge events
- Drop and log malformed frames without ending the call
- Forward events into the session runtime
- Turn a telephony socket disconnect into LinkClosed(TELEPHONY)

NOT responsible for:
- Sending anything (Runtime executes all commands)
- Bridging decisions (reducer)
- Session creation or removal (SessionRegistry)
"""

from __future__ import annotations

from constants import LOG_PAYLOAD_PREVIEW_CHARS
from observability.logger import log_event, now_ms
from orchestrator.enums.link import Link
from orchestrator.events import Event, EventType, LinkClosed
from protocol.errors import TelephonyProtocolError
from protocol.telephony import decode_message
from session.bridge_session import BridgeSession
from session.connection_status import ConnectionStatus


class SessionGateway:
    """One gateway == one telephony connection == one bridge session."""

    def __init__(self, session: BridgeSession) -> None:
        self.session = session

    @property
    def finished(self) -> bool:
        """True once the session has been torn down."""
        runtime = self.session.runtime
        return self.session.released or (runtime is not None and runtime.closed)

    async def on_text_message(self, payload: str) -> None:
        """Route one inbound telephony frame to the runtime."""
        try:
            event = decode_message(payload, ts_ms=now_ms())
        except TelephonyProtocolError as e:
            log_event({
                "level": "WARNING",
                "event_type": "TELEPHONY_DECODE_ERROR",
                **self.session.log_context(),
                "error": str(e),
                "payload_preview": payload[:LOG_PAYLOAD_PREVIEW_CHARS],
            })
            return

        if event is None:
            return

        await self._dispatch(event)

    async def on_ws_disconnect(self, reason: str | None = None) -> None:
        """Called when the telephony websocket goes away."""
        self.session.telephony_status = ConnectionStatus.DOWN
        await self._dispatch(
            LinkClosed(
                event_type=EventType.LINK_CLOSED,
                ts_ms=now_ms(),
                link=Link.TELEPHONY,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Runtime dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        runtime = self.session.runtime
        if runtime is None:
            log_event({
                "level": "ERROR",
                "event_type": "DISPATCH_WITHOUT_RUNTIME",
                "connection_id": self.session.connection_id,
                "dropped_event": event.event_type.value,
            })
            return

        await runtime.handle_event(event)
