"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution (the two links and the teardown hook).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero bridging logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from orchestrator.enums.link import Link

if TYPE_CHECKING:
    from session.bridge_session import BridgeSession


# ---------------------------------------------------------------------
# Link Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class TelephonyLinkProtocol(Protocol):
    """
    Outbound half of the telephony media stream.

    send_json must raise if the transport is gone; close must be idempotent.
    """
    async def send_json(self, message: dict[str, Any]) -> None: ...
    async def close(self) -> None: ...


@runtime_checkable
class AILinkProtocol(Protocol):
    """
    Outbound half of the AI realtime session.

    connect() emits AILinkOpened on success or LinkClosed on failure.
    """
    async def connect(self) -> None: ...
    async def send_event(self, event: dict[str, Any]) -> None: ...
    async def close(self) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Send on either link
    - Close either link
    - Ask the owner to release the session

    Runtime is NOT allowed to:
    - Make bridging decisions
    """

    def __init__(self, session: BridgeSession) -> None:
        self.session = session

    @property
    def connection_id(self) -> str:
        return self.session.connection_id

    @property
    def telephony_link(self) -> TelephonyLinkProtocol:
        return self.session.telephony_link

    @property
    def ai_link(self) -> AILinkProtocol | None:
        return self.session.ai_link

    def link(self, which: Link) -> TelephonyLinkProtocol | AILinkProtocol | None:
        if which is Link.TELEPHONY:
            return self.telephony_link
        return self.ai_link

    def end_session(self, reason: str | None) -> None:
        self.session.release(reason)
