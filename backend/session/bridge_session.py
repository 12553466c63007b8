"""
Bridge session container.

- Owns the runtime (which owns the immutable bridge state)
- Owns both link handles and their transport status
- Owned by SessionRegistry
- NOT a state machine
- Contains no bridging logic
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TYPE_CHECKING

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from orchestrator.runtime import Runtime
    from orchestrator.runtime_context import AILinkProtocol, TelephonyLinkProtocol


# ---------------------------------------------------------------------
# BridgeSession
# ---------------------------------------------------------------------


@dataclass
class BridgeSession:
    """Mutable runtime container for a single bridged call."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    connection_id: str
    telephony_link: TelephonyLinkProtocol
    created_at: float = field(default_factory=time.time)

    # Called once when the runtime reaches CLOSED
    on_release: Callable[[BridgeSession, str | None], None] | None = None
    released: bool = False
    release_reason: str | None = None

    # ------------------------------------------------------------------
    # Transport status
    # ------------------------------------------------------------------

    telephony_status: ConnectionStatus = ConnectionStatus.UP
    ai_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Runtime and AI link
    # ------------------------------------------------------------------

    runtime: Runtime | None = None
    ai_link: AILinkProtocol | None = None
    ai_connect_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionRegistry)
    # ------------------------------------------------------------------

    def attach_runtime(self, runtime: Runtime) -> None:
        """Attach the runtime. Must happen before any link emits events."""
        self.runtime = runtime

    def attach_ai_link(self, link: AILinkProtocol) -> None:
        self.ai_link = link

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def release(self, reason: str | None) -> None:
        """
        Mark the session finished and notify the owner.

        Idempotent: only the first call reaches on_release.
        """
        if self.released:
            return
        self.released = True
        self.release_reason = reason
        self.telephony_status = ConnectionStatus.DOWN
        self.ai_status = ConnectionStatus.DOWN

        if self.on_release is not None:
            self.on_release(self, reason)

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this session."""
        state = self.runtime.state if self.runtime is not None else None
        return {
            "connection_id": self.connection_id,
            "session_id": state.session_id if state is not None else None,
            "status": state.status.value if state is not None else None,
            "telephony_status": self.telephony_status.value,
            "ai_status": self.ai_status.value,
        }
