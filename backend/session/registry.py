"""
Session registry.

Creates one BridgeSession per inbound telephony connection, pairs it with
a fresh AI link, and forgets it when the runtime reports the call closed.

Sessions share nothing. The registry only keeps liveness bookkeeping.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Coroutine, Protocol, TYPE_CHECKING
from uuid import uuid4

from adapters.realtime.openai_realtime import OpenAIRealtimeLink
from observability.logger import log_event
from orchestrator.events import Event
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import (
    AILinkProtocol,
    RuntimeExecutionContext,
    TelephonyLinkProtocol,
)
from orchestrator.state_dataclass import BridgeState, SessionConfiguration
from session.bridge_session import BridgeSession
from session.connection_status import ConnectionStatus
from session.gateway import SessionGateway

if TYPE_CHECKING:
    from config import AppConfig
    from persona import PersonaConfig


class AILinkFactory(Protocol):
    """Builds an unconnected AI link that reports into emit_event."""
    def __call__(
        self,
        *,
        emit_event: Callable[[Event], Coroutine[Any, Any, None]],
        connection_id: str,
    ) -> AILinkProtocol: ...


def _new_connection_id() -> str:
    return f"conn_{uuid4().hex[:12]}"


class SessionRegistry:
    """
    Owner of every live BridgeSession in the process.

    on_telephony_connect() is called once per accepted media-stream socket;
    on_teardown() is called by the session itself when it closes.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        persona: PersonaConfig,
        ai_link_factory: AILinkFactory | None = None,
    ) -> None:
        self._config = config
        self._persona = persona
        self._ai_link_factory = ai_link_factory or self._default_ai_link_factory
        self._sessions: dict[str, BridgeSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions

    def get(self, connection_id: str) -> BridgeSession | None:
        return self._sessions.get(connection_id)

    # ------------------------------------------------------------------
    # Session configuration
    # ------------------------------------------------------------------

    def build_session_config(self) -> SessionConfiguration:
        """Merge deployment config and persona into the configure blob."""
        return SessionConfiguration(
            instructions=self._persona.instructions,
            voice=self._persona.voice or self._config.voice,
            turn_policy=self._config.turn_policy,
            vad_threshold=self._config.vad_threshold,
            vad_silence_duration_ms=self._config.vad_silence_duration_ms,
            greeting=self._persona.greeting,
        )

    def _default_ai_link_factory(
        self,
        *,
        emit_event: Callable[[Event], Coroutine[Any, Any, None]],
        connection_id: str,
    ) -> AILinkProtocol:
        if not self._config.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY is required to open the AI link")
        return OpenAIRealtimeLink(
            emit_event=emit_event,
            api_key=self._config.openai_api_key,
            model=self._config.realtime_model,
            temperature=self._config.temperature,
            url=self._config.realtime_url,
            connection_id=connection_id,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def on_telephony_connect(self, link: TelephonyLinkProtocol) -> SessionGateway:
        """
        Create a session for a freshly accepted telephony socket.

        The AI link connects in the background so telephony frames are
        read while the handshake is in flight.
        """
        connection_id = _new_connection_id()

        session = BridgeSession(
            connection_id=connection_id,
            telephony_link=link,
            on_release=self.on_teardown,
        )

        runtime = Runtime(
            initial_state=BridgeState(
                session_config=self.build_session_config(),
                show_timing_math=self._config.show_timing_math,
            ),
            context=RuntimeExecutionContext(session=session),
        )
        session.attach_runtime(runtime)

        ai_link = self._ai_link_factory(
            emit_event=runtime.handle_event,
            connection_id=connection_id,
        )
        session.attach_ai_link(ai_link)

        self._sessions[connection_id] = session

        log_event({
            "event_type": "SESSION_CREATED",
            **session.log_context(),
            "turn_policy": runtime.state.turn_policy.value,
            "active_sessions": len(self._sessions),
        })

        session.ai_status = ConnectionStatus.CONNECTING
        session.ai_connect_task = asyncio.create_task(self._connect_ai(session, ai_link))

        return SessionGateway(session)

    async def _connect_ai(self, session: BridgeSession, ai_link: AILinkProtocol) -> None:
        await ai_link.connect()
        if not session.released and session.ai_status is ConnectionStatus.CONNECTING:
            session.ai_status = ConnectionStatus.UP

    def on_teardown(self, session: BridgeSession, reason: str | None = None) -> None:
        """
        Forget a closed session.

        Idempotent: a session already removed is ignored.
        """
        removed = self._sessions.pop(session.connection_id, None)
        if removed is None:
            return

        log_event({
            "event_type": "SESSION_REMOVED",
            **session.log_context(),
            "reason": reason,
            "duration_s": round(time.time() - removed.created_at, 3),
            "active_sessions": len(self._sessions),
        })

    async def close_all(self, reason: str = "server_shutdown") -> None:
        """Close every live session's telephony side; used at process shutdown."""
        for session in list(self._sessions.values()):
            gateway = SessionGateway(session)
            await gateway.on_ws_disconnect(reason=reason)
