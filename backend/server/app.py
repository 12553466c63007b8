"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Configure JSONL logging
- Initialize shared resources (persona, session registry)
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from config import AppConfig
from observability.logger import configure_logging, log_event
from persona import PersonaConfig
from session.registry import AILinkFactory, SessionRegistry

from server.routes import register_routes


SERVICE_NAME = "Twilio Media Stream + OpenAI Realtime"


def create_app(
    config: AppConfig | None = None,
    ai_link_factory: AILinkFactory | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with a fixed config and a fake AI link factory
    - Environment-specific setup
    - ASGI server compatibility

    Raises:
        RuntimeError if no AI credential is configured and no factory is injected
        FileNotFoundError / ValueError if PERSONA_FILE is set but unusable
    """
    if config is None:
        config = AppConfig.load_from_env()

    configure_logging(level=config.log_level, enabled=config.enable_json_logs)

    if not config.openai_api_key and ai_link_factory is None:
        raise RuntimeError("OPENAI_API_KEY environment variable not set")

    persona = PersonaConfig.load(config.persona_file)

    registry = SessionRegistry(
        config=config,
        persona=persona,
        ai_link_factory=ai_link_factory,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        log_event({
            "event_type": "SERVER_STARTED",
            "env": config.env,
            "host": config.host,
            "port": config.port,
            "model": config.realtime_model,
            "turn_policy": config.turn_policy.value,
        })
        yield
        await registry.close_all()
        log_event({"event_type": "SERVER_STOPPED", "env": config.env})

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)

    app.state.config = config
    app.state.persona = persona
    app.state.registry = registry

    # Routes
    register_routes(app)

    return app
