"""
Route registration for the call bridge.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire the session gateway to the media-stream websocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

from xml.sax.saxutils import escape, quoteattr

from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect

from constants import TELEPHONY_STREAM_PATH, TELEPHONY_WEBHOOK_PATH
from config import AppConfig
from observability.logger import log_event
from session.registry import SessionRegistry

from server.telephony_link import FastAPITelephonyLink


def build_twiml(*, config: AppConfig, host: str) -> str:
    """Call-control markup: a short prompt, then connect the media stream."""
    stream_url = f"wss://{host}{TELEPHONY_STREAM_PATH}"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<Response>"
        f"<Say language={quoteattr(config.say_language)} "
        f"voice={quoteattr(config.say_voice)}>{escape(config.say_text)}</Say>"
        '<Pause length="1"/>'
        "<Connect>"
        f"<Stream url={quoteattr(stream_url)}/>"
        "</Connect>"
        "</Response>"
    )


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/")
    async def root() -> dict[str, object]: # pyright: ignore[reportUnusedFunction]
        return {"ok": True, "service": app.title}

    @app.get("/health")
    async def health() -> dict[str, object]: # pyright: ignore[reportUnusedFunction]
        registry: SessionRegistry = app.state.registry
        return {"status": "ok", "active_sessions": len(registry)}

    @app.api_route(TELEPHONY_WEBHOOK_PATH, methods=["GET", "POST"])
    async def incoming_call(request: Request) -> Response: # pyright: ignore[reportUnusedFunction]
        host = request.headers.get("host") or request.url.netloc
        log_event({
            "event_type": "INCOMING_CALL",
            "host": host,
            "method": request.method,
        })
        twiml = build_twiml(config=app.state.config, host=host)
        return Response(content=twiml, media_type="text/xml")

    @app.websocket(TELEPHONY_STREAM_PATH)
    async def media_stream(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        """
        Telephony media-stream endpoint.

        One connection = one session = one gateway.
        """
        await ws.accept()

        registry: SessionRegistry = app.state.registry
        gateway = await registry.on_telephony_connect(FastAPITelephonyLink(ws))

        try:
            while not gateway.finished:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(code=msg.get("code", 1000))

                text = msg.get("text")
                if text is None:
                    log_event({
                        "level": "WARNING",
                        "event_type": "TELEPHONY_BINARY_FRAME_IGNORED",
                        **gateway.session.log_context(),
                    })
                    continue

                await gateway.on_text_message(text)

        except WebSocketDisconnect:
            await gateway.on_ws_disconnect(reason="telephony_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "level": "ERROR",
                "event_type": "WS_FATAL_ERROR",
                **gateway.session.log_context(),
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_ws_disconnect(reason="server_error")
