# backend/protocol/realtime.py
"""
AI realtime wire format (OpenAI Realtime events over a websocket).

Inbound server events are decoded into the closed set of AI events in
orchestrator.events. Outbound client events are built from commands.

Inbound:
    input_audio_buffer.speech_started          AISpeechStarted
    input_audio_buffer.speech_stopped          AISpeechStopped
    response.output_audio.delta                AIAudioDelta
    response.audio.delta (preview naming)      AIAudioDelta
    response.done                              AIResponseDone
    error                                      AIError
    constants.REALTIME_INFORMATIONAL_EVENT_TYPES  AINotice
    anything else                              None
"""

from __future__ import annotations

import json
from typing import Any

from audio.codec import AudioCodecError, decode_payload, encode_payload
from audio.frames import AudioFormat
from constants import (
    REALTIME_FATAL_ERROR_KINDS,
    REALTIME_INFORMATIONAL_EVENT_TYPES,
    REALTIME_TRUNCATE_CONTENT_INDEX,
)
from orchestrator.enums.turn_policy import TurnPolicy
from orchestrator.events import (
    AIAudioDelta,
    AIError,
    AINotice,
    AIResponseDone,
    AISpeechStarted,
    AISpeechStopped,
    Event,
    EventType,
)
from orchestrator.state_dataclass import SessionConfiguration
from protocol.errors import RealtimeProtocolError


AUDIO_DELTA_TYPES: frozenset[str] = frozenset({
    "response.output_audio.delta",
    "response.audio.delta",
})


# -------------------------
# Inbound
# -------------------------

def _decode_error(data: dict[str, Any], ts_ms: int) -> AIError:
    error = data.get("error")
    if not isinstance(error, dict):
        error = {}

    code = error.get("code")
    kind = error.get("type")
    message = error.get("message") or "unknown realtime error"

    fatal = any(
        isinstance(k, str) and k in REALTIME_FATAL_ERROR_KINDS
        for k in (code, kind)
    )

    return AIError(
        event_type=EventType.AI_ERROR,
        ts_ms=ts_ms,
        detail=str(message),
        code=code if isinstance(code, str) else (kind if isinstance(kind, str) else None),
        fatal=fatal,
    )


def decode_server_event(raw: str | bytes, *, ts_ms: int) -> Event | None:
    """
    Decode one AI server event.

    Returns None for event types the bridge does not act on.
    Raises RealtimeProtocolError for malformed events.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RealtimeProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise RealtimeProtocolError("Realtime event must be a JSON object")

    kind = data.get("type")
    if not isinstance(kind, str):
        raise RealtimeProtocolError("Realtime event without a string 'type'")

    if kind in AUDIO_DELTA_TYPES:
        try:
            payload = decode_payload(data.get("delta"))
        except AudioCodecError as e:
            raise RealtimeProtocolError(f"{kind}: {e}") from e
        item_id = data.get("item_id")
        return AIAudioDelta(
            event_type=EventType.AI_AUDIO_DELTA,
            ts_ms=ts_ms,
            utterance_id=item_id if isinstance(item_id, str) and item_id else None,
            payload=payload,
        )

    if kind == "input_audio_buffer.speech_started":
        return AISpeechStarted(event_type=EventType.AI_SPEECH_STARTED, ts_ms=ts_ms)

    if kind == "input_audio_buffer.speech_stopped":
        return AISpeechStopped(event_type=EventType.AI_SPEECH_STOPPED, ts_ms=ts_ms)

    if kind == "response.done":
        response = data.get("response")
        response_id = response.get("id") if isinstance(response, dict) else None
        return AIResponseDone(
            event_type=EventType.AI_RESPONSE_DONE,
            ts_ms=ts_ms,
            response_id=response_id if isinstance(response_id, str) else None,
        )

    if kind == "error":
        return _decode_error(data, ts_ms)

    if kind in REALTIME_INFORMATIONAL_EVENT_TYPES:
        return AINotice(event_type=EventType.AI_NOTICE, ts_ms=ts_ms, kind=kind)

    return None


# -------------------------
# Outbound
# -------------------------

def _format(audio_format: AudioFormat) -> dict[str, Any]:
    fmt: dict[str, Any] = {"type": audio_format.encoding}
    # The PCM encoding needs an explicit rate; companded formats imply 8kHz
    if audio_format.encoding == "audio/pcm":
        fmt["rate"] = audio_format.sample_rate_hz
    return fmt


def encode_session_update(config: SessionConfiguration) -> dict[str, Any]:
    """
    Build the configure handshake.

    Server VAD is always on so speech start/stop is reported. Under MANUAL
    the server is told not to create responses on its own.
    """
    session: dict[str, Any] = {
        "type": "realtime",
        "output_modalities": ["audio"],
        "audio": {
            "input": {
                "format": _format(config.input_format),
                "turn_detection": {
                    "type": "server_vad",
                    "threshold": config.vad_threshold,
                    "silence_duration_ms": config.vad_silence_duration_ms,
                    "create_response": config.turn_policy is TurnPolicy.AUTO,
                },
            },
            "output": {
                "format": _format(config.output_format),
                "voice": config.voice,
            },
        },
        "instructions": config.instructions,
    }
    if config.model:
        session["model"] = config.model

    return {"type": "session.update", "session": session}


def encode_input_append(payload: bytes) -> dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": encode_payload(payload)}


def encode_input_commit() -> dict[str, Any]:
    return {"type": "input_audio_buffer.commit"}


def encode_response_create() -> dict[str, Any]:
    return {"type": "response.create"}


def encode_truncate(*, utterance_id: str, elapsed_ms: int) -> dict[str, Any]:
    return {
        "type": "conversation.item.truncate",
        "item_id": utterance_id,
        "content_index": REALTIME_TRUNCATE_CONTENT_INDEX,
        "audio_end_ms": max(0, elapsed_ms),
    }


def encode_greeting(prompt: str) -> tuple[dict[str, Any], ...]:
    """User message asking the assistant to speak first, then a response request."""
    return (
        {
            "type": "conversation.item.create",
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": prompt}],
            },
        },
        encode_response_create(),
    )
