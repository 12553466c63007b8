# backend/protocol/telephony.py
"""
Telephony media-stream wire format (Twilio Media Streams).

Inbound (JSON text frames):
    {"event": "connected", ...}                              ignored
    {"event": "start", "start": {"streamSid": ...}}          TelephonyStart
    {"event": "media", "media": {"timestamp", "payload"}}    TelephonyMedia
    {"event": "mark", "mark": {"name": ...}}                 TelephonyMark
    {"event": "stop", ...}                                   TelephonyStop
    {"event": "dtmf", ...}                                   ignored

Outbound:
    {"event": "media", "streamSid": ..., "media": {"payload": <b64>}}
    {"event": "mark",  "streamSid": ..., "mark": {"name": ...}}
    {"event": "clear", "streamSid": ...}

Usage example:

    try:
        event = decode_message(text, ts_ms=now_ms())
    except TelephonyProtocolError as e:
        log_event({"event_type": "TELEPHONY_DECODE_ERROR", "error": str(e)})
    else:
        if event is not None:
            await runtime.handle_event(event)
"""

from __future__ import annotations

import json
from typing import Any

from audio.codec import AudioCodecError, decode_payload, encode_payload
from orchestrator.events import (
    Event,
    EventType,
    TelephonyMark,
    TelephonyMedia,
    TelephonyStart,
    TelephonyStop,
)
from protocol.errors import TelephonyProtocolError


IGNORED_EVENTS: frozenset[str] = frozenset({"connected", "dtmf"})


# -------------------------
# Low-level helpers
# -------------------------

def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key)
    if not isinstance(section, dict):
        raise TelephonyProtocolError(f"'{key}' event without a '{key}' object")
    return section


def _timestamp_ms(raw: Any) -> int:
    # Twilio sends the media timestamp as a decimal string
    if isinstance(raw, bool):
        raise TelephonyProtocolError(f"Invalid media timestamp: {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise TelephonyProtocolError(f"Invalid media timestamp: {raw!r}") from e


# -------------------------
# Inbound
# -------------------------

def decode_message(raw: str | bytes, *, ts_ms: int) -> Event | None:
    """
    Decode one inbound telephony message.

    Returns None for well-formed messages the bridge does not act on.
    Raises TelephonyProtocolError for malformed ones.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TelephonyProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise TelephonyProtocolError("Telephony message must be a JSON object")

    kind = data.get("event")

    if kind == "media":
        media = _section(data, "media")
        try:
            payload = decode_payload(media.get("payload"))
        except AudioCodecError as e:
            raise TelephonyProtocolError(str(e)) from e
        return TelephonyMedia(
            event_type=EventType.TELEPHONY_MEDIA,
            ts_ms=ts_ms,
            timestamp_ms=_timestamp_ms(media.get("timestamp")),
            payload=payload,
        )

    if kind == "start":
        start = _section(data, "start")
        stream_sid = start.get("streamSid") or data.get("streamSid")
        if not isinstance(stream_sid, str) or not stream_sid:
            raise TelephonyProtocolError("'start' event without a streamSid")
        return TelephonyStart(
            event_type=EventType.TELEPHONY_START,
            ts_ms=ts_ms,
            stream_sid=stream_sid,
        )

    if kind == "mark":
        mark = data.get("mark")
        name = mark.get("name") if isinstance(mark, dict) else None
        return TelephonyMark(
            event_type=EventType.TELEPHONY_MARK,
            ts_ms=ts_ms,
            name=name if isinstance(name, str) else None,
        )

    if kind == "stop":
        return TelephonyStop(event_type=EventType.TELEPHONY_STOP, ts_ms=ts_ms)

    if kind in IGNORED_EVENTS:
        return None

    raise TelephonyProtocolError(f"Unknown telephony event: {kind!r}")


# -------------------------
# Outbound
# -------------------------

def encode_media(*, stream_sid: str, payload: bytes) -> dict[str, Any]:
    return {
        "event": "media",
        "streamSid": stream_sid,
        "media": {"payload": encode_payload(payload)},
    }


def encode_mark(*, stream_sid: str, name: str) -> dict[str, Any]:
    return {
        "event": "mark",
        "streamSid": stream_sid,
        "mark": {"name": name},
    }


def encode_clear(*, stream_sid: str) -> dict[str, Any]:
    return {"event": "clear", "streamSid": stream_sid}
