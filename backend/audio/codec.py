"""
Audio frame codec adapter.

The telephony side and the AI endpoint agree on 8kHz mono mu-law, so the
bridge performs no transcoding. This module only moves payloads between
their base64 wire form and raw bytes, validating them on the way.
"""

from __future__ import annotations

import base64
import binascii

from constants import AUDIO_BYTES_PER_MS


class AudioCodecError(Exception):
    """
    Raised when an audio payload cannot be decoded or is empty.

    The carrying event is malformed and must be dropped.
    """


def decode_payload(payload_b64: object) -> bytes:
    """Decode a base64 audio payload from the wire into raw mu-law bytes."""
    if not isinstance(payload_b64, str):
        raise AudioCodecError(
            f"Audio payload must be a base64 string, got {type(payload_b64).__name__}"
        )

    try:
        audio = base64.b64decode(payload_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioCodecError(f"Invalid base64 audio payload: {e}") from e

    if not audio:
        raise AudioCodecError("Empty audio payload")

    return audio


def encode_payload(audio: bytes) -> str:
    """Encode raw mu-law bytes into the base64 wire form."""
    if not audio:
        raise AudioCodecError("Refusing to encode an empty audio payload")
    return base64.b64encode(audio).decode("ascii")


def payload_duration_ms(audio: bytes) -> int:
    """Playback duration of a mu-law payload. Observability only."""
    return len(audio) // AUDIO_BYTES_PER_MS
