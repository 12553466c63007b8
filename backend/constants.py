"""
PROTOCOL-AS-CONSTANTS
---------------------
Single source of truth for wire formats and behavioral constants.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (keys, ports, persona) live in config.py instead.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Telephony audio format (G.711 mu-law, 8kHz, mono)
# =============================================================================

AUDIO_ENCODING: Final[str] = "audio/pcmu"
AUDIO_SAMPLE_RATE_HZ: Final[int] = 8_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_BYTES_PER_SAMPLE: Final[int] = 1  # companded, one byte per sample

AUDIO_BYTES_PER_MS: Final[int] = (
    AUDIO_SAMPLE_RATE_HZ * AUDIO_CHANNELS * AUDIO_BYTES_PER_SAMPLE
) // 1000

# =============================================================================
# Telephony media stream (Twilio Media Streams)
# =============================================================================

TELEPHONY_MARK_NAME: Final[str] = "responsePart"
TELEPHONY_STREAM_PATH: Final[str] = "/media-stream"
TELEPHONY_WEBHOOK_PATH: Final[str] = "/incoming-call"

# =============================================================================
# Realtime AI endpoint (OpenAI Realtime)
# =============================================================================

REALTIME_DEFAULT_URL: Final[str] = "wss://api.openai.com/v1/realtime"
REALTIME_DEFAULT_MODEL: Final[str] = "gpt-realtime"
REALTIME_CONNECT_TIMEOUT_S: Final[float] = 10.0
REALTIME_MAX_MESSAGE_BYTES: Final[int] = 2**22

# Truncation always targets the first (audio) content part of an item
REALTIME_TRUNCATE_CONTENT_INDEX: Final[int] = 0

# Server-side turn detection defaults
VAD_DEFAULT_THRESHOLD: Final[float] = 0.5
VAD_DEFAULT_SILENCE_DURATION_MS: Final[int] = 350

# Inbound event types logged by name only (no state effect)
REALTIME_INFORMATIONAL_EVENT_TYPES: Final[frozenset[str]] = frozenset({
    "session.created",
    "session.updated",
    "rate_limits.updated",
    "response.content.done",
    "response.output_audio.done",
    "input_audio_buffer.committed",
})

# error.type / error.code values that end the call
REALTIME_FATAL_ERROR_KINDS: Final[frozenset[str]] = frozenset({
    "authentication_error",
    "invalid_api_key",
    "insufficient_quota",
    "session_expired",
    "server_error",
})

# =============================================================================
# Logging
# =============================================================================

LOG_PAYLOAD_PREVIEW_CHARS: Final[int] = 100
