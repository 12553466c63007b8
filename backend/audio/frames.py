"""
Audio format primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass

from constants import AUDIO_CHANNELS, AUDIO_ENCODING, AUDIO_SAMPLE_RATE_HZ


@dataclass(frozen=True)
class AudioFormat:
    """
    Wire audio format agreed between the telephony side and the AI endpoint.

    encoding:
        MIME-style encoding name understood by the AI endpoint.

    sample_rate_hz / channels:
        Fixed by the telephony transport. The bridge never transcodes,
        so both directions use the same format.
    """
    encoding: str = AUDIO_ENCODING
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    channels: int = AUDIO_CHANNELS


TELEPHONY_AUDIO_FORMAT = AudioFormat()
