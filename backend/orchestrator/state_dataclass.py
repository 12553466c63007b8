"""
Authoritative bridge state container.

Rules:
- These dataclasses are pure data models.
- BridgeState contains ALL state the reducer may ever need.
- No behavior beyond read-only derived properties.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from audio.frames import AudioFormat, TELEPHONY_AUDIO_FORMAT
from constants import VAD_DEFAULT_SILENCE_DURATION_MS, VAD_DEFAULT_THRESHOLD
from orchestrator.ack_queue import AckQueue
from orchestrator.enums.state import PlaybackState, SessionStatus
from orchestrator.enums.turn_policy import TurnPolicy
from orchestrator.playback_clock import PlaybackClock


# =============================================================================
# AI Session Configuration
# =============================================================================

@dataclass(frozen=True)
class SessionConfiguration:
    """
    Configuration blob sent verbatim in the configure handshake.

    instructions and greeting are persona data; the bridge never inspects
    them.
    """
    instructions: str
    voice: str = "alloy"
    model: str | None = None
    turn_policy: TurnPolicy = TurnPolicy.AUTO
    input_format: AudioFormat = TELEPHONY_AUDIO_FORMAT
    output_format: AudioFormat = TELEPHONY_AUDIO_FORMAT
    vad_threshold: float = VAD_DEFAULT_THRESHOLD
    vad_silence_duration_ms: int = VAD_DEFAULT_SILENCE_DURATION_MS
    greeting: str | None = None


# =============================================================================
# Bridge State
# =============================================================================

@dataclass(frozen=True)
class BridgeState:
    """Immutable snapshot of one call's bridge state."""

    session_config: SessionConfiguration

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------
    session_id: str | None = None
    status: SessionStatus = SessionStatus.CONNECTING
    close_reason: str | None = None

    # True once the configure handshake has been emitted
    ai_configured: bool = False

    # True once the telephony side sent `start`
    stream_started: bool = False

    # ------------------------------------------------------------------
    # Playback tracking
    # ------------------------------------------------------------------
    clock: PlaybackClock = field(default_factory=PlaybackClock)
    ack_queue: AckQueue = field(default_factory=AckQueue)

    # Monotonic marker counter, never reset within a session
    mark_seq: int = 0

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    show_timing_math: bool = False

    @property
    def turn_policy(self) -> TurnPolicy:
        return self.session_config.turn_policy

    @property
    def playback_state(self) -> PlaybackState:
        return PlaybackState.SPEAKING if self.clock.is_speaking else PlaybackState.IDLE

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.CLOSING, SessionStatus.CLOSED)
