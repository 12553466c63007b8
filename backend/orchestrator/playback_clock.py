"""
Playback clock.

Tracks the call-relative clock reported by the telephony side and the
point on that clock where the current AI response started playing.

Rules:
- Immutable: every operation returns a new clock.
- The telephony timestamp is authoritative, even when it moves backward.
- No wall clock is consulted anywhere.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Playback:
    """
    One AI response currently being forwarded to the caller.

    started_at_call_clock_ms:
        Call clock value when the first audio chunk was forwarded.

    active_utterance_id:
        AI-side item identifier of the response, or None if the endpoint
        did not report one.
    """
    started_at_call_clock_ms: int
    active_utterance_id: str | None


@dataclass(frozen=True)
class PlaybackClock:
    """Call clock plus the optional active playback record."""

    call_clock_ms: int = 0
    playback: Playback | None = None

    @property
    def is_speaking(self) -> bool:
        return self.playback is not None

    def observe_inbound_frame(self, timestamp_ms: int) -> PlaybackClock:
        """Adopt the timestamp of an inbound telephony frame."""
        return replace(self, call_clock_ms=timestamp_ms)

    def mark_response_start(self, utterance_id: str | None) -> PlaybackClock:
        """
        Record the start of a response at the current call clock.

        Idempotent: once a playback is active, later chunks of the same
        response leave the start marker alone.
        """
        if self.playback is not None:
            return self
        return replace(
            self,
            playback=Playback(
                started_at_call_clock_ms=self.call_clock_ms,
                active_utterance_id=utterance_id,
            ),
        )

    def elapsed_since_playback_start(self) -> int:
        """
        Milliseconds of the active response the caller has heard.

        Floored at 0; returns 0 when nothing is playing.
        """
        if self.playback is None:
            return 0
        return max(0, self.call_clock_ms - self.playback.started_at_call_clock_ms)

    def clear_playback(self) -> PlaybackClock:
        if self.playback is None:
            return self
        return replace(self, playback=None)

    def reset(self) -> PlaybackClock:
        """New stream segment: clock back to 0, playback invalidated."""
        return PlaybackClock()
