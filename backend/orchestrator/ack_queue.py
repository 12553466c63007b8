"""
Acknowledgment queue for telephony playback markers.

Every outbound audio chunk is followed by a marker request; the telephony
side reports each marker back once the audio before it has been played.
The queue holds the markers still waiting for that report.

Rules:
- FIFO only. Completions are matched to the oldest pending marker.
- A completion with nothing pending is a no-op, never an error.
- Immutable: every operation returns a new queue.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AckQueue:
    """Ordered tuple of marker tokens sent but not yet confirmed."""

    tokens: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.tokens)

    @property
    def oldest(self) -> str | None:
        return self.tokens[0] if self.tokens else None

    def enqueue(self, token: str) -> AckQueue:
        return AckQueue(tokens=self.tokens + (token,))

    def confirm_one(self) -> AckQueue:
        """Pop the oldest token; unchanged when empty."""
        if not self.tokens:
            return self
        return AckQueue(tokens=self.tokens[1:])

    def clear(self) -> AckQueue:
        if not self.tokens:
            return self
        return AckQueue()
