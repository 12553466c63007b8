"""
Turn-detection policy enumeration.

Policies are orthogonal to control states:
- State answers:  "Where is the call in its lifecycle?"
- Policy answers: "Who decides when the caller has finished speaking?"
"""

from __future__ import annotations

from enum import Enum


class TurnPolicy(str, Enum):
    """
    AUTO:
        The AI endpoint detects end of speech and responds on its own.

    MANUAL:
        The AI endpoint only reports speech start/stop. The bridge commits
        the input buffer and requests a response after speech stops.
    """

    AUTO = "AUTO"
    MANUAL = "MANUAL"

    @classmethod
    def parse(cls, raw: str) -> TurnPolicy:
        """Parse a case-insensitive policy name; raise ValueError if unknown."""
        try:
            return cls(raw.strip().upper())
        except ValueError as exc:
            allowed = ", ".join(p.value for p in cls)
            raise ValueError(
                f"Unknown turn policy {raw!r} (expected one of: {allowed})"
            ) from exc
