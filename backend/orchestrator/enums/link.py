"""
Link enumeration for the two transports owned by a bridge session.

Rules:
- This enum identifies transports only.
- It must NOT encode lifecycle rules; the reducer decides teardown.
"""

from __future__ import annotations

from enum import Enum


class Link(str, Enum):
    """
    The two independently-owned bidirectional channels of a session.
    """

    TELEPHONY = "TELEPHONY"
    AI = "AI"

    @property
    def other(self) -> Link:
        """The opposite side of the bridge."""
        return Link.AI if self is Link.TELEPHONY else Link.TELEPHONY
