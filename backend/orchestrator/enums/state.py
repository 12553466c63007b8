"""
Authoritative session state enumerations.

Rules:
- These enums define ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class SessionStatus(str, Enum):
    """
    Lifecycle of a single bridged call.

    CONNECTING:
        Telephony attached, AI link not yet configured or stream not started.
    ACTIVE:
        Both links configured and exchanging frames.
    CLOSING:
        Teardown in progress.
    CLOSED:
        Terminal. Every further event is ignored.
    """

    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


class PlaybackState(str, Enum):
    """
    Sub-state of ACTIVE, derived from the playback clock.

    Never stored; computed for logging from whether a playback record exists.
    """

    IDLE = "IDLE"
    SPEAKING = "SPEAKING"
