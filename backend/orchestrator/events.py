"""
Unified event definitions for the bridge reducer.

Rules:
- Events describe facts that have occurred on one of the two links.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- Wire decoding (protocol/) is the only producer of link events.

The set is closed: the reducer handles every type below explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from orchestrator.enums.link import Link


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (status, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Telephony link
    # ------------------------------------------------------------------
    TELEPHONY_START = "TELEPHONY_START"
    TELEPHONY_MEDIA = "TELEPHONY_MEDIA"
    TELEPHONY_MARK = "TELEPHONY_MARK"
    TELEPHONY_STOP = "TELEPHONY_STOP"

    # ------------------------------------------------------------------
    # AI link
    # ------------------------------------------------------------------
    AI_LINK_OPENED = "AI_LINK_OPENED"
    AI_SPEECH_STARTED = "AI_SPEECH_STARTED"
    AI_SPEECH_STOPPED = "AI_SPEECH_STOPPED"
    AI_AUDIO_DELTA = "AI_AUDIO_DELTA"
    AI_RESPONSE_DONE = "AI_RESPONSE_DONE"
    AI_ERROR = "AI_ERROR"
    AI_NOTICE = "AI_NOTICE"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    LINK_CLOSED = "LINK_CLOSED"
    TEARDOWN_COMPLETE = "TEARDOWN_COMPLETE"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: wall-clock receipt time (observability only, never control)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Telephony Events
# =============================================================================

@dataclass(frozen=True)
class TelephonyStart(Event):
    """Telephony stream started; carries the stream identifier."""
    stream_sid: str


@dataclass(frozen=True)
class TelephonyMedia(Event):
    """
    Inbound caller audio.

    timestamp_ms is the telephony side's own call-relative clock.
    """
    timestamp_ms: int
    payload: bytes


@dataclass(frozen=True)
class TelephonyMark(Event):
    """Telephony side finished playing audio up to a marker."""
    name: str | None = None


@dataclass(frozen=True)
class TelephonyStop(Event):
    """Telephony stream ended."""


# =============================================================================
# AI Events
# =============================================================================

@dataclass(frozen=True)
class AILinkOpened(Event):
    """AI websocket is open and ready for the configure handshake."""


@dataclass(frozen=True)
class AISpeechStarted(Event):
    """AI endpoint detected caller speech (barge-in trigger)."""


@dataclass(frozen=True)
class AISpeechStopped(Event):
    """AI endpoint detected the end of caller speech."""


@dataclass(frozen=True)
class AIAudioDelta(Event):
    """One chunk of generated audio for an utterance."""
    utterance_id: str | None
    payload: bytes


@dataclass(frozen=True)
class AIResponseDone(Event):
    """The AI finished a response."""
    response_id: str | None = None


@dataclass(frozen=True)
class AIError(Event):
    """
    Error reported by the AI endpoint.

    fatal is decided at decode time from the error kind.
    """
    detail: str
    code: str | None = None
    fatal: bool = False


@dataclass(frozen=True)
class AINotice(Event):
    """Informational AI event, logged by name only."""
    kind: str


# =============================================================================
# Lifecycle Events
# =============================================================================

@dataclass(frozen=True)
class LinkClosed(Event):
    """One of the two transports closed or failed."""
    link: Link
    reason: str | None = None


@dataclass(frozen=True)
class TeardownComplete(Event):
    """Runtime finished closing both links."""
