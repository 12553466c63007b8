"""
Side-effect command definitions for the bridge.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Wire encoding happens in the runtime via protocol/, never here.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.enums.link import Link
from orchestrator.state_dataclass import SessionConfiguration

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # AI link
    CONFIGURE_AI_SESSION = "CONFIGURE_AI_SESSION"
    SEND_GREETING = "SEND_GREETING"
    APPEND_INPUT_AUDIO = "APPEND_INPUT_AUDIO"
    COMMIT_INPUT = "COMMIT_INPUT"
    CREATE_RESPONSE = "CREATE_RESPONSE"
    TRUNCATE_UTTERANCE = "TRUNCATE_UTTERANCE"

    # Telephony link
    SEND_MEDIA = "SEND_MEDIA"
    SEND_MARK = "SEND_MARK"
    CLEAR_PLAYBACK = "CLEAR_PLAYBACK"

    # Lifecycle
    CLOSE_LINK = "CLOSE_LINK"
    END_SESSION = "END_SESSION"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# AI Link Commands
# =============================================================================

@dataclass(frozen=True)
class ConfigureAISession(Command):
    """Session-configure handshake. Sent exactly once per session."""
    config: SessionConfiguration
    command_type: CommandType = CommandType.CONFIGURE_AI_SESSION


@dataclass(frozen=True)
class SendGreeting(Command):
    """Ask the AI to speak first with the given prompt."""
    prompt: str
    command_type: CommandType = CommandType.SEND_GREETING


@dataclass(frozen=True)
class AppendInputAudio(Command):
    """Forward caller audio into the AI input buffer."""
    payload: bytes
    command_type: CommandType = CommandType.APPEND_INPUT_AUDIO


@dataclass(frozen=True)
class CommitInput(Command):
    """Close the AI input buffer (MANUAL turn policy only)."""
    command_type: CommandType = CommandType.COMMIT_INPUT


@dataclass(frozen=True)
class CreateResponse(Command):
    """Request a response (MANUAL turn policy only)."""
    command_type: CommandType = CommandType.CREATE_RESPONSE


@dataclass(frozen=True)
class TruncateUtterance(Command):
    """
    Tell the AI to forget generated audio past what the caller heard.

    elapsed_ms is measured on the telephony call clock.
    """
    utterance_id: str
    elapsed_ms: int
    command_type: CommandType = CommandType.TRUNCATE_UTTERANCE


# =============================================================================
# Telephony Link Commands
# =============================================================================

@dataclass(frozen=True)
class SendMedia(Command):
    """Forward AI audio to the caller."""
    stream_sid: str
    payload: bytes
    command_type: CommandType = CommandType.SEND_MEDIA


@dataclass(frozen=True)
class SendMark(Command):
    """Request a playback marker after the audio sent so far."""
    stream_sid: str
    name: str
    command_type: CommandType = CommandType.SEND_MARK


@dataclass(frozen=True)
class ClearPlayback(Command):
    """Discard audio already queued for playback on the telephony side."""
    stream_sid: str
    command_type: CommandType = CommandType.CLEAR_PLAYBACK


# =============================================================================
# Lifecycle Commands
# =============================================================================

@dataclass(frozen=True)
class CloseLink(Command):
    """Close one transport. Closing an already-closed link is a no-op."""
    link: Link
    reason: str | None = None
    command_type: CommandType = CommandType.CLOSE_LINK


@dataclass(frozen=True)
class EndSession(Command):
    """Release the session from the registry."""
    reason: str | None = None
    command_type: CommandType = CommandType.END_SESSION


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
