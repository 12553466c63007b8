"""
Pure bridge reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (status, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from audio.codec import payload_duration_ms
from constants import TELEPHONY_MARK_NAME
from orchestrator.commands import (
    AppendInputAudio,
    ClearPlayback,
    CloseLink,
    Command,
    CommitInput,
    ConfigureAISession,
    CreateResponse,
    EndSession,
    LogEvent,
    SendGreeting,
    SendMark,
    SendMedia,
    TruncateUtterance,
)
from orchestrator.enums.link import Link
from orchestrator.enums.state import SessionStatus
from orchestrator.enums.turn_policy import TurnPolicy
from orchestrator.events import (
    AIAudioDelta,
    AIError,
    AILinkOpened,
    AINotice,
    AIResponseDone,
    AISpeechStarted,
    AISpeechStopped,
    Event,
    LinkClosed,
    TeardownComplete,
    TelephonyMark,
    TelephonyMedia,
    TelephonyStart,
    TelephonyStop,
)
from orchestrator.state_dataclass import BridgeState


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: BridgeState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
    *,
    level: str = "INFO",
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "level": level,
            "session_id": state.session_id,
            "status": state.status.value,
            "playback": state.playback_state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "call_clock_ms": state.clock.call_clock_ms,
            "ack_depth": len(state.ack_queue),
            "details": details or {},
        }
    )


def _state_changed(
    old: BridgeState,
    new: BridgeState,
    event: Event,
    source: str,
) -> LogEvent:
    return _log(
        new,
        event,
        "state_changed",
        {
            "from_state": old.status.value,
            "to_state": new.status.value,
            "source": source,
        },
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    """Keep side effects in emitted order and move logs behind them."""
    non_logs: list[Command] = []
    logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs)


def _ignore(
    state: BridgeState,
    event: Event,
    reason: str,
    *,
    level: str = "INFO",
    details: dict[str, Any] | None = None,
) -> tuple[BridgeState, tuple[Command, ...]]:
    return state, (
        _log(state, event, "ignore", {"reason": reason, **(details or {})}, level=level),
    )


def _maybe_activate(
    old: BridgeState,
    state: BridgeState,
    event: Event,
    source: str,
) -> tuple[BridgeState, tuple[Command, ...]]:
    """
    CONNECTING -> ACTIVE once the stream started and configure was sent.

    The greeting waits for ACTIVE so its audio has a stream to play on.
    """
    if (
        state.status is SessionStatus.CONNECTING
        and state.ai_configured
        and state.stream_started
    ):
        active = replace(state, status=SessionStatus.ACTIVE)
        cmds: tuple[Command, ...] = (_state_changed(old, active, event, source),)
        if active.session_config.greeting:
            cmds = (SendGreeting(prompt=active.session_config.greeting),) + cmds
        return active, cmds
    return state, ()


def _begin_teardown(
    state: BridgeState,
    event: Event,
    source: Link,
    reason: str,
) -> tuple[BridgeState, tuple[Command, ...]]:
    """
    Move to CLOSING and close both links, the surviving side first.

    Runtime reports TeardownComplete once the close commands have run.
    """
    closing = replace(
        state,
        status=SessionStatus.CLOSING,
        close_reason=reason,
        clock=state.clock.clear_playback(),
        ack_queue=state.ack_queue.clear(),
    )
    return closing, _logs_last((
        CloseLink(link=source.other, reason=reason),
        CloseLink(link=source, reason=reason),
        _state_changed(state, closing, event, "teardown"),
        _log(closing, event, "teardown_started", {"source": source.value, "reason": reason}),
    ))


# =============================================================================
# Telephony handlers
# =============================================================================

def _on_telephony_start(
    state: BridgeState, event: TelephonyStart
) -> tuple[BridgeState, tuple[Command, ...]]:
    cmds: list[Command] = []

    session_id = state.session_id
    if session_id is None:
        session_id = event.stream_sid
    elif event.stream_sid != session_id:
        cmds.append(
            _log(
                state,
                event,
                "session_id_immutable",
                {"kept": session_id, "rejected": event.stream_sid},
                level="WARNING",
            )
        )

    if state.clock.is_speaking or len(state.ack_queue) > 0:
        cmds.append(
            _log(
                state,
                event,
                "stale_playback_discarded",
                {
                    "utterance_id": (
                        state.clock.playback.active_utterance_id
                        if state.clock.playback is not None
                        else None
                    ),
                    "pending_marks": len(state.ack_queue),
                },
            )
        )

    started = replace(
        state,
        session_id=session_id,
        stream_started=True,
        clock=state.clock.reset(),
        ack_queue=state.ack_queue.clear(),
    )
    cmds.append(_log(started, event, "stream_started", {"stream_sid": event.stream_sid}))

    new_state, activation = _maybe_activate(state, started, event, "stream_started")
    return new_state, _logs_last(tuple(cmds) + activation)


def _on_telephony_media(
    state: BridgeState, event: TelephonyMedia
) -> tuple[BridgeState, tuple[Command, ...]]:
    observed = replace(state, clock=state.clock.observe_inbound_frame(event.timestamp_ms))

    if observed.status is not SessionStatus.ACTIVE:
        return _ignore(observed, event, "ai_not_configured", level="DEBUG")

    return observed, (
        AppendInputAudio(payload=event.payload),
        _log(
            observed,
            event,
            "forward_input_audio",
            {"bytes": len(event.payload)},
            level="DEBUG",
        ),
    )


def _on_telephony_mark(
    state: BridgeState, event: TelephonyMark
) -> tuple[BridgeState, tuple[Command, ...]]:
    oldest = state.ack_queue.oldest
    if oldest is None:
        return _ignore(state, event, "mark_without_pending", details={"name": event.name})

    cmds: list[Command] = []
    if event.name is not None and event.name != oldest:
        cmds.append(
            _log(
                state,
                event,
                "mark_out_of_order",
                {"expected": oldest, "received": event.name},
                level="WARNING",
            )
        )

    confirmed = replace(state, ack_queue=state.ack_queue.confirm_one())
    cmds.append(_log(confirmed, event, "mark_confirmed", {"name": oldest}, level="DEBUG"))
    return confirmed, tuple(cmds)


# =============================================================================
# AI handlers
# =============================================================================

def _on_ai_link_opened(
    state: BridgeState, event: AILinkOpened
) -> tuple[BridgeState, tuple[Command, ...]]:
    if state.ai_configured:
        return _ignore(state, event, "already_configured", level="WARNING")

    cmds: list[Command] = [ConfigureAISession(config=state.session_config)]

    configured = replace(state, ai_configured=True)
    cmds.append(
        _log(
            configured,
            event,
            "ai_session_configured",
            {
                "turn_policy": state.turn_policy.value,
                "voice": state.session_config.voice,
                "greeting": state.session_config.greeting is not None,
            },
        )
    )

    new_state, activation = _maybe_activate(state, configured, event, "ai_configured")
    return new_state, _logs_last(tuple(cmds) + activation)


def _on_speech_started(
    state: BridgeState, event: AISpeechStarted
) -> tuple[BridgeState, tuple[Command, ...]]:
    """
    Barge-in.

    Truncate, clear and the playback reset happen in this single step so
    no audio of the interrupted response can be forwarded after them.
    """
    playback = state.clock.playback
    if playback is None:
        # Pending marks without a playback record are left alone.
        return _ignore(
            state,
            event,
            "no_active_playback",
            details={"pending_marks": len(state.ack_queue)},
        )

    assert state.session_id is not None, "playback implies a started stream"

    elapsed = state.clock.elapsed_since_playback_start()
    cmds: list[Command] = []

    if playback.active_utterance_id is not None:
        cmds.append(
            TruncateUtterance(
                utterance_id=playback.active_utterance_id,
                elapsed_ms=elapsed,
            )
        )
    cmds.append(ClearPlayback(stream_sid=state.session_id))

    interrupted = replace(
        state,
        clock=state.clock.clear_playback(),
        ack_queue=state.ack_queue.clear(),
    )

    details: dict[str, Any] = {
        "utterance_id": playback.active_utterance_id,
        "elapsed_ms": elapsed,
        "cleared_marks": len(state.ack_queue),
        "truncated": playback.active_utterance_id is not None,
    }
    if state.show_timing_math:
        details["timing_math"] = (
            f"{state.clock.call_clock_ms} - "
            f"{playback.started_at_call_clock_ms} = {elapsed}ms"
        )

    cmds.append(_log(interrupted, event, "barge_in", details))
    return interrupted, tuple(cmds)


def _on_speech_stopped(
    state: BridgeState, event: AISpeechStopped
) -> tuple[BridgeState, tuple[Command, ...]]:
    if state.turn_policy is TurnPolicy.AUTO:
        return state, (
            _log(state, event, "speech_stopped_informational", level="DEBUG"),
        )

    return state, (
        CommitInput(),
        CreateResponse(),
        _log(state, event, "manual_turn_committed"),
    )


def _on_audio_delta(
    state: BridgeState, event: AIAudioDelta
) -> tuple[BridgeState, tuple[Command, ...]]:
    if state.session_id is None or not state.stream_started:
        return _ignore(state, event, "no_telephony_stream", level="WARNING")

    cmds: list[Command] = [SendMedia(stream_sid=state.session_id, payload=event.payload)]
    new_state = state

    if not state.clock.is_speaking:
        new_state = replace(
            new_state,
            clock=new_state.clock.mark_response_start(event.utterance_id),
        )
        cmds.append(
            _log(
                new_state,
                event,
                "response_playback_started",
                {
                    "utterance_id": event.utterance_id,
                    "started_at_call_clock_ms": new_state.clock.call_clock_ms,
                },
            )
        )

    mark_seq = new_state.mark_seq + 1
    mark_name = f"{TELEPHONY_MARK_NAME}:{mark_seq}"
    new_state = replace(
        new_state,
        mark_seq=mark_seq,
        ack_queue=new_state.ack_queue.enqueue(mark_name),
    )
    cmds.append(SendMark(stream_sid=state.session_id, name=mark_name))
    cmds.append(
        _log(
            new_state,
            event,
            "forward_output_audio",
            {
                "bytes": len(event.payload),
                "duration_ms": payload_duration_ms(event.payload),
                "mark": mark_name,
            },
            level="DEBUG",
        )
    )

    return new_state, _logs_last(tuple(cmds))


def _on_response_done(
    state: BridgeState, event: AIResponseDone
) -> tuple[BridgeState, tuple[Command, ...]]:
    finished = replace(
        state,
        clock=state.clock.clear_playback(),
        ack_queue=state.ack_queue.clear(),
    )
    return finished, (
        _log(
            finished,
            event,
            "response_done",
            {
                "response_id": event.response_id,
                "had_playback": state.clock.is_speaking,
                "cleared_marks": len(state.ack_queue),
            },
        ),
    )


def _on_ai_error(
    state: BridgeState, event: AIError
) -> tuple[BridgeState, tuple[Command, ...]]:
    if event.fatal:
        new_state, cmds = _begin_teardown(
            state, event, Link.AI, f"ai_error:{event.code or 'fatal'}"
        )
        return new_state, cmds + (
            _log(
                new_state,
                event,
                "ai_error_fatal",
                {"code": event.code, "detail": event.detail},
                level="ERROR",
            ),
        )

    return state, (
        _log(
            state,
            event,
            "ai_error_recoverable",
            {"code": event.code, "detail": event.detail},
            level="WARNING",
        ),
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: BridgeState, event: Event
) -> tuple[BridgeState, tuple[Command, ...]]:
    """
    Pure reducer for the bridge session state machine.

    Given the current bridge state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (status, event) pair is handled or explicitly ignored
    - Teardown is idempotent: CLOSING/CLOSED ignore every link event
    """
    # ------------------------------------------------------------------
    # Terminal gating
    # ------------------------------------------------------------------
    if state.status is SessionStatus.CLOSED:
        return _ignore(state, event, "session_closed", level="DEBUG")

    if isinstance(event, TeardownComplete):
        if state.status is not SessionStatus.CLOSING:
            return _ignore(state, event, "teardown_not_started", level="WARNING")
        closed = replace(state, status=SessionStatus.CLOSED)
        return closed, _logs_last((
            EndSession(reason=state.close_reason),
            _state_changed(state, closed, event, "teardown_complete"),
        ))

    if state.status is SessionStatus.CLOSING:
        return _ignore(state, event, "session_closing", level="DEBUG")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, LinkClosed):
        return _begin_teardown(
            state,
            event,
            event.link,
            event.reason or f"{event.link.value.lower()}_closed",
        )

    if isinstance(event, TelephonyStop):
        return _begin_teardown(state, event, Link.TELEPHONY, "telephony_stop")

    # ------------------------------------------------------------------
    # Telephony link
    # ------------------------------------------------------------------
    if isinstance(event, TelephonyStart):
        return _on_telephony_start(state, event)

    if isinstance(event, TelephonyMedia):
        return _on_telephony_media(state, event)

    if isinstance(event, TelephonyMark):
        return _on_telephony_mark(state, event)

    # ------------------------------------------------------------------
    # AI link
    # ------------------------------------------------------------------
    if isinstance(event, AILinkOpened):
        return _on_ai_link_opened(state, event)

    if isinstance(event, AIError):
        return _on_ai_error(state, event)

    if isinstance(event, AINotice):
        return state, (
            _log(state, event, "ai_notice", {"kind": event.kind}, level="DEBUG"),
        )

    if isinstance(event, AIResponseDone):
        return _on_response_done(state, event)

    if state.status is not SessionStatus.ACTIVE:
        return _ignore(state, event, "session_not_active", level="DEBUG")

    if isinstance(event, AISpeechStarted):
        return _on_speech_started(state, event)

    if isinstance(event, AISpeechStopped):
        return _on_speech_stopped(state, event)

    if isinstance(event, AIAudioDelta):
        return _on_audio_delta(state, event)

    return _ignore(state, event, "unhandled_event", level="WARNING")
