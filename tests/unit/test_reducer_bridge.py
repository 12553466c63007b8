# pylint: disable=missing-module-docstring,missing-function-docstring

from dataclasses import replace

from orchestrator.reducer import reduce
from orchestrator.state_dataclass import BridgeState, SessionConfiguration
from orchestrator.playback_clock import Playback, PlaybackClock
from orchestrator.ack_queue import AckQueue
from orchestrator.enums.link import Link
from orchestrator.enums.state import PlaybackState, SessionStatus
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
    EventType,
    LinkClosed,
    TeardownComplete,
    TelephonyMark,
    TelephonyMedia,
    TelephonyStart,
    TelephonyStop,
)

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


# ---------------------------------------------------------------------
# Event helpers (mirror decoder construction)
# ---------------------------------------------------------------------

def start(stream_sid: str = "MZ1") -> TelephonyStart:
    return TelephonyStart(event_type=EventType.TELEPHONY_START, ts_ms=0, stream_sid=stream_sid)


def media(timestamp_ms: int, payload: bytes = b"\xff" * 160) -> TelephonyMedia:
    return TelephonyMedia(
        event_type=EventType.TELEPHONY_MEDIA,
        ts_ms=0,
        timestamp_ms=timestamp_ms,
        payload=payload,
    )


def mark(name: str | None = None) -> TelephonyMark:
    return TelephonyMark(event_type=EventType.TELEPHONY_MARK, ts_ms=0, name=name)


def stop() -> TelephonyStop:
    return TelephonyStop(event_type=EventType.TELEPHONY_STOP, ts_ms=0)


def ai_opened() -> AILinkOpened:
    return AILinkOpened(event_type=EventType.AI_LINK_OPENED, ts_ms=0)


def delta(utterance_id: str | None = "U1", payload: bytes = b"\x7f" * 160) -> AIAudioDelta:
    return AIAudioDelta(
        event_type=EventType.AI_AUDIO_DELTA,
        ts_ms=0,
        utterance_id=utterance_id,
        payload=payload,
    )


def speech_started() -> AISpeechStarted:
    return AISpeechStarted(event_type=EventType.AI_SPEECH_STARTED, ts_ms=0)


def speech_stopped() -> AISpeechStopped:
    return AISpeechStopped(event_type=EventType.AI_SPEECH_STOPPED, ts_ms=0)


def response_done() -> AIResponseDone:
    return AIResponseDone(event_type=EventType.AI_RESPONSE_DONE, ts_ms=0, response_id="resp_1")


def ai_error(fatal: bool, code: str = "server_error") -> AIError:
    return AIError(event_type=EventType.AI_ERROR, ts_ms=0, detail="boom", code=code, fatal=fatal)


def link_closed(link: Link) -> LinkClosed:
    return LinkClosed(event_type=EventType.LINK_CLOSED, ts_ms=0, link=link, reason="gone")


def teardown_complete() -> TeardownComplete:
    return TeardownComplete(event_type=EventType.TEARDOWN_COMPLETE, ts_ms=0)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def new_state(**config: object) -> BridgeState:
    return BridgeState(session_config=SessionConfiguration(instructions="test", **config))  # type: ignore[arg-type]


def run(state: BridgeState, *events: Event) -> tuple[BridgeState, tuple[Command, ...]]:
    """Feed events in order; return the final state and the last step's commands."""
    commands: tuple[Command, ...] = ()
    for event in events:
        state, commands = reduce(state, event)
    return state, commands


def active_state(**config: object) -> BridgeState:
    state, _ = run(new_state(**config), start(), ai_opened())
    assert state.status is SessionStatus.ACTIVE
    return state


def effects(commands: tuple[Command, ...]) -> list[Command]:
    return [c for c in commands if not isinstance(c, LogEvent)]


def decisions(commands: tuple[Command, ...]) -> list[str]:
    return [c.event["decision"] for c in commands if isinstance(c, LogEvent)]


def ignore_reasons(commands: tuple[Command, ...]) -> list[str]:
    return [
        c.event["details"]["reason"]
        for c in commands
        if isinstance(c, LogEvent) and c.event["decision"] == "ignore"
    ]


# ---------------------------------------------------------------------
# 1. Reducer shape & purity
# ---------------------------------------------------------------------

def test_reducer_returns_state_and_tuple():
    state, commands = reduce(new_state(), start())
    assert isinstance(state, BridgeState)
    assert isinstance(commands, tuple)


def test_reducer_does_not_mutate_input_state():
    state = new_state()
    before = replace(state)
    reduce(state, start())
    assert state == before


def test_reducer_is_deterministic():
    state = active_state()
    assert reduce(state, delta()) == reduce(state, delta())


# ---------------------------------------------------------------------
# 2. Activation
# ---------------------------------------------------------------------

def test_configure_sent_on_ai_open_and_active_after_start():
    state, commands = reduce(new_state(), ai_opened())
    assert state.status is SessionStatus.CONNECTING
    assert state.ai_configured
    assert [type(c) for c in effects(commands)] == [ConfigureAISession]

    state, commands = reduce(state, start())
    assert state.status is SessionStatus.ACTIVE
    assert "state_changed" in decisions(commands)


def test_start_before_ai_open_activates_on_open():
    state, _ = reduce(new_state(), start("MZ9"))
    assert state.status is SessionStatus.CONNECTING
    assert state.session_id == "MZ9"

    state, _ = reduce(state, ai_opened())
    assert state.status is SessionStatus.ACTIVE


def test_configure_is_sent_exactly_once():
    state = active_state()
    state, commands = reduce(state, ai_opened())
    assert effects(commands) == []
    assert ignore_reasons(commands) == ["already_configured"]


def test_configure_carries_session_configuration():
    state = new_state(voice="verse", turn_policy=TurnPolicy.MANUAL)
    _, commands = reduce(state, ai_opened())
    (configure,) = effects(commands)
    assert isinstance(configure, ConfigureAISession)
    assert configure.config.voice == "verse"
    assert configure.config.turn_policy is TurnPolicy.MANUAL


def test_greeting_sent_once_on_activation():
    state, commands = run(new_state(greeting="Say hi"), ai_opened())
    assert not any(isinstance(c, SendGreeting) for c in commands)

    state, commands = reduce(state, start())
    assert effects(commands) == [SendGreeting(prompt="Say hi")]

    _, commands = reduce(state, start())
    assert not any(isinstance(c, SendGreeting) for c in commands)


def test_no_greeting_without_prompt():
    _, commands = run(new_state(), start(), ai_opened())
    assert not any(isinstance(c, SendGreeting) for c in commands)


# ---------------------------------------------------------------------
# 3. Telephony start & media
# ---------------------------------------------------------------------

def test_clock_equals_last_frame_timestamp():
    state = active_state()
    state, _ = run(state, media(20), media(900), media(40), media(60))
    assert state.clock.call_clock_ms == 60


def test_media_forwarded_when_active():
    state = active_state()
    state, commands = reduce(state, media(20, b"\x01\x02"))
    assert effects(commands) == [AppendInputAudio(payload=b"\x01\x02")]


def test_media_before_configure_updates_clock_but_is_not_forwarded():
    state, _ = reduce(new_state(), start())
    state, commands = reduce(state, media(120))
    assert state.clock.call_clock_ms == 120
    assert effects(commands) == []
    assert ignore_reasons(commands) == ["ai_not_configured"]


def test_start_resets_clock_playback_and_acks_mid_response():
    state = active_state()
    state, _ = run(state, media(1000), delta(), delta())
    assert state.clock.is_speaking
    assert len(state.ack_queue) == 2

    state, commands = reduce(state, start())
    assert state.clock.call_clock_ms == 0
    assert state.clock.playback is None
    assert len(state.ack_queue) == 0
    assert "stale_playback_discarded" in decisions(commands)


def test_session_id_is_immutable_after_first_start():
    state = active_state()
    state, commands = reduce(state, start("MZ_OTHER"))
    assert state.session_id == "MZ1"
    assert "session_id_immutable" in decisions(commands)


# ---------------------------------------------------------------------
# 4. AI audio & marks
# ---------------------------------------------------------------------

def test_first_delta_starts_playback_and_enqueues_mark():
    state = active_state()
    state, _ = reduce(state, media(500))
    state, commands = reduce(state, delta("U1", b"\x01"))

    assert state.clock.playback == Playback(started_at_call_clock_ms=500, active_utterance_id="U1")
    assert state.ack_queue.tokens == ("responsePart:1",)
    assert effects(commands) == [
        SendMedia(stream_sid="MZ1", payload=b"\x01"),
        SendMark(stream_sid="MZ1", name="responsePart:1"),
    ]
    assert "response_playback_started" in decisions(commands)


def test_later_deltas_keep_playback_start():
    state = active_state()
    state, _ = run(state, media(500), delta("U1"), media(700), delta("U1"))
    assert state.clock.playback is not None
    assert state.clock.playback.started_at_call_clock_ms == 500
    assert state.ack_queue.tokens == ("responsePart:1", "responsePart:2")


def test_mark_sequence_is_monotonic_across_responses():
    state = active_state()
    state, _ = run(state, delta(), response_done(), delta("U2"))
    assert state.ack_queue.tokens == ("responsePart:2",)


def test_mark_confirms_oldest():
    state = active_state()
    state, _ = run(state, delta(), delta())
    state, commands = reduce(state, mark("responsePart:1"))
    assert state.ack_queue.tokens == ("responsePart:2",)
    assert effects(commands) == []


def test_mark_out_of_order_still_pops_oldest():
    state = active_state()
    state, _ = run(state, delta(), delta())
    state, commands = reduce(state, mark("responsePart:2"))
    assert state.ack_queue.tokens == ("responsePart:2",)
    assert "mark_out_of_order" in decisions(commands)


def test_n_plus_one_marks_is_a_noop():
    state = active_state()
    state, _ = run(state, delta(), delta(), delta())
    state, _ = run(state, mark(), mark(), mark())
    assert len(state.ack_queue) == 0

    after, commands = reduce(state, mark())
    assert after == state
    assert ignore_reasons(commands) == ["mark_without_pending"]


# ---------------------------------------------------------------------
# 5. Barge-in
# ---------------------------------------------------------------------

def test_barge_in_elapsed_is_clock_difference():
    state = replace(
        active_state(),
        clock=PlaybackClock(
            call_clock_ms=1350,
            playback=Playback(started_at_call_clock_ms=1000, active_utterance_id="U7"),
        ),
    )
    _, commands = reduce(state, speech_started())
    truncates = [c for c in commands if isinstance(c, TruncateUtterance)]
    assert truncates == [TruncateUtterance(utterance_id="U7", elapsed_ms=350)]


def test_barge_in_end_to_end_scenario():
    state = new_state()
    state, _ = run(state, start(), media(0), ai_opened())
    assert state.status is SessionStatus.ACTIVE

    state, _ = reduce(state, delta("U1"))
    assert state.clock.playback == Playback(started_at_call_clock_ms=0, active_utterance_id="U1")
    assert len(state.ack_queue) == 1

    state, _ = reduce(state, media(400))
    state, commands = reduce(state, speech_started())

    assert effects(commands) == [
        TruncateUtterance(utterance_id="U1", elapsed_ms=400),
        ClearPlayback(stream_sid="MZ1"),
    ]
    assert state.clock.playback is None
    assert len(state.ack_queue) == 0
    assert state.playback_state is PlaybackState.IDLE
    assert "barge_in" in decisions(commands)


def test_barge_in_while_idle_is_noop():
    state = active_state()
    after, commands = reduce(state, speech_started())
    assert after == state
    assert effects(commands) == []
    assert ignore_reasons(commands) == ["no_active_playback"]


def test_barge_in_with_pending_marks_but_no_playback_is_noop():
    state = replace(active_state(), ack_queue=AckQueue(tokens=("responsePart:4",)))
    after, commands = reduce(state, speech_started())
    assert effects(commands) == []
    assert after.ack_queue.tokens == ("responsePart:4",)


def test_barge_in_without_utterance_id_clears_but_skips_truncate():
    state = active_state()
    state, _ = run(state, delta(None), media(200))
    _, commands = reduce(state, speech_started())
    assert effects(commands) == [ClearPlayback(stream_sid="MZ1")]


def test_barge_in_timing_math_is_logged_when_enabled():
    state = replace(active_state(), show_timing_math=True)
    state, _ = run(state, media(100), delta(), media(250))
    _, commands = reduce(state, speech_started())
    (barge_in,) = [c for c in commands if isinstance(c, LogEvent) and c.event["decision"] == "barge_in"]
    assert barge_in.event["details"]["timing_math"] == "250 - 100 = 150ms"


def test_audio_after_barge_in_starts_new_playback():
    state = active_state()
    state, _ = run(state, delta("U1"), media(300), speech_started(), media(320), delta("U2"))
    assert state.clock.playback == Playback(started_at_call_clock_ms=320, active_utterance_id="U2")


# ---------------------------------------------------------------------
# 6. Response done & turn policy
# ---------------------------------------------------------------------

def test_response_done_clears_playback_without_truncate_or_clear():
    state = active_state()
    state, _ = run(state, delta(), delta())
    state, commands = reduce(state, response_done())
    assert state.clock.playback is None
    assert len(state.ack_queue) == 0
    assert effects(commands) == []


def test_manual_speech_stopped_commits_then_requests_response():
    state = active_state(turn_policy=TurnPolicy.MANUAL)
    _, commands = reduce(state, speech_stopped())
    assert effects(commands) == [CommitInput(), CreateResponse()]


def test_auto_speech_stopped_sends_nothing():
    state = active_state(turn_policy=TurnPolicy.AUTO)
    _, commands = reduce(state, speech_stopped())
    assert effects(commands) == []


def test_speech_events_before_active_are_ignored():
    state, _ = reduce(new_state(), ai_opened())
    _, commands = reduce(state, speech_started())
    assert ignore_reasons(commands) == ["session_not_active"]


# ---------------------------------------------------------------------
# 7. Errors & teardown
# ---------------------------------------------------------------------

def test_recoverable_ai_error_is_logged_only():
    state = active_state()
    after, commands = reduce(state, ai_error(fatal=False, code="invalid_request_error"))
    assert after == state
    assert effects(commands) == []
    assert decisions(commands) == ["ai_error_recoverable"]


def test_fatal_ai_error_tears_down_both_links():
    state = active_state()
    state, commands = reduce(state, ai_error(fatal=True))
    assert state.status is SessionStatus.CLOSING
    assert state.close_reason == "ai_error:server_error"
    assert effects(commands) == [
        CloseLink(link=Link.TELEPHONY, reason="ai_error:server_error"),
        CloseLink(link=Link.AI, reason="ai_error:server_error"),
    ]


def test_link_closed_closes_other_side_first():
    state = active_state()
    state, commands = reduce(state, link_closed(Link.TELEPHONY))
    assert state.status is SessionStatus.CLOSING
    assert [c.link for c in effects(commands) if isinstance(c, CloseLink)] == [
        Link.AI,
        Link.TELEPHONY,
    ]


def test_telephony_stop_tears_down():
    state, commands = reduce(active_state(), stop())
    assert state.status is SessionStatus.CLOSING
    assert state.close_reason == "telephony_stop"
    assert len(effects(commands)) == 2


def test_teardown_clears_playback():
    state = active_state()
    state, _ = run(state, delta(), link_closed(Link.AI))
    assert state.clock.playback is None
    assert len(state.ack_queue) == 0


def test_teardown_complete_closes_session():
    state, _ = run(active_state(), stop())
    state, commands = reduce(state, teardown_complete())
    assert state.status is SessionStatus.CLOSED
    assert effects(commands) == [EndSession(reason="telephony_stop")]


def test_repeated_teardown_is_a_noop():
    state, _ = run(active_state(), stop())
    again, commands = reduce(state, link_closed(Link.AI))
    assert again == state
    assert effects(commands) == []

    closed, _ = reduce(state, teardown_complete())
    for event in (stop(), link_closed(Link.TELEPHONY), teardown_complete(), delta(), media(5)):
        after, commands = reduce(closed, event)
        assert after == closed
        assert effects(commands) == []


def test_teardown_complete_without_teardown_is_ignored():
    state = active_state()
    after, commands = reduce(state, teardown_complete())
    assert after == state
    assert ignore_reasons(commands) == ["teardown_not_started"]


def test_link_closed_while_connecting_tears_down():
    state, commands = reduce(new_state(), link_closed(Link.AI))
    assert state.status is SessionStatus.CLOSING
    assert len(effects(commands)) == 2


def test_ai_notice_is_logged_only():
    state = active_state()
    notice = AINotice(event_type=EventType.AI_NOTICE, ts_ms=0, kind="rate_limits.updated")
    after, commands = reduce(state, notice)
    assert after == state
    assert decisions(commands) == ["ai_notice"]
