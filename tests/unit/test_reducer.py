# pylint: disable=missing-module-docstring,missing-function-docstring
from dataclasses import replace

from adapters.realtime.prompts import say_exactly
from orchestrator.commands import (
    CancelResponse,
    CancelTimer,
    ConfigureSession,
    CreateResponse,
    EndSession,
    ExecuteTool,
    FlushOutbound,
    LogEvent,
    NotifyObserver,
    ObserverKind,
    ResetSpeech,
    SendSystemNote,
    SendToolResult,
    StartTimer,
)
from orchestrator.enums.state import State
from orchestrator.enums.tool import ToolName, ToolOrigin, ToolStatus
from orchestrator.events import (
    ConnectRequested,
    DisconnectRequested,
    EventType,
    ResponseCancelled,
    ResponseStarted,
    ToolArgumentsDelta,
    ToolArgumentsDone,
    ToolCallAnnounced,
    ToolFallbackTimeout,
    ToolRepromptTimeout,
    ToolResultReady,
    TransportOpened,
    UnknownGatewayEvent,
    UserTranscript,
    UserTranscriptDelta,
    UtteranceDebounceElapsed,
)
from orchestrator.reducer import (
    ALL_TIMERS,
    TIMER_TOOL_FALLBACK,
    TIMER_TOOL_REPROMPT,
    reduce,
)
from orchestrator.state_dataclass import OrchestratorState, TurnFlags


def conversing(**overrides) -> OrchestratorState:
    base = OrchestratorState(
        session_id="sess_test",
        state=State.CONVERSING,
        timezone="America/New_York",
        flags=TurnFlags(tool_hint_sent=True),
    )
    return replace(base, **overrides)


def non_logs(cmds):
    return [c for c in cmds if not isinstance(c, LogEvent)]


def decisions(cmds):
    return [c.event["decision"] for c in cmds if isinstance(c, LogEvent)]


def said(text: str):
    return UserTranscript(event_type=EventType.USER_TRANSCRIPT, ts_ms=0, text=text)


def announce(cid: str, name: str = "") -> ToolCallAnnounced:
    return ToolCallAnnounced(event_type=EventType.TOOL_CALL_ANNOUNCED, ts_ms=0, correlation_id=cid, name=name)


def args_done(cid: str, arguments: str, name: str = "") -> ToolArgumentsDone:
    return ToolArgumentsDone(
        event_type=EventType.TOOL_ARGUMENTS_DONE, ts_ms=0, correlation_id=cid, name=name, arguments=arguments,
    )


def result_for(cid: str, **fields) -> ToolResultReady:
    fields.setdefault("tool", ToolName.CHECK_AVAILABILITY)
    fields.setdefault("origin", ToolOrigin.MODEL)
    fields.setdefault("ok", True)
    return ToolResultReady(event_type=EventType.TOOL_RESULT_READY, ts_ms=0, correlation_id=cid, **fields)


# ---------------------------------------------------------------------
# session lifecycle
# ---------------------------------------------------------------------

def test_connect_configures_session_and_speaks_greeting():
    state = OrchestratorState(greeting="Hi, this is Ava.")

    new_state, cmds = reduce(
        state, ConnectRequested(event_type=EventType.CONNECT_REQUESTED, ts_ms=1, session_id="sess_1")
    )

    assert new_state.state is State.GREETING
    assert new_state.flags.greeting_in_progress
    assert not new_state.flags.waiting_for_user
    assert isinstance(cmds[0], ConfigureSession)
    assert cmds[1] == CreateResponse(instructions='Say exactly: "Hi, this is Ava.".')
    assert isinstance(cmds[-1], LogEvent)


def test_connect_without_greeting_can_wait_for_caller():
    state = OrchestratorState(wait_for_caller=True)

    new_state, cmds = reduce(
        state, ConnectRequested(event_type=EventType.CONNECT_REQUESTED, ts_ms=1, session_id="sess_1")
    )

    assert new_state.state is State.CONVERSING
    assert new_state.flags.waiting_for_user
    assert not any(isinstance(c, CreateResponse) for c in cmds)

    # The model may not start talking before the caller does.
    _, cmds = reduce(new_state, ResponseStarted(event_type=EventType.RESPONSE_STARTED, ts_ms=2))
    assert isinstance(cmds[0], CancelResponse)

    opened, _ = reduce(new_state, said("hello there"))
    assert not opened.flags.waiting_for_user


def test_transport_opened_flushes_outbound_buffer():
    state = conversing()

    new_state, cmds = reduce(state, TransportOpened(event_type=EventType.TRANSPORT_OPENED, ts_ms=0))

    assert new_state == state
    assert non_logs(cmds) == [FlushOutbound()]


def test_events_before_connect_are_ignored():
    state = OrchestratorState()

    new_state, cmds = reduce(state, said("3pm please"))

    assert new_state == state
    assert decisions(cmds) == ["ignore"]


def test_disconnect_cancels_every_timer_and_ends_session():
    state = conversing(state=State.AWAITING_TOOL)
    state, _ = reduce(state, announce("call_1", "checkAvailability"))

    new_state, cmds = reduce(
        state, DisconnectRequested(event_type=EventType.DISCONNECT_REQUESTED, ts_ms=5, reason="hangup")
    )

    assert new_state.state is State.DISCONNECTED
    assert new_state.active_tool is None
    assert new_state.requirement is None
    cancelled = {c.timer_id for c in cmds if isinstance(c, CancelTimer)}
    assert cancelled == set(ALL_TIMERS)
    assert EndSession(reason="hangup") in cmds
    assert not any(isinstance(c, (StartTimer, ExecuteTool, CreateResponse)) for c in cmds)


def test_disconnected_session_ignores_everything():
    state = conversing(state=State.DISCONNECTED)

    for event in (
        said("Tuesday at 3pm"),
        announce("call_1", "checkAvailability"),
        ToolRepromptTimeout(event_type=EventType.TOOL_REPROMPT_TIMEOUT, ts_ms=0, token=1),
        result_for("call_1"),
    ):
        new_state, cmds = reduce(state, event)
        assert new_state == state
        assert len(cmds) == 1
        assert cmds[0].event["decision"] == "ignore"


# ---------------------------------------------------------------------
# caller speech
# ---------------------------------------------------------------------

def test_barge_in_cancels_before_anything_else():
    state = conversing(flags=TurnFlags(agent_speaking=True, tool_hint_sent=True))

    new_state, cmds = reduce(state, said("wait, hold on"))

    assert isinstance(cmds[0], CancelResponse)
    assert isinstance(cmds[1], ResetSpeech)
    assert not new_state.flags.agent_speaking
    assert "barge_in" in decisions(cmds)


def test_partial_caller_speech_barges_in_before_transcription_completes():
    def partial(delta):
        return UserTranscriptDelta(event_type=EventType.USER_TRANSCRIPT_DELTA, ts_ms=0, delta=delta)

    state = conversing(flags=TurnFlags(agent_speaking=True, tool_hint_sent=True))

    state, cmds = reduce(state, partial("w"))
    assert cmds == ()
    assert state.flags.agent_speaking

    state, cmds = reduce(state, partial("ait"))
    assert non_logs(cmds) == [CancelResponse(), ResetSpeech()]
    assert decisions(cmds) == ["barge_in"]
    assert not state.flags.agent_speaking

    _, cmds = reduce(state, partial(" a second"))
    assert cmds == ()

    state, _ = reduce(state, said("wait a second"))
    assert state.caller_partial == ""
    assert state.last_transcript == "wait a second"


def test_noise_does_not_interrupt_the_agent():
    state = conversing(flags=TurnFlags(agent_speaking=True, tool_hint_sent=True))

    new_state, cmds = reduce(state, said("m"))

    assert new_state.flags.agent_speaking
    assert not any(isinstance(c, CancelResponse) for c in cmds)


def test_response_start_keeps_queued_speech_and_cancel_resets_it():
    speaking, cmds = reduce(conversing(), ResponseStarted(event_type=EventType.RESPONSE_STARTED, ts_ms=0))

    assert speaking.flags.agent_speaking
    assert non_logs(cmds) == []

    _, cmds = reduce(speaking, ResponseCancelled(event_type=EventType.RESPONSE_CANCELLED, ts_ms=0))
    assert non_logs(cmds) == [ResetSpeech()]


def test_first_transcript_sends_tool_hint_once():
    state = conversing(flags=TurnFlags())

    new_state, cmds = reduce(state, said("hello"))
    assert new_state.flags.tool_hint_sent
    assert sum(isinstance(c, ConfigureSession) for c in cmds) == 1

    _, cmds = reduce(new_state, said("how are you"))
    assert not any(isinstance(c, ConfigureSession) for c in cmds)


def test_end_of_utterance_response_uses_latest_token():
    state, _ = reduce(conversing(), said("hello"))
    state, _ = reduce(state, said("how are you"))

    stale = UtteranceDebounceElapsed(event_type=EventType.UTTERANCE_DEBOUNCE_ELAPSED, ts_ms=0, token=1)
    fresh = UtteranceDebounceElapsed(event_type=EventType.UTTERANCE_DEBOUNCE_ELAPSED, ts_ms=0, token=2)

    assert non_logs(reduce(state, stale)[1]) == []
    assert non_logs(reduce(state, fresh)[1]) == [CreateResponse()]


# ---------------------------------------------------------------------
# forced tool calls
# ---------------------------------------------------------------------

def test_time_utterance_forces_point_check_with_both_timers():
    new_state, cmds = reduce(conversing(), said("Can we do Tuesday at 3pm?"))

    assert new_state.state is State.AWAITING_TOOL
    assert new_state.requirement is not None
    assert new_state.requirement.tool is ToolName.CHECK_AVAILABILITY

    required = [c for c in cmds if isinstance(c, CreateResponse) and c.tool_choice == "required"]
    assert len(required) == 1
    assert "checkAvailability" in required[0].instructions

    timers = {c.timer_id: c for c in cmds if isinstance(c, StartTimer)}
    token = new_state.requirement.requirement_id
    assert timers[TIMER_TOOL_REPROMPT].token == token
    assert timers[TIMER_TOOL_FALLBACK].token == token


def test_day_utterance_forces_slot_listing_without_fallback():
    new_state, cmds = reduce(conversing(), said("What do you have tomorrow?"))

    assert new_state.requirement.tool is ToolName.GET_AVAILABLE_SLOTS
    assert not any(isinstance(c, StartTimer) and c.timer_id == TIMER_TOOL_FALLBACK for c in cmds)
    assert CancelTimer(timer_id=TIMER_TOOL_FALLBACK) in cmds


def test_reprompt_fires_exactly_once():
    state, _ = reduce(conversing(), said("Tuesday at 3pm"))
    token = state.requirement.requirement_id
    timeout = ToolRepromptTimeout(event_type=EventType.TOOL_REPROMPT_TIMEOUT, ts_ms=0, token=token)

    state, cmds = reduce(state, timeout)
    assert len([c for c in cmds if isinstance(c, CreateResponse)]) == 1

    _, cmds = reduce(state, timeout)
    assert non_logs(cmds) == []
    assert cmds[0].event["details"]["reason"] == "reprompt_exhausted"


def test_fallback_executes_from_transcript_exactly_once():
    state, _ = reduce(conversing(), said("Tuesday at 3pm"))
    token = state.requirement.requirement_id
    timeout = ToolFallbackTimeout(event_type=EventType.TOOL_FALLBACK_TIMEOUT, ts_ms=0, token=token)

    state, cmds = reduce(state, timeout)

    executes = [c for c in cmds if isinstance(c, ExecuteTool)]
    assert len(executes) == 1
    assert executes[0].origin is ToolOrigin.FALLBACK
    assert executes[0].args == {"hour": 15, "minute": 0}
    assert executes[0].transcript == "Tuesday at 3pm"
    assert CancelTimer(timer_id=TIMER_TOOL_REPROMPT) in cmds
    assert state.active_tool.origin is ToolOrigin.FALLBACK

    _, cmds = reduce(state, timeout)
    assert non_logs(cmds) == []


def test_fallback_without_a_time_returns_to_conversation():
    state = conversing()
    state, _ = reduce(state, said("Tuesday at 3pm"))
    state = replace(state, requirement=replace(state.requirement, transcript="sometime tuesday"))

    new_state, cmds = reduce(
        state,
        ToolFallbackTimeout(
            event_type=EventType.TOOL_FALLBACK_TIMEOUT, ts_ms=0, token=state.requirement.requirement_id
        ),
    )

    assert new_state.state is State.CONVERSING
    assert new_state.requirement is None
    assert not any(isinstance(c, ExecuteTool) for c in cmds)


def test_completed_arguments_defuse_requirement_and_stale_timers():
    state, _ = reduce(conversing(), said("Tuesday at 3pm"))
    token = state.requirement.requirement_id

    state, cmds = reduce(state, announce("call_1", "checkAvailability"))
    assert state.requirement is not None
    assert not any(isinstance(c, CancelTimer) for c in cmds)

    state, cmds = reduce(state, args_done("call_1", '{"start": "2025-01-15T15:00", "end": "2025-01-15T16:00"}'))

    assert state.requirement is None
    assert CancelTimer(timer_id=TIMER_TOOL_REPROMPT) in cmds
    assert CancelTimer(timer_id=TIMER_TOOL_FALLBACK) in cmds

    for late in (
        ToolRepromptTimeout(event_type=EventType.TOOL_REPROMPT_TIMEOUT, ts_ms=0, token=token),
        ToolFallbackTimeout(event_type=EventType.TOOL_FALLBACK_TIMEOUT, ts_ms=0, token=token),
    ):
        _, cmds = reduce(state, late)
        assert non_logs(cmds) == []


def test_announced_call_without_arguments_is_abandoned_by_timers():
    state, _ = reduce(conversing(), said("is 3pm free"))
    token = state.requirement.requirement_id
    state, _ = reduce(state, announce("call_1", "checkAvailability"))

    state, cmds = reduce(
        state, ToolRepromptTimeout(event_type=EventType.TOOL_REPROMPT_TIMEOUT, ts_ms=0, token=token)
    )

    assert SendToolResult(
        correlation_id="call_1", result={"error": "Tool call timed out before its arguments arrived"}
    ) in cmds
    assert [c.tool_choice for c in cmds if isinstance(c, CreateResponse)] == ["required"]
    assert state.active_tool is None
    assert state.state is State.AWAITING_TOOL
    assert "tool_failed" in decisions(cmds)

    # The model announces again and stalls a second time.
    state, _ = reduce(state, announce("call_2", "checkAvailability"))
    state, cmds = reduce(
        state, ToolFallbackTimeout(event_type=EventType.TOOL_FALLBACK_TIMEOUT, ts_ms=0, token=token)
    )

    assert [c.correlation_id for c in cmds if isinstance(c, SendToolResult)] == ["call_2"]
    executes = [c for c in cmds if isinstance(c, ExecuteTool)]
    assert len(executes) == 1
    assert executes[0].origin is ToolOrigin.FALLBACK
    assert executes[0].args == {"hour": 15, "minute": 0}
    assert state.active_tool.origin is ToolOrigin.FALLBACK

    state, _ = reduce(state, result_for(executes[0].correlation_id, origin=ToolOrigin.FALLBACK))
    assert state.state is State.CONVERSING
    assert state.active_tool is None


def test_stalled_slot_listing_gives_up_after_one_reprompt():
    state, _ = reduce(conversing(), said("What do you have tomorrow?"))
    token = state.requirement.requirement_id
    state, _ = reduce(state, announce("call_1", "getAvailableSlots"))
    timeout = ToolRepromptTimeout(event_type=EventType.TOOL_REPROMPT_TIMEOUT, ts_ms=0, token=token)

    state, cmds = reduce(state, timeout)
    assert StartTimer(
        timer_id=TIMER_TOOL_REPROMPT,
        duration_ms=2000,
        timeout_event_type=EventType.TOOL_REPROMPT_TIMEOUT,
        token=token,
    ) in cmds

    state, _ = reduce(state, announce("call_2", "getAvailableSlots"))
    state, cmds = reduce(state, timeout)

    assert [c.correlation_id for c in cmds if isinstance(c, SendToolResult)] == ["call_2"]
    assert not any(isinstance(c, CreateResponse) for c in cmds)
    assert "requirement_abandoned" in decisions(cmds)
    assert state.requirement is None
    assert state.active_tool is None
    assert state.state is State.CONVERSING

    # Normal turn-taking resumes.
    state, _ = reduce(state, said("hello?"))
    debounce = UtteranceDebounceElapsed(
        event_type=EventType.UTTERANCE_DEBOUNCE_ELAPSED, ts_ms=0, token=state.utterance_seq
    )
    assert non_logs(reduce(state, debounce)[1]) == [CreateResponse()]


def test_repeated_arguments_done_executes_once():
    body = '{"start": "2025-01-15T14:00", "end": "2025-01-15T15:00", "customer": {"name": "Jane"}}'
    state, _ = reduce(conversing(organization_id="org_1"), announce("call_1", "bookAppointment"))

    state, cmds = reduce(state, args_done("call_1", body))
    assert len([c for c in cmds if isinstance(c, ExecuteTool)]) == 1

    new_state, cmds = reduce(state, args_done("call_1", body))

    assert non_logs(cmds) == []
    assert cmds[0].event["details"]["reason"] == "arguments_already_complete"
    assert new_state.active_tool.status is ToolStatus.EXECUTING


def test_requirement_skipped_while_tool_in_flight():
    state, _ = reduce(conversing(), announce("call_1", "checkAvailability"))

    new_state, cmds = reduce(state, said("or 4pm?"))

    assert new_state.requirement is None
    assert "requirement_skipped" in decisions(cmds)


# ---------------------------------------------------------------------
# tool calls
# ---------------------------------------------------------------------

def test_streamed_arguments_execute_once_complete():
    state, _ = reduce(conversing(calendar_ids=("work",)), announce("call_1", "checkAvailability"))
    state, _ = reduce(
        state,
        ToolArgumentsDelta(
            event_type=EventType.TOOL_ARGUMENTS_DELTA, ts_ms=0, correlation_id="call_1",
            delta='{"start": "2025-01-15T15:00",',
        ),
    )
    state, _ = reduce(
        state,
        ToolArgumentsDelta(
            event_type=EventType.TOOL_ARGUMENTS_DELTA, ts_ms=0, correlation_id="call_1",
            delta=' "end": "2025-01-15T16:00"}',
        ),
    )

    new_state, cmds = reduce(
        state,
        ToolArgumentsDone(event_type=EventType.TOOL_ARGUMENTS_DONE, ts_ms=0, correlation_id="call_1"),
    )

    executes = [c for c in cmds if isinstance(c, ExecuteTool)]
    assert len(executes) == 1
    assert executes[0].args == {"start": "2025-01-15T15:00", "end": "2025-01-15T16:00"}
    assert executes[0].calendar_ids == ("work",)
    assert executes[0].timezone == "America/New_York"
    assert new_state.active_tool.status is ToolStatus.EXECUTING


def test_invalid_arguments_answer_the_call_with_an_error():
    state, _ = reduce(conversing(), announce("call_1", "checkAvailability"))

    new_state, cmds = reduce(state, args_done("call_1", '{"start": '))

    assert SendToolResult(correlation_id="call_1", result={"error": "Invalid tool arguments"}) in cmds
    assert not any(isinstance(c, ExecuteTool) for c in cmds)
    assert new_state.active_tool is None
    assert new_state.state is State.CONVERSING


def test_unknown_tool_answers_the_call_with_an_error():
    state, _ = reduce(conversing(), announce("call_1", "sendEmail"))

    _, cmds = reduce(state, args_done("call_1", '{"to": "x"}'))

    assert SendToolResult(correlation_id="call_1", result={"error": "Unknown tool sendEmail"}) in cmds


def test_unnamed_call_is_classified_from_arguments():
    state, _ = reduce(conversing(), announce("call_1"))

    _, cmds = reduce(state, args_done("call_1", '{"date": "2025-01-15"}'))

    executes = [c for c in cmds if isinstance(c, ExecuteTool)]
    assert executes[0].tool is ToolName.GET_AVAILABLE_SLOTS


def test_concurrent_calls_execute_one_at_a_time_in_order():
    state, _ = reduce(conversing(), announce("call_1", "checkAvailability"))
    state, _ = reduce(state, announce("call_2", "getAvailableSlots"))
    state, cmds = reduce(state, args_done("call_2", '{"date": "2025-01-16"}'))

    assert not any(isinstance(c, ExecuteTool) for c in cmds)
    assert [q.correlation_id for q in state.backlog] == ["call_2"]

    state, cmds = reduce(state, args_done("call_1", '{"start": "2025-01-15T15:00", "end": "2025-01-15T16:00"}'))
    assert [c.correlation_id for c in cmds if isinstance(c, ExecuteTool)] == ["call_1"]

    state, cmds = reduce(state, result_for("call_1", result={"available": True}))

    assert isinstance(cmds[0], SendToolResult)
    assert cmds[0].correlation_id == "call_1"
    executes = [c for c in cmds if isinstance(c, ExecuteTool)]
    assert [e.correlation_id for e in executes] == ["call_2"]
    assert state.active_tool.correlation_id == "call_2"
    assert state.backlog == ()


def test_result_with_scripted_reply_suppresses_narration_and_speaks():
    state, _ = reduce(conversing(), announce("call_1", "checkAvailability"))
    state, _ = reduce(state, args_done("call_1", '{"start": "2025-01-15T15:00", "end": "2025-01-15T16:00"}'))

    new_state, cmds = reduce(
        state,
        result_for("call_1", result={"available": True}, spoken="Yes, 3:00 PM to 4:00 PM is available."),
    )

    issued = non_logs(cmds)
    assert issued[0] == SendToolResult(correlation_id="call_1", result={"available": True})
    assert isinstance(issued[1], SendSystemNote)
    assert CreateResponse(instructions=say_exactly("Yes, 3:00 PM to 4:00 PM is available.")) in issued
    assert issued.index(CancelResponse()) < issued.index(
        CreateResponse(instructions=say_exactly("Yes, 3:00 PM to 4:00 PM is available."))
    )
    assert new_state.active_tool is None
    assert new_state.state is State.CONVERSING


def test_scripted_reply_is_gated_while_waiting_for_caller():
    state, _ = reduce(conversing(), announce("call_1", "checkAvailability"))
    state, _ = reduce(state, args_done("call_1", '{"start": "2025-01-15T15:00", "end": "2025-01-15T16:00"}'))
    state = replace(state, flags=replace(state.flags, waiting_for_user=True))

    _, cmds = reduce(state, result_for("call_1", spoken="Yes."))

    assert not any(isinstance(c, CreateResponse) for c in cmds)
    assert "reply_gated" in decisions(cmds)


def test_fallback_result_is_not_sent_to_the_model():
    state, _ = reduce(conversing(), said("Tuesday at 3pm"))
    state, _ = reduce(
        state,
        ToolFallbackTimeout(
            event_type=EventType.TOOL_FALLBACK_TIMEOUT, ts_ms=0, token=state.requirement.requirement_id
        ),
    )
    cid = state.active_tool.correlation_id

    _, cmds = reduce(state, result_for(cid, origin=ToolOrigin.FALLBACK, spoken="Yes."))

    assert not any(isinstance(c, (SendToolResult, SendSystemNote)) for c in cmds)
    assert CreateResponse(instructions=say_exactly("Yes.")) in cmds


def test_broad_window_follow_up_forces_slot_listing():
    state, _ = reduce(conversing(), announce("call_1", "checkAvailability"))
    state, _ = reduce(state, args_done("call_1", '{"start": "2025-01-15T09:00", "end": "2025-01-15T17:00"}'))

    new_state, cmds = reduce(
        state,
        result_for("call_1", ok=False, result={"error": "broad_window"}, follow_up=ToolName.GET_AVAILABLE_SLOTS),
    )

    assert new_state.requirement.tool is ToolName.GET_AVAILABLE_SLOTS
    assert new_state.state is State.AWAITING_TOOL
    assert new_state.last_error == "broad_window"
    assert any(isinstance(c, CreateResponse) and c.tool_choice == "required" for c in cmds)


def test_slot_payload_is_published_to_observers():
    state, _ = reduce(conversing(), announce("call_1", "getAvailableSlots"))
    state, _ = reduce(state, args_done("call_1", '{"date": "2025-01-15"}'))

    _, cmds = reduce(state, result_for("call_1", tool=ToolName.GET_AVAILABLE_SLOTS, slots={"slots": []}))

    assert NotifyObserver(kind=ObserverKind.SLOTS, payload={"slots": []}) in cmds


def test_stale_tool_result_is_ignored():
    state = conversing()

    new_state, cmds = reduce(state, result_for("call_9"))

    assert new_state == state
    assert cmds[0].event["details"]["reason"] == "tool_result_stale"


# ---------------------------------------------------------------------
# logging contract
# ---------------------------------------------------------------------

def test_unknown_gateway_event_is_logged_and_ignored():
    state = conversing()

    new_state, cmds = reduce(
        state,
        UnknownGatewayEvent(event_type=EventType.UNKNOWN_GATEWAY_EVENT, ts_ms=42, wire_type="rate_limits.updated"),
    )

    assert new_state == state
    assert len(cmds) == 1
    payload = cmds[0].event
    assert payload["decision"] == "ignore"
    assert payload["details"] == {"reason": "unknown_gateway_event", "wire_type": "rate_limits.updated"}


def test_log_events_carry_required_fields_and_come_last():
    _, cmds = reduce(conversing(), said("Tuesday at 3pm"))

    first_log = next(i for i, c in enumerate(cmds) if isinstance(c, LogEvent))
    assert all(isinstance(c, LogEvent) for c in cmds[first_log:])

    payload = cmds[first_log].event
    for key in ("ts_ms", "state", "event_type", "decision", "flags", "active_tool", "details"):
        assert key in payload
    assert payload["event_type"] == "USER_TRANSCRIPT"
    assert cmds[-1].event["decision"] == "state_changed"
    assert cmds[-1].event["details"]["to_state"] == "AWAITING_TOOL"
