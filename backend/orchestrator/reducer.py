"""
Pure orchestrator reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; the runtime only cancels timers implicitly on
# EndSession teardown.

from __future__ import annotations

from dataclasses import replace
from typing import Any

from adapters.realtime.prompts import (
    SUPPRESS_NARRATION_NOTE,
    build_session_instructions,
    greeting_instruction,
    required_tool_instruction,
    say_exactly,
)
from constants import (
    INVALID_TOOL_ARGUMENTS_MESSAGE,
    TOOL_ARGUMENTS_TIMEOUT_MESSAGE,
    TOOL_FALLBACK_TIMEOUT_MS,
    TOOL_REPROMPT_MAX,
    TOOL_REPROMPT_TIMEOUT_MS,
    UTTERANCE_DEBOUNCE_MS,
)
from errors import InvalidArgumentsError
from orchestrator.commands import (
    CancelResponse,
    CancelTimer,
    Command,
    ConfigureSession,
    CreateResponse,
    EndSession,
    EnqueueSpeech,
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
    AgentTranscriptDelta,
    AgentTranscriptDone,
    CalendarSelectionChanged,
    ConnectRequested,
    DisconnectRequested,
    Event,
    EventType,
    GatewayError,
    ResponseCancelled,
    ResponseFinished,
    ResponseStarted,
    ToolArgumentsDelta,
    ToolArgumentsDone,
    ToolCallAnnounced,
    ToolFallbackTimeout,
    ToolRepromptTimeout,
    ToolResultReady,
    TransportFailed,
    TransportOpened,
    UnknownGatewayEvent,
    UserTranscript,
    UserTranscriptDelta,
    UtteranceDebounceElapsed,
)
from orchestrator.state_dataclass import (
    OrchestratorState,
    QueuedCall,
    ToolInvocation,
    ToolRequirement,
    TurnFlags,
)
from orchestrator.tool_calls import (
    classify_tool,
    classify_utterance,
    extract_time_of_day,
    parse_arguments,
)
from orchestrator.turn_taking import is_meaningful


Result = tuple[OrchestratorState, tuple[Command, ...]]

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_UTTERANCE_DEBOUNCE = "utterance_debounce"
TIMER_TOOL_REPROMPT = "tool_reprompt"
TIMER_TOOL_FALLBACK = "tool_fallback"

ALL_TIMERS = (TIMER_UTTERANCE_DEBOUNCE, TIMER_TOOL_REPROMPT, TIMER_TOOL_FALLBACK)

# Events accepted before the session has been configured.
_CONNECTING_EVENTS = frozenset({
    EventType.CONNECT_REQUESTED,
    EventType.TRANSPORT_OPENED,
    EventType.TRANSPORT_FAILED,
    EventType.DISCONNECT_REQUESTED,
    EventType.CALENDAR_SELECTION_CHANGED,
    EventType.GATEWAY_ERROR,
    EventType.UNKNOWN_GATEWAY_EVENT,
})


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: OrchestratorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    active = state.active_tool
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "flags": {
                "agent_speaking": state.flags.agent_speaking,
                "waiting_for_user": state.flags.waiting_for_user,
                "greeting_in_progress": state.flags.greeting_in_progress,
                "tool_hint_sent": state.flags.tool_hint_sent,
            },
            "active_tool": None if active is None else {
                "correlation_id": active.correlation_id,
                "tool_name": active.tool_name,
                "status": active.status.value,
                "origin": active.origin.value,
            },
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: OrchestratorState,
    event: Event,
    reason: str,
    details: dict[str, Any] | None = None,
) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason, **(details or {})}),)


def _state_changed(
    old: OrchestratorState,
    new: OrchestratorState,
    event: Event,
    source: str,
) -> tuple[Command, ...]:
    if old.state is new.state:
        return ()
    return (
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": old.state.value,
                "to_state": new.state.value,
                "source": source,
            },
        ),
    )


def _instructions(state: OrchestratorState, *, include_tool_hint: bool) -> ConfigureSession:
    return ConfigureSession(
        instructions=build_session_instructions(
            base_prompt=state.base_system_prompt,
            language=state.language,
            timezone=state.timezone,
            organization_id=state.organization_id,
            calendar_id=state.default_calendar_id,
            default_appointment_minutes=state.default_appointment_minutes,
            include_tool_hint=include_tool_hint,
        ),
        language=state.language,
    )


def _cancel_timers(*timer_ids: str) -> tuple[Command, ...]:
    return tuple(CancelTimer(timer_id=t) for t in timer_ids)


def _end(state: OrchestratorState, reason: str, *, failed: bool) -> OrchestratorState:
    """Terminal state: no tools, no requirement, no speaking flags."""
    return replace(
        state,
        state=State.DISCONNECTED,
        flags=replace(TurnFlags(), tool_hint_sent=state.flags.tool_hint_sent),
        active_tool=None,
        backlog=(),
        requirement=None,
        last_error=reason if failed else state.last_error,
    )


def _resting_state(state: OrchestratorState) -> State:
    """Where the session sits when nothing is required or in flight."""
    if state.state is State.GREETING:
        return State.GREETING
    return State.CONVERSING


# =============================================================================
# Tool requirement (forced tool call)
# =============================================================================

def _require_tool(
    state: OrchestratorState,
    event: Event,
    tool: ToolName,
    transcript: str,
) -> Result:
    """
    Force the model to call ``tool``.

    The in-flight response is cancelled first. A re-prompt timer always runs;
    the transcript fallback only exists for point checks.
    """
    rid = state.next_requirement_id
    requirement = ToolRequirement(requirement_id=rid, tool=tool, transcript=transcript)

    new_state = replace(
        state,
        state=State.AWAITING_TOOL,
        flags=replace(state.flags, agent_speaking=False),
        requirement=requirement,
        next_requirement_id=rid + 1,
    )

    cmds: list[Command] = [
        CancelResponse(),
        ResetSpeech(),
        _instructions(state, include_tool_hint=state.flags.tool_hint_sent),
        CreateResponse(
            instructions=required_tool_instruction(tool, state.default_appointment_minutes),
            tool_choice="required",
        ),
        StartTimer(
            timer_id=TIMER_TOOL_REPROMPT,
            duration_ms=TOOL_REPROMPT_TIMEOUT_MS,
            timeout_event_type=EventType.TOOL_REPROMPT_TIMEOUT,
            token=rid,
        ),
    ]
    if tool is ToolName.CHECK_AVAILABILITY:
        cmds.append(
            StartTimer(
                timer_id=TIMER_TOOL_FALLBACK,
                duration_ms=TOOL_FALLBACK_TIMEOUT_MS,
                timeout_event_type=EventType.TOOL_FALLBACK_TIMEOUT,
                token=rid,
            )
        )
    else:
        cmds.append(CancelTimer(timer_id=TIMER_TOOL_FALLBACK))

    cmds.append(
        _log(new_state, event, "tool_required", {"tool": tool.value, "requirement_id": rid})
    )
    return new_state, tuple(cmds) + _state_changed(state, new_state, event, "tool_required")


def _defuse_requirement(
    state: OrchestratorState, event: Event
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """A call leaving PENDING satisfies the pending requirement."""
    if state.requirement is None:
        return state, ()
    new_state = replace(state, requirement=None)
    return new_state, _cancel_timers(TIMER_TOOL_REPROMPT, TIMER_TOOL_FALLBACK) + (
        _log(
            new_state,
            event,
            "requirement_satisfied",
            {"requirement_id": state.requirement.requirement_id},
        ),
    )


# =============================================================================
# Tool invocation bookkeeping
# =============================================================================

def _admit(
    state: OrchestratorState,
    correlation_id: str,
    name: str,
    ts_ms: int,
) -> OrchestratorState:
    """
    Track a call by correlation id.

    The first call in flight becomes the active invocation; later ones queue
    in arrival order.
    """
    active = state.active_tool
    if active is not None and active.correlation_id == correlation_id:
        if name and not active.tool_name:
            return replace(state, active_tool=replace(active, tool_name=name))
        return state

    for i, queued in enumerate(state.backlog):
        if queued.correlation_id == correlation_id:
            if name and not queued.tool_name:
                backlog = list(state.backlog)
                backlog[i] = replace(queued, tool_name=name)
                return replace(state, backlog=tuple(backlog))
            return state

    if active is None:
        return replace(
            state,
            state=State.AWAITING_TOOL,
            active_tool=ToolInvocation(
                correlation_id=correlation_id,
                tool_name=name,
                created_at_ms=ts_ms,
            ),
        )

    return replace(
        state,
        backlog=state.backlog + (
            QueuedCall(correlation_id=correlation_id, tool_name=name, created_at_ms=ts_ms),
        ),
    )


def _append_fragment(state: OrchestratorState, correlation_id: str, delta: str) -> OrchestratorState:
    active = state.active_tool
    if active is not None and active.correlation_id == correlation_id:
        return replace(
            state,
            active_tool=replace(active, argument_buffer=active.argument_buffer + delta),
        )
    backlog = tuple(
        replace(q, argument_buffer=q.argument_buffer + delta)
        if q.correlation_id == correlation_id else q
        for q in state.backlog
    )
    return replace(state, backlog=backlog)


def _complete_active(state: OrchestratorState, event: Event) -> Result:
    """Arguments of the active invocation are complete: classify and execute."""
    inv = state.active_tool
    assert inv is not None
    state, defused = _defuse_requirement(state, event)

    try:
        args = parse_arguments(inv.argument_buffer)
    except InvalidArgumentsError:
        failed, cmds = _fail_active(
            state, event, {"error": INVALID_TOOL_ARGUMENTS_MESSAGE}, "invalid_arguments"
        )
        return failed, defused + cmds

    tool = classify_tool(inv.tool_name, args)
    if tool is None:
        failed, cmds = _fail_active(
            state,
            event,
            {"error": f"Unknown tool {inv.tool_name or 'unknown'}"},
            "unknown_tool",
        )
        return failed, defused + cmds

    new_state = replace(
        state,
        state=State.AWAITING_TOOL,
        active_tool=replace(inv, status=ToolStatus.EXECUTING, tool=tool),
    )
    return new_state, defused + (
        NotifyObserver(
            kind=ObserverKind.TOOL_EVENT,
            payload={"type": "call", "tool": tool.value, "args": dict(args)},
        ),
        ExecuteTool(
            correlation_id=inv.correlation_id,
            tool=tool,
            origin=inv.origin,
            args=dict(args),
            calendar_ids=state.calendar_ids,
            organization_id=state.organization_id,
            default_calendar_id=state.default_calendar_id,
            timezone=state.timezone,
            transcript=state.last_transcript,
        ),
        _log(
            new_state,
            event,
            "execute_tool",
            {
                "tool": tool.value,
                "announced_name": inv.tool_name,
                "calendar_ids": list(state.calendar_ids),
            },
        ),
    ) + _state_changed(state, new_state, event, "execute_tool")


def _fail_active(
    state: OrchestratorState,
    event: Event,
    result: dict[str, Any],
    reason: str,
) -> Result:
    inv = state.active_tool
    assert inv is not None

    cleared = replace(state, active_tool=None, state=_resting_state(state))
    cmds: tuple[Command, ...] = (
        SendToolResult(correlation_id=inv.correlation_id, result=result),
        NotifyObserver(
            kind=ObserverKind.TOOL_EVENT,
            payload={"type": "failed", "tool": inv.tool_name, "result": result},
        ),
        _log(
            cleared,
            event,
            "tool_failed",
            {"correlation_id": inv.correlation_id, "reason": reason, "tool_name": inv.tool_name},
        ),
    ) + _state_changed(state, cleared, event, "tool_failed")

    promoted, more = _promote_backlog(cleared, event)
    return promoted, cmds + more


def _abandon_pending(state: OrchestratorState, event: Event) -> Result:
    """The model announced a call but its arguments never arrived."""
    return _fail_active(
        state, event, {"error": TOOL_ARGUMENTS_TIMEOUT_MESSAGE}, "arguments_timeout"
    )


def _promote_backlog(state: OrchestratorState, event: Event) -> Result:
    """Admit the next queued call once nothing is in flight."""
    if state.active_tool is not None or not state.backlog:
        return state, ()

    head, rest = state.backlog[0], state.backlog[1:]
    promoted = replace(
        state,
        state=State.AWAITING_TOOL,
        active_tool=ToolInvocation(
            correlation_id=head.correlation_id,
            tool_name=head.tool_name,
            argument_buffer=head.argument_buffer,
            status=ToolStatus.ARGUMENTS_COMPLETE if head.arguments_complete else ToolStatus.PENDING,
            created_at_ms=head.created_at_ms,
        ),
        backlog=rest,
    )
    cmds: tuple[Command, ...] = (
        _log(promoted, event, "tool_promoted", {"correlation_id": head.correlation_id}),
    ) + _state_changed(state, promoted, event, "tool_promoted")

    if head.arguments_complete:
        completed, more = _complete_active(promoted, event)
        return completed, cmds + more
    return promoted, cmds


# =============================================================================
# Turn-taking gate
# =============================================================================

def _speak(
    state: OrchestratorState,
    event: Event,
    text: str,
    *,
    bypass_gate: bool = False,
) -> Result:
    """
    Scripted reply: cancel whatever is playing, then speak ``text`` verbatim
    unless the caller still holds the floor.
    """
    new_state = replace(state, flags=replace(state.flags, agent_speaking=False))
    cmds: list[Command] = [CancelResponse(), ResetSpeech()]

    if state.flags.waiting_for_user and not bypass_gate:
        cmds.append(
            NotifyObserver(kind=ObserverKind.TOOL_EVENT, payload={"type": "gated", "text": text})
        )
        cmds.append(_log(new_state, event, "reply_gated", {"text": text}))
        return new_state, tuple(cmds)

    cmds.append(
        NotifyObserver(kind=ObserverKind.TOOL_EVENT, payload={"type": "spoken", "text": text})
    )
    cmds.append(CreateResponse(instructions=say_exactly(text)))
    cmds.append(_log(new_state, event, "reply_spoken", {"text": text}))
    return new_state, tuple(cmds)


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(state: OrchestratorState, event: Event) -> Result:  # pylint: disable=too-many-return-statements,too-many-branches
    """
    Pure reducer for one scheduling session.

    Given the current orchestrator state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Token-safe: timer expiries carrying a stale token are ignored
    """
    # ------------------------------------------------------------------
    # DISCONNECTED is terminal
    # ------------------------------------------------------------------
    if state.state is State.DISCONNECTED:
        return _ignore(state, event, "session_disconnected")

    if state.state is State.CONNECTING and event.event_type not in _CONNECTING_EVENTS:
        return _ignore(state, event, "not_connected")

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, ConnectRequested):
        if state.state is not State.CONNECTING:
            return _ignore(state, event, "already_connected")

        greeting = (state.greeting or "").strip()
        new_state = replace(
            state,
            session_id=event.session_id,
            state=State.GREETING if greeting else State.CONVERSING,
            flags=replace(
                state.flags,
                greeting_in_progress=bool(greeting),
                waiting_for_user=state.wait_for_caller and not greeting,
            ),
        )
        cmds: list[Command] = [_instructions(state, include_tool_hint=False)]
        if greeting:
            cmds.append(CreateResponse(instructions=greeting_instruction(greeting)))
        cmds.append(
            _log(
                new_state,
                event,
                "session_configured",
                {"session_id": event.session_id, "greeting": bool(greeting)},
            )
        )
        return new_state, _logs_last(
            tuple(cmds) + _state_changed(state, new_state, event, "connect")
        )

    if isinstance(event, TransportOpened):
        return state, (FlushOutbound(), _log(state, event, "transport_opened"))

    if isinstance(event, TransportFailed):
        new_state = _end(state, event.reason, failed=True)
        return new_state, _logs_last(
            _cancel_timers(*ALL_TIMERS) + (
                ResetSpeech(),
                NotifyObserver(
                    kind=ObserverKind.ERROR,
                    payload={"code": "transport_error", "message": event.reason},
                ),
                EndSession(reason=f"transport_failed:{event.reason}"),
                _log(new_state, event, "transport_failed", {"reason": event.reason}),
            ) + _state_changed(state, new_state, event, "transport_failed")
        )

    if isinstance(event, DisconnectRequested):
        new_state = _end(state, event.reason, failed=False)
        return new_state, _logs_last(
            _cancel_timers(*ALL_TIMERS) + (
                ResetSpeech(),
                EndSession(reason=event.reason),
                _log(new_state, event, "disconnect", {"reason": event.reason}),
            ) + _state_changed(state, new_state, event, "disconnect")
        )

    if isinstance(event, CalendarSelectionChanged):
        new_state = replace(state, calendar_ids=tuple(event.calendar_ids))
        return new_state, (
            _log(new_state, event, "calendar_selection_changed",
                 {"calendar_ids": list(event.calendar_ids)}),
        )

    # ------------------------------------------------------------------
    # Caller speech
    # ------------------------------------------------------------------
    if isinstance(event, UserTranscriptDelta):
        partial = state.caller_partial + event.delta
        new_state = replace(state, caller_partial=partial)
        if not (state.flags.agent_speaking and is_meaningful(" ".join(partial.split()))):
            return new_state, ()
        new_state = replace(new_state, flags=replace(state.flags, agent_speaking=False))
        return new_state, (
            CancelResponse(),
            ResetSpeech(),
            _log(new_state, event, "barge_in", {"partial": partial}),
        )

    if isinstance(event, UserTranscript):
        text = " ".join(event.text.split())
        if not text:
            return _ignore(state, event, "empty_transcript")

        meaningful = is_meaningful(text)
        cmds = []
        flags = state.flags

        # Barge-in comes before anything else this utterance triggers.
        if flags.agent_speaking and meaningful:
            cmds += [CancelResponse(), ResetSpeech()]
            flags = replace(flags, agent_speaking=False)
            cmds.append(_log(state, event, "barge_in"))

        cmds.append(NotifyObserver(kind=ObserverKind.TRANSCRIPT, payload={"text": text}))

        if flags.waiting_for_user and meaningful:
            flags = replace(flags, waiting_for_user=False)
            cmds.append(_log(state, event, "gate_opened"))

        seq = state.utterance_seq + 1
        cmds.append(
            StartTimer(
                timer_id=TIMER_UTTERANCE_DEBOUNCE,
                duration_ms=UTTERANCE_DEBOUNCE_MS,
                timeout_event_type=EventType.UTTERANCE_DEBOUNCE_ELAPSED,
                token=seq,
            )
        )

        new_state = replace(
            state, flags=flags, utterance_seq=seq, last_transcript=text, caller_partial=""
        )

        if not flags.tool_hint_sent:
            new_state = replace(new_state, flags=replace(flags, tool_hint_sent=True))
            cmds.append(_instructions(new_state, include_tool_hint=True))
            cmds.append(_log(new_state, event, "tool_hint_sent"))

        tool = classify_utterance(text)
        if tool is not None:
            if new_state.active_tool is not None:
                cmds.append(
                    _log(new_state, event, "requirement_skipped",
                         {"tool": tool.value, "reason": "tool_in_flight"})
                )
            else:
                new_state, more = _require_tool(new_state, event, tool, text)
                cmds += list(more)

        return new_state, _logs_last(tuple(cmds))

    if isinstance(event, UtteranceDebounceElapsed):
        if event.token != state.utterance_seq:
            return _ignore(state, event, "debounce_stale", {"token": event.token})
        if (
            state.state is not State.CONVERSING
            or state.requirement is not None
            or state.active_tool is not None
            or state.flags.agent_speaking
            or state.flags.waiting_for_user
        ):
            return _ignore(state, event, "debounce_suppressed")
        return state, (CreateResponse(), _log(state, event, "end_of_utterance_response"))

    # ------------------------------------------------------------------
    # Model response lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, ResponseStarted):
        if state.flags.waiting_for_user and not state.flags.greeting_in_progress:
            return state, (CancelResponse(), _log(state, event, "response_suppressed"))
        new_state = replace(
            state,
            flags=replace(state.flags, agent_speaking=True),
            agent_transcript="",
        )
        return new_state, (_log(new_state, event, "agent_speaking"),)

    if isinstance(event, (ResponseFinished, ResponseCancelled)):
        greeting_done = state.flags.greeting_in_progress
        new_state = replace(
            state,
            flags=replace(state.flags, agent_speaking=False, greeting_in_progress=False),
        )
        if state.state is State.GREETING:
            new_state = replace(new_state, state=State.CONVERSING)

        cmds = []
        if isinstance(event, ResponseCancelled):
            cmds.append(ResetSpeech())
        cmds.append(
            _log(
                new_state,
                event,
                "response_cancelled" if isinstance(event, ResponseCancelled) else "response_finished",
                {"greeting_done": greeting_done},
            )
        )
        return new_state, _logs_last(
            tuple(cmds) + _state_changed(state, new_state, event, "response_ended")
        )

    if isinstance(event, AgentTranscriptDelta):
        text = state.agent_transcript + event.delta
        new_state = replace(state, agent_transcript=text)
        return new_state, (
            NotifyObserver(
                kind=ObserverKind.AGENT_TRANSCRIPT,
                payload={"text": text, "final": False},
            ),
        )

    if isinstance(event, AgentTranscriptDone):
        final = event.text or state.agent_transcript
        new_state = replace(state, agent_transcript="")
        cmds = [
            NotifyObserver(
                kind=ObserverKind.AGENT_TRANSCRIPT,
                payload={"text": final, "final": True},
            )
        ]
        if final.strip():
            cmds.append(EnqueueSpeech(text=final))
        return new_state, tuple(cmds)

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------
    if isinstance(event, ToolCallAnnounced):
        new_state = _admit(state, event.correlation_id, event.name, event.ts_ms)
        return new_state, _logs_last(
            (
                _log(new_state, event, "tool_announced",
                     {"correlation_id": event.correlation_id, "name": event.name}),
            ) + _state_changed(state, new_state, event, "tool_announced")
        )

    if isinstance(event, ToolArgumentsDelta):
        admitted = _admit(state, event.correlation_id, event.name, event.ts_ms)
        new_state = _append_fragment(admitted, event.correlation_id, event.delta)
        return new_state, _logs_last(_state_changed(state, new_state, event, "tool_fragment"))

    if isinstance(event, ToolArgumentsDone):
        active = state.active_tool
        if (
            active is not None
            and active.correlation_id == event.correlation_id
            and active.status is not ToolStatus.PENDING
        ):
            return _ignore(state, event, "arguments_already_complete",
                           {"correlation_id": event.correlation_id})

        admitted = _admit(state, event.correlation_id, event.name, event.ts_ms)
        cmds_t = _state_changed(state, admitted, event, "tool_arguments_done")

        active = admitted.active_tool
        if active is not None and active.correlation_id == event.correlation_id:
            buffer = event.arguments if event.arguments is not None else active.argument_buffer
            ready = replace(
                admitted,
                active_tool=replace(
                    active, argument_buffer=buffer, status=ToolStatus.ARGUMENTS_COMPLETE
                ),
            )
            new_state, more = _complete_active(ready, event)
            return new_state, _logs_last(cmds_t + more)

        backlog = tuple(
            replace(
                q,
                argument_buffer=event.arguments if event.arguments is not None else q.argument_buffer,
                arguments_complete=True,
            )
            if q.correlation_id == event.correlation_id else q
            for q in admitted.backlog
        )
        new_state = replace(admitted, backlog=backlog)
        return new_state, _logs_last(
            cmds_t + (
                _log(new_state, event, "tool_queued",
                     {"correlation_id": event.correlation_id, "backlog": len(backlog)}),
            )
        )

    if isinstance(event, ToolResultReady):
        active = state.active_tool
        if active is None or active.correlation_id != event.correlation_id:
            return _ignore(state, event, "tool_result_stale",
                           {"correlation_id": event.correlation_id})

        cmds = []
        if event.origin is ToolOrigin.MODEL:
            cmds.append(SendToolResult(correlation_id=event.correlation_id, result=event.result))
            if event.spoken is not None:
                cmds.append(SendSystemNote(text=SUPPRESS_NARRATION_NOTE))

        tool_label = event.tool.value if event.tool is not None else active.tool_name
        cmds.append(
            NotifyObserver(
                kind=ObserverKind.TOOL_EVENT,
                payload={
                    "type": "result",
                    "tool": tool_label,
                    "origin": event.origin.value,
                    "ok": event.ok,
                    "result": dict(event.result),
                },
            )
        )
        if event.slots is not None:
            cmds.append(NotifyObserver(kind=ObserverKind.SLOTS, payload=dict(event.slots)))

        cleared = replace(
            state,
            active_tool=None,
            state=_resting_state(state),
            last_error=None if event.ok else str(event.result.get("error")),
        )
        cmds.append(
            _log(
                cleared,
                event,
                "tool_completed" if event.ok else "tool_failed",
                {
                    "correlation_id": event.correlation_id,
                    "tool": tool_label,
                    "origin": event.origin.value,
                },
            )
        )
        cmds += list(_state_changed(state, cleared, event, "tool_result"))

        new_state = cleared
        if event.follow_up is not None:
            new_state, more = _require_tool(new_state, event, event.follow_up, state.last_transcript)
            cmds += list(more)
        elif event.spoken:
            new_state, more = _speak(new_state, event, event.spoken)
            cmds += list(more)

        new_state, more = _promote_backlog(new_state, event)
        cmds += list(more)
        return new_state, _logs_last(tuple(cmds))

    # ------------------------------------------------------------------
    # Tool requirement timers
    # ------------------------------------------------------------------
    if isinstance(event, ToolRepromptTimeout):
        req = state.requirement
        if req is None or req.requirement_id != event.token:
            return _ignore(state, event, "reprompt_stale", {"token": event.token})
        if state.active_tool is not None and state.active_tool.status is not ToolStatus.PENDING:
            return _ignore(state, event, "reprompt_tool_in_flight")

        cmds_t = ()
        current = state
        if current.active_tool is not None:
            current, cmds_t = _abandon_pending(current, event)
            if current.requirement is None or current.active_tool is not None:
                return current, _logs_last(cmds_t)

        if req.reprompts_sent >= TOOL_REPROMPT_MAX:
            if req.tool is ToolName.CHECK_AVAILABILITY and not req.fallback_fired:
                # The transcript fallback still owns this requirement.
                return current, _logs_last(
                    cmds_t + (_log(current, event, "ignore", {"reason": "reprompt_exhausted"}),)
                )
            new_state = replace(current, requirement=None, state=_resting_state(current))
            return new_state, _logs_last(
                cmds_t + (
                    _log(new_state, event, "requirement_abandoned",
                         {"tool": req.tool.value, "requirement_id": req.requirement_id}),
                ) + _state_changed(state, new_state, event, "requirement_abandoned")
            )

        new_state = replace(
            current,
            state=State.AWAITING_TOOL,
            requirement=replace(req, reprompts_sent=req.reprompts_sent + 1),
        )
        return new_state, _logs_last(
            cmds_t + (
                CreateResponse(
                    instructions=required_tool_instruction(req.tool, state.default_appointment_minutes),
                    tool_choice="required",
                ),
                StartTimer(
                    timer_id=TIMER_TOOL_REPROMPT,
                    duration_ms=TOOL_REPROMPT_TIMEOUT_MS,
                    timeout_event_type=EventType.TOOL_REPROMPT_TIMEOUT,
                    token=req.requirement_id,
                ),
                _log(new_state, event, "tool_reprompted",
                     {"tool": req.tool.value, "requirement_id": req.requirement_id}),
            ) + _state_changed(state, new_state, event, "tool_reprompted")
        )

    if isinstance(event, ToolFallbackTimeout):
        req = state.requirement
        if req is None or req.requirement_id != event.token:
            return _ignore(state, event, "fallback_stale", {"token": event.token})
        if req.tool is not ToolName.CHECK_AVAILABILITY:
            return _ignore(state, event, "fallback_not_point_check")
        if req.fallback_fired:
            return _ignore(state, event, "fallback_already_fired")
        if state.active_tool is not None and state.active_tool.status is not ToolStatus.PENDING:
            return _ignore(state, event, "fallback_tool_in_flight")

        cmds_t = ()
        current = state
        if current.active_tool is not None:
            current, cmds_t = _abandon_pending(current, event)
            if current.requirement is None or current.active_tool is not None:
                return current, _logs_last(cmds_t)

        time_of_day = extract_time_of_day(req.transcript)
        if time_of_day is None:
            new_state = replace(current, requirement=None, state=State.CONVERSING)
            return new_state, _logs_last(
                cmds_t + _cancel_timers(TIMER_TOOL_REPROMPT) + (
                    _log(new_state, event, "fallback_no_time", {"transcript": req.transcript}),
                ) + _state_changed(state, new_state, event, "fallback_no_time")
            )

        hour, minute = time_of_day
        seq = current.fallback_seq + 1
        correlation_id = f"fallback-{seq}"
        new_state = replace(
            current,
            state=State.AWAITING_TOOL,
            requirement=None,
            fallback_seq=seq,
            active_tool=ToolInvocation(
                correlation_id=correlation_id,
                tool_name=ToolName.CHECK_AVAILABILITY.value,
                status=ToolStatus.EXECUTING,
                created_at_ms=event.ts_ms,
                origin=ToolOrigin.FALLBACK,
                tool=ToolName.CHECK_AVAILABILITY,
            ),
        )
        return new_state, _logs_last(
            cmds_t + _cancel_timers(TIMER_TOOL_REPROMPT) + (
                ExecuteTool(
                    correlation_id=correlation_id,
                    tool=ToolName.CHECK_AVAILABILITY,
                    origin=ToolOrigin.FALLBACK,
                    args={"hour": hour, "minute": minute},
                    calendar_ids=state.calendar_ids,
                    organization_id=state.organization_id,
                    default_calendar_id=state.default_calendar_id,
                    timezone=state.timezone,
                    transcript=req.transcript,
                ),
                _log(new_state, event, "fallback_fired",
                     {"requirement_id": req.requirement_id, "hour": hour, "minute": minute}),
            ) + _state_changed(state, new_state, event, "fallback_fired")
        )

    # ------------------------------------------------------------------
    # Gateway errors / unknown
    # ------------------------------------------------------------------
    if isinstance(event, GatewayError):
        new_state = replace(state, last_error=event.message)
        return new_state, (
            NotifyObserver(
                kind=ObserverKind.ERROR,
                payload={"code": event.code, "message": event.message},
            ),
            _log(new_state, event, "gateway_error", {"code": event.code, "message": event.message}),
        )

    if isinstance(event, UnknownGatewayEvent):
        return _ignore(state, event, "unknown_gateway_event", {"wire_type": event.wire_type})

    return _ignore(state, event, "unhandled_event")
