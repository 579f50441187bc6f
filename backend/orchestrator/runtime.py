"""
Runtime execution shell for a single scheduling session.

Responsibilities:
- Own orchestrator state
- Call pure reducer
- Execute commands with side effects (gateway sends, tools, speech, timers)
- Buffer gateway payloads until the transport is up, then flush in order
- Run tool executions as tasks and feed their results back as events
- Convert timer expiry into events

Non-responsibilities:
- Orchestration decisions (reducer)
- Wire formats (adapters.realtime.protocol)
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Callable, Mapping

from adapters.realtime import protocol
from errors import TransportError
from observability.logger import log_event
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
    ResetSpeech,
    SendSystemNote,
    SendToolResult,
    StartTimer,
)
from orchestrator.events import (
    Event,
    EventType,
    ToolFallbackTimeout,
    ToolRepromptTimeout,
    ToolResultReady,
    UtteranceDebounceElapsed,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import OrchestratorState
from orchestrator.timers import TimerRegistry
from orchestrator.tool_executor import ToolExecutor, ToolOutcome
from session.connection_status import ConnectionStatus


if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


_GATEWAY_COMMANDS = (
    ConfigureSession,
    CreateResponse,
    CancelResponse,
    SendToolResult,
    SendSystemNote,
)

_TIMEOUT_EVENTS: dict[EventType, Callable[..., Event]] = {
    EventType.TOOL_REPROMPT_TIMEOUT: ToolRepromptTimeout,
    EventType.TOOL_FALLBACK_TIMEOUT: ToolFallbackTimeout,
    EventType.UTTERANCE_DEBOUNCE_ELAPSED: UtteranceDebounceElapsed,
}


class Runtime:
    """
    Runtime execution boundary for a single scheduling session.

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world
    (transport, calendar, speech output, logging, time).

    Guarantees:
    - Reducer is always called exactly once per accepted event
    - State transitions and command execution are serialized by a lock
    - All side effects occur *after* state has been updated
    - Commands never re-enter handle_event synchronously; timers and tool
      tasks re-enter it from their own tasks
    - After EndSession, every later event is dropped
    """

    def __init__(
        self,
        *,
        initial_state: OrchestratorState,
        context: RuntimeExecutionContext,
        executor: ToolExecutor | None = None,
        time_scale: float = 1.0,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._executor = executor
        self._lock = asyncio.Lock()
        self._timers = TimerRegistry(emit_event=self.handle_event, time_scale=time_scale)
        self._tool_tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def state(self) -> OrchestratorState:
        """
        Return the current immutable orchestrator state.

        Consumers must never modify this state directly.
        """
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_timers(self) -> tuple[str, ...]:
        return self._timers.pending()

    def pending_tools(self) -> int:
        return sum(1 for task in self._tool_tasks if not task.done())

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new orchestrator state
        3. Execute all emitted commands sequentially

        All event sources converge here: gateway messages, timers and
        tool tasks.
        """
        if self._closed:
            self._log_dropped(event)
            return

        async with self._lock:
            if self._closed:
                self._log_dropped(event)
                return

            new_state, commands = reduce(self._state, event)
            self._state = new_state

            for cmd in commands:
                if self._closed and not isinstance(cmd, LogEvent):
                    continue
                await self._execute_command(cmd)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime without a reducer pass.

        Cancels all in-flight timers and tool tasks and waits for them.
        """
        self._closed = True
        tasks = list(self._timers.cancel_all()) + self._cancel_tool_tasks()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:  # pylint: disable=too-many-branches
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
                "connection_status": self._ctx.connection_status.value,
            })

        elif isinstance(cmd, _GATEWAY_COMMANDS):
            await self._send(protocol.encode(cmd, voice=self._ctx.realtime_voice))

        elif isinstance(cmd, FlushOutbound):
            pending = self._ctx.drain_outbound()
            for payload in pending:
                await self._send(payload)
            log_event({
                "event_type": "OUTBOUND_FLUSHED",
                "session_id": self._ctx.session_id,
                "count": len(pending),
            })

        elif isinstance(cmd, ExecuteTool):
            task = asyncio.create_task(self._run_tool(cmd))
            self._tool_tasks.add(task)
            task.add_done_callback(self._tool_tasks.discard)

        elif isinstance(cmd, StartTimer):
            event_cls = _TIMEOUT_EVENTS.get(cmd.timeout_event_type)
            if event_cls is None:
                raise ValueError(
                    f"Unknown timeout event type: {cmd.timeout_event_type} "
                    f"for timer_id: {cmd.timer_id}"
                )
            token = cmd.token
            event_type = cmd.timeout_event_type
            self._timers.start(
                cmd.timer_id,
                cmd.duration_ms,
                lambda: event_cls(event_type=event_type, ts_ms=_now_ms(), token=token),
            )

        elif isinstance(cmd, CancelTimer):
            self._timers.cancel(cmd.timer_id)

        elif isinstance(cmd, EnqueueSpeech):
            router = self._ctx.speech_router
            if router is not None:
                router.enqueue(cmd.text)

        elif isinstance(cmd, ResetSpeech):
            router = self._ctx.speech_router
            if router is not None:
                await router.reset()

        elif isinstance(cmd, NotifyObserver):
            await self._ctx.notify(cmd.kind, cmd.payload)

        elif isinstance(cmd, EndSession):
            await self._teardown(cmd.reason)

        else:
            log_event({
                "event_type": "COMMAND_NOT_HANDLED",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    async def _send(self, payload: Mapping[str, object]) -> None:
        transport = self._ctx.transport
        if (
            self._ctx.connection_status is not ConnectionStatus.UP
            or transport is None
            or not transport.is_open
        ):
            self._ctx.enqueue_outbound(payload)
            return

        try:
            await transport.send(payload)
        except TransportError as exc:
            # The transport's receive loop reports the closure as an event.
            log_event({
                "event_type": "GATEWAY_SEND_FAILED",
                "session_id": self._ctx.session_id,
                "payload_type": payload.get("type"),
                "error": str(exc),
            })

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def _run_tool(self, cmd: ExecuteTool) -> None:
        if self._executor is None:
            outcome = ToolOutcome(ok=False, result={"error": "Tool execution unavailable"})
        else:
            try:
                outcome = await self._executor.execute(cmd)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "TOOL_TASK_FAILED",
                    "session_id": self._ctx.session_id,
                    "correlation_id": cmd.correlation_id,
                    "tool": cmd.tool.value,
                    "error": f"{type(exc).__name__}: {exc}",
                })
                outcome = ToolOutcome(ok=False, result={"error": str(exc)})

        await self.handle_event(
            ToolResultReady(
                event_type=EventType.TOOL_RESULT_READY,
                ts_ms=_now_ms(),
                correlation_id=cmd.correlation_id,
                tool=cmd.tool,
                origin=cmd.origin,
                ok=outcome.ok,
                result=outcome.result,
                spoken=outcome.spoken,
                follow_up=outcome.follow_up,
                slots=outcome.slots,
            )
        )

    def _cancel_tool_tasks(self) -> list[asyncio.Task[None]]:
        current = asyncio.current_task()
        cancelled = []
        for task in list(self._tool_tasks):
            if task is current or task.done():
                continue
            task.cancel()
            cancelled.append(task)
        self._tool_tasks.clear()
        return cancelled

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def _teardown(self, reason: str) -> None:
        """
        Cancel everything the session owns, then close the transport.

        Timers and tool tasks are cancelled synchronously so nothing can
        re-enter the reducer after this point.
        """
        self._closed = True
        timers = self._timers.cancel_all()
        tools = self._cancel_tool_tasks()

        router = self._ctx.speech_router
        if router is not None:
            await router.close()

        log_event({
            "event_type": "RUNTIME_TEARDOWN",
            "session_id": self._ctx.session_id,
            "reason": reason,
            "timers_cancelled": len(timers),
            "tools_cancelled": len(tools),
            "outbound_dropped": len(self._ctx.drain_outbound()),
        })

        transport = self._ctx.transport
        if transport is not None:
            await transport.close()

    def _log_dropped(self, event: Event) -> None:
        log_event({
            "event_type": "RUNTIME_EVENT_DROPPED",
            "session_id": self._ctx.session_id,
            "dropped_event_type": event.event_type.value,
        })
