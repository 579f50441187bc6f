"""
Side-effect command definitions for the orchestrator.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Gateway commands are semantic; the wire payloads are built by the
  realtime protocol adapter.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from orchestrator.events import EventType
from orchestrator.enums.tool import ToolName, ToolOrigin

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging, replay,
    and runtime dispatch.
    """

    # Realtime speech gateway
    CONFIGURE_SESSION = "CONFIGURE_SESSION"
    CREATE_RESPONSE = "CREATE_RESPONSE"
    CANCEL_RESPONSE = "CANCEL_RESPONSE"
    SEND_TOOL_RESULT = "SEND_TOOL_RESULT"
    SEND_SYSTEM_NOTE = "SEND_SYSTEM_NOTE"
    FLUSH_OUTBOUND = "FLUSH_OUTBOUND"

    # Tools
    EXECUTE_TOOL = "EXECUTE_TOOL"

    # Speech output
    ENQUEUE_SPEECH = "ENQUEUE_SPEECH"
    RESET_SPEECH = "RESET_SPEECH"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Product-facing observers
    NOTIFY_OBSERVER = "NOTIFY_OBSERVER"

    # Session / lifecycle
    END_SESSION = "END_SESSION"

    # Observability
    LOG_EVENT = "LOG_EVENT"


class ObserverKind(str, Enum):
    TRANSCRIPT = "TRANSCRIPT"
    AGENT_TRANSCRIPT = "AGENT_TRANSCRIPT"
    TOOL_EVENT = "TOOL_EVENT"
    SLOTS = "SLOTS"
    ERROR = "ERROR"


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
# Realtime speech gateway
# =============================================================================

@dataclass(frozen=True)
class ConfigureSession(Command):
    """Send session configuration (instructions, tools, VAD, transcription)."""
    instructions: str
    language: str
    command_type: CommandType = CommandType.CONFIGURE_SESSION


@dataclass(frozen=True)
class CreateResponse(Command):
    """
    Ask the model for a response.

    instructions None means the model's own turn; tool_choice None leaves the
    model's default.
    """
    instructions: str | None = None
    tool_choice: str | None = None
    command_type: CommandType = CommandType.CREATE_RESPONSE


@dataclass(frozen=True)
class CancelResponse(Command):
    """Cancel the in-flight model response."""
    command_type: CommandType = CommandType.CANCEL_RESPONSE


@dataclass(frozen=True)
class SendToolResult(Command):
    """Answer a model tool call on its correlation id."""
    correlation_id: str
    result: Mapping[str, Any]
    command_type: CommandType = CommandType.SEND_TOOL_RESULT


@dataclass(frozen=True)
class SendSystemNote(Command):
    """Append a system message to the model conversation."""
    text: str
    command_type: CommandType = CommandType.SEND_SYSTEM_NOTE


@dataclass(frozen=True)
class FlushOutbound(Command):
    """Replay gateway commands buffered before the transport opened."""
    command_type: CommandType = CommandType.FLUSH_OUTBOUND


# =============================================================================
# Tools
# =============================================================================

@dataclass(frozen=True)
class ExecuteTool(Command):
    """
    Run one tool against the availability engine.

    calendar_ids is the selection snapshot taken when the arguments
    completed; later selection changes do not affect this execution.
    """
    correlation_id: str
    tool: ToolName
    origin: ToolOrigin
    args: Mapping[str, Any] = field(default_factory=dict)
    calendar_ids: tuple[str, ...] = ()
    organization_id: str | None = None
    default_calendar_id: str | None = None
    timezone: str | None = None
    transcript: str = ""
    command_type: CommandType = CommandType.EXECUTE_TOOL


# =============================================================================
# Speech output
# =============================================================================

@dataclass(frozen=True)
class EnqueueSpeech(Command):
    """Finalized agent text for the external TTS path."""
    text: str
    command_type: CommandType = CommandType.ENQUEUE_SPEECH


@dataclass(frozen=True)
class ResetSpeech(Command):
    """Invalidate queued speech and stop playback."""
    command_type: CommandType = CommandType.RESET_SPEECH


# =============================================================================
# Timers
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Start (or replace) a timer.

    On expiry the runtime emits timeout_event_type carrying ``token``.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    token: int = 0
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observers
# =============================================================================

@dataclass(frozen=True)
class NotifyObserver(Command):
    kind: ObserverKind
    payload: Mapping[str, Any] = field(default_factory=dict)
    command_type: CommandType = CommandType.NOTIFY_OBSERVER


# =============================================================================
# Session / lifecycle
# =============================================================================

@dataclass(frozen=True)
class EndSession(Command):
    """
    Tear the session down: timers, tool tasks and speech first, then the
    transport.
    """
    reason: str
    command_type: CommandType = CommandType.END_SESSION


# =============================================================================
# Observability
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    event: Mapping[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
