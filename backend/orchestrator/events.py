"""
Unified event definitions for the orchestrator reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Gateway events arrive with an open string tag. Anything the protocol layer
cannot map becomes UnknownGatewayEvent, which the reducer explicitly ignores.
Timer events carry the token they were armed with for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from orchestrator.enums.tool import ToolName, ToolOrigin


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    CONNECT_REQUESTED = "CONNECT_REQUESTED"
    TRANSPORT_OPENED = "TRANSPORT_OPENED"
    TRANSPORT_FAILED = "TRANSPORT_FAILED"
    DISCONNECT_REQUESTED = "DISCONNECT_REQUESTED"
    CALENDAR_SELECTION_CHANGED = "CALENDAR_SELECTION_CHANGED"

    # ------------------------------------------------------------------
    # Caller speech
    # ------------------------------------------------------------------
    USER_TRANSCRIPT = "USER_TRANSCRIPT"
    USER_TRANSCRIPT_DELTA = "USER_TRANSCRIPT_DELTA"

    # ------------------------------------------------------------------
    # Model response lifecycle
    # ------------------------------------------------------------------
    RESPONSE_STARTED = "RESPONSE_STARTED"
    RESPONSE_FINISHED = "RESPONSE_FINISHED"
    RESPONSE_CANCELLED = "RESPONSE_CANCELLED"
    AGENT_TRANSCRIPT_DELTA = "AGENT_TRANSCRIPT_DELTA"
    AGENT_TRANSCRIPT_DONE = "AGENT_TRANSCRIPT_DONE"

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------
    TOOL_CALL_ANNOUNCED = "TOOL_CALL_ANNOUNCED"
    TOOL_ARGUMENTS_DELTA = "TOOL_ARGUMENTS_DELTA"
    TOOL_ARGUMENTS_DONE = "TOOL_ARGUMENTS_DONE"
    TOOL_RESULT_READY = "TOOL_RESULT_READY"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    TOOL_REPROMPT_TIMEOUT = "TOOL_REPROMPT_TIMEOUT"
    TOOL_FALLBACK_TIMEOUT = "TOOL_FALLBACK_TIMEOUT"
    UTTERANCE_DEBOUNCE_ELAPSED = "UTTERANCE_DEBOUNCE_ELAPSED"

    # ------------------------------------------------------------------
    # Gateway errors / unknown
    # ------------------------------------------------------------------
    GATEWAY_ERROR = "GATEWAY_ERROR"
    UNKNOWN_GATEWAY_EVENT = "UNKNOWN_GATEWAY_EVENT"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    event_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """
    event_type: EventType
    ts_ms: int


# =============================================================================
# Session lifecycle
# =============================================================================

@dataclass(frozen=True)
class ConnectRequested(Event):
    session_id: str


@dataclass(frozen=True)
class TransportOpened(Event):
    pass


@dataclass(frozen=True)
class TransportFailed(Event):
    reason: str


@dataclass(frozen=True)
class DisconnectRequested(Event):
    reason: str = "client_disconnect"


@dataclass(frozen=True)
class CalendarSelectionChanged(Event):
    calendar_ids: tuple[str, ...]


# =============================================================================
# Caller speech
# =============================================================================

@dataclass(frozen=True)
class UserTranscript(Event):
    """Finalized transcript of one caller utterance."""
    text: str


@dataclass(frozen=True)
class UserTranscriptDelta(Event):
    """Partial caller transcript; only used to detect barge-in early."""
    delta: str


# =============================================================================
# Model response lifecycle
# =============================================================================

@dataclass(frozen=True)
class ResponseStarted(Event):
    wire_type: str = ""


@dataclass(frozen=True)
class ResponseFinished(Event):
    wire_type: str = ""


@dataclass(frozen=True)
class ResponseCancelled(Event):
    pass


@dataclass(frozen=True)
class AgentTranscriptDelta(Event):
    delta: str


@dataclass(frozen=True)
class AgentTranscriptDone(Event):
    text: str = ""


# =============================================================================
# Tool calls
# =============================================================================

@dataclass(frozen=True)
class ToolCallAnnounced(Event):
    correlation_id: str
    name: str = ""


@dataclass(frozen=True)
class ToolArgumentsDelta(Event):
    correlation_id: str
    delta: str
    name: str = ""


@dataclass(frozen=True)
class ToolArgumentsDone(Event):
    """
    Argument stream finished.

    arguments is the full payload when the gateway repeats it; None means
    the buffered fragments are authoritative.
    """
    correlation_id: str
    name: str = ""
    arguments: str | None = None


@dataclass(frozen=True)
class ToolResultReady(Event):
    """
    Outcome of a tool execution, produced by the runtime.

    spoken:    scripted reply to speak, or None
    follow_up: tool to force next (broad window redirects to slot listing)
    slots:     slot payload for observers, when the tool produced one
    """
    correlation_id: str
    tool: ToolName | None
    origin: ToolOrigin
    ok: bool
    result: Mapping[str, Any] = field(default_factory=dict)
    spoken: str | None = None
    follow_up: ToolName | None = None
    slots: Mapping[str, Any] | None = None


# =============================================================================
# Timers
# =============================================================================

@dataclass(frozen=True)
class ToolRepromptTimeout(Event):
    token: int


@dataclass(frozen=True)
class ToolFallbackTimeout(Event):
    token: int


@dataclass(frozen=True)
class UtteranceDebounceElapsed(Event):
    token: int


# =============================================================================
# Gateway errors / unknown
# =============================================================================

@dataclass(frozen=True)
class GatewayError(Event):
    message: str
    code: str | None = None


@dataclass(frozen=True)
class UnknownGatewayEvent(Event):
    wire_type: str
