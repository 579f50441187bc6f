"""
Authoritative orchestrator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import DEFAULT_APPOINTMENT_MINUTES, DEFAULT_CALENDAR_ID, DEFAULT_LANGUAGE
from orchestrator.enums.state import State
from orchestrator.enums.tool import ToolName, ToolOrigin, ToolStatus


# =============================================================================
# Turn-taking flags
# =============================================================================

@dataclass(frozen=True)
class TurnFlags:
    """Orthogonal sub-flags of the session state."""
    agent_speaking: bool = False
    waiting_for_user: bool = False
    greeting_in_progress: bool = False
    tool_hint_sent: bool = False


# =============================================================================
# Tool calls
# =============================================================================

@dataclass(frozen=True)
class ToolInvocation:
    """
    The single admitted tool call.

    tool_name is the raw name as announced; ``tool`` is set once the
    arguments are complete and the call has been classified.
    """
    correlation_id: str
    tool_name: str = ""
    argument_buffer: str = ""
    status: ToolStatus = ToolStatus.PENDING
    created_at_ms: int = 0
    origin: ToolOrigin = ToolOrigin.MODEL
    tool: ToolName | None = None


@dataclass(frozen=True)
class QueuedCall:
    """A call announced while another one was in flight."""
    correlation_id: str
    tool_name: str = ""
    argument_buffer: str = ""
    arguments_complete: bool = False
    created_at_ms: int = 0


@dataclass(frozen=True)
class ToolRequirement:
    """
    A forced tool call the session is waiting on.

    requirement_id is the token carried by the re-prompt and fallback timers.
    """
    requirement_id: int
    tool: ToolName
    transcript: str = ""
    reprompts_sent: int = 0
    fallback_fired: bool = False


# =============================================================================
# Orchestrator State
# =============================================================================

@dataclass(frozen=True)
class OrchestratorState:
    """Immutable snapshot of all orchestrator-owned state."""

    # ------------------------------------------------------------------
    # Session identity / configuration
    # ------------------------------------------------------------------
    session_id: str = ""
    organization_id: str | None = None
    agent_id: str | None = None
    default_calendar_id: str = DEFAULT_CALENDAR_ID
    calendar_ids: tuple[str, ...] = ()
    timezone: str | None = None
    language: str = DEFAULT_LANGUAGE
    base_system_prompt: str = ""
    greeting: str | None = None
    default_appointment_minutes: int = DEFAULT_APPOINTMENT_MINUTES
    wait_for_caller: bool = False

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: State = State.CONNECTING
    flags: TurnFlags = TurnFlags()

    # ------------------------------------------------------------------
    # Tool coordination
    # ------------------------------------------------------------------
    active_tool: ToolInvocation | None = None
    backlog: tuple[QueuedCall, ...] = ()
    requirement: ToolRequirement | None = None
    next_requirement_id: int = 1
    fallback_seq: int = 0

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------
    utterance_seq: int = 0
    last_transcript: str = ""
    caller_partial: str = ""
    agent_transcript: str = ""

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None
