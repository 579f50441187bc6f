"""
Model-facing text for the realtime scheduling session.

Everything the speech model reads lives here: session instructions, tool
declarations, forced-tool instructions and scripted "say exactly" wrappers.
"""

from __future__ import annotations

import json
from typing import Any

from orchestrator.enums.tool import ToolName


DEFAULT_SYSTEM_PROMPT: str = """
You are a voice scheduling assistant that helps callers check availability and book appointments.

Speak naturally and briefly, as if talking on the phone.

Voice Rules

- Keep responses to 1-2 sentences unless necessary.
- Never mention tools, JSON, APIs, or internal logic.
- Output plain conversational speech only.

Scheduling Rules

- Never invent availability. Times you say must come from a tool result.
- Never confirm a booking without calling bookAppointment.
- If required information is missing (time, name, phone), ask briefly for it.
""".strip()


PATIENCE_GUIDANCE: str = (
    "Turn-taking rules:\n"
    "- Wait about one second after the caller finishes before replying.\n"
    "- Do not assume consent. Only proceed when the caller explicitly answers (for example 'yes').\n"
    "- Treat background noise or one-syllable utterances as unclear and ask a short clarifying question.\n"
    "- If the caller starts speaking while you are speaking, stop immediately and let them finish.\n"
    "- After the greeting, wait for the caller before asking the next question."
)


SUPPRESS_NARRATION_NOTE: str = (
    "Tool result has been processed. Agent will speak the response."
)


TOOL_DECLARATIONS: tuple[dict[str, Any], ...] = (
    {
        "type": "function",
        "name": ToolName.CHECK_AVAILABILITY.value,
        "description": "Check if a specific start-end window is free on the connected calendar",
        "parameters": {
            "type": "object",
            "properties": {
                "start": {"type": "string", "description": "Local start time, YYYY-MM-DDTHH:MM:SS"},
                "end": {"type": "string", "description": "Local end time, YYYY-MM-DDTHH:MM:SS"},
                "organizationId": {"type": "string"},
                "calendarId": {"type": "string"},
            },
            "required": ["start", "end"],
        },
    },
    {
        "type": "function",
        "name": ToolName.GET_AVAILABLE_SLOTS.value,
        "description": "Get free slots for a given date on the connected calendar",
        "parameters": {
            "type": "object",
            "properties": {
                "date": {"type": "string", "description": "Date in YYYY-MM-DD"},
                "slotMinutes": {"type": "number"},
                "businessHours": {
                    "type": "object",
                    "properties": {
                        "start": {"type": "string", "description": "HH:MM"},
                        "end": {"type": "string", "description": "HH:MM"},
                    },
                },
            },
            "required": ["date"],
        },
    },
    {
        "type": "function",
        "name": ToolName.BOOK_APPOINTMENT.value,
        "description": "Create a calendar event for the confirmed time",
        "parameters": {
            "type": "object",
            "properties": {
                "start": {"type": "string", "description": "Local start time, YYYY-MM-DDTHH:MM:SS"},
                "end": {"type": "string", "description": "Local end time, YYYY-MM-DDTHH:MM:SS"},
                "organizationId": {"type": "string"},
                "calendarId": {"type": "string"},
                "customer": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "email": {"type": "string"},
                        "phone": {"type": "string"},
                    },
                    "required": ["name"],
                },
                "notes": {"type": "string"},
            },
            "required": ["start", "end"],
        },
    },
)


def build_session_instructions(
    *,
    base_prompt: str,
    language: str,
    timezone: str | None,
    organization_id: str | None = None,
    calendar_id: str | None = None,
    default_appointment_minutes: int = 60,
    include_tool_hint: bool = False,
) -> str:
    """Full instruction block sent with every session configuration."""
    parts = [base_prompt.strip() or DEFAULT_SYSTEM_PROMPT]
    parts.append(f"You MUST speak only in {language}. Do not code-switch.")
    if timezone:
        parts.append(
            f"All times are in {timezone}. When confirming, say the weekday and "
            "local time (e.g., Monday 10:00 AM)."
        )
    parts.append(
        "When providing date-times to tools, do NOT include a timezone offset. "
        "Provide local wall time only (the server will apply the calendar timezone)."
    )
    parts.append(PATIENCE_GUIDANCE)
    if include_tool_hint:
        parts.append(
            tool_hint(
                organization_id=organization_id,
                calendar_id=calendar_id,
                default_appointment_minutes=default_appointment_minutes,
            )
        )
    return "\n\n".join(parts)


def tool_hint(
    *,
    organization_id: str | None,
    calendar_id: str | None,
    default_appointment_minutes: int,
) -> str:
    return (
        "Use tools for scheduling. When the caller mentions a specific time, call "
        "checkAvailability with start at that exact local time and "
        f"end=start+{default_appointment_minutes} minutes unless they asked for a "
        "different duration. Do not check a whole day when a specific time was "
        "requested. If checkAvailability shows conflicts, do not book; propose the "
        "next free times. When booking, put a concise summary of the caller's "
        "request in the notes. "
        f"Default organizationId={organization_id or 'unknown'}, "
        f"calendarId={calendar_id or 'primary'}."
    )


def required_tool_instruction(tool: ToolName, default_appointment_minutes: int = 60) -> str:
    """Instruction attached to a response that must call ``tool``."""
    if tool is ToolName.GET_AVAILABLE_SLOTS:
        return (
            "User asked for day availability. Call getAvailableSlots with the "
            "requested date (YYYY-MM-DD). Do not state times unless they come "
            "from the tool result."
        )
    return (
        "User asked for a specific time. Call checkAvailability with start at "
        f"that exact local time and end=start+{default_appointment_minutes} "
        "minutes (unless user specified a duration). Do not speak availability "
        "before the tool result."
    )


def say_exactly(text: str) -> str:
    """Wrap a scripted reply so the model speaks it verbatim."""
    return f"Say exactly this and nothing else: {json.dumps(text, ensure_ascii=False)}"


def greeting_instruction(greeting: str) -> str:
    return f"Say exactly: {json.dumps(greeting.strip(), ensure_ascii=False)}."
