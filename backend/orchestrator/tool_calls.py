"""
Tool-call helpers for the reducer.

Pure functions only:
- argument parsing
- tool-name classification from the announced name or argument shape
- transcript heuristics (time / day detection, time-of-day extraction)
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

from constants import DAY_KEYWORDS, INVALID_TOOL_ARGUMENTS_MESSAGE, UNNAMED_TOOL_NAMES
from errors import InvalidArgumentsError
from orchestrator.enums.tool import ToolName


TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s?(am|pm)?\b", re.IGNORECASE)
NOON_MIDNIGHT_RE = re.compile(r"\b(noon|midnight)\b", re.IGNORECASE)
DAY_RE = re.compile(
    r"\b(" + "|".join(k.replace(" ", r"\s+") for k in DAY_KEYWORDS) + r")\b",
    re.IGNORECASE,
)

_KNOWN_TOOLS = {tool.value: tool for tool in ToolName}


def parse_arguments(buffer: str | None) -> dict[str, Any]:
    """
    Parse a complete argument buffer.

    An empty buffer is an empty object. Anything that is not a JSON object
    raises InvalidArgumentsError.
    """
    if buffer is None or not buffer.strip():
        return {}
    try:
        parsed = json.loads(buffer)
    except json.JSONDecodeError as e:
        raise InvalidArgumentsError(INVALID_TOOL_ARGUMENTS_MESSAGE) from e
    if not isinstance(parsed, dict):
        raise InvalidArgumentsError(INVALID_TOOL_ARGUMENTS_MESSAGE)
    return parsed


def classify_tool(name: str | None, args: Mapping[str, Any]) -> ToolName | None:
    """
    Decide which tool a call targets.

    A known name wins. A missing or "unknown" name is inferred from the
    argument shape. Returns None when neither works.
    """
    raw = (name or "").strip()
    if raw in _KNOWN_TOOLS:
        return _KNOWN_TOOLS[raw]
    if raw not in UNNAMED_TOOL_NAMES:
        return None

    has_window = bool(args.get("start")) and bool(args.get("end"))
    if has_window and args.get("customer"):
        return ToolName.BOOK_APPOINTMENT
    if has_window:
        return ToolName.CHECK_AVAILABILITY
    if args.get("date"):
        return ToolName.GET_AVAILABLE_SLOTS
    return None


# =============================================================================
# Transcript heuristics
# =============================================================================

def has_time(text: str) -> bool:
    return bool(TIME_RE.search(text) or NOON_MIDNIGHT_RE.search(text))


def is_day_query(text: str) -> bool:
    return bool(DAY_RE.search(text))


def classify_utterance(text: str) -> ToolName | None:
    """
    Which tool a caller utterance should force, if any.

    A time-bearing utterance forces a point check; a day-bearing one without
    a time forces slot listing.
    """
    if has_time(text):
        return ToolName.CHECK_AVAILABILITY
    if is_day_query(text):
        return ToolName.GET_AVAILABLE_SLOTS
    return None


def extract_time_of_day(text: str) -> tuple[int, int] | None:
    """
    First time of day mentioned in ``text`` as (hour, minute), 24h clock.

    "3pm" -> (15, 0), "12am" -> (0, 0), "noon" -> (12, 0). A bare hour
    without am/pm is taken as written.
    """
    match = TIME_RE.search(text)
    if match is None:
        word = NOON_MIDNIGHT_RE.search(text)
        if word is None:
            return None
        return (12, 0) if word.group(1).lower() == "noon" else (0, 0)

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").lower()
    if meridiem == "pm" and hour != 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0

    if hour > 23 or minute > 59:
        return None
    return hour, minute
