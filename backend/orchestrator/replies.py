"""
Deterministic scripted replies.

Every availability or booking outcome is spoken from one of these strings,
never from the model's own wording.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from constants import SPOKEN_RANGE_SEPARATOR, SPOKEN_SLOT_OPTIONS_MAX, SPOKEN_TIME_FORMAT
from services.slots import Slot
from services.time_normalizer import parse_instant, resolve_zone


SLOTS_ERROR = "I could not retrieve the day availability at the moment."
CHECK_PROVIDER_ERROR = "I could not check the calendar just now. Could you try another time?"
BOOKING_CONFLICT = "That time is busy. Would you like me to suggest alternatives?"
BOOKING_FAILED = (
    "I could not book that appointment just now. Would you like me to suggest another time?"
)
NO_SLOTS = "No free slots found that day."


def format_time(value: datetime | str, timezone: str | None = None) -> str:
    """'2:00 PM' in ``timezone`` (or the value's own offset)."""
    dt = parse_instant(value) if isinstance(value, str) else value
    if timezone:
        dt = dt.astimezone(resolve_zone(timezone))
    return dt.strftime(SPOKEN_TIME_FORMAT).lstrip("0")


def format_range(start: datetime | str, end: datetime | str, timezone: str | None = None) -> str:
    return f"{format_time(start, timezone)}{SPOKEN_RANGE_SEPARATOR}{format_time(end, timezone)}"


def _slot_list(slots: Sequence[Slot], timezone: str | None) -> str:
    return ", ".join(format_range(s.start, s.end, timezone) for s in slots)


def available(start: str, end: str, timezone: str | None) -> str:
    return f"Yes, {format_range(start, end, timezone)} is available. Would you like me to book it?"


def busy(
    start: str,
    end: str,
    timezone: str | None,
    alternatives: Sequence[Slot] | None,
) -> str:
    """
    Busy reply. ``alternatives`` None means the day listing failed; an empty
    listing is read the same way.
    """
    requested = format_range(start, end, timezone)
    if not alternatives:
        return (
            f"Sorry, {requested} is not available. "
            "I could not retrieve alternative slots for that day."
        )
    options = _slot_list(alternatives[:SPOKEN_SLOT_OPTIONS_MAX], timezone)
    return f"Sorry, {requested} is not available. The available times that day are: {options}."


def slots(listing: Sequence[Slot], timezone: str | None) -> str:
    if not listing:
        return NO_SLOTS
    return f"Available times are: {_slot_list(listing[:SPOKEN_SLOT_OPTIONS_MAX], timezone)}."


def booked(start: str, end: str, timezone: str | None) -> str:
    return (
        f"Perfect! I've booked {format_range(start, end, timezone)} for you. "
        "It's now on your calendar."
    )
