"""
Free window computation and slot discretization.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Sequence

from services.intervals import BusyInterval
from constants import SLOT_MINUTES_DEFAULT, SLOT_MINUTES_MAX, SLOT_MINUTES_MIN


@dataclass(frozen=True)
class FreeWindow:
    """Contiguous span inside business hours not covered by busy time."""
    start: datetime
    end: datetime


@dataclass(frozen=True)
class Slot:
    """Fixed-duration bookable sub-range of a free window."""
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def clamp_slot_minutes(value: Any) -> int:
    """Clamp a requested slot length into the supported range."""
    try:
        minutes = SLOT_MINUTES_DEFAULT if value is None else int(value)
    except (TypeError, ValueError):
        minutes = SLOT_MINUTES_DEFAULT
    return max(SLOT_MINUTES_MIN, min(SLOT_MINUTES_MAX, minutes))


def free_windows(
    merged_busy: Sequence[BusyInterval],
    window_start: datetime,
    window_end: datetime,
) -> list[FreeWindow]:
    """
    Walk merged busy intervals left to right inside [window_start, window_end).

    ``merged_busy`` must already be sorted and non-overlapping.
    """
    windows: list[FreeWindow] = []
    cursor = window_start

    for b in merged_busy:
        if b.end <= window_start or b.start >= window_end:
            continue

        if b.start > cursor:
            windows.append(FreeWindow(start=cursor, end=min(b.start, window_end)))

        cursor = max(cursor, b.end)
        if cursor >= window_end:
            break

    if cursor < window_end:
        windows.append(FreeWindow(start=cursor, end=window_end))

    return windows


def discretize(windows: Sequence[FreeWindow], slot_minutes: int) -> list[Slot]:
    """
    Emit back-to-back slots of exactly ``slot_minutes`` inside each window.

    Remainders shorter than one slot are dropped.
    """
    duration = timedelta(minutes=slot_minutes)
    slots: list[Slot] = []

    for w in windows:
        s = w.start
        while s + duration <= w.end:
            slots.append(Slot(start=s, end=s + duration))
            s += duration

    return slots
