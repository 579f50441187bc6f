"""
Busy interval model and merging.

All intervals are half-open [start, end) over aware datetimes. Merging
treats touching intervals as one run.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable


@dataclass(frozen=True)
class BusyInterval:
    """Occupied time range reported by a calendar."""
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def merge(intervals: Iterable[BusyInterval]) -> list[BusyInterval]:
    """
    Sort by start and coalesce overlapping or touching intervals.

    Output is sorted and non-overlapping; covered time is unchanged.
    """
    ordered = sorted(intervals, key=lambda b: (b.start, b.end))
    merged: list[BusyInterval] = []

    for b in ordered:
        if not merged or b.start > merged[-1].end:
            merged.append(b)
            continue

        last = merged[-1]
        if b.end > last.end:
            merged[-1] = BusyInterval(start=last.start, end=b.end)

    return merged


def total_duration(intervals: Iterable[BusyInterval]) -> timedelta:
    """Sum of interval lengths (meaningful on merged input)."""
    total = timedelta(0)
    for b in intervals:
        total += b.end - b.start
    return total
