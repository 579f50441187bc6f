"""
Time normalization against an authoritative account timezone.

Wall-clock strings coming from the speech model or HTTP callers are
re-anchored to the account timezone. Any offset the caller supplied is
discarded: the account timezone always wins.

Known limitation: offsets are rendered in whole hours. Zones with
half-hour or quarter-hour offsets are rounded to the nearest hour.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from errors import InvalidArgumentsError


_TRAILING_OFFSET = re.compile(r"(Z|z|[+-]\d{2}:\d{2})$")
_MINUTE_PRECISION = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}$")
_WALL_CLOCK = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})$")
_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def resolve_zone(name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name or raise InvalidArgumentsError."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidArgumentsError(f"Unknown timezone: {name}") from exc


def _format_offset(offset: timedelta) -> str:
    total_minutes = offset.total_seconds() / 60
    sign = "-" if total_minutes < 0 else "+"
    # Half hours round away from zero.
    hours = int(abs(total_minutes) / 60 + 0.5)
    return f"{sign}{hours:02d}:00"


def offset_for(wall_clock: datetime, timezone: str) -> str:
    """
    Offset string for ``timezone`` probed at the wall-clock fields read as UTC.
    """
    probe = wall_clock.replace(tzinfo=dt_timezone.utc)
    offset = probe.astimezone(resolve_zone(timezone)).utcoffset() or timedelta(0)
    return _format_offset(offset)


def normalize(value: str, timezone: str | None = None) -> str:
    """
    Normalize a datetime string to an absolute instant string.

    - A trailing ``Z`` or ``±HH:MM`` is stripped.
    - ``YYYY-MM-DDTHH:MM`` is padded with ``:00`` seconds.
    - Without a timezone the result is UTC (``Z``).
    - Values that are not plain wall clocks after padding are returned
      with ``Z`` appended.
    """
    s = _TRAILING_OFFSET.sub("", value.strip())
    if _MINUTE_PRECISION.match(s):
        s = f"{s}:00"

    if not timezone:
        return f"{s}Z"

    m = _WALL_CLOCK.match(s)
    if m is None:
        return f"{s}Z"

    y, mo, d, hh, mi, ss = (int(part) for part in m.groups())
    try:
        wall = datetime(y, mo, d, hh, mi, ss)
    except ValueError as exc:
        raise InvalidArgumentsError(f"Invalid datetime: {value}") from exc

    return f"{s}{offset_for(wall, timezone)}"


def wall_clock_iso(
    year: int,
    month: int,
    day: int,
    hour: int,
    minute: int,
    second: int,
    timezone: str | None,
) -> str:
    """Build a normalized instant string from wall-clock fields."""
    s = f"{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:{second:02d}"
    return normalize(s, timezone)


def parse_instant(value: str) -> datetime:
    """Parse a normalized instant string into an aware datetime."""
    s = value.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError as exc:
        raise InvalidArgumentsError(f"Invalid datetime: {value}") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def parse_hhmm(value: str) -> tuple[int, int]:
    """Parse ``HH:MM`` into (hour, minute)."""
    m = _HHMM.match(value.strip())
    if m is None:
        raise InvalidArgumentsError(f"Invalid time of day: {value}")

    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise InvalidArgumentsError(f"Invalid time of day: {value}")
    return hour, minute


def local_date(value: str) -> str:
    """Calendar date (``YYYY-MM-DD``) of a normalized instant string."""
    return value.strip()[:10]
