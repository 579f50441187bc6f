"""
Availability engine.

Composes time normalization, interval merging and slot generation on top of
a CalendarProvider:

- check_availability: point-in-time check with the broad-window guardrail
- get_available_slots: full-day slot listing (one provider round trip)
- book_appointment: conflict pre-check, then event creation

Provider failures propagate as ProviderError. Nothing here ever reports a
window as available without a successful busy lookup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Sequence

from adapters.calendar.base import CalendarProvider
from errors import (
    BroadWindowError,
    InvalidArgumentsError,
    MissingFieldError,
    ProviderError,
    SlotConflictError,
)
from observability.logger import log_event
from services.intervals import BusyInterval, merge
from services.slots import Slot, clamp_slot_minutes, discretize, free_windows
from services.time_normalizer import (
    normalize,
    parse_hhmm,
    parse_instant,
    wall_clock_iso,
)

from constants import (
    BUSINESS_HOURS_END_DEFAULT,
    BUSINESS_HOURS_START_DEFAULT,
    DAY_WINDOW_END,
    DAY_WINDOW_START,
    DEFAULT_CALENDAR_ID,
    DEFAULT_CUSTOMER_NAME,
    POINT_CHECK_MAX_WINDOW_S,
    WRITABLE_CALENDAR_ROLES,
)


_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

BROAD_WINDOW_MESSAGE = "Window too large for slot check; use getAvailableSlots instead"


# =============================================================================
# Value objects
# =============================================================================

@dataclass(frozen=True)
class CalendarSelection:
    """Ordered, de-duplicated set of calendar ids unioned for availability."""
    ids: tuple[str, ...] = ()

    @staticmethod
    def of(ids: Sequence[str] | None) -> CalendarSelection:
        seen: list[str] = []
        for cid in ids or ():
            cid = str(cid).strip()
            if cid and cid not in seen:
                seen.append(cid)
        return CalendarSelection(ids=tuple(seen))


@dataclass(frozen=True)
class BusinessHours:
    start: str = BUSINESS_HOURS_START_DEFAULT
    end: str = BUSINESS_HOURS_END_DEFAULT

    @staticmethod
    def from_value(value: Any) -> BusinessHours:
        """Accepts a {"start", "end"} mapping; anything else means defaults."""
        if isinstance(value, Mapping):
            return BusinessHours(
                start=str(value.get("start") or BUSINESS_HOURS_START_DEFAULT),
                end=str(value.get("end") or BUSINESS_HOURS_END_DEFAULT),
            )
        return BusinessHours()

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Customer:
    name: str | None = None
    email: str | None = None
    phone: str | None = None

    @staticmethod
    def from_value(value: Any) -> Customer:
        if not isinstance(value, Mapping):
            return Customer()
        return Customer(
            name=_optional_text(value.get("name")),
            email=_optional_text(value.get("email")),
            phone=_optional_text(value.get("phone")),
        )


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicts: tuple[BusyInterval, ...]
    start: str
    end: str
    timezone: str | None
    calendar_ids: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "usedGoogleCalendars": list(self.calendar_ids),
            "start": self.start,
            "end": self.end,
            "timeZone": self.timezone,
        }


@dataclass(frozen=True)
class SlotListing:
    slots: tuple[Slot, ...]
    timezone: str | None
    calendar_ids: tuple[str, ...]
    day_start: str
    day_end: str
    business_hours: BusinessHours
    slot_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "slots": [s.to_dict() for s in self.slots],
            "timeZone": self.timezone,
            "usedGoogleCalendars": list(self.calendar_ids),
            "dayStart": self.day_start,
            "dayEnd": self.day_end,
            "businessHours": self.business_hours.to_dict(),
            "slotMinutes": self.slot_minutes,
        }


@dataclass(frozen=True)
class BookingResult:
    event_id: str
    start: str
    end: str
    timezone: str | None
    calendar_id: str
    customer: Customer = field(default_factory=Customer)

    def to_dict(self) -> dict[str, Any]:
        return {
            "appointment": {
                "google_event_id": self.event_id,
                "calendar_id": self.calendar_id,
            },
            "start": self.start,
            "end": self.end,
            "timeZone": self.timezone,
        }


# =============================================================================
# Engine
# =============================================================================

class AvailabilityEngine:
    """
    Calendar math on top of one CalendarProvider.

    One engine per session (or per HTTP request); it holds no mutable state
    beyond the injected provider.
    """

    def __init__(
        self,
        *,
        provider: CalendarProvider,
        default_calendar_id: str = DEFAULT_CALENDAR_ID,
        session_id: str | None = None,
    ) -> None:
        self._provider = provider
        self._default_calendar_id = default_calendar_id
        self._session_id = session_id

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def check_availability(
        self,
        start: str | None,
        end: str | None,
        calendars: CalendarSelection = CalendarSelection(),
    ) -> AvailabilityResult:
        """
        Point-in-time availability for [start, end).

        Raises:
            MissingFieldError, InvalidArgumentsError, BroadWindowError,
            ProviderError
        """
        if not start or not end:
            raise MissingFieldError("Missing start/end", field="start" if not start else "end")

        tz = await self._provider.get_account_timezone()
        start_iso = normalize(start, tz)
        end_iso = normalize(end, tz)
        start_dt = parse_instant(start_iso)
        end_dt = parse_instant(end_iso)

        if end_dt <= start_dt:
            raise InvalidArgumentsError("end must be after start")

        if (end_dt - start_dt).total_seconds() > POINT_CHECK_MAX_WINDOW_S:
            raise BroadWindowError(
                BROAD_WINDOW_MESSAGE, start=start_iso, end=end_iso, timezone=tz
            )

        ids = await self.resolve_calendars(calendars)
        busy = await self._provider.list_busy(ids, start_dt, end_dt, tz)
        conflicts = tuple(merge(_flatten(busy)))

        log_event({
            "event_type": "AVAILABILITY_CHECKED",
            "session_id": self._session_id,
            "start": start_iso,
            "end": end_iso,
            "calendars": list(ids),
            "conflicts": len(conflicts),
        })

        return AvailabilityResult(
            available=not conflicts,
            conflicts=conflicts,
            start=start_iso,
            end=end_iso,
            timezone=tz,
            calendar_ids=ids,
        )

    async def get_available_slots(
        self,
        date: str | None,
        slot_minutes: Any = None,
        business_hours: BusinessHours | None = None,
        calendars: CalendarSelection = CalendarSelection(),
    ) -> SlotListing:
        """
        Bookable slots of ``slot_minutes`` inside business hours on ``date``.

        Raises:
            MissingFieldError, InvalidArgumentsError, ProviderError
        """
        if not date:
            raise MissingFieldError("Missing date", field="date")

        m = _DATE.match(date.strip())
        if m is None:
            raise InvalidArgumentsError("date must be YYYY-MM-DD")
        y, mo, d = (int(part) for part in m.groups())

        minutes = clamp_slot_minutes(slot_minutes)
        hours = business_hours or BusinessHours()
        bh_start_h, bh_start_m = parse_hhmm(hours.start)
        bh_end_h, bh_end_m = parse_hhmm(hours.end)
        if (bh_start_h, bh_start_m) >= (bh_end_h, bh_end_m):
            raise InvalidArgumentsError("business hours must start before they end")

        tz = await self._provider.get_account_timezone()
        day_start = wall_clock_iso(y, mo, d, *DAY_WINDOW_START, tz)
        day_end = wall_clock_iso(y, mo, d, *DAY_WINDOW_END, tz)
        bh_start = parse_instant(wall_clock_iso(y, mo, d, bh_start_h, bh_start_m, 0, tz))
        bh_end = parse_instant(wall_clock_iso(y, mo, d, bh_end_h, bh_end_m, 0, tz))

        ids = await self.resolve_calendars(calendars)
        busy = await self._provider.list_busy(
            ids, parse_instant(day_start), parse_instant(day_end), tz
        )
        merged = merge(_flatten(busy))
        slots = tuple(discretize(free_windows(merged, bh_start, bh_end), minutes))

        log_event({
            "event_type": "SLOTS_COMPUTED",
            "session_id": self._session_id,
            "date": date,
            "calendars": list(ids),
            "busy": len(merged),
            "slots": len(slots),
            "slot_minutes": minutes,
        })

        return SlotListing(
            slots=slots,
            timezone=tz,
            calendar_ids=ids,
            day_start=day_start,
            day_end=day_end,
            business_hours=hours,
            slot_minutes=minutes,
        )

    async def book_appointment(
        self,
        start: str | None,
        end: str | None,
        *,
        customer: Customer = Customer(),
        notes: str | None = None,
        calendar_id: str | None = None,
    ) -> BookingResult:
        """
        Create an appointment after a busy pre-check on the target calendar.

        Raises:
            MissingFieldError, InvalidArgumentsError, SlotConflictError,
            ProviderError
        """
        if not start or not end:
            raise MissingFieldError("Missing start/end", field="start" if not start else "end")

        target = calendar_id or self._default_calendar_id
        tz = await self._provider.get_account_timezone()
        start_iso = normalize(start, tz)
        end_iso = normalize(end, tz)
        start_dt = parse_instant(start_iso)
        end_dt = parse_instant(end_iso)
        if end_dt <= start_dt:
            raise InvalidArgumentsError("end must be after start")

        busy = await self._provider.list_busy((target,), start_dt, end_dt, tz)
        conflicts = tuple(merge(_flatten(busy)))
        if conflicts:
            raise SlotConflictError("Requested time is busy", conflicts=conflicts)

        description_lines = []
        if customer.phone:
            description_lines.append(f"Phone: {customer.phone}")
        if notes:
            description_lines.append(notes)

        event_id = await self._provider.create_event(
            target,
            f"Appointment: {customer.name or DEFAULT_CUSTOMER_NAME}",
            start_iso,
            end_iso,
            timezone=tz,
            description="\n".join(description_lines) or None,
            attendees=(customer.email,) if customer.email else (),
        )

        log_event({
            "event_type": "APPOINTMENT_BOOKED",
            "session_id": self._session_id,
            "calendar_id": target,
            "event_id": event_id,
            "start": start_iso,
            "end": end_iso,
        })

        return BookingResult(
            event_id=event_id,
            start=start_iso,
            end=end_iso,
            timezone=tz,
            calendar_id=target,
            customer=customer,
        )

    async def account_timezone(self) -> str | None:
        """Authoritative timezone of the connected calendar account."""
        return await self._provider.get_account_timezone()

    # ------------------------------------------------------------------
    # Calendar selection
    # ------------------------------------------------------------------

    async def resolve_calendars(self, calendars: CalendarSelection) -> tuple[str, ...]:
        """
        Explicit selection wins. Otherwise: account calendars that are
        (selected or primary) and writable, falling back to the default id.
        """
        if calendars.ids:
            return calendars.ids

        try:
            listed = await self._provider.list_calendars()
        except ProviderError as exc:
            log_event({
                "event_type": "CALENDAR_LIST_UNAVAILABLE",
                "session_id": self._session_id,
                "error": str(exc),
            })
            listed = []

        ids = tuple(
            c.calendar_id
            for c in listed
            if (c.selected or c.primary) and c.access_role in WRITABLE_CALENDAR_ROLES
        )
        return ids or (self._default_calendar_id,)


# =============================================================================
# Helpers
# =============================================================================

def _flatten(busy: Mapping[str, Sequence[BusyInterval]]) -> list[BusyInterval]:
    return [b for intervals in busy.values() for b in intervals]


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def add_minutes(iso: str, minutes: int) -> str:
    """Wall-clock string ``minutes`` after a normalized instant, offset kept."""
    dt = parse_instant(iso) + timedelta(minutes=minutes)
    return dt.isoformat()
