"""
Tool execution against the availability engine.

Turns an ExecuteTool command into a ToolOutcome: the result sent back to
the speech model, the scripted reply to speak, an optional forced follow-up
tool and the slot payload for observers.

Scheduling errors are recovered here. Anything else propagates to the
runtime's task boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Callable, Mapping

from constants import DEFAULT_APPOINTMENT_MINUTES, SLOT_MINUTES_DEFAULT
from errors import (
    BroadWindowError,
    MissingFieldError,
    SchedulingError,
    SlotConflictError,
)
from observability.metrics import timed
from orchestrator import replies
from orchestrator.commands import ExecuteTool
from orchestrator.enums.tool import ToolName
from services.availability import (
    AvailabilityEngine,
    AvailabilityResult,
    BusinessHours,
    CalendarSelection,
    Customer,
    SlotListing,
    add_minutes,
)
from services.time_normalizer import local_date, resolve_zone


Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


@dataclass(frozen=True)
class ToolOutcome:
    ok: bool
    result: Mapping[str, Any] = field(default_factory=dict)
    spoken: str | None = None
    follow_up: ToolName | None = None
    slots: Mapping[str, Any] | None = None


class ToolExecutor:
    """One executor per session; shares the session's engine."""

    def __init__(
        self,
        engine: AvailabilityEngine,
        *,
        default_appointment_minutes: int = DEFAULT_APPOINTMENT_MINUTES,
        alternative_slot_minutes: int = SLOT_MINUTES_DEFAULT,
        clock: Clock = _utc_now,
        session_id: str | None = None,
    ) -> None:
        self._engine = engine
        self._default_minutes = default_appointment_minutes
        self._alternative_minutes = alternative_slot_minutes
        self._clock = clock
        self._session_id = session_id

    async def execute(self, cmd: ExecuteTool) -> ToolOutcome:
        with timed(
            "tool_execution",
            session_id=self._session_id,
            details={"tool": cmd.tool.value, "origin": cmd.origin.value},
        ):
            if cmd.tool is ToolName.CHECK_AVAILABILITY:
                if "hour" in cmd.args:
                    return await self._fallback_check(cmd)
                return await self._check(
                    cmd.args.get("start"), cmd.args.get("end"), _selection(cmd)
                )
            if cmd.tool is ToolName.GET_AVAILABLE_SLOTS:
                return await self._slots(cmd)
            return await self._book(cmd)

    # ------------------------------------------------------------------
    # checkAvailability
    # ------------------------------------------------------------------

    async def _check(
        self,
        start: Any,
        end: Any,
        calendars: CalendarSelection,
    ) -> ToolOutcome:
        try:
            res = await self._engine.check_availability(start, end, calendars)
        except BroadWindowError as e:
            return ToolOutcome(ok=False, result=e.to_result(), follow_up=ToolName.GET_AVAILABLE_SLOTS)
        except MissingFieldError as e:
            return ToolOutcome(ok=False, result=e.to_result())
        except SchedulingError as e:
            return ToolOutcome(ok=False, result=e.to_result(), spoken=replies.CHECK_PROVIDER_ERROR)

        if res.available:
            return ToolOutcome(
                ok=True,
                result=res.to_dict(),
                spoken=replies.available(res.start, res.end, res.timezone),
            )

        listing = await self._alternatives(res, calendars)
        return ToolOutcome(
            ok=True,
            result=res.to_dict(),
            spoken=replies.busy(
                res.start,
                res.end,
                res.timezone,
                None if listing is None else listing.slots,
            ),
            slots=None if listing is None else listing.to_dict(),
        )

    async def _alternatives(
        self,
        res: AvailabilityResult,
        calendars: CalendarSelection,
    ) -> SlotListing | None:
        try:
            return await self._engine.get_available_slots(
                local_date(res.start),
                self._alternative_minutes,
                calendars=calendars,
            )
        except SchedulingError:
            return None

    async def _fallback_check(self, cmd: ExecuteTool) -> ToolOutcome:
        """
        Point check built from a time of day the caller said.

        The start is the next occurrence of that time in the session timezone.
        """
        try:
            tz_name = cmd.timezone or await self._engine.account_timezone() or "UTC"
            zone = resolve_zone(tz_name)
        except SchedulingError:
            return ToolOutcome(ok=False, result={}, spoken=replies.CHECK_PROVIDER_ERROR)

        now = self._clock().astimezone(zone)
        start = now.replace(
            hour=int(cmd.args["hour"]), minute=int(cmd.args.get("minute", 0)),
            second=0, microsecond=0,
        )
        if start < now:
            start += timedelta(days=1)
        end = start + timedelta(minutes=self._default_minutes)

        fmt = "%Y-%m-%dT%H:%M:%S"
        return await self._check(start.strftime(fmt), end.strftime(fmt), _selection(cmd))

    # ------------------------------------------------------------------
    # getAvailableSlots
    # ------------------------------------------------------------------

    async def _slots(self, cmd: ExecuteTool) -> ToolOutcome:
        args = cmd.args
        try:
            listing = await self._engine.get_available_slots(
                args.get("date"),
                args.get("slotMinutes"),
                BusinessHours.from_value(args.get("businessHours")),
                calendars=_selection(cmd),
            )
        except MissingFieldError as e:
            return ToolOutcome(ok=False, result=e.to_result())
        except SchedulingError as e:
            return ToolOutcome(ok=False, result=e.to_result(), spoken=replies.SLOTS_ERROR)

        payload = listing.to_dict()
        return ToolOutcome(
            ok=True,
            result=payload,
            spoken=replies.slots(listing.slots, listing.timezone),
            slots=payload,
        )

    # ------------------------------------------------------------------
    # bookAppointment
    # ------------------------------------------------------------------

    async def _book(self, cmd: ExecuteTool) -> ToolOutcome:
        args = cmd.args
        if not (args.get("organizationId") or cmd.organization_id):
            err = MissingFieldError("Missing organizationId", field="organizationId")
            return ToolOutcome(ok=False, result=err.to_result())

        start = args.get("start")
        end = args.get("end")
        try:
            if start and not end:
                end = add_minutes(start, self._default_minutes)
            res = await self._engine.book_appointment(
                start,
                end,
                customer=Customer.from_value(args.get("customer")),
                notes=args.get("notes"),
                calendar_id=args.get("calendarId") or cmd.default_calendar_id,
            )
        except MissingFieldError as e:
            return ToolOutcome(ok=False, result=e.to_result())
        except SlotConflictError as e:
            return ToolOutcome(ok=False, result=e.to_result(), spoken=replies.BOOKING_CONFLICT)
        except SchedulingError as e:
            return ToolOutcome(ok=False, result=e.to_result(), spoken=replies.BOOKING_FAILED)

        return ToolOutcome(
            ok=True,
            result=res.to_dict(),
            spoken=replies.booked(res.start, res.end, res.timezone),
        )


def _selection(cmd: ExecuteTool) -> CalendarSelection:
    """Session selection wins; a calendarId argument is used when none is set."""
    if cmd.calendar_ids:
        return CalendarSelection.of(cmd.calendar_ids)
    calendar_id = cmd.args.get("calendarId")
    return CalendarSelection.of([calendar_id] if calendar_id else [])
