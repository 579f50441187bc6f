"""
Calendar Provider contract.

The availability engine depends on this interface only. Implementations own
authentication, transport and payload parsing, and report every failure as
errors.ProviderError so that a failed lookup is never mistaken for free time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from services.intervals import BusyInterval


@dataclass(frozen=True)
class CalendarInfo:
    """Calendar list entry as seen by the account."""
    calendar_id: str
    summary: str = ""
    primary: bool = False
    selected: bool = False
    access_role: str = ""


class CalendarProvider(ABC):
    """
    Abstract calendar backend.

    Implementations are responsible for:
    - Bearer-token authentication (token refresh happens out of band)
    - Translating provider payloads into BusyInterval / CalendarInfo
    - Raising ProviderError on any failure

    Non-responsibilities:
    - No merging, slotting or business-hours logic
    - No retries against a failing provider
    """

    @abstractmethod
    async def list_busy(
        self,
        calendar_ids: Sequence[str],
        start: datetime,
        end: datetime,
        timezone: str | None = None,
    ) -> dict[str, list[BusyInterval]]:
        """Busy intervals per calendar inside [start, end)."""
        raise NotImplementedError

    @abstractmethod
    async def create_event(
        self,
        calendar_id: str,
        summary: str,
        start: str,
        end: str,
        *,
        timezone: str | None = None,
        description: str | None = None,
        attendees: Sequence[str] = (),
    ) -> str:
        """Create an event and return the provider event id."""
        raise NotImplementedError

    @abstractmethod
    async def get_account_timezone(self) -> str | None:
        """IANA zone configured on the account, or None if unknown."""
        raise NotImplementedError

    @abstractmethod
    async def list_calendars(self) -> list[CalendarInfo]:
        """Calendars visible to the account."""
        raise NotImplementedError
