# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Mapping, Sequence

import pytest

from adapters.calendar.base import CalendarInfo, CalendarProvider
from adapters.realtime.base import ClosedHandler, MessageHandler, RealtimeTransport
from adapters.tts.base import SynthesizedSpeech, TTSAdapter
from observability import logger
from services.intervals import BusyInterval


class FakeCalendarProvider(CalendarProvider):
    """In-memory calendar backend recording every call."""

    def __init__(self, *, timezone: str | None = "America/New_York") -> None:
        self.timezone = timezone
        self.busy: dict[str, list[BusyInterval]] = {}
        self.calendars: list[CalendarInfo] = []
        self.busy_error: Exception | None = None
        self.calendars_error: Exception | None = None
        self.timezone_error: Exception | None = None
        self.busy_calls: list[tuple[tuple[str, ...], datetime, datetime, str | None]] = []
        self.created: list[dict[str, Any]] = []

    async def list_busy(
        self,
        calendar_ids: Sequence[str],
        start: datetime,
        end: datetime,
        timezone: str | None = None,
    ) -> dict[str, list[BusyInterval]]:
        self.busy_calls.append((tuple(calendar_ids), start, end, timezone))
        if self.busy_error is not None:
            raise self.busy_error
        return {
            cid: [b for b in self.busy.get(cid, []) if b.start < end and b.end > start]
            for cid in calendar_ids
        }

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
        self.created.append({
            "calendar_id": calendar_id,
            "summary": summary,
            "start": start,
            "end": end,
            "timezone": timezone,
            "description": description,
            "attendees": tuple(attendees),
        })
        return f"evt_{len(self.created)}"

    async def get_account_timezone(self) -> str | None:
        if self.timezone_error is not None:
            raise self.timezone_error
        return self.timezone

    async def list_calendars(self) -> list[CalendarInfo]:
        if self.calendars_error is not None:
            raise self.calendars_error
        return list(self.calendars)


@pytest.fixture
def provider() -> FakeCalendarProvider:
    return FakeCalendarProvider()


@pytest.fixture
def log_lines(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture JSONL output instead of writing to stdout."""
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_enabled", True)
    return captured


class FakeTransport(RealtimeTransport):
    """Records sends; the test drives inbound messages and closures."""

    def __init__(self, *, open_error: Exception | None = None) -> None:
        self.open_error = open_error
        self.send_error: Exception | None = None
        self.sent: list[dict[str, Any]] = []
        self.close_calls = 0
        self.on_message: MessageHandler | None = None
        self.on_closed: ClosedHandler | None = None
        self._open = False

    async def open(self, on_message: MessageHandler, on_closed: ClosedHandler) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.on_message = on_message
        self.on_closed = on_closed
        self._open = True

    async def send(self, payload: Mapping[str, Any]) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(dict(payload))

    async def close(self) -> None:
        self.close_calls += 1
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def sent_types(self) -> list[str]:
        return [p["type"] for p in self.sent]


class FakeAudioOutput:
    def __init__(self) -> None:
        self.played: list[SynthesizedSpeech] = []
        self.fed: list[bytes] = []
        self.stops = 0
        self.play_error: Exception | None = None

    async def play(self, speech: SynthesizedSpeech) -> None:
        if self.play_error is not None:
            raise self.play_error
        self.played.append(speech)

    async def feed(self, audio: bytes) -> None:
        self.fed.append(audio)

    async def stop(self) -> None:
        self.stops += 1


class FakeTTS(TTSAdapter):
    def __init__(self) -> None:
        self.texts: list[str] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def synthesize(
        self,
        text: str,
        *,
        voice_id: str | None = None,
        voice_settings: Mapping[str, Any] | None = None,
    ) -> SynthesizedSpeech:
        self.texts.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return SynthesizedSpeech(audio=text.encode(), content_type="audio/mpeg")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
