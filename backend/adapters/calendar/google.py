"""
Google Calendar v3 provider over httpx.

Endpoints used:
- GET  /users/me/settings/timezone
- GET  /users/me/calendarList
- POST /freeBusy
- POST /calendars/{calendarId}/events

Tokens come from an async token source; refresh is handled outside this
module. Every non-2xx response, transport error or malformed payload is
raised as ProviderError.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from typing import Any, Awaitable, Callable, Sequence
from urllib.parse import quote

import httpx

from adapters.calendar.base import CalendarInfo, CalendarProvider
from errors import InvalidArgumentsError, ProviderError
from observability.logger import log_event
from observability.metrics import timed
from services.intervals import BusyInterval
from services.time_normalizer import parse_instant

from constants import (
    CALENDAR_BOOKING_HTTP_TIMEOUT_S,
    CALENDAR_HTTP_TIMEOUT_S,
    PROVIDER_ERROR_MESSAGE_MAX_CHARS,
)


TokenSource = Callable[[], Awaitable[str]]


def static_token(token: str) -> TokenSource:
    """Token source for a pre-issued access token."""
    async def _source() -> str:
        return token
    return _source


def _safe_google_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:PROVIDER_ERROR_MESSAGE_MAX_CHARS]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:PROVIDER_ERROR_MESSAGE_MAX_CHARS]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:PROVIDER_ERROR_MESSAGE_MAX_CHARS]
    return "Request failed without an error payload"


def _google_rfc3339(value: datetime) -> str:
    normalized = value if value.tzinfo is not None else value.replace(tzinfo=dt_timezone.utc)
    return normalized.astimezone(dt_timezone.utc).isoformat().replace("+00:00", "Z")


class GoogleCalendarProvider(CalendarProvider):
    """
    CalendarProvider backed by the Google Calendar REST API.

    The httpx client may be injected (tests use httpx.MockTransport);
    otherwise one is created lazily and closed by aclose().
    """

    def __init__(
        self,
        *,
        token_source: TokenSource,
        api_base: str = "https://www.googleapis.com/calendar/v3",
        http_client: httpx.AsyncClient | None = None,
        session_id: str | None = None,
    ) -> None:
        self._token_source = token_source
        self._api_base = api_base.rstrip("/")
        self._http_client = http_client
        self._owns_client = http_client is None
        self._session_id = session_id

    # ------------------------------------------------------------------
    # CalendarProvider
    # ------------------------------------------------------------------

    async def get_account_timezone(self) -> str | None:
        try:
            payload = await self._request_json("GET", "/users/me/settings/timezone")
        except ProviderError as exc:
            log_event({
                "event_type": "CALENDAR_TIMEZONE_UNAVAILABLE",
                "session_id": self._session_id,
                "error": str(exc),
            })
            return None

        value = payload.get("value")
        return value if isinstance(value, str) and value else None

    async def list_calendars(self) -> list[CalendarInfo]:
        payload = await self._request_json("GET", "/users/me/calendarList")
        items = payload.get("items")
        if not isinstance(items, list):
            raise ProviderError("Google Calendar calendarList response missing items")

        calendars: list[CalendarInfo] = []
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                continue
            calendars.append(
                CalendarInfo(
                    calendar_id=item["id"],
                    summary=str(item.get("summary") or ""),
                    primary=bool(item.get("primary")),
                    selected=bool(item.get("selected")),
                    access_role=str(item.get("accessRole") or ""),
                )
            )
        return calendars

    async def list_busy(
        self,
        calendar_ids: Sequence[str],
        start: datetime,
        end: datetime,
        timezone: str | None = None,
    ) -> dict[str, list[BusyInterval]]:
        body: dict[str, Any] = {
            "timeMin": _google_rfc3339(start),
            "timeMax": _google_rfc3339(end),
            "items": [{"id": cid} for cid in calendar_ids],
        }
        if timezone:
            body["timeZone"] = timezone

        with timed(
            "calendar_free_busy",
            session_id=self._session_id,
            details={"calendars": len(calendar_ids)},
        ):
            payload = await self._request_json("POST", "/freeBusy", json_body=body)

        calendars_payload = payload.get("calendars")
        if not isinstance(calendars_payload, dict):
            raise ProviderError("Google Calendar freeBusy response missing calendars object")

        result: dict[str, list[BusyInterval]] = {}
        for cid in calendar_ids:
            entry = calendars_payload.get(cid)
            if not isinstance(entry, dict):
                raise ProviderError(f"Google Calendar freeBusy response missing calendar {cid}")

            errors = entry.get("errors")
            if errors:
                reasons = ",".join(
                    str(e.get("reason")) for e in errors if isinstance(e, dict)
                )
                raise ProviderError(f"Google Calendar freeBusy failed for {cid}: {reasons}")

            busy = entry.get("busy")
            if not isinstance(busy, list):
                raise ProviderError("Google Calendar freeBusy response missing busy array")

            intervals: list[BusyInterval] = []
            for window in busy:
                if not isinstance(window, dict):
                    continue
                start_raw = window.get("start")
                end_raw = window.get("end")
                if not isinstance(start_raw, str) or not isinstance(end_raw, str):
                    raise ProviderError("Google Calendar freeBusy busy windows must include start/end")
                try:
                    b_start = parse_instant(start_raw)
                    b_end = parse_instant(end_raw)
                except InvalidArgumentsError as exc:
                    raise ProviderError(f"Google Calendar returned an invalid dateTime: {exc}") from exc
                if b_end <= b_start:
                    continue
                intervals.append(BusyInterval(start=b_start, end=b_end))

            result[cid] = intervals

        return result

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
        start_payload: dict[str, Any] = {"dateTime": start}
        end_payload: dict[str, Any] = {"dateTime": end}
        if timezone:
            start_payload["timeZone"] = timezone
            end_payload["timeZone"] = timezone

        body: dict[str, Any] = {
            "summary": summary,
            "start": start_payload,
            "end": end_payload,
        }
        if description:
            body["description"] = description
        if attendees:
            body["attendees"] = [{"email": email} for email in attendees]

        with timed("calendar_create_event", session_id=self._session_id):
            payload = await self._request_json(
                "POST",
                f"/calendars/{quote(calendar_id, safe='')}/events",
                json_body=body,
                timeout_s=CALENDAR_BOOKING_HTTP_TIMEOUT_S,
            )

        event_id = payload.get("id")
        if not isinstance(event_id, str) or not event_id:
            raise ProviderError("Google Calendar event response missing id")
        return event_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=CALENDAR_HTTP_TIMEOUT_S)
        return self._http_client

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        timeout_s: float = CALENDAR_HTTP_TIMEOUT_S,
    ) -> dict[str, Any]:
        token = await self._token_source()
        url = f"{self._api_base}{path}"

        try:
            response = await self._client().request(
                method,
                url,
                json=json_body,
                headers={"Authorization": f"Bearer {token}"},
                timeout=timeout_s,
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Google Calendar request failed: {type(exc).__name__}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise ProviderError(
                f"Google Calendar API error ({response.status_code}): "
                f"{_safe_google_error_message(response)}",
                status_code=response.status_code,
            )

        if response.status_code == 204:
            return {}

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(
                "Google Calendar API returned invalid JSON for a successful response"
            ) from exc

        if not isinstance(payload, dict):
            raise ProviderError("Google Calendar API returned an unexpected JSON payload shape")
        return payload
