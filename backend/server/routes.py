"""
Route registration for the scheduling agent API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Map scheduling errors to HTTP status codes
- Wire one SessionGateway to each WebSocket
- Pull dependencies from app.state
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from adapters.tts.base import SynthesizedSpeech
from constants import DEFAULT_LANGUAGE
from errors import (
    BroadWindowError,
    InvalidArgumentsError,
    MissingFieldError,
    ProviderError,
    SchedulingError,
    SlotConflictError,
)
from observability.logger import log_event
from services.availability import (
    AvailabilityEngine,
    BusinessHours,
    CalendarSelection,
    Customer,
)
from session.gateway import ConnectOptions, SessionGateway, SessionObservers


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CheckAvailabilityRequest(_Body):
    start: str | None = None
    end: str | None = None
    calendar_ids: list[str] | None = Field(default=None, alias="calendarIds")


class SlotsRequest(_Body):
    date: str | None = None
    slot_minutes: Any = Field(default=None, alias="slotMinutes")
    business_hours: dict[str, Any] | None = Field(default=None, alias="businessHours")
    calendar_ids: list[str] | None = Field(default=None, alias="calendarIds")


class BookingRequest(_Body):
    organization_id: str | None = Field(default=None, alias="organizationId")
    start: str | None = None
    end: str | None = None
    customer: dict[str, Any] | None = None
    notes: str | None = None
    calendar_id: str | None = Field(default=None, alias="calendarId")


class ConnectMessage(_Body):
    system_prompt: str = Field(default="", alias="systemPrompt")
    organization_id: str | None = Field(default=None, alias="organizationId")
    agent_id: str | None = Field(default=None, alias="agentId")
    calendar_id: str | None = Field(default=None, alias="calendarId")
    calendar_ids: list[str] = Field(default_factory=list, alias="calendarIds")
    greeting: str | None = None
    language: str | None = None
    timezone: str | None = None
    wait_for_caller: bool = Field(default=False, alias="waitForCaller")
    default_appointment_minutes: int | None = Field(default=None, alias="defaultAppointmentMinutes")
    voice_id: str | None = Field(default=None, alias="voiceId")
    voice_settings: dict[str, Any] | None = Field(default=None, alias="voiceSettings")

    def to_options(self) -> ConnectOptions:
        return ConnectOptions(
            organization_id=self.organization_id,
            agent_id=self.agent_id,
            calendar_id=self.calendar_id,
            calendar_ids=tuple(self.calendar_ids),
            greeting=self.greeting,
            timezone=self.timezone,
            wait_for_caller=self.wait_for_caller,
            default_appointment_minutes=self.default_appointment_minutes,
            voice_id=self.voice_id,
            language=self.language or DEFAULT_LANGUAGE,
            voice_settings=self.voice_settings,
        )


# ------------------------------------------------------------------
# Error mapping
# ------------------------------------------------------------------

_STATUS_BY_ERROR: tuple[tuple[type[SchedulingError], int], ...] = (
    (BroadWindowError, 400),
    (InvalidArgumentsError, 400),
    (MissingFieldError, 400),
    (SlotConflictError, 409),
    (ProviderError, 502),
)


def _error_response(exc: SchedulingError) -> JSONResponse:
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    return JSONResponse(status_code=status, content=exc.to_result())


# ------------------------------------------------------------------
# WebSocket output
# ------------------------------------------------------------------

class WebSocketAudioOutput:
    """AudioOutput that pushes audio to the browser as binary frames."""

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws

    async def play(self, speech: SynthesizedSpeech) -> None:
        await self._ws.send_json({"type": "AUDIO_START", "content_type": speech.content_type})
        await self._ws.send_bytes(speech.audio)

    async def feed(self, audio: bytes) -> None:
        await self._ws.send_bytes(audio)

    async def stop(self) -> None:
        await self._ws.send_json({"type": "AUDIO_STOP"})


def _push(ws: WebSocket, msg_type: str):
    async def _send(payload: Mapping[str, Any]) -> None:
        await ws.send_json({"type": msg_type, **payload})
    return _send


def _observers(ws: WebSocket) -> SessionObservers:
    return SessionObservers(
        on_transcript=_push(ws, "TRANSCRIPT"),
        on_agent_transcript=_push(ws, "AGENT_TRANSCRIPT"),
        on_tool_event=_push(ws, "TOOL_EVENT"),
        on_slots=_push(ws, "SLOTS"),
        on_error=_push(ws, "ERROR"),
    )


# ------------------------------------------------------------------
# Routes
# ------------------------------------------------------------------

def register_routes(app: FastAPI) -> None:  # pylint: disable=too-many-statements
    """Register all routes on the FastAPI app."""

    def engine() -> AvailabilityEngine:
        return app.state.engine

    @app.get("/health")
    async def health() -> dict[str, str]:  # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.post("/calendar/check-availability")
    async def check_availability(body: CheckAvailabilityRequest) -> Any:  # pyright: ignore[reportUnusedFunction]
        try:
            result = await engine().check_availability(
                body.start,
                body.end,
                CalendarSelection.of(body.calendar_ids),
            )
        except SchedulingError as exc:
            return _error_response(exc)
        return result.to_dict()

    @app.post("/calendar/slots")
    async def slots(body: SlotsRequest) -> Any:  # pyright: ignore[reportUnusedFunction]
        try:
            listing = await engine().get_available_slots(
                body.date,
                body.slot_minutes,
                BusinessHours.from_value(body.business_hours),
                CalendarSelection.of(body.calendar_ids),
            )
        except SchedulingError as exc:
            return _error_response(exc)
        return listing.to_dict()

    @app.post("/appointments/book")
    async def book(body: BookingRequest) -> Any:  # pyright: ignore[reportUnusedFunction]
        try:
            if not body.organization_id:
                raise MissingFieldError("Missing organizationId", field="organizationId")
            booking = await engine().book_appointment(
                body.start,
                body.end,
                customer=Customer.from_value(body.customer),
                notes=body.notes,
                calendar_id=body.calendar_id,
            )
        except SchedulingError as exc:
            return _error_response(exc)
        return {"ok": True, **booking.to_dict()}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None:  # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = SessionGateway(
            config=app.state.config,
            engine=engine(),
            observers=_observers(ws),
            audio_output=WebSocketAudioOutput(ws),
        )

        try:
            while True:
                raw = await ws.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    log_event({
                        "event_type": "JSON_DECODE_ERROR",
                        "error": str(e),
                        "payload_preview": raw[:100],
                    })
                    continue

                msg_type = data.get("type") if isinstance(data, dict) else None

                if msg_type == "CONNECT":
                    try:
                        message = ConnectMessage.model_validate(data)
                    except ValidationError as e:
                        await ws.send_json({"type": "ERROR", "code": "invalid_arguments", "message": str(e)})
                        continue
                    session_id = await gateway.connect(message.system_prompt, message.to_options())
                    await ws.send_json({"type": "SESSION_INIT", "session_id": session_id})

                elif msg_type == "SET_CALENDAR_IDS":
                    ids = data.get("calendarIds")
                    await gateway.set_calendar_ids(ids if isinstance(ids, list) else [])

                elif msg_type == "DISCONNECT":
                    await gateway.disconnect(reason="client_disconnect")
                    await ws.close()
                    return

                else:
                    log_event({
                        "event_type": "UNKNOWN_MESSAGE_TYPE",
                        "msg_type": msg_type,
                        "session_id": gateway.session.session_id if gateway.session else None,
                    })

        except WebSocketDisconnect:
            await gateway.disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.session.session_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.disconnect(reason="server_error")
