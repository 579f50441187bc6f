"""
Session gateway.

Responsibilities:
- Owns VoiceSession lifecycle (connect, calendar selection, disconnect)
- Tracks connection_status independently of orchestrator state
- Wires transport, speech router, tool executor and runtime for one call
- Translates raw gateway messages into typed events for the runtime
- Routes embedded audio to the speech router
- Dispatches observer notifications to product callbacks

NOT responsible for:
- Executing commands
- Any state machine logic
"""

from __future__ import annotations

import inspect
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping
from uuid import uuid4

from adapters.realtime import protocol
from adapters.realtime.base import RealtimeTransport
from adapters.realtime.openai_realtime import OpenAIRealtimeTransport
from adapters.realtime.prompts import DEFAULT_SYSTEM_PROMPT
from adapters.tts.base import TTSAdapter
from adapters.tts.elevenlabs import ElevenLabsTTSAdapter
from adapters.tts.speechmatics import SpeechmaticsTTSAdapter
from audio.speech_router import AudioOutput, SpeechOutputRouter
from constants import DEFAULT_LANGUAGE, ELEVENLABS_DEFAULT_VOICE_ID
from errors import SchedulingError, TransportError
from observability.logger import log_event
from orchestrator.commands import ObserverKind
from orchestrator.events import (
    CalendarSelectionChanged,
    ConnectRequested,
    DisconnectRequested,
    Event,
    EventType,
    TransportFailed,
    TransportOpened,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState
from orchestrator.tool_executor import ToolExecutor
from services.availability import AvailabilityEngine, CalendarSelection
from session.connection_status import ConnectionStatus
from session.voice_session import VoiceSession

if TYPE_CHECKING:
    from config import AppConfig


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


Observer = Callable[[Mapping[str, Any]], Awaitable[None] | None]
TransportFactory = Callable[[str], RealtimeTransport]
TTSFactory = Callable[[str], TTSAdapter | None]


# ------------------------------------------------------------------
# Product-facing surface
# ------------------------------------------------------------------

@dataclass(frozen=True)
class ConnectOptions:
    """Per-call settings supplied by product code."""
    organization_id: str | None = None
    agent_id: str | None = None
    calendar_id: str | None = None
    calendar_ids: tuple[str, ...] = ()
    greeting: str | None = None
    language: str = DEFAULT_LANGUAGE
    timezone: str | None = None
    wait_for_caller: bool = False
    default_appointment_minutes: int | None = None
    voice_id: str | None = None
    voice_settings: Mapping[str, Any] | None = None


@dataclass
class SessionObservers:
    """
    Product callbacks. Each may be sync or async.

    A failing callback is logged and never affects the session.
    """
    on_transcript: Observer | None = None
    on_agent_transcript: Observer | None = None
    on_tool_event: Observer | None = None
    on_slots: Observer | None = None
    on_error: Observer | None = None
    session_id: str | None = field(default=None, repr=False)

    def _callback(self, kind: ObserverKind) -> Observer | None:
        return {
            ObserverKind.TRANSCRIPT: self.on_transcript,
            ObserverKind.AGENT_TRANSCRIPT: self.on_agent_transcript,
            ObserverKind.TOOL_EVENT: self.on_tool_event,
            ObserverKind.SLOTS: self.on_slots,
            ObserverKind.ERROR: self.on_error,
        }[kind]

    async def notify(self, kind: ObserverKind, payload: Mapping[str, Any]) -> None:
        callback = self._callback(kind)
        if callback is None:
            return
        try:
            result = callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "OBSERVER_CALLBACK_FAILED",
                "session_id": self.session_id,
                "kind": kind.value,
                "error": f"{type(exc).__name__}: {exc}",
            })


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """
    One gateway == one scheduling call.

    The engine is shared (it holds no per-call state); everything else is
    built per session in connect().
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        engine: AvailabilityEngine,
        observers: SessionObservers | None = None,
        audio_output: AudioOutput | None = None,
        transport_factory: TransportFactory | None = None,
        tts_factory: TTSFactory | None = None,
        time_scale: float = 1.0,
    ) -> None:
        self._config = config
        self._engine = engine
        self._observers = observers or SessionObservers()
        self._audio_output = audio_output
        self._transport_factory = transport_factory or self._openai_transport
        self._tts_factory = tts_factory or self._configured_tts
        self._time_scale = time_scale
        self.session: VoiceSession | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect(self, system_prompt: str, options: ConnectOptions) -> str:
        """
        Start one scheduling call.

        Commands emitted before the transport opens are buffered and flushed
        in order once it is up. A transport failure ends the session; it is
        reported through on_error rather than raised.
        """
        if self.session is not None and self.session.connection_status is not ConnectionStatus.DOWN:
            raise RuntimeError("Session already connected")

        session_id = _new_session_id()
        self._observers.session_id = session_id
        session = VoiceSession(
            session_id=session_id,
            connection_status=ConnectionStatus.CONNECTING,
            realtime_voice=self._config.realtime_voice,
            observers=self._observers,
        )
        self.session = session

        transport = self._transport_factory(session_id)
        session.attach_transport(transport)

        if self._audio_output is not None:
            session.attach_speech_router(
                SpeechOutputRouter(
                    output=self._audio_output,
                    tts=self._tts_factory(session_id),
                    voice_id=options.voice_id or self._default_voice_id(),
                    voice_settings=options.voice_settings,
                    session_id=session_id,
                )
            )

        minutes = options.default_appointment_minutes or self._config.default_appointment_minutes
        runtime = Runtime(
            initial_state=OrchestratorState(
                organization_id=options.organization_id,
                agent_id=options.agent_id,
                default_calendar_id=options.calendar_id or self._config.default_calendar_id,
                calendar_ids=CalendarSelection.of(options.calendar_ids).ids,
                timezone=options.timezone or await self._account_timezone(session_id),
                language=options.language,
                base_system_prompt=system_prompt or DEFAULT_SYSTEM_PROMPT,
                greeting=options.greeting,
                default_appointment_minutes=minutes,
                wait_for_caller=options.wait_for_caller,
            ),
            context=RuntimeExecutionContext(session=session),
            executor=ToolExecutor(
                self._engine,
                default_appointment_minutes=minutes,
                alternative_slot_minutes=self._config.alternative_slot_minutes,
                session_id=session_id,
            ),
            time_scale=self._time_scale,
        )
        session.attach_runtime(runtime)

        log_event({"event_type": "SESSION_STARTED", **session.log_context()})

        await runtime.handle_event(
            ConnectRequested(
                event_type=EventType.CONNECT_REQUESTED,
                ts_ms=_now_ms(),
                session_id=session_id,
            )
        )

        try:
            await transport.open(self.on_gateway_message, self.on_transport_closed)
        except TransportError as exc:
            session.connection_status = ConnectionStatus.DOWN
            await runtime.handle_event(
                TransportFailed(
                    event_type=EventType.TRANSPORT_FAILED,
                    ts_ms=_now_ms(),
                    reason=str(exc),
                )
            )
            return session_id

        session.connection_status = ConnectionStatus.UP
        await runtime.handle_event(
            TransportOpened(event_type=EventType.TRANSPORT_OPENED, ts_ms=_now_ms())
        )
        return session_id

    async def set_calendar_ids(self, calendar_ids: tuple[str, ...] | list[str]) -> None:
        """Replace the selection used by later tool executions."""
        await self._dispatch(
            CalendarSelectionChanged(
                event_type=EventType.CALENDAR_SELECTION_CHANGED,
                ts_ms=_now_ms(),
                calendar_ids=CalendarSelection.of(calendar_ids).ids,
            )
        )

    async def disconnect(self, reason: str = "client_disconnect") -> None:
        if self.session is None:
            log_event({
                "event_type": "DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return

        await self._dispatch(
            DisconnectRequested(
                event_type=EventType.DISCONNECT_REQUESTED,
                ts_ms=_now_ms(),
                reason=reason,
            )
        )
        self.session.connection_status = ConnectionStatus.DOWN
        log_event({"event_type": "SESSION_ENDED", "reason": reason, **self.session.log_context()})

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    async def on_gateway_message(self, msg: Mapping[str, Any]) -> None:
        """Route one decoded gateway message."""
        if self.session is None:
            return

        audio = protocol.extract_audio(msg)
        if audio is not None:
            router = self.session.speech_router
            if router is not None:
                await router.feed_embedded(audio)
            return

        event = protocol.parse_event(msg, _now_ms())
        if event is not None:
            await self._dispatch(event)

    async def on_transport_closed(self, reason: str | None) -> None:
        if self.session is None:
            return
        self.session.connection_status = ConnectionStatus.DOWN
        await self._dispatch(
            TransportFailed(
                event_type=EventType.TRANSPORT_FAILED,
                ts_ms=_now_ms(),
                reason=reason or "connection_closed",
            )
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        if self.session is None or self.session.runtime is None:
            log_event({
                "event_type": "EVENT_WITHOUT_SESSION",
                "dropped_event_type": event.event_type.value,
            })
            return
        await self.session.runtime.handle_event(event)

    async def _account_timezone(self, session_id: str) -> str | None:
        """Calendar account zone; None (UTC downstream) when the lookup fails."""
        try:
            return await self._engine.account_timezone()
        except SchedulingError as exc:
            log_event({
                "event_type": "TIMEZONE_LOOKUP_FAILED",
                "session_id": session_id,
                "error": str(exc),
            })
            return None

    def _openai_transport(self, session_id: str) -> RealtimeTransport:
        return OpenAIRealtimeTransport(
            api_key=self._config.openai_api_key,
            model=self._config.realtime_model,
            url=self._config.realtime_url,
            session_id=session_id,
        )

    def _configured_tts(self, session_id: str) -> TTSAdapter | None:
        provider = self._config.tts_provider
        if provider == "elevenlabs" and self._config.elevenlabs_api_key:
            return ElevenLabsTTSAdapter(
                api_key=self._config.elevenlabs_api_key,
                session_id=session_id,
                voice_id=self._config.elevenlabs_voice_id or ELEVENLABS_DEFAULT_VOICE_ID,
                model_id=self._config.elevenlabs_model_id,
            )
        if provider == "speechmatics" and self._config.speechmatics_api_key:
            return SpeechmaticsTTSAdapter(
                api_key=self._config.speechmatics_api_key,
                session_id=session_id,
                voice=self._config.speechmatics_voice,
            )
        return None

    def _default_voice_id(self) -> str | None:
        if self._config.tts_provider == "elevenlabs":
            return self._config.elevenlabs_voice_id or ELEVENLABS_DEFAULT_VOICE_ID
        if self._config.tts_provider == "speechmatics":
            return self._config.speechmatics_voice
        return None
