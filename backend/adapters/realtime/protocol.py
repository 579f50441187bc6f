"""
Realtime speech gateway wire protocol.

Two directions:
- encode(): semantic gateway commands -> JSON payloads sent to the gateway
- parse_event(): gateway JSON messages -> typed orchestrator events

Type tags are open strings. Messages this module does not map become
UnknownGatewayEvent; audio deltas are not events and are extracted
separately with extract_audio().
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Mapping

from constants import (
    REALTIME_INPUT_TRANSCRIPTION_MODEL,
    REALTIME_MODALITIES,
    VAD_SILENCE_DURATION_MS,
)
from adapters.realtime.prompts import TOOL_DECLARATIONS
from orchestrator.commands import (
    CancelResponse,
    Command,
    ConfigureSession,
    CreateResponse,
    SendSystemNote,
    SendToolResult,
)
from orchestrator.events import (
    AgentTranscriptDelta,
    AgentTranscriptDone,
    Event,
    EventType,
    GatewayError,
    ResponseCancelled,
    ResponseFinished,
    ResponseStarted,
    ToolArgumentsDelta,
    ToolArgumentsDone,
    ToolCallAnnounced,
    UnknownGatewayEvent,
    UserTranscript,
    UserTranscriptDelta,
)


AUDIO_DELTA_TYPES = frozenset({"response.audio.delta", "response.output_audio.delta"})

_RESPONSE_STARTED = frozenset({"response.created", "response.started"})
_RESPONSE_CANCELLED = frozenset({"response.cancelled", "response.canceled"})
_TRANSCRIPT_DELTA = frozenset({
    "response.audio_transcript.delta",
    "response.output_audio_transcript.delta",
    "response.text.delta",
    "response.output_text.delta",
})
_TRANSCRIPT_DONE = frozenset({
    "response.audio_transcript.done",
    "response.output_audio_transcript.done",
    "response.text.done",
    "response.output_text.done",
})
_USER_TRANSCRIPT_DELTA = "conversation.item.input_audio_transcription.delta"
_USER_TRANSCRIPT = frozenset({
    "conversation.item.input_audio_transcription.completed",
    "transcript",
})


# =============================================================================
# Outbound
# =============================================================================

def session_update(instructions: str, *, voice: str | None, language: str) -> dict[str, Any]:
    session: dict[str, Any] = {
        "instructions": instructions,
        "modalities": list(REALTIME_MODALITIES),
        "tools": list(TOOL_DECLARATIONS),
        "tool_choice": "auto",
        "turn_detection": {
            "type": "server_vad",
            "silence_duration_ms": VAD_SILENCE_DURATION_MS,
        },
        "input_audio_transcription": {
            "model": REALTIME_INPUT_TRANSCRIPTION_MODEL,
            "language": language.split("-")[0].lower(),
        },
    }
    if voice:
        session["voice"] = voice
    return {"type": "session.update", "session": session}


def response_create(instructions: str | None = None, tool_choice: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {"modalities": list(REALTIME_MODALITIES)}
    if instructions:
        response["instructions"] = instructions
    if tool_choice:
        response["tool_choice"] = tool_choice
    return {"type": "response.create", "response": response}


def response_cancel() -> dict[str, Any]:
    return {"type": "response.cancel"}


def function_call_output(call_id: str, result: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "function_call_output",
            "call_id": call_id,
            "output": json.dumps(result, default=str),
        },
    }


def system_message(text: str) -> dict[str, Any]:
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "message",
            "role": "system",
            "content": [{"type": "input_text", "text": text}],
        },
    }


def encode(cmd: Command, *, voice: str | None = None) -> dict[str, Any]:
    """Wire payload for one gateway command."""
    if isinstance(cmd, ConfigureSession):
        return session_update(cmd.instructions, voice=voice, language=cmd.language)
    if isinstance(cmd, CreateResponse):
        return response_create(cmd.instructions, cmd.tool_choice)
    if isinstance(cmd, CancelResponse):
        return response_cancel()
    if isinstance(cmd, SendToolResult):
        return function_call_output(cmd.correlation_id, cmd.result)
    if isinstance(cmd, SendSystemNote):
        return system_message(cmd.text)
    raise ValueError(f"Not a gateway command: {type(cmd).__name__}")


# =============================================================================
# Inbound
# =============================================================================

def decode(raw: str | bytes) -> dict[str, Any] | None:
    """JSON object from a raw frame, or None when the frame is not one."""
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return msg if isinstance(msg, dict) else None


def extract_audio(msg: Mapping[str, Any]) -> bytes | None:
    """Decoded audio bytes of an audio delta message."""
    if msg.get("type") not in AUDIO_DELTA_TYPES:
        return None
    try:
        return base64.b64decode(msg.get("delta") or "", validate=True)
    except (binascii.Error, ValueError):
        return None


def parse_event(msg: Mapping[str, Any], ts_ms: int) -> Event | None:  # pylint: disable=too-many-return-statements
    """
    Typed event for one gateway message.

    Returns None for audio deltas. Every other unmapped type becomes
    UnknownGatewayEvent.
    """
    wire_type = str(msg.get("type") or "")

    if wire_type in AUDIO_DELTA_TYPES:
        return None

    if wire_type in _USER_TRANSCRIPT:
        text = msg.get("transcript") if "transcript" in msg else msg.get("text")
        return UserTranscript(event_type=EventType.USER_TRANSCRIPT, ts_ms=ts_ms, text=str(text or ""))

    if wire_type == _USER_TRANSCRIPT_DELTA:
        return UserTranscriptDelta(
            event_type=EventType.USER_TRANSCRIPT_DELTA, ts_ms=ts_ms, delta=str(msg.get("delta") or "")
        )

    if wire_type in _RESPONSE_STARTED:
        return ResponseStarted(event_type=EventType.RESPONSE_STARTED, ts_ms=ts_ms, wire_type=wire_type)

    if wire_type in _RESPONSE_CANCELLED:
        return ResponseCancelled(event_type=EventType.RESPONSE_CANCELLED, ts_ms=ts_ms)

    if wire_type == "response.done":
        response = msg.get("response")
        status = response.get("status") if isinstance(response, Mapping) else None
        if status == "cancelled":
            return ResponseCancelled(event_type=EventType.RESPONSE_CANCELLED, ts_ms=ts_ms)
        return ResponseFinished(event_type=EventType.RESPONSE_FINISHED, ts_ms=ts_ms, wire_type=wire_type)

    if wire_type in _TRANSCRIPT_DELTA:
        return AgentTranscriptDelta(
            event_type=EventType.AGENT_TRANSCRIPT_DELTA,
            ts_ms=ts_ms,
            delta=str(msg.get("delta") or ""),
        )

    if wire_type in _TRANSCRIPT_DONE:
        final = msg.get("transcript") if "transcript" in msg else msg.get("text")
        return AgentTranscriptDone(
            event_type=EventType.AGENT_TRANSCRIPT_DONE,
            ts_ms=ts_ms,
            text=str(final or ""),
        )

    if wire_type == "response.output_item.added":
        item = msg.get("item")
        if isinstance(item, Mapping) and item.get("type") == "function_call":
            return ToolCallAnnounced(
                event_type=EventType.TOOL_CALL_ANNOUNCED,
                ts_ms=ts_ms,
                correlation_id=str(item.get("call_id") or item.get("id") or ""),
                name=str(item.get("name") or ""),
            )
        return UnknownGatewayEvent(event_type=EventType.UNKNOWN_GATEWAY_EVENT, ts_ms=ts_ms, wire_type=wire_type)

    if wire_type == "response.function_call_arguments.delta":
        return ToolArgumentsDelta(
            event_type=EventType.TOOL_ARGUMENTS_DELTA,
            ts_ms=ts_ms,
            correlation_id=str(msg.get("call_id") or ""),
            delta=str(msg.get("delta") or ""),
            name=str(msg.get("name") or ""),
        )

    if wire_type == "response.function_call_arguments.done":
        arguments = msg.get("arguments")
        return ToolArgumentsDone(
            event_type=EventType.TOOL_ARGUMENTS_DONE,
            ts_ms=ts_ms,
            correlation_id=str(msg.get("call_id") or ""),
            name=str(msg.get("name") or ""),
            arguments=arguments if isinstance(arguments, str) else None,
        )

    if wire_type == "error":
        err = msg.get("error")
        if isinstance(err, Mapping):
            return GatewayError(
                event_type=EventType.GATEWAY_ERROR,
                ts_ms=ts_ms,
                message=str(err.get("message") or "unknown error"),
                code=err.get("code"),
            )
        return GatewayError(event_type=EventType.GATEWAY_ERROR, ts_ms=ts_ms, message=str(err or "unknown error"))

    return UnknownGatewayEvent(event_type=EventType.UNKNOWN_GATEWAY_EVENT, ts_ms=ts_ms, wire_type=wire_type)
