"""
ElevenLabs TTS adapter.

One convert call per utterance; the streamed MP3 chunks are collected into a
single payload for the speech output router.
"""

from __future__ import annotations

from typing import Any, Mapping

from elevenlabs import VoiceSettings
from elevenlabs.client import AsyncElevenLabs

from adapters.tts.base import SynthesizedSpeech, TTSAdapter
from constants import (
    ELEVENLABS_CONTENT_TYPE,
    ELEVENLABS_DEFAULT_VOICE_ID,
    ELEVENLABS_OUTPUT_FORMAT,
)
from errors import ProviderError
from observability.metrics import timed


_VOICE_SETTING_KEYS = ("stability", "similarity_boost", "style", "use_speaker_boost", "speed")


class ElevenLabsTTSAdapter(TTSAdapter):
    def __init__(
        self,
        *,
        api_key: str,
        session_id: str | None = None,
        voice_id: str = ELEVENLABS_DEFAULT_VOICE_ID,
        model_id: str = "eleven_turbo_v2",
        client: Any = None,
    ) -> None:
        self._session_id = session_id
        self._voice_id = voice_id
        self._model_id = model_id
        self._client = client if client is not None else AsyncElevenLabs(api_key=api_key)

    async def synthesize(
        self,
        text: str,
        *,
        voice_id: str | None = None,
        voice_settings: Mapping[str, Any] | None = None,
    ) -> SynthesizedSpeech:
        kwargs: dict[str, Any] = {
            "voice_id": voice_id or self._voice_id,
            "text": text,
            "model_id": self._model_id,
            "output_format": ELEVENLABS_OUTPUT_FORMAT,
        }
        settings = _voice_settings(voice_settings)
        if settings is not None:
            kwargs["voice_settings"] = settings

        audio = bytearray()
        with timed("tts_elevenlabs", session_id=self._session_id, details={"chars": len(text)}):
            try:
                async for chunk in self._client.text_to_speech.convert(**kwargs):
                    if chunk:
                        audio.extend(chunk)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise ProviderError(f"elevenlabs: {type(exc).__name__}: {exc}") from exc

        if not audio:
            raise ProviderError("elevenlabs: empty audio")
        return SynthesizedSpeech(audio=bytes(audio), content_type=ELEVENLABS_CONTENT_TYPE)


def _voice_settings(value: Mapping[str, Any] | None) -> VoiceSettings | None:
    if not value:
        return None
    known = {k: value[k] for k in _VOICE_SETTING_KEYS if k in value}
    return VoiceSettings(**known) if known else None
