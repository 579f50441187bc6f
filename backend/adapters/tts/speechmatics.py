"""
Speechmatics TTS adapter.

Implements whole-utterance synthesis using the Speechmatics Async TTS API.

Role in the system:
- Receives one finalized agent utterance.
- Performs one TTS synthesis call.
- Returns raw PCM16 16kHz mono audio.

Architectural constraints:
- No queueing, retries or fallback logic live in this adapter.
- No direct interaction with WebSocket or UI layers.
"""
from __future__ import annotations

from typing import Any, Mapping

from speechmatics.tts import AsyncClient, OutputFormat, Voice # pyright: ignore[reportMissingTypeStubs] # pylint: disable=no-name-in-module, import-error

from adapters.tts.base import SynthesizedSpeech, TTSAdapter
from constants import PROVIDER_CHUNK_SIZE, SPEECHMATICS_CONTENT_TYPE
from errors import ProviderError
from observability.metrics import timed


class SpeechmaticsTTSAdapter(TTSAdapter):
    """
    Speechmatics whole-utterance TTS adapter.

    voice_settings is accepted for interface parity and ignored; Speechmatics
    voices carry no tunables.
    """

    _VOICE_MAP: dict[str, Voice] = {
        "sarah": Voice.SARAH,
        "theo": Voice.THEO,
        "megan": Voice.MEGAN,
    }

    def __init__(
        self,
        *,
        api_key: str,
        session_id: str | None = None,
        voice: str = "sarah",
        client_factory: Any = None,
    ) -> None:
        self._api_key = api_key
        self._session_id = session_id
        self._voice = voice
        self._client_factory = client_factory if client_factory is not None else AsyncClient

    async def synthesize(
        self,
        text: str,
        *,
        voice_id: str | None = None,
        voice_settings: Mapping[str, Any] | None = None,
    ) -> SynthesizedSpeech:
        voice = self._resolve_voice(voice_id or self._voice)

        audio = bytearray()
        with timed("tts_speechmatics", session_id=self._session_id, details={"chars": len(text)}):
            try:
                async with self._client_factory(api_key=self._api_key) as client:
                    async with await client.generate(
                        text=text,
                        voice=voice,
                        output_format=OutputFormat.RAW_PCM_16000,
                    ) as response:
                        async for chunk in response.content.iter_chunked(PROVIDER_CHUNK_SIZE):
                            audio.extend(chunk)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise ProviderError(f"speechmatics: {type(exc).__name__}: {exc}") from exc

        # PCM16 samples are two bytes; drop a dangling odd byte.
        if len(audio) % 2 == 1:
            del audio[-1]
        if not audio:
            raise ProviderError("speechmatics: empty audio")
        return SynthesizedSpeech(audio=bytes(audio), content_type=SPEECHMATICS_CONTENT_TYPE)

    def _resolve_voice(self, voice: str) -> Voice:
        return self._VOICE_MAP.get(voice.lower(), Voice.SARAH)
