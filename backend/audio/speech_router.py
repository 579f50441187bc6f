"""
Speech output router.

Chooses which path produces the audio the caller hears:

- EMBEDDED: audio deltas from the realtime gateway are played as-is.
- EXTERNAL: gateway audio is dropped; each finalized agent transcript is
  synthesized by a TTS adapter and played sequentially.

Queue rules:
- Every reset bumps the queue version. Items carrying an older version are
  dropped before synthesis and again before playback.
- A synthesis or playback failure switches the session to EMBEDDED for good.
  No retry.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from adapters.tts.base import SynthesizedSpeech, TTSAdapter
from observability.logger import log_event
from orchestrator.enums.mode import OutputMode


class AudioOutput(Protocol):
    """Where audio ends up (a browser socket, a phone leg, a test double)."""

    async def play(self, speech: SynthesizedSpeech) -> None:
        """Play one synthesized utterance; returns when playback is done."""

    async def feed(self, audio: bytes) -> None:
        """Forward one embedded audio delta."""

    async def stop(self) -> None:
        """Stop whatever is playing."""


@dataclass(frozen=True)
class _QueuedSpeech:
    version: int
    text: str


class SpeechOutputRouter:
    def __init__(
        self,
        *,
        output: AudioOutput,
        tts: TTSAdapter | None = None,
        voice_id: str | None = None,
        voice_settings: Mapping[str, Any] | None = None,
        session_id: str | None = None,
    ) -> None:
        self._output = output
        self._tts = tts
        self._voice_id = voice_id
        self._voice_settings = voice_settings
        self._session_id = session_id

        self._mode = OutputMode.EXTERNAL if tts is not None and voice_id else OutputMode.EMBEDDED
        self._version = 0
        self._queue: asyncio.Queue[_QueuedSpeech] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def mode(self) -> OutputMode:
        return self._mode

    @property
    def version(self) -> int:
        return self._version

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def feed_embedded(self, audio: bytes) -> None:
        if self._closed or self._mode is not OutputMode.EMBEDDED:
            return
        await self._output.feed(audio)

    def enqueue(self, text: str) -> None:
        """Queue a finalized agent utterance for external synthesis."""
        if self._closed or self._mode is not OutputMode.EXTERNAL or not text.strip():
            return
        self._queue.put_nowait(_QueuedSpeech(version=self._version, text=text))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def reset(self) -> None:
        """Invalidate everything queued and stop playback."""
        self._version += 1
        self._drain()
        await self._stop_output()

    async def close(self) -> None:
        self._closed = True
        self._version += 1
        self._drain()
        worker = self._worker
        self._worker = None
        if worker is not None and worker is not asyncio.current_task() and not worker.done():
            worker.cancel()
        await self._stop_output()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while not self._closed and self._mode is OutputMode.EXTERNAL:
            item = await self._queue.get()
            if item.version != self._version:
                continue

            assert self._tts is not None
            try:
                speech = await self._tts.synthesize(
                    item.text,
                    voice_id=self._voice_id,
                    voice_settings=self._voice_settings,
                )
                if item.version != self._version:
                    continue
                await self._output.play(speech)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._fall_back(f"{type(exc).__name__}: {exc}")
                return

    def _fall_back(self, reason: str) -> None:
        self._mode = OutputMode.EMBEDDED
        self._version += 1
        self._drain()
        log_event({
            "event_type": "SPEECH_OUTPUT_FALLBACK",
            "session_id": self._session_id,
            "reason": reason,
            "mode": self._mode.value,
        })

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return

    async def _stop_output(self) -> None:
        try:
            await self._output.stop()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "SPEECH_OUTPUT_STOP_FAILED",
                "session_id": self._session_id,
                "error": repr(exc),
            })
