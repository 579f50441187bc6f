"""
TTS adapter contract.

This module defines the *interface only*: no queueing, no cancellation
policy, no retries and no fallback decisions live here.

Key invariants:
- One synthesize() call per finalized agent utterance. Text arrives whole;
  adapters do not chunk it.
- Adapters return audio; they never play it and never touch the session.
- Failures raise. The speech output router decides what a failure means.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class SynthesizedSpeech:
    """Complete audio for one utterance."""
    audio: bytes
    content_type: str


class TTSAdapter(ABC):
    """
    Abstract interface for a whole-utterance TTS adapter.

    Implementations are responsible for:
    - Calling the TTS provider for one text
    - Collecting the provider's audio into a single payload

    Non-responsibilities:
    - No queueing or ordering (the router plays results sequentially)
    - No cancellation bookkeeping (the router drops stale results)
    - No retries
    """

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        *,
        voice_id: str | None = None,
        voice_settings: Mapping[str, Any] | None = None,
    ) -> SynthesizedSpeech:
        """
        Synthesize ``text``.

        Contract:
        - Returns the full audio or raises.
        - Must not retry internally.
        - Must be safe to cancel (asyncio.CancelledError propagates).
        """
        raise NotImplementedError
