"""
Voice session container.

- Owns connection status (mutable, gateway-controlled)
- Owns the transport, speech router, observers and runtime for one call
- Buffers gateway payloads emitted before the transport is up
- Owned and mutated by SessionGateway
- NOT a state machine
- Contains no orchestration logic
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from adapters.realtime.base import RealtimeTransport
    from audio.speech_router import SpeechOutputRouter
    from orchestrator.runtime import Runtime
    from session.gateway import SessionObservers


# ---------------------------------------------------------------------
# VoiceSession
# ---------------------------------------------------------------------


@dataclass
class VoiceSession:
    """Mutable runtime container for a single voice session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN
    transport: RealtimeTransport | None = None
    realtime_voice: str | None = None

    # ------------------------------------------------------------------
    # Runtime (executes commands + owns authoritative state)
    # ------------------------------------------------------------------

    runtime: Runtime | None = None

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    speech_router: SpeechOutputRouter | None = None
    observers: SessionObservers | None = None

    _outbound: deque[Mapping[str, Any]] = field(default_factory=deque, init=False, repr=False)

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_transport(self, transport: RealtimeTransport) -> None:
        self.transport = transport

    def attach_speech_router(self, router: SpeechOutputRouter) -> None:
        self.speech_router = router

    def attach_runtime(self, runtime: Runtime) -> None:
        """
        Attach the runtime executor.

        Must be called after the transport and router are attached.
        """
        self.runtime = runtime

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Return standard logging context for this session."""
        return {
            "session_id": self.session_id,
            "connection_status": self.connection_status.value,
        }

    # ------------------------------------------------------------------
    # Outbound buffer
    # ------------------------------------------------------------------

    def enqueue_outbound(self, payload: Mapping[str, Any]) -> None:
        """
        Buffer a gateway payload until the transport is up.

        Payloads are kept in FIFO order and retrieved via drain_outbound().
        """
        self._outbound.append(payload)

    def drain_outbound(self) -> tuple[Mapping[str, Any], ...]:
        """
        Atomically drain all pending gateway payloads.

        After this call, the buffer is empty.
        """
        if not self._outbound:
            return ()
        out = tuple(self._outbound)
        self._outbound.clear()
        return out

    def pending_outbound(self) -> int:
        return len(self._outbound)
