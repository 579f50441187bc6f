"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution and side effects (transport, speech output,
observers, status).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

from orchestrator.commands import ObserverKind
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from session.voice_session import VoiceSession


# ---------------------------------------------------------------------
# Capability Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class TransportProtocol(Protocol):
    async def send(self, payload: Mapping[str, Any]) -> None: ...
    async def close(self) -> None: ...

    @property
    def is_open(self) -> bool: ...


@runtime_checkable
class SpeechRouterProtocol(Protocol):
    def enqueue(self, text: str) -> None: ...
    async def reset(self) -> None: ...
    async def close(self) -> None: ...


class ObserverSinkProtocol(Protocol):
    async def notify(self, kind: ObserverKind, payload: Mapping[str, Any]) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Send gateway payloads
    - Buffer payloads while the transport is not up
    - Drive speech output and observers
    - Observe connection state

    Runtime is NOT allowed to:
    - Mutate session state directly (other than the outbound buffer)
    - Perform orchestration decisions
    """

    def __init__(self, session: VoiceSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.session.connection_status

    @property
    def realtime_voice(self) -> str | None:
        return self.session.realtime_voice

    # ----------------------------
    # Resources
    # ----------------------------

    @property
    def transport(self) -> TransportProtocol | None:
        return self.session.transport

    @property
    def speech_router(self) -> SpeechRouterProtocol | None:
        return self.session.speech_router

    def enqueue_outbound(self, payload: Mapping[str, Any]) -> None:
        self.session.enqueue_outbound(payload)

    def drain_outbound(self) -> tuple[Mapping[str, Any], ...]:
        return self.session.drain_outbound()

    # ----------------------------
    # Observers
    # ----------------------------

    async def notify(self, kind: ObserverKind, payload: Mapping[str, Any]) -> None:
        observers = self.session.observers
        if observers is None:
            return
        await observers.notify(kind, payload)
