"""
Realtime speech gateway transport interface.

The transport moves JSON payloads. It knows nothing about events, tools or
sessions: the session gateway parses what it receives and the runtime decides
what to send.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping


MessageHandler = Callable[[Mapping[str, Any]], Awaitable[None]]
ClosedHandler = Callable[[str | None], Awaitable[None]]


class RealtimeTransport(ABC):
    """
    Bidirectional message channel to the speech model.

    Contract:
    - open() connects and starts delivering messages to on_message in
      arrival order.
    - on_closed fires once when the connection ends without close() being
      called; its argument is the failure reason.
    - close() is idempotent and must not wait on the delivery loop.
    """

    @abstractmethod
    async def open(self, on_message: MessageHandler, on_closed: ClosedHandler) -> None:
        ...

    @abstractmethod
    async def send(self, payload: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...
