"""
OpenAI Realtime transport over a WebSocket.

Core model:
- One connection per session, opened on connect and closed on teardown.
- A single receive loop decodes JSON frames and hands them to on_message in
  arrival order.
- The connection ending without close() is reported once through on_closed.

Design constraints:
- Adapter must not call the reducer directly.
- Adapter must not parse events; adapters.realtime.protocol does that.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from adapters.realtime.base import ClosedHandler, MessageHandler, RealtimeTransport
from adapters.realtime.protocol import decode
from constants import TRANSPORT_MAX_MESSAGE_BYTES
from errors import TransportError
from observability.logger import log_event


class OpenAIRealtimeTransport(RealtimeTransport):
    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        url: str,
        session_id: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._url = url
        self._session_id = session_id

        self._ws: ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    async def open(self, on_message: MessageHandler, on_closed: ClosedHandler) -> None:
        if self._ws is not None:
            return
        if not self._api_key:
            raise TransportError("OPENAI_API_KEY is not configured")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        try:
            self._ws = await connect(
                f"{self._url}?model={self._model}",
                additional_headers=headers,
                max_size=TRANSPORT_MAX_MESSAGE_BYTES,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise TransportError(f"realtime_connect_failed: {e!r}") from e

        log_event({
            "event_type": "REALTIME_CONNECTED",
            "session_id": self._session_id,
            "model": self._model,
        })
        self._recv_task = asyncio.create_task(self._recv_loop(on_message, on_closed))

    async def send(self, payload: Mapping[str, Any]) -> None:
        ws = self._ws
        if ws is None or self._closing:
            raise TransportError("realtime transport is not open")
        try:
            await ws.send(json.dumps(payload, default=str))
        except ConnectionClosed as e:
            raise TransportError(f"realtime_send_failed: {e!r}") from e

    async def close(self) -> None:
        """
        Close the socket. Does not await the receive loop, which may be the
        caller's own task.
        """
        if self._closing:
            return
        self._closing = True

        task = self._recv_task
        self._recv_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

        ws = self._ws
        self._ws = None
        if ws is not None:
            try:
                await ws.close()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "REALTIME_CLOSE_FAILED",
                    "session_id": self._session_id,
                    "error": repr(exc),
                })

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self, on_message: MessageHandler, on_closed: ClosedHandler) -> None:
        ws = self._ws
        if ws is None:
            return

        reason: str | None = None
        try:
            async for raw in ws:
                msg = decode(raw)
                if msg is None:
                    log_event({
                        "event_type": "REALTIME_UNDECODABLE_FRAME",
                        "session_id": self._session_id,
                    })
                    continue
                await on_message(msg)
        except asyncio.CancelledError:
            return
        except ConnectionClosed as e:
            reason = f"connection_closed: {e.rcvd.code if e.rcvd else 'no_close_frame'}"
        except Exception as e:  # pylint: disable=broad-exception-caught
            reason = f"realtime_recv_failed: {e!r}"

        if self._closing:
            return
        self._ws = None
        await on_closed(reason or "connection_closed")
