# pylint: disable=missing-module-docstring,missing-function-docstring,protected-access
import asyncio
import json

import pytest

from adapters.realtime.openai_realtime import OpenAIRealtimeTransport
from errors import TransportError


class BrokenSocket:
    def __init__(self) -> None:
        self.close_calls = 0

    async def close(self) -> None:
        self.close_calls += 1
        raise OSError("socket already torn down")


def make_transport(api_key: str | None = "sk-test") -> OpenAIRealtimeTransport:
    return OpenAIRealtimeTransport(
        api_key=api_key,
        model="gpt-4o-realtime-preview",
        url="wss://example.invalid/v1/realtime",
        session_id="sess_1",
    )


def test_close_failure_is_logged(log_lines):
    transport = make_transport()
    socket = BrokenSocket()
    transport._ws = socket

    asyncio.run(transport.close())
    asyncio.run(transport.close())

    assert socket.close_calls == 1
    assert not transport.is_open
    record = json.loads(log_lines[-1])
    assert record["event_type"] == "REALTIME_CLOSE_FAILED"
    assert record["session_id"] == "sess_1"
    assert "socket already torn down" in record["error"]


def test_open_without_api_key_fails_fast():
    async def noop(*_args):
        return None

    with pytest.raises(TransportError, match="OPENAI_API_KEY"):
        asyncio.run(make_transport(api_key=None).open(noop, noop))


def test_send_before_open_is_rejected():
    with pytest.raises(TransportError):
        asyncio.run(make_transport().send({"type": "response.create"}))
