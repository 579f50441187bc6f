# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio

from orchestrator.events import EventType, ToolRepromptTimeout
from orchestrator.timers import TimerRegistry


def reprompt(token: int) -> ToolRepromptTimeout:
    return ToolRepromptTimeout(event_type=EventType.TOOL_REPROMPT_TIMEOUT, ts_ms=0, token=token)


def test_timer_fires_once_and_removes_itself():
    async def scenario():
        fired = []

        async def sink(event):
            fired.append((event, timers.pending()))

        timers = TimerRegistry(emit_event=sink)
        timers.start("tool_reprompt", 10, lambda: reprompt(1))
        assert timers.pending() == ("tool_reprompt",)

        await asyncio.sleep(0.05)
        return fired, timers.pending()

    fired, pending = asyncio.run(scenario())

    assert [event.token for event, _ in fired] == [1]
    # Already gone while its event was being handled.
    assert fired[0][1] == ()
    assert pending == ()


def test_restarting_a_timer_replaces_it():
    async def scenario():
        fired = []

        async def sink(event):
            fired.append(event.token)

        timers = TimerRegistry(emit_event=sink)
        timers.start("tool_reprompt", 10, lambda: reprompt(1))
        timers.start("tool_reprompt", 10, lambda: reprompt(2))
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(scenario()) == [2]


def test_cancel_and_cancel_all():
    async def scenario():
        fired = []

        async def sink(event):
            fired.append(event)

        timers = TimerRegistry(emit_event=sink)
        timers.start("a", 10, lambda: reprompt(1))
        timers.start("b", 10, lambda: reprompt(2))
        timers.start("c", 10, lambda: reprompt(3))

        timers.cancel("a")
        timers.cancel("missing")
        cancelled = timers.cancel_all()

        await asyncio.sleep(0.05)
        return fired, cancelled, timers.pending()

    fired, cancelled, pending = asyncio.run(scenario())

    assert fired == []
    assert len(cancelled) == 2
    assert pending == ()


def test_time_scale_shortens_durations():
    async def scenario():
        fired = []

        async def sink(event):
            fired.append(event)

        timers = TimerRegistry(emit_event=sink, time_scale=0.001)
        timers.start("tool_fallback", 3_500, lambda: reprompt(1))
        await asyncio.sleep(0.05)
        return fired

    assert len(asyncio.run(scenario())) == 1
