"""
Timer runtime.

Responsibilities:
- Run named one-shot timers as asyncio tasks
- Replace a timer when it is started again under the same id
- Emit the timer's event back into the runtime on expiry

Non-responsibilities:
- NO state machine decisions (stale tokens are the reducer's concern)
- NO knowledge of what a timer means

This module is infrastructure only.
"""

from __future__ import annotations

import asyncio
from asyncio import Task
from typing import Awaitable, Callable

from orchestrator.events import Event


EventSink = Callable[[Event], Awaitable[None]]
EventFactory = Callable[[], Event]


class TimerRegistry:
    """
    Named one-shot timers for one session.

    Lifecycle:
    1. Reducer emits StartTimer(timer_id, ...)
    2. Runtime calls start(timer_id, duration_ms, build_event)
    3a. Reducer emits CancelTimer -> cancel(timer_id)
    3b. Timer fires -> build_event() is emitted into the runtime

    An expiring timer removes itself before emitting, so the reducer may
    restart or cancel the same id while handling its event.
    """

    def __init__(self, *, emit_event: EventSink, time_scale: float = 1.0) -> None:
        self._emit_event = emit_event
        self._time_scale = time_scale
        self._timers: dict[str, Task[None]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, timer_id: str, duration_ms: int, build_event: EventFactory) -> None:
        self.cancel(timer_id)
        self._timers[timer_id] = asyncio.create_task(
            self._timer_task(timer_id, duration_ms, build_event)
        )

    def cancel(self, timer_id: str) -> None:
        """
        Cancel a pending timer.

        Idempotent: safe to call even if the timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()

    def cancel_all(self) -> tuple[Task[None], ...]:
        """
        Cancel and clear every pending timer. Used on session teardown.

        Returns the cancelled tasks so callers may await them.
        """
        tasks = tuple(self._timers.values())
        for task in tasks:
            if not task.done():
                task.cancel()
        self._timers.clear()
        return tasks

    def pending(self) -> tuple[str, ...]:
        return tuple(tid for tid, task in self._timers.items() if not task.done())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _timer_task(self, timer_id: str, duration_ms: int, build_event: EventFactory) -> None:
        try:
            await asyncio.sleep(duration_ms * self._time_scale / 1000.0)
        except asyncio.CancelledError:
            return

        if self._timers.get(timer_id) is asyncio.current_task():
            del self._timers[timer_id]

        await self._emit_event(build_event())
