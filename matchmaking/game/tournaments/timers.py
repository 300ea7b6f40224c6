from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog

logger = structlog.get_logger("matchmaking.game.tournaments.timers")

TimerCallback = Callable[[], Awaitable[None]]


class TimerProvider(Protocol):
    """Delayed-callback scheduling.

    ``delay_ms <= 0`` never reaches a provider: callers run due work inline.
    """

    def set_timeout(self, callback: TimerCallback, delay_ms: float) -> Any: ...

    def clear_timeout(self, handle: Any) -> None: ...


class AsyncioTimerProvider:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Task[None]] = set()

    def set_timeout(self, callback: TimerCallback, delay_ms: float) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_ms) / 1000.0, self._fire, callback)

    def clear_timeout(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()

    async def aclose(self) -> None:
        """Wait for callbacks that already fired. Clear pending handles before calling."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def inflight(self) -> int:
        return len(self._tasks)

    def _fire(self, callback: TimerCallback) -> None:
        task = asyncio.ensure_future(callback())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("tournament_timer_callback_failed", exc_info=exc)
