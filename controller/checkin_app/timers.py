"""One-shot cancellable timers used to auto-dismiss the welcome screen."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, Protocol, Set

logger = logging.getLogger(__name__)

OnFire = Callable[[], Awaitable[None]]


@dataclass(eq=False)
class TimerHandle:
    duration: float
    fired: bool = False
    cancelled: bool = False
    _loop_handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return not (self.fired or self.cancelled)


class Scheduler(Protocol):
    def arm(self, duration: float, on_fire: OnFire) -> TimerHandle: ...

    def cancel(self, handle: Optional[TimerHandle]) -> None: ...

    async def aclose(self) -> None: ...


class DismissTimer:
    """Scheduler backed by ``loop.call_later``.

    ``on_fire`` runs at most once per handle, as a task on the running loop.
    Cancelling a handle that already fired or was already cancelled does nothing.
    """

    def __init__(self) -> None:
        self._pending: Set[TimerHandle] = set()
        self._callbacks: Set[asyncio.Task[None]] = set()

    def arm(self, duration: float, on_fire: OnFire) -> TimerHandle:
        loop = asyncio.get_running_loop()
        handle = TimerHandle(duration=duration)
        handle._loop_handle = loop.call_later(max(duration, 0.0), self._fire, handle, on_fire)
        self._pending.add(handle)
        logger.debug("Dismiss timer armed for %.1fs", duration)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None or not handle.pending:
            return
        handle.cancelled = True
        if handle._loop_handle is not None:
            handle._loop_handle.cancel()
            handle._loop_handle = None
        self._pending.discard(handle)
        logger.debug("Dismiss timer cancelled")

    async def aclose(self) -> None:
        for handle in list(self._pending):
            self.cancel(handle)
        callbacks = list(self._callbacks)
        for task in callbacks:
            task.cancel()
        for task in callbacks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._callbacks.clear()

    def _fire(self, handle: TimerHandle, on_fire: OnFire) -> None:
        self._pending.discard(handle)
        if not handle.pending:
            return
        handle.fired = True
        handle._loop_handle = None
        task = asyncio.ensure_future(on_fire())
        self._callbacks.add(task)
        task.add_done_callback(self._on_callback_done)

    def _on_callback_done(self, task: asyncio.Task[None]) -> None:
        self._callbacks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Dismiss timer callback failed: %s", exc, exc_info=exc)


__all__ = ["DismissTimer", "OnFire", "Scheduler", "TimerHandle"]
