"""
Timers and detached tasks on the asyncio event loop.

`CancelableTimer` runs a coroutine once after a delay and can be cancelled
while it is still waiting. `BackgroundTasks` holds fire-and-forget work
whose outcome is only ever logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine

logger = logging.getLogger(__name__)


class CancelableTimer:
    """One-shot timer. Cancelling after it has fired does not interrupt the callback."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        *,
        name: str = "timer",
    ) -> None:
        self.delay = max(0.0, delay)
        self.name = name
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._fired = False
        self._cancelled = False

    @property
    def is_pending(self) -> bool:
        """True while started, not yet fired and not cancelled."""
        return (
            self._task is not None
            and not self._fired
            and not self._cancelled
            and not self._task.done()
        )

    @property
    def fired(self) -> bool:
        return self._fired

    def start(self) -> "CancelableTimer":
        if self._task is not None:
            raise RuntimeError(f"timer {self.name} already started")
        self._task = asyncio.create_task(self._run(), name=self.name)
        return self

    def cancel(self) -> None:
        """Idempotent."""
        self._cancelled = True
        if self._task is not None and not self._fired and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the timer has fired and its callback finished, or it was cancelled."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        if self._cancelled:
            return
        self._fired = True
        try:
            await self._callback()
        except Exception:
            logger.exception("Timer callback %s failed", self.name)


class BackgroundTasks:
    """Detached tasks. Callers never await their results."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str = "task") -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed", task.get_name(), exc_info=exc
            )

    async def drain(self) -> None:
        """Wait for every task, including ones spawned while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
