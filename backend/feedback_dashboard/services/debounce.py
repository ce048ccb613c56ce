import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Latest-wins delayed commit.

    Every `trigger()` replaces the pending value and restarts the timer; the
    callback runs once, `delay` seconds after the last trigger, with the last
    value. One instance per debounced field.
    """

    def __init__(self, delay: float, callback: Callable[[T], Awaitable[None]]):
        self.delay = delay
        self._callback = callback
        self._task: asyncio.Task | None = None
        self._pending: T | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, value: T) -> None:
        self.cancel()
        self._pending = value
        self._task = asyncio.get_running_loop().create_task(self._fire_later(value))

    async def _fire_later(self, value: T) -> None:
        await asyncio.sleep(self.delay)
        self._task = None
        await self._callback(value)

    async def flush(self) -> None:
        """Run the pending callback now instead of waiting for the timer."""
        if not self.pending:
            return
        value = self._pending
        self.cancel()
        await self._callback(value)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Block until the currently scheduled callback has finished."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})
            if task.cancelled():
                logger.debug("Debounced call superseded before it fired")
