"""A coalescing timer that collapses bursts of calls into one delayed call."""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class Debouncer:
    """Wraps an action so rapid repeated calls run it once, after a quiet period.

    Each call cancels the pending execution and schedules a new one `delay`
    seconds later (last call wins; arguments of the last call are used).
    Coroutine functions are started as tasks on the running loop.

    Attributes:
        action (Callable[..., Any]): The wrapped callable.
        delay (float): Quiet period in seconds.
    """

    def __init__(self, action: Callable[..., Any], delay: float):
        self.action = action
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._call: tuple[tuple, dict] | None = None
        self._tasks: set[asyncio.Task] = set()

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()
        self._call = (args, kwargs)
        self._handle = loop.call_later(self.delay, self._fire)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def cancel(self) -> None:
        """Drops the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._call = None

    def flush(self) -> None:
        """Runs the pending call immediately."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._fire()

    async def wait(self) -> None:
        """Waits for any tasks started by fired calls to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _fire(self) -> None:
        call = self._call
        self._handle = None
        self._call = None
        if call is None:
            return
        args, kwargs = call
        result = self.action(*args, **kwargs)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        if exc := task.exception():
            logger.error(
                f"Debounced call to {getattr(self.action, '__name__', self.action)} "
                f"failed: {exc}"
            )


def debounce(delay: float) -> Callable[[Callable[..., Any]], Debouncer]:
    """Decorator form of `Debouncer`."""

    def wrap(action: Callable[..., Any]) -> Debouncer:
        return Debouncer(action, delay)

    return wrap
