"""Trailing-edge debouncing on the asyncio event loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``callback`` once, ``delay_ms`` after the last call.

    Every call cancels the pending timer and schedules a new one with the
    latest arguments. Coroutine callbacks are started as tasks.

    Usage:
        debouncer = Debouncer(loader.load_visible_tiles, delay_ms=150)
        debouncer()          # camera moved
        debouncer()          # moved again: the first call is dropped
        await debouncer.wait()
    """

    def __init__(self, callback: Callable[..., Any], *, delay_ms: float) -> None:
        if delay_ms < 0:
            msg = f'delay_ms must be >= 0, got {delay_ms}'
            raise ValueError(msg)
        self._callback = callback
        self._delay_s = delay_ms / 1000.0
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[Any] | None = None
        self._fired = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def fired(self) -> int:
        """Number of times the callback has actually been invoked."""
        return self._fired

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay_s, self._fire, args, kwargs)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def wait(self) -> None:
        """Wait until the pending call (if any) and its task have finished."""
        while self._handle is not None:
            await asyncio.sleep(self._delay_s / 2 or 0)
        if self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    def _fire(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self._handle = None
        self._fired += 1
        result = self._callback(*args, **kwargs)
        if inspect.isawaitable(result):
            self._task = asyncio.ensure_future(result)
            self._task.add_done_callback(self._on_task_done)

    @staticmethod
    def _on_task_done(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error('Debounced callback failed: %s', exc, exc_info=exc)
