"""Asyncio helpers for the cache read and warm paths.

- :func:`bounded` races an awaitable against a timer without cancelling it
- :class:`DetachedTasks` runs fire-and-forget work (cache write-backs) that
  callers deliberately never await
- :func:`gather_in_chunks` fans out with a fixed concurrency cap
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Strong references to lookups we stopped waiting for, so they aren't
# garbage collected mid-flight
_abandoned: set[asyncio.Future[Any]] = set()


@dataclass(frozen=True)
class Bounded(Generic[T]):
    """Outcome of a bounded wait."""

    value: T | None
    timed_out: bool


def _discard_late_result(future: asyncio.Future[Any]) -> None:
    _abandoned.discard(future)
    if future.cancelled():
        return
    exc = future.exception()  # retrieve so asyncio doesn't warn
    if exc is not None:
        logger.debug(f"Abandoned lookup finished with error after timeout: {exc!r}")


async def bounded(awaitable: Awaitable[T], timeout: float) -> Bounded[T]:
    """Wait for an awaitable for at most ``timeout`` seconds.

    If the timer wins, the underlying operation is left running and its
    eventual result is discarded. Exceptions raised by the awaitable before
    the deadline propagate as usual.
    """
    future = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({future}, timeout=timeout)
    finally:
        if not future.done():
            _abandoned.add(future)
            future.add_done_callback(_discard_late_result)

    if future in done:
        return Bounded(value=future.result(), timed_out=False)
    return Bounded(value=None, timed_out=True)


class DetachedTasks:
    """Owner of background tasks nobody waits for.

    Failures are logged here and never reach the code that spawned the task.
    """

    def __init__(self, name: str = "detached") -> None:
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        """Schedule a coroutine and return immediately."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug(f"{self.name} task cancelled: {task.get_name()}")
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"{self.name} task {task.get_name()} failed: {exc!r}")

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight tasks, e.g. at shutdown.

        Tasks still running after ``timeout`` are cancelled.
        """
        if not self._tasks:
            return
        pending = set(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} {self.name} tasks at shutdown")
            await asyncio.gather(*still_running, return_exceptions=True)


async def gather_in_chunks(
    items: Sequence[T],
    func: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R | BaseException]:
    """Run ``func`` over ``items`` with at most ``limit`` calls in flight.

    Items are processed in chunks of ``limit``; each chunk completes before
    the next starts. Results keep input order; failures are returned as
    exception objects rather than raised.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    results: list[R | BaseException] = []
    for start in range(0, len(items), limit):
        chunk = items[start : start + limit]
        results.extend(
            await asyncio.gather(*(func(item) for item in chunk), return_exceptions=True)
        )
    return results
