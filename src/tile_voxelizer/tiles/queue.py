"""Bounded fan-out queue with an idle wait that tolerates self-feeding tasks."""

import asyncio
from typing import Any, Awaitable, Callable, Set

from ..utils.log import get_logger

logger = get_logger(__name__)


class FanOutQueue:
    """Run submitted coroutines with bounded concurrency.

    Submitters do not await their tasks. Instead, :meth:`wait_idle` waits
    until the outstanding-task counter drops to zero. The counter is
    incremented at submit time, so tasks enqueued by other tasks that are
    still running keep the queue busy until they finish too.

    Must be used from within a running event loop.
    """

    def __init__(self, concurrency: int = 10, name: str = "queue"):
        """Initialize the queue.

        Args:
            concurrency: Maximum number of tasks running at once
            name: Name used in log messages
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        self.concurrency = concurrency
        self.name = name

        self._semaphore = asyncio.Semaphore(concurrency)
        self._idle = asyncio.Event()
        self._idle.set()
        self._pending = 0
        self._tasks: Set[asyncio.Task] = set()

        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        """Number of tasks queued or running."""
        return self._pending

    def submit(self, coro_fn: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Task:
        """Schedule ``coro_fn(*args)`` and return immediately."""
        self._pending += 1
        self._idle.clear()

        task = asyncio.ensure_future(self._run(coro_fn, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro_fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        try:
            async with self._semaphore:
                await coro_fn(*args)
            self.completed += 1
        except Exception:
            self.failed += 1
            logger.exception(f"Task in {self.name} failed")
        finally:
            self._pending -= 1
            if self._pending == 0:
                self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no task is queued or running.

        The event can be set and cleared again by a task that submits work
        while the waiter is being woken, so the counter is re-checked.
        """
        while self._pending > 0:
            await self._idle.wait()
