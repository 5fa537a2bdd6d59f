"""Bounded parallelism for fan-out against external APIs."""

import asyncio
from collections import deque
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """Cap the number of tasks in flight at once.

    Excess calls queue in FIFO order. When a running task finishes its slot
    is handed directly to the oldest waiter, so the in-flight count never
    exceeds ``max_concurrent`` and never drops while work is queued.
    There is no timeout here; callers bound their own tasks.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._active = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` once a slot is free and return its result.

        A failing task's exception propagates unchanged; the slot is
        released either way.
        """
        if self._active < self.max_concurrent and not self.pending:
            self._active += 1
        else:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                # Slot was handed over just before the cancellation landed
                if waiter.done() and not waiter.cancelled():
                    self._release()
                raise

        try:
            return await task()
        finally:
            self._release()

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active -= 1


def limiter(max_concurrent: int) -> Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]:
    """Return a ``run(task)`` function sharing one ConcurrencyLimiter."""
    return ConcurrencyLimiter(max_concurrent).run


async def gather_limited(
    factories: Iterable[Callable[[], Awaitable[T]]],
    max_concurrent: int,
) -> list[T]:
    """Run task factories under a shared cap; results follow input order."""
    run = limiter(max_concurrent)
    return list(await asyncio.gather(*(run(factory) for factory in factories)))
