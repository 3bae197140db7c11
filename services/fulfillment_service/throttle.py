"""Fixed-delay pacing for loops that call the upstream API."""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class FixedDelayThrottle:
    """Waits ``delay`` seconds between consecutive items, never before the first.

    ``sleep`` is injectable so tests can record delays instead of waiting.
    """

    def __init__(self, delay: float, sleep: SleepFn = asyncio.sleep):
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._sleep = sleep

    async def iterate(self, items: Iterable[T]) -> AsyncIterator[T]:
        first = True
        for item in items:
            if not first and self.delay:
                await self._sleep(self.delay)
            first = False
            yield item
