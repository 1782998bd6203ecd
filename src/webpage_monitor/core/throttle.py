"""Minimum spacing between deliveries to the same webhook endpoint."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional


class EndpointThrottle:
    """Serialize deliveries per endpoint and keep them ``min_interval`` apart.

    Targets sharing a webhook share the endpoint's lock, so the
    read-modify-write of the last delivery time never interleaves.
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock or time.monotonic
        self._last_sent: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, endpoint: str) -> asyncio.Lock:
        if endpoint not in self._locks:
            self._locks[endpoint] = asyncio.Lock()
        return self._locks[endpoint]

    def delay_for(self, endpoint: str) -> float:
        """Seconds left before the endpoint may be hit again."""
        last_sent = self._last_sent.get(endpoint)
        if last_sent is None:
            return 0.0
        elapsed = self._clock() - last_sent
        return max(0.0, self.min_interval - elapsed)

    def mark_sent(self, endpoint: str) -> None:
        self._last_sent[endpoint] = self._clock()

    @asynccontextmanager
    async def slot(self, endpoint: str) -> AsyncIterator[None]:
        """Hold the endpoint for one delivery (including its retry)."""
        async with self._lock_for(endpoint):
            delay = self.delay_for(endpoint)
            if delay > 0:
                await asyncio.sleep(delay)
            try:
                yield
            finally:
                self.mark_sent(endpoint)
