"""Time-to-live snapshot cache with serve-stale-on-error and a single in-flight rebuild."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCache(Generic[T]):
    """Holds one wholesale-replaceable value and the coroutine that rebuilds it.

    ``get()`` returns the cached value while it is younger than the TTL.
    Once expired, the first caller starts a rebuild task and every concurrent
    caller awaits that same task. A failed rebuild hands back the previous
    value when there is one, otherwise the error propagates.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._clock = clock
        self._value: T | None = None
        self._has_value = False
        self._fetched_at: float | None = None
        self._inflight: asyncio.Task | None = None
        self.fetch_count = 0

    @property
    def has_value(self) -> bool:
        return self._has_value

    @property
    def age(self) -> float | None:
        """Seconds since the last successful rebuild, None if never built."""
        if self._fetched_at is None:
            return None
        return self._clock() - self._fetched_at

    def is_fresh(self) -> bool:
        age = self.age
        return self._has_value and age is not None and age < self._ttl

    def peek(self) -> T | None:
        """Current value without triggering a rebuild."""
        return self._value

    async def get(self) -> T:
        if self.is_fresh():
            return self._value  # type: ignore[return-value]

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._rebuild())
        # A cancelled caller must not cancel the rebuild other callers share
        return await asyncio.shield(self._inflight)

    async def _rebuild(self) -> T:
        self.fetch_count += 1
        try:
            value = await self._fetch()
        except Exception as e:
            if not self._has_value:
                logger.error("%s: rebuild failed with no cached value: %s", self.name, e)
                raise
            logger.warning(
                "%s: rebuild failed (%s), serving snapshot from %.0fs ago",
                self.name, e, self.age or 0.0,
            )
            return self._value  # type: ignore[return-value]
        finally:
            self._inflight = None

        self._value = value
        self._has_value = True
        self._fetched_at = self._clock()
        logger.debug("%s: snapshot replaced", self.name)
        return value
