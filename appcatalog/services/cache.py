"""In-process TTL cache with request coalescing and stale reads.

The service runs on a single asyncio event loop, and no cache method awaits
between its read and its write. That is what keeps the check-then-populate
sequences consistent without a lock. A multi-threaded host would need a
lock around them.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

# Key used by the caches that hold a single, unkeyed value
GLOBAL_KEY = "*"


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return self.expires_at > now


class TTLCache(Generic[V]):
    """Keyed cache whose entries expire *ttl* seconds after being written.

    Expired entries are kept so callers can fall back to them when a
    refresh fails; :meth:`fresh` ignores them, :meth:`stale` does not.
    """

    def __init__(self, name: str, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry[V]] = {}
        self._in_flight: Dict[Hashable, "asyncio.Future[V]"] = {}

    def fresh(self, key: Hashable = GLOBAL_KEY) -> Optional[CacheEntry[V]]:
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            return entry
        return None

    def stale(self, key: Hashable = GLOBAL_KEY) -> Optional[CacheEntry[V]]:
        """Return the entry for *key* whether or not it has expired."""
        return self._entries.get(key)

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> CacheEntry[V]:
        """Replace the entry for *key* (value and expiry together)."""
        entry = CacheEntry(value, self._clock() + (self.ttl if ttl is None else ttl))
        self._entries[key] = entry
        return entry

    def in_flight(self, key: Hashable = GLOBAL_KEY) -> Optional["asyncio.Future[V]"]:
        return self._in_flight.get(key)

    def start(self, key: Hashable, factory: Callable[[], Awaitable[V]]) -> "asyncio.Future[V]":
        """Run *factory* as the in-flight task for *key* and return it.

        The task removes itself from the in-flight map when it finishes.
        """
        task = asyncio.ensure_future(factory())
        self._in_flight[key] = task

        def _forget(done: "asyncio.Future[V]") -> None:
            if self._in_flight.get(key) is done:
                del self._in_flight[key]

        task.add_done_callback(_forget)
        return task

    async def coalesce(self, key: Hashable, factory: Callable[[], Awaitable[V]]) -> V:
        """Await the in-flight task for *key*, starting one if there is none.

        Concurrent callers share one upstream call. The shared task is
        shielded, so a caller that gives up does not cancel it for the others.
        """
        task = self._in_flight.get(key)
        if task is None:
            logger.debug("%s cache: loading %r", self.name, key)
            task = self.start(key, factory)
        return await asyncio.shield(task)

    def clear(self) -> None:
        self._entries.clear()
        self._in_flight.clear()

    def __len__(self) -> int:
        return len(self._entries)
