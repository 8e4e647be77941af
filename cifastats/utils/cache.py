"""Keyed get-or-fetch cache with in-flight request deduplication.

Replaces the repetitive module-level dict pattern:
    _standings_cache = {}  # {(league_id, season): {"data": ..., "timestamp": ...}}

Usage:
    cache = RequestCache(name="stats")

    # Read-through: concurrent callers for the same key share ONE fetch
    key = make_cache_key("teams", "club", None)      # "teams:club:*"
    teams = await cache.get_or_fetch(key, lambda: store.fetch_teams("club"))

    # Peek without fetching
    hit, data = cache.get(key)

    # Bypass a ready entry (still joins a fetch already in flight)
    teams = await cache.get_or_fetch(key, fetch, force_refresh=True)

    # Invalidate
    cache.invalidate(key)
    cache.invalidate_all()

Concurrency: the "check pending, else check ready, else mark pending" step
runs without suspending, so under asyncio it is indivisible per key. There
is no cache-wide lock; different keys never wait on each other.

Failed fetches are not cached and are not retried here. Cancelling a caller
does not cancel the shared fetch; its result still lands in the cache.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

from cifastats.telemetry.metrics import (
    record_cache_eviction,
    record_cache_fetch_error,
    record_cache_request,
    set_cache_size,
)

logger = logging.getLogger(__name__)

PENDING = "pending"
READY = "ready"

FetchFn = Callable[[], Awaitable[Any]]


@dataclass
class CacheEntry:
    """Snapshot of one key's state."""

    key: str
    value: Any
    inserted_at: float
    state: str = READY


@dataclass
class _InFlight:
    task: "asyncio.Task"
    started_at: float


def make_cache_key(namespace: str, *parts) -> str:
    """
    Build a deterministic composite key.

    None renders as "*"; every other part is percent-encoded, so a literal
    ":" or "*" inside a value can never collide with another key.

        make_cache_key("teams", "club", None)  -> "teams:club:*"
        make_cache_key("team", "a:b")          -> "team:a%3Ab"
    """
    rendered = [namespace]
    for part in parts:
        rendered.append("*" if part is None else quote(str(part), safe=""))
    return ":".join(rendered)


def _consume_exception(task: "asyncio.Task") -> None:
    # Every caller may have been cancelled; avoid "exception never retrieved"
    if not task.cancelled():
        task.exception()


class RequestCache:
    """Get-or-fetch cache with dedup, explicit invalidation and optional bounds."""

    def __init__(
        self,
        name: str = "default",
        ttl: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._pending: dict[str, _InFlight] = {}
        # Bumped by invalidate_all so in-flight fetches don't repopulate
        self._generation = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.ttl is not None and self._clock() - entry.inserted_at >= self.ttl:
            del self._entries[key]
            record_cache_eviction(self.name, "ttl")
            set_cache_size(self.name, len(self._entries))
            logger.debug(f"[CACHE:{self.name}] expired {key}")
            return None
        self._entries.move_to_end(key)
        return entry

    def get(self, key: str) -> tuple[bool, Any]:
        """Return (hit, data) for a ready entry. Never fetches."""
        entry = self._lookup(key)
        if entry is None:
            return False, None
        return True, entry.value

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key: ready, pending (value None) or None."""
        in_flight = self._pending.get(key)
        if in_flight is not None:
            return CacheEntry(key=key, value=None, inserted_at=in_flight.started_at, state=PENDING)
        return self._lookup(key)

    def __contains__(self, key: str) -> bool:
        return self._lookup(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: FetchFn,
        *,
        force_refresh: bool = False,
    ) -> Any:
        """
        Return the value for key, fetching it at most once concurrently.

        Args:
            key: Composite key from make_cache_key().
            fetch_fn: Zero-arg coroutine function performing the real fetch.
            force_refresh: Skip the ready entry. A fetch already in flight is
                still joined, since it is at least as fresh.

        Raises:
            Whatever fetch_fn raised, to every caller awaiting that fetch.
        """
        in_flight = self._pending.get(key)
        if in_flight is not None:
            record_cache_request(self.name, "dedup")
            logger.debug(f"[CACHE:{self.name}] joining in-flight fetch for {key}")
            return await asyncio.shield(in_flight.task)

        if not force_refresh:
            entry = self._lookup(key)
            if entry is not None:
                record_cache_request(self.name, "hit")
                return entry.value

        record_cache_request(self.name, "miss")
        task = asyncio.ensure_future(self._fetch(key, fetch_fn, self._generation))
        task.add_done_callback(_consume_exception)
        self._pending[key] = _InFlight(task=task, started_at=self._clock())
        return await asyncio.shield(task)

    async def _fetch(self, key: str, fetch_fn: FetchFn, generation: int) -> Any:
        try:
            value = await fetch_fn()
        except Exception as e:
            record_cache_fetch_error(self.name)
            logger.warning(f"[CACHE:{self.name}] fetch failed for {key}: {e}")
            raise
        else:
            if generation == self._generation:
                self._store(key, value)
            else:
                logger.debug(f"[CACHE:{self.name}] discarding result for {key} after invalidate_all")
            return value
        finally:
            in_flight = self._pending.get(key)
            if in_flight is not None and in_flight.task is asyncio.current_task():
                del self._pending[key]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _store(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, inserted_at=self._clock())
        self._entries.move_to_end(key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                record_cache_eviction(self.name, "size")
                logger.debug(f"[CACHE:{self.name}] evicted {evicted} (size bound)")
        set_cache_size(self.name, len(self._entries))

    def invalidate(self, key: str) -> None:
        """Drop a ready entry. No effect when absent or only pending."""
        if self._entries.pop(key, None) is not None:
            set_cache_size(self.name, len(self._entries))

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every ready entry whose key starts with prefix. Returns count."""
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            set_cache_size(self.name, len(self._entries))
        return len(doomed)

    def invalidate_all(self) -> None:
        """Drop every entry and pending marker (sign-out, forced refresh)."""
        self._entries.clear()
        self._pending.clear()
        self._generation += 1
        set_cache_size(self.name, 0)
        logger.info(f"[CACHE:{self.name}] cleared")
