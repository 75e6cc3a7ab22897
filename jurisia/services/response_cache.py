"""
In-process TTL cache for analysis and jurisprudence results.

Storage maps ``key -> CacheEntry(value, expires_at)``.  Expiry is checked on
every read, and an optional asyncio sweeper purges expired entries every
``check_period`` seconds.  Values are immutable snapshots, so entries are only
ever replaced by a full overwrite under the same key.

The cache never raises: if the backing storage cannot be created, or any
storage operation fails, it logs a warning, marks itself unavailable and
behaves as a permanent miss from then on.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Callable, Dict, MutableMapping, Optional

from jurisia.utils.helpers import generate_hash

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float


def make_fingerprint(task: str, content: str, entity_id: Optional[str], prefix_chars: int = 1000) -> str:
    """
    Derive a cache key from a task name, an entity id and a content prefix.

    Only the first ``prefix_chars`` characters are hashed: two documents that
    share that prefix (and the same task/entity) map to the same key.
    """
    digest = generate_hash(content[:prefix_chars])[:32]
    return f"{task}:{entity_id or '-'}:{digest}"


class ResponseCache:
    """
    Named TTL cache with an explicit lifecycle.

    Args:
        name:            Label used in logs and stats.
        default_ttl:     Seconds an entry lives when ``set`` gets no ttl.
        check_period:    Seconds between background sweeps.
        clock:           Monotonic time source (injectable for tests).
        storage_factory: Zero-arg callable returning the backing mapping.
    """

    def __init__(
        self,
        name: str,
        default_ttl: float,
        check_period: float,
        clock: Callable[[], float] = time.monotonic,
        storage_factory: Callable[[], MutableMapping[str, CacheEntry]] = dict,
    ) -> None:
        self.name = name
        self.default_ttl = default_ttl
        self.check_period = check_period
        self._clock = clock
        self._sweeper: Optional[asyncio.Task] = None
        self._hits = 0
        self._misses = 0
        self._storage: Optional[MutableMapping[str, CacheEntry]] = None

        try:
            self._storage = storage_factory()
            logger.info(
                "Cache '%s' initialised (ttl=%ss, check_period=%ss)", name, default_ttl, check_period
            )
        except Exception as exc:
            logger.warning("Cache '%s' unavailable, running without cache: %s", name, exc)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def available(self) -> bool:
        return self._storage is not None

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing, expired or unavailable."""
        if self._storage is None:
            self._misses += 1
            return None

        try:
            entry = self._storage.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() >= entry.expires_at:
                del self._storage[key]
                self._misses += 1
                return None
        except Exception as exc:
            self._disable("get", exc)
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (default TTL when None)."""
        if self._storage is None:
            return

        lifetime = self.default_ttl if ttl is None else ttl
        try:
            self._storage[key] = CacheEntry(value=value, expires_at=self._clock() + lifetime)
        except Exception as exc:
            self._disable("set", exc)

    def invalidate(self, key: str) -> None:
        if self._storage is None:
            return
        try:
            self._storage.pop(key, None)
        except Exception as exc:
            self._disable("invalidate", exc)

    def purge_expired(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        if self._storage is None:
            return 0

        try:
            now = self._clock()
            expired = [key for key, entry in self._storage.items() if now >= entry.expires_at]
            for key in expired:
                del self._storage[key]
        except Exception as exc:
            self._disable("purge", exc)
            return 0

        if expired:
            logger.debug("Cache '%s': purged %d expired entries", self.name, len(expired))
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        entries = 0
        if self._storage is not None:
            try:
                entries = len(self._storage)
            except Exception:
                entries = 0
        return {
            "name": self.name,
            "available": self.available,
            "entries": entries,
            "hits": self._hits,
            "misses": self._misses,
        }

    # ------------------------------------------------------------------
    # Sweeper lifecycle
    # ------------------------------------------------------------------

    def start_sweeper(self) -> None:
        """Start the periodic purge task on the running event loop."""
        if self._sweeper is not None or self._storage is None:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(), name=f"cache-sweeper-{self.name}")

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.check_period)
            self.purge_expired()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _disable(self, operation: str, exc: Exception) -> None:
        logger.warning(
            "Cache '%s' %s failed, disabling cache: %s", self.name, operation, exc
        )
        self._storage = None
