"""In-memory message store with per-entry time-to-live.

Entries are keyed by recipient address exactly as the client sent it.
An entry becomes unreachable once its TTL has elapsed since insertion;
reads never extend it. Expired entries are dropped lazily when touched
and in bulk by the background sweeper.

Usage Examples
--------------

    >>> store = ExpiringStore(ttl_seconds=1200)
    >>> store.put("b@y.com", message)
    >>> store.get("b@y.com")
    >>> store.purge_expired()
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ..models.message import Message
from ..observability import metrics

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 20 * 60


class ExpiringStore:
    """Thread-safe key -> Message map with TTL eviction.

    Safe to call from many connection tasks and from API worker threads
    at once. Capacity is unbounded by count.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize store.

        Args:
            ttl_seconds: Lifetime of each entry from insertion
            clock: Monotonic time source, injectable for tests
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, Message]] = {}

    def _is_expired(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at >= self.ttl_seconds

    def put(self, key: str, value: Message) -> None:
        """Insert or replace ``key``, restarting its TTL."""
        with self._lock:
            self._entries[key] = (self._clock(), value)
            size = len(self._entries)
        metrics.store_puts_total.inc()
        metrics.store_entries.set(size)

    def get(self, key: str) -> Optional[Message]:
        """Return the live value for ``key`` or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            inserted_at, value = entry
            if self._is_expired(inserted_at, self._clock()):
                del self._entries[key]
                metrics.store_expired_total.inc()
                return None
            return value

    def find(self, message_id: str) -> Optional[Tuple[str, Message]]:
        """Look up a live stored message by id.

        Returns:
            Optional[Tuple[str, Message]]: (recipient key, message) or None
        """
        with self._lock:
            now = self._clock()
            for key, (inserted_at, value) in self._entries.items():
                if value.id == message_id and not self._is_expired(inserted_at, now):
                    return key, value
        return None

    def purge_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            int: Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, (inserted_at, _) in self._entries.items()
                if self._is_expired(inserted_at, now)
            ]
            for key in expired:
                del self._entries[key]
            size = len(self._entries)

        if expired:
            metrics.store_expired_total.inc(len(expired))
            logger.debug(f"Purged {len(expired)} expired messages, {size} remaining")
        metrics.store_entries.set(size)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(
                1 for inserted_at, _ in self._entries.values()
                if not self._is_expired(inserted_at, now)
            )

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Purge expired entries every ``interval_seconds`` until cancelled."""
        logger.info(f"Store sweeper started (interval={interval_seconds}s, ttl={self.ttl_seconds}s)")
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                self.purge_expired()
        finally:
            logger.info("Store sweeper stopped")
