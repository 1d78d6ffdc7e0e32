"""Notification deduplication per (channel, issue key) with a TTL window.

The Dedup Window itself is storage-agnostic: it talks to a DedupStore, which
must make check-and-set atomic. InMemoryDedupStore is the default backend.
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

# Suppression window (5 minutes)
DEDUP_WINDOW_SECONDS = 300.0

# How often expired entries are evicted
DEDUP_SWEEP_INTERVAL_SECONDS = 60.0

DedupKey = tuple[str, str]


class DedupStore(Protocol):
    """Key-value store backing the Dedup Window.

    Keys are (conversation_id, issue_key); values are notification timestamps.
    """

    def check_and_set(self, key: DedupKey, now: float, window: float) -> bool:
        """Atomically record `now` for key unless a live entry exists.

        Returns True if the entry was written (caller should notify).
        """
        ...

    def remove_expired(self, now: float, window: float) -> list[DedupKey]:
        """Remove entries older than the window; return the removed keys."""
        ...

    def __len__(self) -> int:
        ...


class InMemoryDedupStore:
    """Process-local DedupStore guarded by a lock."""

    def __init__(self) -> None:
        # Format: {(conversation_id, issue_key): timestamp}
        self._entries: dict[DedupKey, float] = {}
        self._lock = threading.Lock()

    def check_and_set(self, key: DedupKey, now: float, window: float) -> bool:
        with self._lock:
            last = self._entries.get(key)
            if last is not None and now - last < window:
                return False
            self._entries[key] = now
            return True

    def remove_expired(self, now: float, window: float) -> list[DedupKey]:
        with self._lock:
            expired = [k for k, t in self._entries.items() if now - t > window]
            for k in expired:
                del self._entries[k]
            return expired

    def get(self, key: DedupKey) -> Optional[float]:
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DedupWindow:
    """Suppresses repeat notifications for the same issue in a conversation.

    Expiry is checked on every call, so correctness never depends on the
    sweep having run; sweep_expired() only reclaims memory.
    """

    def __init__(
        self,
        window_seconds: float = DEDUP_WINDOW_SECONDS,
        store: Optional[DedupStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.window_seconds = window_seconds
        self._store: DedupStore = store if store is not None else InMemoryDedupStore()
        self._clock = clock

    def should_notify(
        self,
        conversation_id: str,
        issue_key: str,
        now: Optional[float] = None,
    ) -> bool:
        """Check-and-mark a (conversation, issue) sighting.

        Returns True and records the sighting when there is no live entry.
        Suppressed repeats do not refresh the existing timestamp.
        """
        now = self._clock() if now is None else now
        allowed = self._store.check_and_set((conversation_id, issue_key), now, self.window_seconds)
        if not allowed:
            logger.debug(f"Suppressed repeat notification: {conversation_id}-{issue_key}")
        return allowed

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock() if now is None else now
        logger.debug("Cleaning dedup buffer")
        removed = self._store.remove_expired(now, self.window_seconds)
        for conversation_id, issue_key in removed:
            logger.debug(f"Deleting {conversation_id}-{issue_key}")
        return len(removed)

    def __len__(self) -> int:
        return len(self._store)


async def run_sweeper(
    window: DedupWindow,
    interval_seconds: float = DEDUP_SWEEP_INTERVAL_SECONDS,
) -> None:
    """Periodically evict expired entries until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = window.sweep_expired()
        if removed:
            logger.info(f"Evicted {removed} expired dedup entries", extra={"remaining": len(window)})
