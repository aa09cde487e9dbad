"""Process-local session cache, per-session locks and the eviction sweeper.

The cache only mirrors recent prompt history; the transcript store stays the
source of truth and the cache is rebuilt from it whenever an entry is missing.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HistoryItem:
    """One prompt-history turn; ``role`` is ``"user"`` or ``"assistant"``."""

    role: str
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class _CacheEntry:
    items: deque[HistoryItem]
    last_activity: datetime = field(default_factory=_utcnow)


class SessionCache:
    """Most-recent-N prompt history per session key with idle eviction."""

    def __init__(
        self,
        *,
        max_messages: int = 20,
        idle_ttl: timedelta = timedelta(hours=24),
        clock: Clock = _utcnow,
    ) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be positive")
        self._max_messages = max_messages
        self._idle_ttl = idle_ttl
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def max_messages(self) -> int:
        return self._max_messages

    def __contains__(self, session_key: str) -> bool:
        with self._lock:
            return session_key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, session_key: str) -> list[HistoryItem] | None:
        """Return a copy of the cached history, or ``None`` on a miss."""

        with self._lock:
            entry = self._entries.get(session_key)
            if entry is None:
                return None
            entry.last_activity = self._clock()
            return list(entry.items)

    def seed(self, session_key: str, items: Iterable[HistoryItem]) -> list[HistoryItem]:
        """Replace the entry for ``session_key`` with ``items`` (capped)."""

        entry = _CacheEntry(
            items=deque(items, maxlen=self._max_messages),
            last_activity=self._clock(),
        )
        with self._lock:
            self._entries[session_key] = entry
            return list(entry.items)

    def append(self, session_key: str, role: str, content: str) -> None:
        with self._lock:
            entry = self._entries.get(session_key)
            if entry is None:
                entry = _CacheEntry(items=deque(maxlen=self._max_messages))
                self._entries[session_key] = entry
            entry.items.append(HistoryItem(role=role, content=content))
            entry.last_activity = self._clock()

    def discard(self, session_key: str) -> None:
        with self._lock:
            self._entries.pop(session_key, None)

    def purge_idle(self, now: datetime | None = None) -> list[str]:
        """Drop entries idle for longer than the TTL; return the purged keys."""

        cutoff = (now or self._clock()) - self._idle_ttl
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.last_activity < cutoff]
            for key in stale:
                del self._entries[key]
        return stale


class SessionLocks:
    """Hand out one re-entrant lock per session key.

    Request code takes the lock through :meth:`hold`, which counts the key as
    in use from the moment the lock is looked up. :meth:`forget` never drops a
    key that is in use, so two requests on one session always share a lock.
    """

    def __init__(self, lock_factory: Callable[[], Any] = threading.RLock) -> None:
        self._factory = lock_factory
        self._locks: dict[str, Any] = {}
        self._users: dict[str, int] = {}
        self._guard = threading.Lock()

    def _get_or_create(self, session_key: str) -> Any:
        lock = self._locks.get(session_key)
        if lock is None:
            lock = self._factory()
            self._locks[session_key] = lock
        return lock

    def lock_for(self, session_key: str) -> Any:
        with self._guard:
            return self._get_or_create(session_key)

    @contextmanager
    def hold(self, session_key: str) -> Iterator[Any]:
        """Serialise work on ``session_key`` for the duration of the block."""

        with self._guard:
            lock = self._get_or_create(session_key)
            self._users[session_key] = self._users.get(session_key, 0) + 1
        try:
            with lock:
                yield lock
        finally:
            with self._guard:
                remaining = self._users[session_key] - 1
                if remaining:
                    self._users[session_key] = remaining
                else:
                    del self._users[session_key]

    def forget(self, session_keys: Iterable[str]) -> None:
        """Drop locks that are neither in use nor held right now."""

        with self._guard:
            for key in session_keys:
                if self._users.get(key):
                    continue
                lock = self._locks.get(key)
                if lock is not None and lock.acquire(blocking=False):
                    try:
                        del self._locks[key]
                    finally:
                        lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class CacheSweeper:
    """Background thread purging idle cache entries on a fixed interval."""

    def __init__(
        self,
        cache: SessionCache,
        locks: SessionLocks | None = None,
        *,
        interval: timedelta = timedelta(hours=1),
    ) -> None:
        self._cache = cache
        self._locks = locks
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep(self) -> int:
        purged = self._cache.purge_idle()
        if self._locks is not None and purged:
            self._locks.forget(purged)
        if purged:
            logger.info("Evicted %d idle chat sessions from cache", len(purged))
        return len(purged)

    def _run(self) -> None:
        while not self._stop.wait(self._interval.total_seconds()):
            try:
                self.sweep()
            except Exception:  # pragma: no cover - keep the sweeper alive
                logger.exception("Session cache sweep failed")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="chatdesk-cache-sweeper", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
