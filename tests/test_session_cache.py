import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from chatdesk.conversations.cache import CacheSweeper, HistoryItem, SessionCache, SessionLocks


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def test_cache_keeps_most_recent_messages():
    cache = SessionCache(max_messages=3)

    for index in range(5):
        cache.append("op_s1", "user", f"message {index}")

    history = cache.get("op_s1")
    assert [item.content for item in history] == ["message 2", "message 3", "message 4"]


def test_miss_returns_none_and_seed_caps_history():
    cache = SessionCache(max_messages=2)

    assert cache.get("op_s1") is None
    seeded = cache.seed(
        "op_s1",
        [HistoryItem("user", "a"), HistoryItem("assistant", "b"), HistoryItem("user", "c")],
    )

    assert [item.content for item in seeded] == ["b", "c"]
    assert "op_s1" in cache


def test_get_returns_a_copy():
    cache = SessionCache()
    cache.append("op_s1", "user", "hi")

    history = cache.get("op_s1")
    history.append(HistoryItem("user", "mutated"))

    assert len(cache.get("op_s1")) == 1


def test_purge_idle_drops_only_stale_entries():
    clock = _Clock()
    cache = SessionCache(idle_ttl=timedelta(hours=24), clock=clock)
    cache.append("op_old", "user", "hello")
    clock.advance(hours=20)
    cache.append("op_new", "user", "hello")
    clock.advance(hours=5)

    purged = cache.purge_idle()

    assert purged == ["op_old"]
    assert "op_old" not in cache
    assert "op_new" in cache


def test_reads_refresh_activity():
    clock = _Clock()
    cache = SessionCache(idle_ttl=timedelta(hours=1), clock=clock)
    cache.append("op_s1", "user", "hello")
    clock.advance(minutes=50)
    cache.get("op_s1")
    clock.advance(minutes=50)

    assert cache.purge_idle() == []


def test_invalid_capacity_rejected():
    with pytest.raises(ValueError):
        SessionCache(max_messages=0)


def test_locks_are_shared_per_key():
    locks = SessionLocks()

    assert locks.lock_for("a") is locks.lock_for("a")
    assert locks.lock_for("a") is not locks.lock_for("b")


def test_forget_skips_held_locks():
    locks = SessionLocks()
    held = locks.lock_for("busy")
    locks.lock_for("idle")
    acquired = threading.Event()
    release = threading.Event()

    def _hold():
        with held:
            acquired.set()
            release.wait(5)

    worker = threading.Thread(target=_hold)
    worker.start()
    acquired.wait(5)
    try:
        locks.forget(["busy", "idle"])
    finally:
        release.set()
        worker.join(5)

    assert locks.lock_for("busy") is held
    assert len(locks) == 1


class _SweepBeforeAcquire:
    """Re-entrant lock that runs ``sweep`` just before every blocking acquire."""

    def __init__(self, sweep):
        self._lock = threading.RLock()
        self._sweep = sweep

    def acquire(self, blocking=True, timeout=-1):
        if blocking:
            self._sweep()
        return self._lock.acquire(blocking, timeout)

    def release(self):
        self._lock.release()

    def __enter__(self):
        return self.acquire()

    def __exit__(self, *exc_info):
        self.release()


def test_forget_keeps_locks_looked_up_but_not_yet_acquired():
    locks = SessionLocks(lock_factory=lambda: _SweepBeforeAcquire(lambda: locks.forget(["op_s1"])))

    with locks.hold("op_s1") as lock:
        assert locks.lock_for("op_s1") is lock
        assert len(locks) == 1

    locks.forget(["op_s1"])
    assert len(locks) == 0


def test_hold_serialises_work_on_one_session():
    locks = SessionLocks()
    inside = []
    overlaps = []

    def _work():
        with locks.hold("op_s1"):
            inside.append(1)
            overlaps.append(len(inside))
            time.sleep(0.01)
            inside.pop()

    workers = [threading.Thread(target=_work) for _ in range(5)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(5)

    assert overlaps == [1, 1, 1, 1, 1]
    assert len(locks) == 1


def test_sweeper_purges_cache_and_locks():
    clock = _Clock()
    cache = SessionCache(idle_ttl=timedelta(minutes=10), clock=clock)
    locks = SessionLocks()
    cache.append("op_s1", "user", "hi")
    locks.lock_for("op_s1")
    clock.advance(minutes=11)

    sweeper = CacheSweeper(cache, locks)

    assert sweeper.sweep() == 1
    assert len(cache) == 0
    assert len(locks) == 0


def test_sweeper_thread_starts_and_stops():
    sweeper = CacheSweeper(SessionCache(), interval=timedelta(seconds=30))

    sweeper.start()
    assert sweeper.running
    sweeper.stop()
    assert not sweeper.running
