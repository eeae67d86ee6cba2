# Ensure the 'comicstats' package is importable when running tests directly.
import sys
import os
import threading
import time

import pytest
import redis

ROOT = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.dirname(ROOT)
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from comicstats.config import Settings  # noqa: E402
from comicstats.services.clock import Clock  # noqa: E402
from comicstats.services.context import build_context  # noqa: E402
from comicstats.services.stats_client import StatsClient  # noqa: E402
from comicstats.services.store import StoreConnection  # noqa: E402

DAY = 60 * 60 * 24
START = 1_700_000_000


class ManualClock(Clock):
    def __init__(self, start: float = START):
        self.t = float(start)

    def time(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


def _bound(value) -> float:
    if value in ("-inf", b"-inf"):
        return float("-inf")
    if value in ("+inf", "inf", b"+inf"):
        return float("inf")
    return float(value)


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the engine uses.

    Expiry follows the injected clock. Set ``down`` to make every command
    (including PING) fail with a connection error, or put command names in
    ``failing`` to make only those fail while PING still answers.
    """

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.strings = {}
        self.zsets = {}
        self.expires = {}
        self.config = {}
        self.down = False
        self.failing = set()
        self.reject_config = False
        self.calls = []
        self.dials = 0
        self.closes = 0
        self._lock = threading.Lock()

    # -- helpers ------------------------------------------------------------
    def _check(self, command: str) -> None:
        self.calls.append(command)
        if self.down:
            raise redis.ConnectionError("Connection refused")
        if command in self.failing:
            raise redis.ResponseError(f"injected failure on {command}")

    def _expire_stale(self, key) -> None:
        at = self.expires.get(key)
        if at is not None and at <= self.clock.time():
            self.strings.pop(key, None)
            self.zsets.pop(key, None)
            self.expires.pop(key, None)

    def factory(self):
        self.dials += 1
        return self

    # -- connection ---------------------------------------------------------
    def ping(self):
        with self._lock:
            self._check("ping")
            return True

    def close(self):
        self.closes += 1

    def config_set(self, name, value):
        with self._lock:
            self._check("config_set")
            if self.reject_config:
                raise redis.ResponseError("unknown command 'CONFIG'")
            self.config[name] = value
            return True

    # -- strings ------------------------------------------------------------
    def set(self, key, value, nx=False, ex=None):
        with self._lock:
            self._check("set")
            self._expire_stale(key)
            if nx and key in self.strings:
                return None
            self.strings[key] = str(value)
            if ex is not None:
                self.expires[key] = self.clock.time() + ex
            else:
                self.expires.pop(key, None)
            return True

    def get(self, key):
        with self._lock:
            self._check("get")
            self._expire_stale(key)
            return self.strings.get(key)

    def incr(self, key):
        with self._lock:
            self._check("incr")
            self._expire_stale(key)
            value = int(self.strings.get(key, 0)) + 1
            self.strings[key] = str(value)
            return value

    def expire(self, key, seconds):
        with self._lock:
            self._check("expire")
            self._expire_stale(key)
            if key not in self.strings and key not in self.zsets:
                return False
            self.expires[key] = self.clock.time() + seconds
            return True

    def ttl(self, key):
        with self._lock:
            self._expire_stale(key)
            if key not in self.expires:
                return -1 if (key in self.strings or key in self.zsets) else -2
            return int(self.expires[key] - self.clock.time())

    def delete(self, *keys):
        with self._lock:
            removed = 0
            for key in keys:
                if self.strings.pop(key, None) is not None or self.zsets.pop(key, None) is not None:
                    removed += 1
                self.expires.pop(key, None)
            return removed

    # -- sorted sets --------------------------------------------------------
    def zadd(self, key, mapping):
        with self._lock:
            self._check("zadd")
            zset = self.zsets.setdefault(key, {})
            added = sum(1 for member in mapping if member not in zset)
            for member, score in mapping.items():
                zset[member] = float(score)
            return added

    def zscore(self, key, member):
        with self._lock:
            self._check("zscore")
            return self.zsets.get(key, {}).get(member)

    def zcard(self, key):
        with self._lock:
            self._check("zcard")
            return len(self.zsets.get(key, {}))

    def zcount(self, key, min, max):
        with self._lock:
            self._check("zcount")
            lo, hi = _bound(min), _bound(max)
            return sum(1 for s in self.zsets.get(key, {}).values() if lo <= s <= hi)

    def zremrangebyscore(self, key, min, max):
        with self._lock:
            self._check("zremrangebyscore")
            lo, hi = _bound(min), _bound(max)
            zset = self.zsets.get(key, {})
            stale = [m for m, s in zset.items() if lo <= s <= hi]
            for member in stale:
                del zset[member]
            return len(stale)

    def members(self, key):
        return dict(self.zsets.get(key, {}))


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest.fixture
def test_settings():
    return Settings(
        VIEW_QUEUE_SIZE=64,
        VIEW_MAX_ATTEMPTS=0,
        VIEW_BACKOFF_BASE=0.01,
        VIEW_BACKOFF_MAX=0.05,
    )


@pytest.fixture
def store(fake_redis, clock, test_settings):
    conn = StoreConnection(fake_redis.factory, clock=clock, cfg=test_settings)
    conn.connect()
    yield conn
    conn.close()


@pytest.fixture
def stats_client(store, clock):
    return StatsClient(store, clock=clock)


@pytest.fixture
def context(fake_redis, clock, test_settings):
    return build_context(test_settings, clock=clock, connection_factory=fake_redis.factory)


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
