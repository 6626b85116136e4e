"""
Tests for TTLCache and Throttle.

A ManualClock stands in for wall time, so expiry and spacing are tested by
advancing the clock rather than sleeping.
"""

from datetime import datetime, timezone

import pytest

from src.utils.time import ManualClock
from src.venues.quote_cache import Throttle, TTLCache

T0 = datetime(2024, 6, 28, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return ManualClock(T0)


def test_cache_hit_within_ttl(clock):
    cache = TTLCache(30, clock=clock)
    cache.set("AAPL", {"c": 187.5})
    clock.advance(29.9)

    assert cache.get("AAPL") == {"c": 187.5}
    assert "AAPL" in cache


def test_cache_expires_at_ttl(clock):
    cache = TTLCache(30, clock=clock)
    cache.set("AAPL", 1)
    clock.advance(30)

    assert cache.get("AAPL") is None
    assert len(cache) == 0


def test_cache_miss_and_evict(clock):
    cache = TTLCache(30, clock=clock)
    assert cache.get("missing") is None

    cache.set("k", "v")
    cache.evict("k")
    cache.evict("never-set")
    assert cache.get("k") is None


def test_cache_set_refreshes_entry(clock):
    cache = TTLCache(30, clock=clock)
    cache.set("k", 1)
    clock.advance(20)
    cache.set("k", 2)
    clock.advance(20)

    assert cache.get("k") == 2


def test_cache_soft_cap_purges_only_stale_entries(clock):
    cache = TTLCache(10, clock=clock, max_entries=3)
    cache.set("old1", 1)
    cache.set("old2", 2)
    clock.advance(25)  # older than 2 x TTL
    cache.set("new1", 3)
    clock.advance(1)
    cache.set("new2", 4)  # size 4 > 3 -> purge entries older than 20s

    assert len(cache) == 2
    assert cache.get("new1") == 3
    assert cache.get("new2") == 4


def test_cache_soft_cap_keeps_fresh_entries(clock):
    cache = TTLCache(10, clock=clock, max_entries=2)
    for key in ("a", "b", "c"):
        cache.set(key, key)

    assert len(cache) == 3


def test_purge_expired_and_clear(clock):
    cache = TTLCache(10, clock=clock)
    cache.set("a", 1)
    clock.advance(11)
    cache.set("b", 2)

    assert cache.purge_expired() == 1
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_cache_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        TTLCache(0)


def test_throttle_first_call_does_not_wait(clock):
    throttle = Throttle(0.1, clock=clock, sleep=clock.sleep)
    assert throttle.wait() == 0.0
    assert clock.now() == T0


def test_throttle_spaces_calls(clock):
    throttle = Throttle(0.1, clock=clock, sleep=clock.sleep)
    throttle.wait()
    clock.advance(0.04)

    slept = throttle.wait()

    assert slept == pytest.approx(0.06)
    assert (clock.now() - T0).total_seconds() == pytest.approx(0.1)


def test_throttle_no_wait_after_interval(clock):
    slept_calls = []
    throttle = Throttle(0.1, clock=clock, sleep=slept_calls.append)
    throttle.wait()
    clock.advance(0.5)

    assert throttle.wait() == 0.0
    assert slept_calls == []


def test_throttle_zero_interval_never_sleeps(clock):
    slept_calls = []
    throttle = Throttle(0.0, clock=clock, sleep=slept_calls.append)
    for _ in range(3):
        throttle.wait()
    assert slept_calls == []


def test_throttle_rejects_negative_interval():
    with pytest.raises(ValueError):
        Throttle(-1)
