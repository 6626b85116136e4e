"""
In-memory response cache and request throttle for the Finnhub client.

**Conceptual**: Dashboards ask for the same quote many times a minute, and
Finnhub's free tier allows 60 calls per minute. Two small collaborators keep
the client inside those limits:
  - TTLCache: remembers responses for a short time (30 s for candles, 15 s
    for quotes by default) so repeated requests don't hit the network.
  - Throttle: enforces a minimum spacing between outgoing requests.

Both are plain objects injected into FinnhubClient, never module-level
globals, and both read time from an injected Clock so tests can move time
forward without sleeping.
"""

import time
from datetime import datetime
from typing import Any, Callable, Hashable

from src.utils.time import Clock, RealClock


class TTLCache:
    """
    Time-bounded key/value cache.

    **Functionally**:
      - `get` returns a value only while it is younger than `ttl_seconds`;
        an expired entry is dropped on access.
      - `set` stores (or refreshes) a value. When the cache grows past
        `max_entries`, entries older than twice the TTL are purged. This is
        a soft cap: fresh entries are never dropped to make room.

    Args:
        ttl_seconds: Lifetime of an entry.
        clock: Time source (RealClock by default).
        max_entries: Size above which stale entries are purged on `set`.
    """

    def __init__(self, ttl_seconds: float, clock: Clock | None = None, max_entries: int = 500):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock or RealClock()
        self._entries: dict[Hashable, tuple[datetime, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def _age(self, stored_at: datetime) -> float:
        return (self.clock.now() - stored_at).total_seconds()

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._age(stored_at) >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self.clock.now(), value)
        if len(self._entries) > self.max_entries:
            self.purge_expired(max_age_seconds=self.ttl_seconds * 2)

    def evict(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def purge_expired(self, max_age_seconds: float | None = None) -> int:
        """
        Drop entries older than `max_age_seconds` (default: the TTL).

        Returns:
            Number of entries removed.
        """
        limit = self.ttl_seconds if max_age_seconds is None else max_age_seconds
        stale = [k for k, (stored_at, _) in self._entries.items() if self._age(stored_at) > limit]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


class Throttle:
    """
    Minimum spacing between calls.

    `wait()` blocks (via the injected `sleep`) until at least
    `min_interval_seconds` have passed since the previous `wait()` returned.
    The first call never blocks.
    """

    def __init__(
        self,
        min_interval_seconds: float,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval_seconds < 0:
            raise ValueError(f"min_interval_seconds must be >= 0, got {min_interval_seconds}")
        self.min_interval_seconds = min_interval_seconds
        self.clock = clock or RealClock()
        self._sleep = sleep
        self._last_call: datetime | None = None

    def wait(self) -> float:
        """
        Sleep if the previous call was too recent.

        Returns:
            Seconds slept (0.0 when no wait was needed).
        """
        slept = 0.0
        if self._last_call is not None and self.min_interval_seconds > 0:
            elapsed = (self.clock.now() - self._last_call).total_seconds()
            if elapsed < self.min_interval_seconds:
                slept = self.min_interval_seconds - elapsed
                self._sleep(slept)
        self._last_call = self.clock.now()
        return slept
