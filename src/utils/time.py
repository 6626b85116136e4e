"""
Clock abstractions for deterministic tests.

Code that needs "now" (the backtest window end, result timestamps, cache
expiry, request throttling) takes a Clock instead of calling datetime.now()
directly. Production passes a RealClock; tests pass a FrozenClock or a
ManualClock they can move forward by hand.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """
    Abstract time source protocol.

    **Usage**: Accept a Clock through the constructor and call clock.now()
    whenever the current time is needed.

    **Example**:
        service = BacktestService(store, clock=RealClock())
        # In tests:
        service = BacktestService(store, clock=FrozenClock(datetime(2024, 6, 28, tzinfo=timezone.utc)))
    """

    def now(self) -> datetime:
        """Return the current time (timezone-aware, UTC)."""
        ...


class RealClock:
    """Clock that returns the actual current system time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    Clock that always returns a fixed timestamp.

    **Usage**:
        clock = FrozenClock(datetime(2024, 6, 28, tzinfo=timezone.utc))
        clock.now()  # Always 2024-06-28T00:00:00+00:00
    """

    def __init__(self, fixed_now: datetime):
        self._fixed_now = fixed_now

    def now(self) -> datetime:
        return self._fixed_now


class ManualClock:
    """
    Clock that only moves when told to.

    **Conceptual**: Cache expiry and request throttling are both about elapsed
    time. A ManualClock lets a test say "30 seconds pass" without sleeping.
    `sleep` advances the clock instead of blocking, so it can be injected
    wherever a sleep function is expected.
    """

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move the clock forward by `seconds`."""
        self._now = self._now + timedelta(seconds=seconds)

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)
