"""
Strategy interface and signal vocabulary for backtesting.

**Conceptual**: This module defines the contract between a trading strategy
and the portfolio simulator. Each trading day the engine hands the strategy
the day's close, the moving average for that day and whether a position is
currently held. The strategy answers with a Signal: BUY, SELL or NONE.

The strategy never sees cash, share counts or the trade ledger. Position
status is owned by the simulator (PaperBroker) and passed in, so a strategy
object holds no mutable state and can be shared across runs.

**Teaching note**: This is a Protocol (structural typing), not an ABC. Any
object with a `generate_signal` method matching this signature can be used as
a Strategy.
"""

from enum import Enum
from typing import Protocol


class Signal(Enum):
    """
    Trading signal emitted by a strategy for one day.

    NONE covers every "do nothing" day: warm-up days before the moving average
    exists, ties, and days where the price/MA relationship does not match the
    current position.
    """
    BUY = "BUY"
    SELL = "SELL"
    NONE = "NONE"


class PositionStatus(Enum):
    """
    Position state of the single-instrument portfolio.

    FLAT: no shares held (all cash).
    LONG: holding shares bought on an earlier BUY.
    """
    FLAT = "FLAT"
    LONG = "LONG"


class Strategy(Protocol):
    """
    Strategy interface for the daily backtest loop.

    Implementations also expose `name` and `description` strings; these are
    shown in reports and persisted with each result record.
    """

    name: str
    description: str

    def generate_signal(
        self,
        price: float,
        moving_average: float | None,
        position_status: PositionStatus,
    ) -> Signal:
        """
        Decide what to do on one trading day.

        Args:
            price: Closing price for the day.
            moving_average: Moving average for the day, or None during warm-up.
            position_status: Whether the simulator currently holds a position.

        Returns:
            Signal for the day.
        """
        ...

    def describe_signal(self, price: float, moving_average: float, signal: Signal) -> str:
        """Rationale text recorded on the trade a BUY or SELL produces."""
        ...
