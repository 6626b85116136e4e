"""
Moving-average crossover strategy.

**Conceptual**: A mean-reversion reading of the moving average:
  - When the close dips below its N-day simple moving average, the instrument
    is treated as oversold: buy (if not already holding).
  - When the close rises above the average, it is treated as overbought:
    sell (if holding).
  - Otherwise do nothing.

The strategy is long-only with at most one open position. It is stateless:
everything it needs for one day arrives as arguments.

**Tie-break**: `price == moving_average` emits NONE. The close is neither
oversold nor overbought, so no trade fires in either direction.
"""

from dataclasses import dataclass

from src.strategies.base import PositionStatus, Signal


@dataclass(frozen=True)
class MaCrossoverStrategy:
    """
    Buy below the N-day SMA, sell above it.

    Attributes:
        ma_period: Length of the moving-average window in trading days.
    """
    ma_period: int

    @property
    def name(self) -> str:
        """Display name, e.g. "MA30 Crossover Strategy"."""
        return f"MA{self.ma_period} Crossover Strategy"

    @property
    def short_name(self) -> str:
        """Name stored with persisted results, e.g. "MA30 Crossover"."""
        return f"MA{self.ma_period} Crossover"

    @property
    def description(self) -> str:
        return (
            f"Buy when price goes below {self.ma_period}-day MA, "
            f"sell when price goes above {self.ma_period}-day MA"
        )

    def generate_signal(
        self,
        price: float,
        moving_average: float | None,
        position_status: PositionStatus,
    ) -> Signal:
        """
        Emit the signal for one trading day.

        **Rules**:
          - BUY  iff moving_average is defined AND price < moving_average
                 AND position_status is FLAT.
          - SELL iff moving_average is defined AND price > moving_average
                 AND position_status is LONG.
          - NONE on every other day (warm-up, exact equality, or a
            price/MA relationship that does not match the position).

        Args:
            price: Closing price for the day.
            moving_average: SMA for the day, None during warm-up.
            position_status: Current position held by the simulator.

        Returns:
            Signal.BUY, Signal.SELL or Signal.NONE.
        """
        if moving_average is None:
            return Signal.NONE

        if price < moving_average and position_status is PositionStatus.FLAT:
            return Signal.BUY
        if price > moving_average and position_status is PositionStatus.LONG:
            return Signal.SELL

        return Signal.NONE

    def describe_signal(self, price: float, moving_average: float, signal: Signal) -> str:
        """
        Human-readable rationale stored on each trade.

        Example: "Price ($9.00) < MA3 ($10.00)".
        """
        comparator = "<" if signal is Signal.BUY else ">"
        return (
            f"Price (${price:.2f}) {comparator} MA{self.ma_period} "
            f"(${moving_average:.2f})"
        )
