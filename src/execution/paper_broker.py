"""
Paper broker: the portfolio state machine driven by strategy signals.

**Conceptual**: This module simulates a single-instrument brokerage account
during a backtest. It holds cash and at most one long position, turns BUY and
SELL signals into trades at the day's close, keeps the trade ledger and the
day-by-day trace, and tracks drawdown from the running portfolio peak. It's
called "paper" because no real money changes hands.

**State machine**:

    FLAT --BUY--> LONG     shares = floor(cash / price); zero shares is a no-op
    LONG --SELL--> FLAT    cash += shares * price; win if profit > 0 else loss

A BUY while LONG or a SELL while FLAT cannot come out of the crossover
strategy, but if one arrives it is ignored (no trade, no state change).

**Financial assumptions**:
  - Trades execute at the daily close passed in (end-of-day execution).
  - Whole shares only, sized with floor division, so cash never goes negative.
  - No slippage, fees, shorting, leverage or pyramiding.
  - A SELL with exactly zero profit counts as a losing trade.

**Teaching note**: The ledger and trace are append-only. Trades and daily
records are frozen dataclasses; the broker hands out tuples so callers can't
edit history after the fact.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum

from src.backtesting.errors import ConfigurationError
from src.strategies.base import PositionStatus, Signal

logger = logging.getLogger(__name__)

FORCED_LIQUIDATION_RATIONALE = "end of backtest — closing position"


class TradeType(Enum):
    """Side of a recorded trade."""
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Position:
    """
    The single position a run may hold.

    Attributes:
        status: FLAT (no shares) or LONG.
        shares: Whole shares held (0 when FLAT).
        entry_price: Price paid on the BUY that opened the position,
                     None when FLAT.
    """
    status: PositionStatus = PositionStatus.FLAT
    shares: int = 0
    entry_price: float | None = None


@dataclass(frozen=True)
class WalletState:
    """
    Snapshot of cash plus position.

    Invariants: cash >= 0 and position.shares >= 0.
    """
    cash: float
    position: Position

    def value_at(self, price: float) -> float:
        """Mark-to-market value: cash + shares * price."""
        return self.cash + self.position.shares * price


@dataclass(frozen=True)
class Trade:
    """
    One row of the trade ledger.

    Attributes:
        date: Trading day the trade executed on.
        type: BUY or SELL.
        price: Execution price (the day's close).
        shares: Whole shares traded.
        cash_value: shares * price (cost for a BUY, proceeds for a SELL).
        portfolio_value_after: cash + shares * price right after the trade.
        rationale: Why the trade fired, e.g. "Price ($9.00) < MA3 ($10.00)".
        realized_pnl: Profit of the round trip for SELL rows
                      (proceeds - shares * entry_price), None for BUY rows.
    """
    date: date
    type: TradeType
    price: float
    shares: int
    cash_value: float
    portfolio_value_after: float
    rationale: str
    realized_pnl: float | None = None

    @property
    def is_winner(self) -> bool:
        """True for a SELL with strictly positive profit."""
        return self.realized_pnl is not None and self.realized_pnl > 0


@dataclass(frozen=True)
class DailyRecord:
    """
    One day of the simulation trace.

    `signal` is the signal that actually produced a trade that day; a BUY that
    could not afford a single share is recorded as None.
    """
    date: date
    price: float
    moving_average: float | None
    shares_held: int
    cash: float
    portfolio_value: float
    signal: Signal | None
    drawdown_pct: float


class PaperBroker:
    """
    Single-instrument portfolio simulator for the crossover backtest.

    **Responsibilities**:
      - Track cash, shares and entry price.
      - Execute BUY/SELL transitions and append Trade rows.
      - Append one DailyRecord per trading day.
      - Track the running peak portfolio value and the maximum drawdown.
      - Force-close any open position at the end of the run.
    """

    def __init__(self, initial_cash: float):
        """
        Args:
            initial_cash: Starting cash. Must be positive.

        Raises:
            ConfigurationError: If initial_cash <= 0 or is not finite.
        """
        if not math.isfinite(initial_cash) or initial_cash <= 0:
            raise ConfigurationError(f"initial_cash must be positive, got {initial_cash}")

        self._initial_cash = float(initial_cash)
        self._cash = float(initial_cash)
        self._shares = 0
        self._entry_price: float | None = None

        self._trades: list[Trade] = []
        self._daily_trace: list[DailyRecord] = []

        # Peak starts at the opening capital, so an early loss counts as drawdown
        self._peak_value = float(initial_cash)
        self._max_drawdown_pct = 0.0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def initial_cash(self) -> float:
        return self._initial_cash

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def position(self) -> Position:
        if self._shares > 0:
            return Position(PositionStatus.LONG, self._shares, self._entry_price)
        return Position()

    @property
    def wallet(self) -> WalletState:
        return WalletState(cash=self._cash, position=self.position)

    @property
    def trades(self) -> tuple[Trade, ...]:
        return tuple(self._trades)

    @property
    def daily_trace(self) -> tuple[DailyRecord, ...]:
        return tuple(self._daily_trace)

    @property
    def peak_value(self) -> float:
        return self._peak_value

    @property
    def max_drawdown_pct(self) -> float:
        return self._max_drawdown_pct

    def portfolio_value(self, price: float) -> float:
        """Cash plus shares valued at `price`."""
        return self._cash + self._shares * price

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def buy(self, on: date, price: float, rationale: str) -> Trade | None:
        """
        FLAT -> LONG: spend as much cash as whole shares allow.

        Returns:
            The BUY trade, or None if already LONG or if the price exceeds
            available cash (floor(cash / price) == 0).
        """
        if self._shares > 0:
            logger.warning("Ignoring BUY on %s: position already open", on)
            return None

        shares = math.floor(self._cash / price)
        if shares == 0:
            logger.debug("BUY on %s skipped: price %.2f exceeds cash %.2f", on, price, self._cash)
            return None

        cost = shares * price
        self._cash -= cost
        self._shares = shares
        self._entry_price = price

        trade = Trade(
            date=on,
            type=TradeType.BUY,
            price=price,
            shares=shares,
            cash_value=cost,
            portfolio_value_after=self._cash + shares * price,
            rationale=rationale,
        )
        self._trades.append(trade)
        logger.debug("BUY %d @ %.2f on %s", shares, price, on)
        return trade

    def sell(self, on: date, price: float, rationale: str) -> Trade | None:
        """
        LONG -> FLAT: sell every share at `price`.

        Returns:
            The SELL trade, or None if FLAT.
        """
        if self._shares == 0:
            logger.warning("Ignoring SELL on %s: no open position", on)
            return None

        shares = self._shares
        proceeds = shares * price
        profit = proceeds - shares * self._entry_price

        self._cash += proceeds
        self._shares = 0
        self._entry_price = None

        trade = Trade(
            date=on,
            type=TradeType.SELL,
            price=price,
            shares=shares,
            cash_value=proceeds,
            portfolio_value_after=self._cash,
            rationale=rationale,
            realized_pnl=profit,
        )
        self._trades.append(trade)
        logger.debug("SELL %d @ %.2f on %s (pnl %.2f)", shares, price, on, profit)
        return trade

    def apply_signal(self, signal: Signal, on: date, price: float, rationale: str) -> Trade | None:
        """Dispatch a strategy signal to the matching transition."""
        if signal is Signal.BUY:
            return self.buy(on, price, rationale)
        if signal is Signal.SELL:
            return self.sell(on, price, rationale)
        return None

    def liquidate(self, on: date, price: float) -> Trade | None:
        """
        Close any open position at the end of the run.

        Uses the same crediting and win/loss rules as a normal SELL. Does
        nothing (returns None) when already FLAT.
        """
        if self._shares == 0:
            return None
        return self.sell(on, price, FORCED_LIQUIDATION_RATIONALE)

    # ------------------------------------------------------------------
    # Daily bookkeeping
    # ------------------------------------------------------------------

    def record_day(
        self,
        on: date,
        price: float,
        moving_average: float | None,
        signal: Signal | None,
    ) -> DailyRecord:
        """
        Value the portfolio at `price`, update drawdown and append the record.

        **Drawdown**: peak = max(peak, value); drawdown = (peak - value) / peak * 100.
        Computed every day, including warm-up days.
        """
        value = self.portfolio_value(price)

        if value > self._peak_value:
            self._peak_value = value
        drawdown_pct = (self._peak_value - value) / self._peak_value * 100
        if drawdown_pct > self._max_drawdown_pct:
            self._max_drawdown_pct = drawdown_pct

        record = DailyRecord(
            date=on,
            price=price,
            moving_average=moving_average,
            shares_held=self._shares,
            cash=self._cash,
            portfolio_value=value,
            signal=signal,
            drawdown_pct=drawdown_pct,
        )
        self._daily_trace.append(record)
        return record

    def step(
        self,
        on: date,
        price: float,
        moving_average: float | None,
        signal: Signal,
        rationale: str = "",
    ) -> DailyRecord:
        """
        Advance one trading day: act on the signal, then record the day.

        The record's signal is the one that produced a trade, or None.
        """
        trade = self.apply_signal(signal, on, price, rationale)
        executed = signal if trade is not None else None
        return self.record_day(on, price, moving_average, executed)
