"""
Daily-close backtest engine for the moving-average crossover strategy.

**Conceptual**: The engine wires the pieces together for one run:

    prices ──> compute_moving_average_simple ──> MA series
      │                                             │
      └──────────> strategy.generate_signal <───────┘
                          │
                          v
                     PaperBroker.step   (one DailyRecord per day)
                          │
                          v
             PaperBroker.liquidate      (last day, if still LONG)
                          │
                          v
                  summarize_backtest ──> BacktestSummary

`run_backtest` is the pure core: it takes an already-fetched series and
returns a BacktestResult. `BacktestOrchestrator` adds the one step before it,
pulling the series for a date window out of a PriceSeriesProvider.

**Failure ordering**: parameters are checked first (ConfigurationError), then
the series length (InsufficientDataError), then the series contents
(UpstreamDataError). All three happen before the broker exists, so a failed
run never produces a partial ledger.

**Teaching note**: The loop walks forward one day at a time and hands the
strategy only that day's close and MA. The MA at index i uses closes up to
and including i, and trades fill at the same close. No future price is ever
visible to a decision.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import date
from typing import Sequence

from src.analytics.risk_metrics import (
    BacktestSummary,
    compute_outperformance,
    summarize_backtest,
)
from src.backtesting.errors import (
    ConfigurationError,
    InsufficientDataError,
    UpstreamDataError,
)
from src.data.price_store import PriceSeriesProvider
from src.data.schemas import PricePoint, SchemaValidationError, validate_price_series
from src.execution.paper_broker import DailyRecord, PaperBroker, Trade, WalletState
from src.strategies.base import Signal, Strategy
from src.strategies.ma_crossover import MaCrossoverStrategy
from src.utils.math import compute_moving_average_simple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestParams:
    """
    Parameters a backtest ran with, kept on the result for reproducibility.

    Attributes:
        ma_period: Moving-average window in trading days.
        initial_capital: Starting cash.
        symbol: Instrument traded, None when the series was passed in directly.
        start_date: First date of the requested window (or of the series).
        end_date: Last date of the requested window (or of the series).
    """
    ma_period: int
    initial_capital: float
    symbol: str | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class BacktestResult:
    """
    Everything a finished run produced.

    Attributes:
        trades: Trade ledger, including the forced liquidation if one fired.
        daily_trace: One DailyRecord per trading day, in date order.
        summary: Headline statistics.
        params: Parameters of the run.
        strategy: The strategy instance that generated the signals.
        final_wallet: Cash and position after the forced liquidation
                      (always FLAT).
    """
    trades: tuple[Trade, ...]
    daily_trace: tuple[DailyRecord, ...]
    summary: BacktestSummary
    params: BacktestParams
    strategy: Strategy
    final_wallet: WalletState

    @property
    def trading_days(self) -> int:
        return len(self.daily_trace)

    @property
    def outperformance_pct(self) -> float:
        """Strategy return minus buy-and-hold return, in percentage points."""
        return compute_outperformance(self.summary)


def validate_backtest_config(ma_period: int, initial_capital: float) -> None:
    """
    Reject invalid run parameters before any data is touched.

    Raises:
        ConfigurationError: If ma_period is not a positive integer or
            initial_capital is not a positive finite number.
    """
    if isinstance(ma_period, bool) or not isinstance(ma_period, int):
        raise ConfigurationError(f"maPeriod must be an integer, got {ma_period!r}")
    if ma_period <= 0:
        raise ConfigurationError(f"maPeriod must be positive, got {ma_period}")

    if isinstance(initial_capital, bool) or not isinstance(initial_capital, (int, float)):
        raise ConfigurationError(f"initialCapital must be a number, got {initial_capital!r}")
    if not math.isfinite(initial_capital) or initial_capital <= 0:
        raise ConfigurationError(f"initialCapital must be positive, got {initial_capital}")


def run_backtest(
    prices: Sequence[PricePoint],
    ma_period: int,
    initial_capital: float,
    strategy: Strategy | None = None,
) -> BacktestResult:
    """
    Run the crossover backtest over an already-fetched price series.

    **Functionally**:
      1. Validate parameters, series length, then series contents.
      2. Compute the trailing SMA (None for the first ma_period - 1 days).
      3. For each day: ask the strategy for a signal given the close, the MA
         and the broker's position status, then step the broker (trade at the
         close if the signal fires, then record the day).
      4. If still LONG after the last day, force a SELL at the last close.
      5. Summarize the ledger and trace.

    Deterministic: the same inputs always give the same ledger and summary.

    Args:
        prices: Daily closes, strictly ascending by date.
        ma_period: Moving-average window in trading days.
        initial_capital: Starting cash.
        strategy: Signal generator; defaults to MaCrossoverStrategy(ma_period).

    Returns:
        BacktestResult.

    Raises:
        ConfigurationError: Invalid ma_period or initial_capital.
        InsufficientDataError: Fewer than ma_period prices.
        UpstreamDataError: Non-positive closes or dates out of order.
    """
    validate_backtest_config(ma_period, initial_capital)

    if len(prices) < ma_period:
        raise InsufficientDataError(found=len(prices), required=ma_period)

    try:
        validate_price_series(prices)
    except SchemaValidationError as e:
        raise UpstreamDataError(str(e)) from e

    if strategy is None:
        strategy = MaCrossoverStrategy(ma_period)

    closes = [p.close for p in prices]
    moving_averages = compute_moving_average_simple(closes, ma_period)

    logger.info(
        "Running %s over %d days (%s to %s), capital %.2f",
        strategy.name, len(prices), prices[0].date, prices[-1].date, initial_capital,
    )

    broker = PaperBroker(initial_cash=initial_capital)

    for point, ma in zip(prices, moving_averages):
        signal = strategy.generate_signal(point.close, ma, broker.position.status)
        rationale = ""
        if signal is not Signal.NONE:
            rationale = strategy.describe_signal(point.close, ma, signal)
        broker.step(point.date, point.close, ma, signal, rationale)

    # Close any open position so the final value is pure cash
    last = prices[-1]
    if broker.liquidate(last.date, last.close) is not None:
        logger.debug("Forced liquidation on %s at %.2f", last.date, last.close)

    summary = summarize_backtest(
        trades=broker.trades,
        daily_trace=broker.daily_trace,
        initial_capital=initial_capital,
        first_usable_price=prices[ma_period - 1].close,
        last_price=last.close,
    )

    logger.info(
        "Finished %s: final value %.2f, return %.2f%%, %d trades, max drawdown %.2f%%",
        strategy.name, summary.final_value, summary.total_return_pct,
        summary.total_trades, summary.max_drawdown_pct,
    )

    return BacktestResult(
        trades=broker.trades,
        daily_trace=broker.daily_trace,
        summary=summary,
        params=BacktestParams(
            ma_period=ma_period,
            initial_capital=initial_capital,
            start_date=prices[0].date,
            end_date=last.date,
        ),
        strategy=strategy,
        final_wallet=broker.wallet,
    )


class BacktestOrchestrator:
    """
    Runs a backtest for a symbol over a date window.

    The orchestrator owns no state between runs; every call to `run` builds
    its own broker, ledger and trace. One instance can serve many runs.
    """

    def __init__(self, price_store: PriceSeriesProvider):
        self.price_store = price_store

    def run(
        self,
        symbol: str,
        window_start: date,
        window_end: date,
        ma_period: int,
        initial_capital: float,
    ) -> BacktestResult:
        """
        Fetch closes for [window_start, window_end] and run the backtest.

        Raises:
            ConfigurationError: Invalid parameters (checked before fetching).
            InsufficientDataError: The window holds fewer than ma_period closes.
            UpstreamDataError: The provider failed or returned unusable data.
        """
        validate_backtest_config(ma_period, initial_capital)
        if window_start > window_end:
            raise ConfigurationError(f"Window start {window_start} is after window end {window_end}")

        try:
            prices = self.price_store.get_close_prices(symbol, window_start, window_end)
        except UpstreamDataError:
            raise
        except (OSError, ValueError) as e:
            raise UpstreamDataError(f"Price provider failed for {symbol}: {e}") from e

        result = run_backtest(prices, ma_period, initial_capital)
        return replace(
            result,
            params=replace(result.params, symbol=symbol.upper(), start_date=window_start, end_date=window_end),
        )
