"""
Performance metrics for a single-instrument crossover backtest.

This module turns a finished simulation (trade ledger + daily trace) into the
summary a trader reads first:
  - Return: total return on the starting capital.
  - Pain: maximum drawdown from the running portfolio peak.
  - Trade quality: winning vs losing round trips and the win rate.
  - Baseline: buy-and-hold return over the same tradeable window.
  - Risk-adjusted: annualized Sharpe ratio of the daily portfolio values.

Everything here is a pure function of its inputs: calling the analyzer twice
on the same trace gives the same summary.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from src.execution.paper_broker import DailyRecord, Trade, TradeType
from src.utils.math import compute_simple_returns


@dataclass(frozen=True)
class BacktestSummary:
    """
    Headline statistics of one backtest run.

    Attributes:
        final_value: Cash after the end-of-run liquidation.
        total_return_pct: (final_value - initial) / initial * 100.
        total_trades: Number of ledger rows (BUY and SELL rows both count).
        winning_trades: SELL rows with strictly positive profit.
        losing_trades: SELL rows with zero or negative profit.
        win_rate_pct: winning / max(1, winning + losing) * 100.
        max_drawdown_pct: Worst daily drawdown, in [0, 100].
        buy_hold_return_pct: Return from the first day with a defined moving
                             average to the last day of the window.
        sharpe_ratio: Annualized Sharpe of daily portfolio values, None when
                      undefined (fewer than two returns or zero volatility).
    """
    final_value: float
    total_return_pct: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate_pct: float
    max_drawdown_pct: float
    buy_hold_return_pct: float
    sharpe_ratio: float | None = None


def compute_total_return_pct(final_value: float, initial_capital: float) -> float:
    """
    Total return on the starting capital, in percent.

    **Mathematical**:
        Total Return % = (V_final - V_initial) / V_initial * 100

    Args:
        final_value: Ending portfolio value.
        initial_capital: Starting capital (must be positive).

    Returns:
        Return in percent (e.g., 12.5 for +12.5%).
    """
    return (final_value - initial_capital) / initial_capital * 100


def compute_drawdown_series(values: pd.Series, initial_peak: float | None = None) -> pd.Series:
    """
    Percentage drawdown from the running peak at each point.

    **Conceptual**: Drawdown answers "how far below my best value am I right
    now?" A 25 means the portfolio is 25% under its high-water mark.

    **Mathematical**: At each time t:
        peak_t = max(initial_peak, V_0, ..., V_t)
        drawdown_t = (peak_t - V_t) / peak_t * 100

    **Functionally**:
    - Values are >= 0 (zero when at a new peak).
    - `initial_peak` seeds the high-water mark, so a run that loses money on
      its very first day already shows a drawdown against the opening capital.

    Args:
        values: Portfolio values in chronological order.
        initial_peak: Optional starting high-water mark (e.g., initial capital).

    Returns:
        Series of drawdowns in percent, same index as input.
    """
    peaks = values.cummax()
    if initial_peak is not None:
        peaks = peaks.clip(lower=initial_peak)
    return (peaks - values) / peaks * 100


def compute_max_drawdown_pct(values: pd.Series, initial_peak: float | None = None) -> float:
    """
    Worst peak-to-trough decline, in percent (0 for an empty series).

    For positive values the result is bounded to [0, 100].
    """
    if values.empty:
        return 0.0
    return float(compute_drawdown_series(values, initial_peak).max())


def compute_sharpe_ratio(
    returns: pd.Series,
    risk_free_rate: float = 0.0,
    periods_per_year: int = 252,
) -> float:
    """
    Compute the Sharpe ratio: excess return per unit of total volatility.

    **Mathematical**: Given returns r_t and risk-free rate r_f:
        Sharpe = (mean(r_t) - r_f / periods_per_year) / std(r_t) * sqrt(periods_per_year)

    **Edge cases**:
    - Constant returns (std = 0) or fewer than two returns → NaN.
    - Days spent in cash have zero return and still count toward the mean.

    Args:
        returns: Periodic (daily) returns.
        risk_free_rate: Annualized risk-free rate (e.g., 0.03 for 3%).
        periods_per_year: Number of periods per year (252 for daily).

    Returns:
        Sharpe ratio as a scalar, or NaN when undefined.
    """
    clean_returns = returns.dropna()

    if len(clean_returns) < 2:
        return np.nan

    excess_return = clean_returns.mean() - risk_free_rate / periods_per_year
    vol_per_period = clean_returns.std(ddof=1)

    # Tolerance instead of exact equality for floating-point safety
    if vol_per_period < 1e-10 or np.isnan(vol_per_period):
        return np.nan

    return (excess_return / vol_per_period) * np.sqrt(periods_per_year)


def compute_win_rate_pct(winning_trades: int, losing_trades: int) -> float:
    """
    Winning round trips as a percentage of closed round trips.

    The denominator is max(1, winning + losing), so a run with no closed
    trades reports 0.0 instead of dividing by zero.
    """
    return winning_trades / max(1, winning_trades + losing_trades) * 100


def compute_buy_hold_return_pct(first_price: float, last_price: float) -> float:
    """
    Return of buying at `first_price` and holding to `last_price`, in percent.

    The backtest passes the close at index `period - 1` (the first day with a
    defined moving average) as `first_price`, so the baseline covers the same
    tradeable window as the strategy and excludes the warm-up period.
    """
    return (last_price - first_price) / first_price * 100


def count_round_trips(trades: Sequence[Trade]) -> tuple[int, int]:
    """
    Count (winning, losing) SELL rows in a ledger.

    A SELL with exactly zero profit is a loss.
    """
    sells = [t for t in trades if t.type is TradeType.SELL]
    winning = sum(1 for t in sells if t.is_winner)
    return winning, len(sells) - winning


def summarize_backtest(
    trades: Sequence[Trade],
    daily_trace: Sequence[DailyRecord],
    initial_capital: float,
    first_usable_price: float,
    last_price: float,
) -> BacktestSummary:
    """
    Derive the BacktestSummary from a finished simulation.

    **Functionally**:
    - final_value is the cash figure left after the end-of-run liquidation.
      The last daily record is taken before that liquidation, so the final
      value is its cash plus its shares sold at `last_price`, exactly the
      amount the forced SELL credits.
    - total_trades counts every ledger row (BUYs and SELLs).
    - max_drawdown_pct is recomputed from the daily portfolio values with the
      peak seeded at initial_capital, the same rule the broker applies to each
      DailyRecord's drawdown_pct.
    - sharpe_ratio uses simple returns of the daily portfolio values.

    Args:
        trades: Trade ledger in execution order.
        daily_trace: One DailyRecord per trading day.
        initial_capital: Starting cash.
        first_usable_price: Close on the first day with a defined MA.
        last_price: Close on the last day of the window.

    Returns:
        BacktestSummary.
    """
    if daily_trace:
        last = daily_trace[-1]
        final_value = last.cash + last.shares_held * last_price
    else:
        final_value = initial_capital

    winning, losing = count_round_trips(trades)

    values = pd.Series([r.portfolio_value for r in daily_trace], dtype=float)
    max_drawdown = compute_max_drawdown_pct(values, initial_peak=initial_capital)
    sharpe = compute_sharpe_ratio(compute_simple_returns(values))

    return BacktestSummary(
        final_value=final_value,
        total_return_pct=compute_total_return_pct(final_value, initial_capital),
        total_trades=len(trades),
        winning_trades=winning,
        losing_trades=losing,
        win_rate_pct=compute_win_rate_pct(winning, losing),
        max_drawdown_pct=max_drawdown,
        buy_hold_return_pct=compute_buy_hold_return_pct(first_usable_price, last_price),
        sharpe_ratio=None if np.isnan(sharpe) else float(sharpe),
    )


def compute_outperformance(summary: BacktestSummary) -> float:
    """Strategy return minus buy-and-hold return, in percentage points."""
    return summary.total_return_pct - summary.buy_hold_return_pct
