"""
Mathematical utilities for the backtest engine.

This module holds the small numeric building blocks the rest of the system is
assembled from: period-over-period returns and the trailing simple moving
average that drives the crossover strategy.

All functions are pure: they never mutate their inputs and hold no state.
"""

from typing import Sequence

import numpy as np
import pandas as pd

from src.backtesting.errors import ConfigurationError


def compute_simple_returns(values: pd.Series) -> pd.Series:
    """
    Convert a value series into simple (arithmetic) returns.

    **Conceptual**: Answers "what was the percent change from one day to the
    next?" Used on the daily portfolio-value trace to feed the Sharpe ratio.

    **Mathematical**: For each period t:
        r_t = (V_t / V_{t-1}) - 1

    **Edge cases**:
    - The first value is always NaN (no prior value to compare).
    - Empty or single-element series return all NaNs.

    Args:
        values: Time series in chronological order (oldest first).

    Returns:
        Series of simple returns, same index as input.
    """
    return values.pct_change()


def compute_moving_average_simple(
    prices: Sequence[float],
    period: int,
) -> list[float | None]:
    """
    Compute a trailing simple moving average (SMA) over a price sequence.

    **Conceptual**: The SMA smooths day-to-day noise by averaging the most
    recent `period` closes with equal weight. The crossover strategy compares
    each close to its SMA: a close below the average is read as oversold, a
    close above it as overbought.

    **Mathematical**: For each index i:
        SMA_i = None                                   if i < period - 1
        SMA_i = (1 / period) * Σ P_j  for j in [i-period+1, i]   otherwise
    This is a plain arithmetic mean, not an exponential one.

    **Functionally**:
    - Input: prices in chronological order (oldest first) and a window length.
    - Output: list of the same length as `prices`. The first `period - 1`
      entries are None (warm-up period); every later entry is a float.
    - Each window is summed independently (no running-sum drift), and a window
      of identical closes averages to exactly that close. The strategy treats
      `price == SMA` as "no signal", so a flat stretch must not flicker.

    **Edge cases**:
    - period = 1 returns the prices themselves.
    - period == len(prices) defines only the last entry.
    - period <= 0 or period > len(prices) is a configuration error: a window
      longer than the data cannot produce a single average and the engine
      refuses to run rather than averaging over a shorter window.

    Args:
        prices: Closing prices, oldest first. Not modified.
        period: Window length in trading days (positive integer).

    Returns:
        List of moving-average values (None during warm-up).

    Raises:
        ConfigurationError: If period is not a positive integer or exceeds
            the number of prices.

    Example:
        >>> compute_moving_average_simple([12, 11, 10, 9, 8], 3)
        [None, None, 11.0, 10.0, 9.0]
    """
    if isinstance(period, bool) or not isinstance(period, (int, np.integer)):
        raise ConfigurationError(f"MA period must be an integer, got {period!r}")
    if period <= 0:
        raise ConfigurationError(f"MA period must be positive, got {period}")
    if period > len(prices):
        raise ConfigurationError(
            f"MA period ({period}) is longer than the price series ({len(prices)} points)."
        )

    closes = np.asarray(prices, dtype=float)

    # One row per complete window: windows[k] covers closes[k : k + period]
    windows = np.lib.stride_tricks.sliding_window_view(closes, period)
    flat = windows.max(axis=1) == windows.min(axis=1)
    averages = np.where(flat, windows[:, 0], windows.sum(axis=1) / period)

    warm_up: list[float | None] = [None] * (period - 1)
    return warm_up + [float(value) for value in averages]
