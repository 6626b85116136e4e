"""
Synthetic market data generators.

Two uses:
  - Back-filled daily bars: when no real history can be fetched for a symbol,
    the sync pipeline generates a plausible, clearly labelled synthetic series
    that ends near the symbol's current price, so the dashboard and backtester
    still have something to work with.
  - Geometric Brownian Motion paths: controlled trending/noisy closes for
    exercising the backtest engine in tests.

All generators take a seed; the same seed always produces the same data.
"""

from datetime import date

import numpy as np
import pandas as pd

# Back-fill model parameters
ANNUAL_GROWTH = 0.10
DAILY_VOLATILITY = 0.02
INTRADAY_RANGE = 0.02
MIN_PRICE = 0.01
VOLUME_RANGE = (10_000_000, 60_000_000)


def generate_backfilled_daily_bars(
    start_date: date,
    end_date: date,
    current_price: float,
    seed: int | None = None,
) -> pd.DataFrame:
    """
    Generate weekday OHLCV bars that walk backwards from today's price.

    **Conceptual**: Instead of simulating forward from an arbitrary start, the
    generator anchors on the current price and un-compounds it one weekday at
    a time. The series therefore ends close to where the real instrument
    trades today, and drifts lower going back in time as if the instrument
    had grown about 10% a year.

    **Mathematical**: With g = (1 + 0.10)^(1/252) - 1 and σ = 0.02, for each
    weekday stepping backwards from `end_date`:
        change_k ~ Uniform(-σ, σ) - g
        P_k = P_{k-1} * (1 - change_k),  P_0 = current_price
    The bar for the k-th weekday back closes at P_k (so the newest bar is one
    step removed from `current_price`).

    Each bar's range is 2% of its close:
        open  = close + (u1 - 0.5) * range
        high  = max(open, close) + u2 * range / 2
        low   = min(open, close) - u3 * range / 2
    with u1..u3 ~ Uniform(0, 1). Prices are floored at 0.01 and volume is a
    random integer in [10M, 60M).

    **Edge cases**:
    - Weekends are skipped; holidays are not.
    - start_date > end_date, or a range with no weekdays, gives an empty frame.

    Args:
        start_date: First calendar date (inclusive).
        end_date: Last calendar date (inclusive).
        current_price: Anchor price (must be positive).
        seed: Random seed for reproducibility (None for random).

    Returns:
        DataFrame in the raw price schema (timestamp, open_price, high_price,
        low_price, closing_price, volume), oldest first.

    Raises:
        ValueError: If current_price is not positive.
    """
    if current_price <= 0:
        raise ValueError(f"current_price must be positive, got {current_price}")

    columns = ['timestamp', 'open_price', 'high_price', 'low_price', 'closing_price', 'volume']
    if start_date > end_date:
        return pd.DataFrame(columns=columns)

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)
    if n == 0:
        return pd.DataFrame(columns=columns)

    rng = np.random.default_rng(seed)
    daily_growth = (1 + ANNUAL_GROWTH) ** (1 / 252) - 1

    # Walk backwards from the newest weekday, then flip to oldest first
    changes = rng.uniform(-DAILY_VOLATILITY, DAILY_VOLATILITY, size=n) - daily_growth
    closes = (current_price * np.cumprod(1 - changes))[::-1]

    day_range = closes * INTRADAY_RANGE
    opens = closes + (rng.random(n) - 0.5) * day_range
    highs = np.maximum(opens, closes) + rng.random(n) * day_range * 0.5
    lows = np.minimum(opens, closes) - rng.random(n) * day_range * 0.5
    volumes = rng.integers(VOLUME_RANGE[0], VOLUME_RANGE[1], size=n)

    return pd.DataFrame({
        'timestamp': dates,
        'open_price': np.maximum(MIN_PRICE, opens),
        'high_price': np.maximum(MIN_PRICE, highs),
        'low_price': np.maximum(MIN_PRICE, lows),
        'closing_price': np.maximum(MIN_PRICE, closes),
        'volume': volumes,
    })


def generate_gbm_paths(
    initial_price: float,
    drift: float,
    volatility: float,
    n_steps: int,
    dt: float = 1 / 252,
    seed: int | None = None,
) -> pd.Series:
    """
    Generate a price path using Geometric Brownian Motion (GBM).

    **Mathematical**: Discrete update for each step:
        S_{t+1} = S_t * exp((μ - 0.5 * σ^2) * dt + σ * sqrt(dt) * Z_t)
    where Z_t ~ N(0, 1). Prices stay strictly positive.

    Args:
        initial_price: Starting price (e.g., 100.0).
        drift: Annualized drift μ (e.g., 0.10).
        volatility: Annualized volatility σ (e.g., 0.20).
        n_steps: Number of steps to generate.
        dt: Time increment per step (default 1/252 for daily).
        seed: Random seed for reproducibility.

    Returns:
        Series of length n_steps + 1 (initial price first), indexed 0..n_steps.

    Example:
        >>> prices = generate_gbm_paths(100.0, 0.10, 0.20, n_steps=252, seed=42)
        >>> len(prices)
        253
    """
    rng = np.random.default_rng(seed)

    Z = rng.standard_normal(n_steps)
    log_returns = (drift - 0.5 * volatility ** 2) * dt + volatility * np.sqrt(dt) * Z

    # Cumulative sum of log returns, starting from 0 for the initial price
    log_path = np.concatenate([[0.0], np.cumsum(log_returns)])

    return pd.Series(initial_price * np.exp(log_path), index=range(n_steps + 1))
