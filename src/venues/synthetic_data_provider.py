"""
Synthetic data provider.

Implements the DataProvider protocol on top of
`generate_backfilled_daily_bars`, so the sync pipeline can fill the price
store for any symbol even with no market-data API configured. Series are
anchored on a given current price (150 by default) and are deterministic for
a fixed seed.
"""

import datetime as dt

import pandas as pd

from src.analytics.synthetic_data import generate_backfilled_daily_bars

DEFAULT_SYNTHETIC_PRICE = 150.0


class SyntheticDataProvider:
    """
    DataProvider that generates weekday bars ending near `current_price`.

    Args:
        current_price: Anchor price the generated series walks back from.
        seed: Random seed; None gives a different series every call.
    """

    def __init__(self, current_price: float = DEFAULT_SYNTHETIC_PRICE, seed: int | None = None):
        if current_price <= 0:
            raise ValueError(f"current_price must be positive, got {current_price}")
        self.current_price = current_price
        self.seed = seed

    def get_daily_bars(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        if not ticker or not ticker.strip():
            raise ValueError("Ticker cannot be empty")
        if start_date > end_date:
            raise ValueError(f"start_date ({start_date}) must be <= end_date ({end_date})")
        return generate_backfilled_daily_bars(start_date, end_date, self.current_price, seed=self.seed)

    def get_current_price(self, ticker: str) -> float | None:
        return self.current_price
