"""
Base abstraction for market-data providers (venues).

**Conceptual**: The sync pipeline fills the price store from whichever data
source is available: Finnhub when an API key is configured, otherwise the
synthetic generator. Both implement the DataProvider protocol below, so the
pipeline never branches on vendor details.

**Teaching note**: This is a Protocol (structural typing): a class counts as
a DataProvider if it has these methods with these signatures. No base class
to inherit from, which keeps test fakes trivial.

**Data guarantees** every implementation must give:
  1. Columns: timestamp, open_price, high_price, low_price, closing_price, volume.
  2. No NaN values and positive prices.
  3. No duplicate timestamps.
Sorting and on-disk formatting are the IO layer's job.
"""

import datetime as dt
from typing import Protocol

import pandas as pd


class DataProvider(Protocol):
    """
    Protocol for fetching daily bars and the latest price.

    **Example usage**:
        >>> provider = SyntheticDataProvider(current_price=187.5, seed=7)
        >>> bars = provider.get_daily_bars("AAPL", dt.date(2024, 1, 1), dt.date(2024, 1, 31))
        >>> bars.columns.tolist()
        ['timestamp', 'open_price', 'high_price', 'low_price', 'closing_price', 'volume']
    """

    def get_daily_bars(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        """
        Fetch daily OHLCV bars for [start_date, end_date] (inclusive).

        Returns:
            DataFrame with the canonical columns; empty (with columns) if the
            source has no data in range.

        Raises:
            ValueError: If the ticker is empty or start_date > end_date.
        """
        ...

    def get_current_price(self, ticker: str) -> float | None:
        """Latest price for `ticker`, or None if the source doesn't know it."""
        ...
