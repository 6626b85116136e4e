"""
Finnhub data provider: turns Finnhub JSON into canonical price DataFrames.

**Layered architecture**:
  1. FinnhubClient: HTTP layer - requests, caching, throttling, raw JSON.
  2. FinnhubDataProvider (this file): adapter layer - JSON to DataFrame,
     data-quality checks.
  3. PriceHistorySyncer: writes the DataFrame to the price store.

**Usage note**: Finnhub's free tier does not include daily candles for every
symbol. When the plan lacks access the API answers HTTP 200 with an "error"
field; this provider raises FinnhubAccessError so the sync pipeline can fall
back to synthetic data.
"""

import datetime as dt
import logging
from typing import Optional

import pandas as pd

from src.config.settings import FinnhubSettings
from src.data.schemas import RAW_PRICE_REQUIRED_COLUMNS
from src.venues.finnhub_client import FinnhubClient

logger = logging.getLogger(__name__)


class FinnhubDataProviderError(Exception):
    """
    Raised when a Finnhub response can't be turned into valid bars.

    Separate from FinnhubClientError: client errors are HTTP problems
    (auth, rate limits, timeouts), provider errors are data problems
    (inconsistent arrays, NaNs, non-positive prices).
    """
    pass


class FinnhubAccessError(RuntimeError):
    """
    Raised when Finnhub reports that the key has no access to the requested
    resource (plan/permissions issue on stock/candle).
    """
    pass


class FinnhubDataProvider:
    """
    DataProvider backed by the Finnhub API.

    **Example usage**:
        >>> settings = get_settings(require_finnhub=True)
        >>> with FinnhubDataProvider(settings.finnhub) as provider:
        ...     bars = provider.get_daily_bars("AAPL", dt.date(2024, 1, 1), dt.date(2024, 1, 31))
        ...     price = provider.get_current_price("AAPL")
    """

    def __init__(self, settings: FinnhubSettings, client: Optional[FinnhubClient] = None):
        """
        Args:
            settings: Finnhub API configuration.
            client: Optional pre-configured client (tests inject mocks here).
        """
        self.settings = settings
        self.client = client if client is not None else FinnhubClient(settings)

    def get_daily_bars(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        """
        Fetch daily OHLCV bars from Finnhub.

        **Implementation steps**:
          1. Validate inputs.
          2. Convert dates to Unix seconds (start of start_date through end
             of end_date, UTC).
          3. Fetch candles through the client.
          4. Turn the parallel arrays (c, h, l, o, t, v) into a DataFrame.
          5. Parse timestamps, filter to the window, run quality checks.

        Returns:
            DataFrame with the canonical columns (timestamp is UTC-aware),
            unsorted. Empty (with columns) if the response holds no bars.

        Raises:
            ValueError: Empty ticker or start_date > end_date.
            FinnhubAccessError: Plan has no access to candles.
            FinnhubDataProviderError: Malformed or low-quality data.
            FinnhubClientError: Any HTTP-level failure (from the client).
        """
        if not ticker or not ticker.strip():
            raise ValueError("Ticker cannot be empty")
        if start_date > end_date:
            raise ValueError(f"start_date ({start_date}) must be <= end_date ({end_date})")

        symbol = ticker.strip().upper()
        start_dt = dt.datetime.combine(start_date, dt.time.min, tzinfo=dt.timezone.utc)
        end_dt = dt.datetime.combine(end_date, dt.time.max, tzinfo=dt.timezone.utc)

        response = self.client.get_candles(
            symbol=symbol,
            resolution="D",
            from_timestamp=int(start_dt.timestamp()),
            to_timestamp=int(end_dt.timestamp()),
        )

        # Finnhub may return an error field even on HTTP 200 if the plan lacks access
        if isinstance(response, dict) and "error" in response:
            err_msg = str(response.get("error", "")).lower()
            if "access" in err_msg:
                raise FinnhubAccessError(
                    f"Finnhub reports access denied for ticker={symbol} resolution=D on stock/candle."
                )
            raise FinnhubDataProviderError(f"Finnhub returned an error for {symbol}: {response['error']}")

        arrays = {key: response.get(key, []) for key in ('t', 'o', 'h', 'l', 'c', 'v')}
        lengths = {key: len(values) for key, values in arrays.items()}
        if len(set(lengths.values())) > 1:
            raise FinnhubDataProviderError(f"Finnhub response has inconsistent array lengths: {lengths}")

        if lengths['t'] == 0:
            return pd.DataFrame(columns=RAW_PRICE_REQUIRED_COLUMNS)

        df = pd.DataFrame({
            'timestamp': arrays['t'],
            'open_price': arrays['o'],
            'high_price': arrays['h'],
            'low_price': arrays['l'],
            'closing_price': arrays['c'],
            'volume': arrays['v'],
        })

        try:
            df['timestamp'] = pd.to_datetime(df['timestamp'], unit='s', utc=True)
        except (ValueError, TypeError, OverflowError) as e:
            raise FinnhubDataProviderError(
                f"Failed to parse timestamps from Unix format: {e}. "
                f"Sample timestamp: {arrays['t'][0]}"
            ) from e

        window = (df['timestamp'] >= pd.Timestamp(start_dt)) & (df['timestamp'] <= pd.Timestamp(end_dt))
        df = df[window].reset_index(drop=True)

        for col in RAW_PRICE_REQUIRED_COLUMNS:
            if df[col].isna().any():
                raise FinnhubDataProviderError(
                    f"Column '{col}' has {df[col].isna().sum()} NaN values. Data quality issue in Finnhub response."
                )

        for col in ('open_price', 'high_price', 'low_price', 'closing_price'):
            if (df[col] <= 0).any():
                raise FinnhubDataProviderError(f"Column '{col}' has non-positive values. Data quality issue.")

        if (df['high_price'] < df['low_price']).any():
            raise FinnhubDataProviderError("Found bars where high_price < low_price. Data quality issue.")

        logger.debug("Fetched %d daily bars for %s from Finnhub", len(df), symbol)
        return df[RAW_PRICE_REQUIRED_COLUMNS]

    def get_current_price(self, ticker: str) -> float | None:
        """
        Latest traded price from the quote endpoint.

        Returns:
            The quote's current price, or None when Finnhub reports 0 / no
            price (unknown symbol).

        Raises:
            FinnhubClientError: Any HTTP-level failure (from the client).
        """
        quote = self.client.get_quote(ticker.strip().upper())
        price = quote.get('c')
        if not price:
            return None
        return float(price)

    def close(self):
        """Close the underlying HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
