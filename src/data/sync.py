"""
Price-history sync: fill the price store for a symbol.

**Conceptual**: Before a symbol can be backtested, its daily history has to
be in the price store. A sync replaces whatever the store holds for the
symbol with a fresh window of `years` years ending today.

**Source selection**:
  1. Ask the market-data provider (Finnhub) for the current price. Any
     failure leaves the fallback price of 150.
  2. Ask it for daily candles over the window.
  3. If there is no provider, or it failed, or it returned nothing, generate
     a synthetic series anchored on the current price. The report says so
     (`data_source == "synthetic"`) and a warning is logged.

Failures of the real provider never abort a sync; only a failure to write
the store does.
"""

import logging
from dataclasses import dataclass
from datetime import date

import pandas as pd

from src.data.price_store import CsvPriceStore, PriceHistoryStatus
from src.utils.time import Clock, RealClock
from src.venues.base import DataProvider
from src.venues.finnhub_client import FinnhubClientError
from src.venues.finnhub_data_provider import FinnhubAccessError, FinnhubDataProviderError
from src.venues.synthetic_data_provider import DEFAULT_SYNTHETIC_PRICE, SyntheticDataProvider

logger = logging.getLogger(__name__)

PROVIDER_ERRORS = (FinnhubClientError, FinnhubDataProviderError, FinnhubAccessError)


@dataclass(frozen=True)
class SyncReport:
    """
    Outcome of one sync.

    Attributes:
        symbol: Upper-cased ticker.
        records_inserted: Rows now stored for the symbol.
        start_date: First date of the requested window.
        end_date: Last date of the requested window.
        years: Window length requested.
        data_source: "finnhub" or "synthetic".
    """
    symbol: str
    records_inserted: int
    start_date: date
    end_date: date
    years: int
    data_source: str

    def to_payload(self) -> dict:
        return {
            "success": True,
            "message": f"Synced {self.records_inserted} records for {self.symbol}",
            "stats": {
                "symbol": self.symbol,
                "recordsInserted": self.records_inserted,
                "dateRange": {
                    "from": self.start_date.isoformat(),
                    "to": self.end_date.isoformat(),
                },
                "years": self.years,
                "dataSource": self.data_source,
            },
        }


def status_to_payload(status: PriceHistoryStatus) -> dict:
    return {
        "symbol": status.symbol,
        "recordCount": status.records,
        "dateRange": {
            "from": status.start_date.isoformat() if status.start_date else None,
            "to": status.end_date.isoformat() if status.end_date else None,
        },
        "hasData": status.records > 0,
    }


def _to_naive_dates(bars: pd.DataFrame) -> pd.DataFrame:
    """Strip timezones and intraday times so one bar maps to one calendar day."""
    df = bars.copy()
    timestamps = pd.to_datetime(df['timestamp'])
    if timestamps.dt.tz is not None:
        timestamps = timestamps.dt.tz_convert(None)
    df['timestamp'] = timestamps.dt.normalize()
    return df.drop_duplicates(subset='timestamp', keep='last')


class PriceHistorySyncer:
    """
    Replaces a symbol's stored history with fresh data.

    Args:
        price_store: Destination store.
        provider: Real market-data provider (e.g., FinnhubDataProvider);
                  None means always synthesize.
        clock: Time source for the window end.
        synthetic_seed: Seed for the synthetic fallback (None for random).
    """

    def __init__(
        self,
        price_store: CsvPriceStore,
        provider: DataProvider | None = None,
        clock: Clock | None = None,
        synthetic_seed: int | None = None,
    ):
        self.price_store = price_store
        self.provider = provider
        self.clock = clock or RealClock()
        self.synthetic_seed = synthetic_seed

    def _current_price(self, symbol: str) -> float:
        if self.provider is None:
            return DEFAULT_SYNTHETIC_PRICE
        try:
            price = self.provider.get_current_price(symbol)
        except PROVIDER_ERRORS as e:
            logger.warning("Could not fetch current price for %s: %s", symbol, e)
            return DEFAULT_SYNTHETIC_PRICE
        return price if price else DEFAULT_SYNTHETIC_PRICE

    def _real_bars(self, symbol: str, start: date, end: date) -> pd.DataFrame | None:
        if self.provider is None:
            return None
        try:
            bars = self.provider.get_daily_bars(symbol, start, end)
        except PROVIDER_ERRORS as e:
            logger.warning("Market data unavailable for %s: %s", symbol, e)
            return None
        return None if bars.empty else bars

    def sync(self, symbol: str, years: int = 7) -> SyncReport:
        """
        Fetch (or synthesize) `years` of daily bars and replace the stored history.

        Args:
            symbol: Ticker symbol (case-insensitive).
            years: Window length ending today.

        Returns:
            SyncReport describing what was stored.

        Raises:
            ValueError: Empty symbol or non-positive years.
            SchemaValidationError: If the bars can't be written in the raw schema.
        """
        if not symbol or not symbol.strip():
            raise ValueError("Symbol is required")
        if years <= 0:
            raise ValueError(f"years must be positive, got {years}")

        symbol = symbol.strip().upper()
        end = pd.Timestamp(self.clock.now())
        start = end - pd.DateOffset(years=years)
        start_date, end_date = start.date(), end.date()

        current_price = self._current_price(symbol)
        bars = self._real_bars(symbol, start_date, end_date)
        data_source = "finnhub"

        if bars is None:
            logger.warning("Generating synthetic data for %s (anchor price %.2f)", symbol, current_price)
            synthetic = SyntheticDataProvider(current_price=current_price, seed=self.synthetic_seed)
            bars = synthetic.get_daily_bars(symbol, start_date, end_date)
            data_source = "synthetic"

        records = self.price_store.replace_history(symbol, _to_naive_dates(bars))
        logger.info("Synced %d records for %s from %s", records, symbol, data_source)

        return SyncReport(
            symbol=symbol,
            records_inserted=records,
            start_date=start_date,
            end_date=end_date,
            years=years,
            data_source=data_source,
        )

    def status(self, symbol: str) -> dict:
        """`{symbol, recordCount, dateRange{from, to}, hasData}` for one symbol."""
        return status_to_payload(self.price_store.status(symbol))

    def status_all(self) -> dict:
        """`{syncedSymbols: [...]}` for every symbol in the store."""
        return {
            "syncedSymbols": [
                status_to_payload(self.price_store.status(symbol))
                for symbol in self.price_store.symbols()
            ]
        }
