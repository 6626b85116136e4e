"""
Price-series store backed by the raw OHLCV CSVs in data/raw/.

**Conceptual**: The backtest engine does not know where prices come from. It
asks a `PriceSeriesProvider` for the closes of one symbol between two dates
and gets back an ascending list of PricePoint. `CsvPriceStore` is the
provider used in practice: one CSV per symbol, written by the sync pipeline
and read back here.

**Error translation**: Anything that goes wrong reading a file (unreadable
CSV, schema violation, non-positive close, duplicate dates) surfaces as
`UpstreamDataError`, so callers can tell "we couldn't get prices" apart from
"there weren't enough prices". A symbol that was never synced is not an
error: it simply has no history.
"""

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Protocol

import pandas as pd

from src.backtesting.errors import UpstreamDataError
from src.data.io import read_raw_price_csv, write_raw_price_csv
from src.data.schemas import (
    RAW_PRICE_REQUIRED_COLUMNS,
    PricePoint,
    SchemaValidationError,
    validate_price_series,
)

logger = logging.getLogger(__name__)


class PriceSeriesProvider(Protocol):
    """
    Read-only source of daily closes for the backtest engine.

    Implementations return points sorted ascending by date with no duplicate
    days, and raise UpstreamDataError when the underlying source fails.
    """

    def get_close_prices(self, symbol: str, start: date, end: date) -> list[PricePoint]:
        """Return closes for `symbol` with start <= date <= end, oldest first."""
        ...


@dataclass(frozen=True)
class PriceHistoryStatus:
    """
    What the store currently holds for one symbol.

    `start_date` and `end_date` are None when the symbol has no records.
    """
    symbol: str
    records: int
    start_date: date | None
    end_date: date | None


class CsvPriceStore:
    """
    One raw-price CSV per symbol under a data directory.

    Symbols are upper-cased, so "aapl" and "AAPL" share data/raw/AAPL.csv.
    """

    def __init__(self, raw_data_dir: Path | str):
        self.raw_data_dir = Path(raw_data_dir)

    def path_for(self, symbol: str) -> Path:
        return self.raw_data_dir / f"{symbol.upper()}.csv"

    def load_history(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> pd.DataFrame:
        """
        Load OHLCV rows for a symbol, oldest first.

        Args:
            symbol: Ticker symbol (case-insensitive).
            start: Optional inclusive lower bound on the trading date.
            end: Optional inclusive upper bound on the trading date.

        Returns:
            DataFrame with the raw price columns sorted ascending by timestamp.
            Empty (with the schema columns) when the symbol was never synced.

        Raises:
            UpstreamDataError: If the CSV exists but can't be read or validated.
        """
        path = self.path_for(symbol)
        if not path.exists():
            return pd.DataFrame(columns=RAW_PRICE_REQUIRED_COLUMNS)

        try:
            df = read_raw_price_csv(path, instrument_name=symbol.upper())
        except (SchemaValidationError, OSError) as e:
            raise UpstreamDataError(f"Failed to load price history for {symbol.upper()}: {e}") from e

        # Compare on calendar days so intraday timestamps still fall in range
        days = df['timestamp'].dt.normalize()
        mask = pd.Series(True, index=df.index)
        if start is not None:
            mask &= days >= pd.Timestamp(start)
        if end is not None:
            mask &= days <= pd.Timestamp(end)

        return df.loc[mask].sort_values('timestamp').reset_index(drop=True)

    def get_close_prices(self, symbol: str, start: date, end: date) -> list[PricePoint]:
        """
        Closing prices for [start, end], oldest first.

        Raises:
            UpstreamDataError: If the file is unreadable or the series contains
                               non-positive closes or out-of-order dates.
        """
        df = self.load_history(symbol, start, end)
        points = [
            PricePoint(date=ts.date(), close=float(close))
            for ts, close in zip(df['timestamp'], df['closing_price'])
        ]

        try:
            validate_price_series(points, context=symbol.upper())
        except SchemaValidationError as e:
            raise UpstreamDataError(str(e)) from e

        logger.debug("Loaded %d closes for %s between %s and %s", len(points), symbol.upper(), start, end)
        return points

    def replace_history(self, symbol: str, df: pd.DataFrame) -> int:
        """
        Overwrite the stored history for a symbol.

        Args:
            symbol: Ticker symbol (case-insensitive).
            df: Frame in the raw price schema; any row order.

        Returns:
            Number of rows written.

        Raises:
            SchemaValidationError: If `df` does not match the raw price schema.
        """
        write_raw_price_csv(df, self.path_for(symbol))
        logger.info("Stored %d rows for %s at %s", len(df), symbol.upper(), self.path_for(symbol))
        return len(df)

    def status(self, symbol: str) -> PriceHistoryStatus:
        """Record count and date range held for one symbol."""
        df = self.load_history(symbol)
        if df.empty:
            return PriceHistoryStatus(symbol.upper(), 0, None, None)
        return PriceHistoryStatus(
            symbol=symbol.upper(),
            records=len(df),
            start_date=df['timestamp'].iloc[0].date(),
            end_date=df['timestamp'].iloc[-1].date(),
        )

    def symbols(self) -> list[str]:
        """Symbols with a stored CSV, sorted alphabetically."""
        if not self.raw_data_dir.exists():
            return []
        return sorted(p.stem.upper() for p in self.raw_data_dir.glob("*.csv"))
