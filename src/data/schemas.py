"""
Data contracts for price history: the raw OHLCV CSV schema and the in-memory
closing-price series the backtest engine consumes.

**Two shapes of the same data**:
  - On disk (data/raw/<SYMBOL>.csv): `timestamp, open_price, high_price,
    low_price, closing_price, volume`, strictly descending (newest first).
  - In memory for the engine: a list of PricePoint(date, close), strictly
    ascending (oldest first) with positive closes.

The CSV layer (io.py) enforces the first shape at every read and write; the
price store enforces the second before a series reaches the engine.

**Teaching note**: A bad row caught here is a clear error message. The same
row caught three layers later is a wrong drawdown figure nobody notices.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Sequence

import pandas as pd


class SchemaValidationError(Exception):
    """
    Raised when price data does not conform to the expected schema.

    Messages carry the source (file path or symbol) and the specific
    violation so the offending file can be fixed or re-synced.
    """
    pass


# Raw price schema constants
RAW_PRICE_REQUIRED_COLUMNS = [
    'timestamp',
    'open_price',
    'high_price',
    'low_price',
    'closing_price',
    'volume',
]


@dataclass(frozen=True)
class PricePoint:
    """
    One trading day's close.

    Attributes:
        date: Calendar date of the trading day.
        close: Closing price (positive).
    """
    date: date
    close: float


def validate_raw_price_schema(
    df: pd.DataFrame,
    context: str | None = None,
) -> None:
    """
    Validate that a DataFrame conforms to the raw price schema.

    **Functionally**:
      - All required columns (timestamp, OHLC, volume) are present.
      - `timestamp` is datetime or parseable as ISO 8601.
      - Timestamps are strictly descending (newest first, no duplicates).

    Args:
        df: DataFrame to validate.
        context: Optional source description (e.g., "data/raw/AAPL.csv")
                 included in error messages.

    Raises:
        SchemaValidationError: On the first violation found.
    """
    ctx = f"{context}: " if context else ""

    missing_cols = set(RAW_PRICE_REQUIRED_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"{ctx}Missing required columns: {sorted(missing_cols)}. "
            f"Expected columns: {RAW_PRICE_REQUIRED_COLUMNS}. "
            f"Found columns: {list(df.columns)}."
        )

    timestamp_col = df['timestamp']
    if not pd.api.types.is_datetime64_any_dtype(timestamp_col):
        try:
            timestamp_col = pd.to_datetime(timestamp_col, format='ISO8601')
        except (ValueError, TypeError) as e:
            raise SchemaValidationError(
                f"{ctx}'timestamp' column contains non-parseable values. "
                f"Expected ISO 8601 date-time strings. Error: {e}"
            ) from e

    # diffs[0] is NaT; every later diff must be negative for strictly descending
    diffs = timestamp_col.diff().iloc[1:]
    if not (diffs < pd.Timedelta(0)).all():
        bad_indices = diffs[diffs >= pd.Timedelta(0)].index.tolist()
        raise SchemaValidationError(
            f"{ctx}Timestamps are not in strictly descending order. "
            f"Violations found at row indices: {bad_indices[:5]} (showing first 5). "
            f"Hint: sort by timestamp descending (newest first) and drop duplicates."
        )


def validate_price_series(
    points: Sequence[PricePoint],
    context: str | None = None,
) -> None:
    """
    Validate an in-memory closing-price series before a backtest.

    **Functionally**:
      - Dates strictly ascending (oldest first, no duplicate days).
      - Every close finite and strictly positive.
      - An empty series is valid here; "not enough data" is the engine's call.

    Args:
        points: Series to check, oldest first.
        context: Optional source description for error messages.

    Raises:
        SchemaValidationError: On the first violation found.
    """
    ctx = f"{context}: " if context else ""

    previous: PricePoint | None = None
    for i, point in enumerate(points):
        if not math.isfinite(point.close) or point.close <= 0:
            raise SchemaValidationError(
                f"{ctx}Non-positive close {point.close!r} on {point.date} (row {i})."
            )
        if previous is not None and point.date <= previous.date:
            raise SchemaValidationError(
                f"{ctx}Dates are not strictly ascending at row {i}: "
                f"{previous.date} followed by {point.date}."
            )
        previous = point
