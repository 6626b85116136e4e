"""
CSV readers and writers with schema enforcement.

**Conceptual**: This module is the only place raw price CSVs are read or
written. Every file under data/raw/ passes through here, so:
  - Timestamps are parsed once (ISO 8601 strings <-> datetime).
  - Schema validation (schemas.py) runs at every read and write.
  - Files on disk are always sorted strictly descending (newest first).

Report outputs written by the actions (daily chart trace, trade ledger) go
through `write_normalized_csv`, which applies the same timestamp format.
"""

from pathlib import Path

import pandas as pd

from src.data.schemas import (
    RAW_PRICE_REQUIRED_COLUMNS,
    SchemaValidationError,
    validate_raw_price_schema,
)


def normalize_timestamp_column(
    df: pd.DataFrame,
    col: str = "timestamp",
) -> pd.DataFrame:
    """
    Parse a timestamp column and sort rows newest first.

    **Functionally**:
    - Accepts "YYYY-MM-DDTHH:MM:SS", "YYYY-MM-DD HH:MM:SS" or plain dates.
    - Leaves the column as datetime64 and the input frame untouched.
    - Empty frames are returned unchanged (as a copy).

    Raises:
        KeyError: If `col` is missing.
        ValueError: If the column can't be parsed as datetime.
    """
    if df.empty:
        return df.copy()

    df_normalized = df.copy()

    if col not in df_normalized.columns:
        raise KeyError(
            f"Timestamp column '{col}' not found in DataFrame. "
            f"Available columns: {list(df_normalized.columns)}"
        )

    if not pd.api.types.is_datetime64_any_dtype(df_normalized[col]):
        try:
            df_normalized[col] = pd.to_datetime(df_normalized[col], format='ISO8601')
        except (ValueError, TypeError) as e:
            raise ValueError(
                f"Failed to parse '{col}' column as datetime. "
                f"Expected ISO 8601 format (e.g., '2024-01-15 00:00:00'). Error: {e}"
            ) from e

    return df_normalized.sort_values(col, ascending=False).reset_index(drop=True)


def write_normalized_csv(
    df: pd.DataFrame,
    path: Path | str,
    timestamp_col: str = "timestamp",
) -> None:
    """
    Write a report DataFrame with canonical timestamps, newest first.

    Timestamps are written as "YYYY-MM-DD HH:MM:SS". The parent directory is
    created if needed. Used by the actions for chart traces and trade ledgers.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df_to_write = normalize_timestamp_column(df, col=timestamp_col)
    if not df_to_write.empty:
        df_to_write[timestamp_col] = df_to_write[timestamp_col].dt.strftime('%Y-%m-%d %H:%M:%S')

    df_to_write.to_csv(path, index=False)


def read_raw_price_csv(
    path: Path | str,
    instrument_name: str | None = None,
) -> pd.DataFrame:
    """
    Read a raw price CSV file with schema validation.

    **Functionally**:
      - Reads the CSV with pandas and parses `timestamp` to datetime.
      - Validates columns and strictly descending order.
      - Returns the frame newest first, exactly as stored.

    Args:
        path: Path to the CSV (e.g., "data/raw/AAPL.csv").
        instrument_name: Optional symbol used as error-message context.

    Returns:
        DataFrame with the raw price schema; `timestamp` is datetime64.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: If the CSV is unreadable or off-schema.

    Example:
        >>> df = read_raw_price_csv("data/raw/AAPL.csv", instrument_name="AAPL")
        >>> df.head(2)
                  timestamp  open_price  high_price  low_price  closing_price    volume
        0 2024-01-15 00:00:00      185.1      186.4      184.0          185.9  41234567
        1 2024-01-12 00:00:00      184.2      185.5      183.1          185.0  39876543
    """
    path = Path(path)
    context = instrument_name or str(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Raw price CSV not found: {path}. "
            f"Run actions/sync_price_history.py for this symbol first."
        )

    try:
        df = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise SchemaValidationError(f"{context}: Failed to read CSV. Error: {e}") from e

    if 'timestamp' not in df.columns:
        raise SchemaValidationError(
            f"{context}: 'timestamp' column missing. Found columns: {list(df.columns)}."
        )

    try:
        df['timestamp'] = pd.to_datetime(df['timestamp'], format='ISO8601', utc=True)
    except (ValueError, TypeError) as e:
        raise SchemaValidationError(
            f"{context}: Failed to parse 'timestamp' column as datetime. Error: {e}"
        ) from e

    # Stored as naive UTC, the same form sync writes; offsets are converted
    df['timestamp'] = df['timestamp'].dt.tz_convert(None)

    validate_raw_price_schema(df, context=context)
    return df


def write_raw_price_csv(
    df: pd.DataFrame,
    path: Path | str,
) -> None:
    """
    Write a raw price DataFrame to CSV with schema enforcement.

    Sorts newest first, validates, formats timestamps as
    "YYYY-MM-DD HH:MM:SS" and writes the schema columns in a fixed order.
    The file is replaced if it exists.

    Raises:
        SchemaValidationError: If the frame doesn't conform to the schema
                               (including duplicate timestamps).
    """
    path = Path(path)
    context = str(path)

    df_to_write = df.copy()
    path.parent.mkdir(parents=True, exist_ok=True)

    if 'timestamp' in df_to_write.columns:
        df_to_write['timestamp'] = pd.to_datetime(df_to_write['timestamp'], format='ISO8601')
        df_to_write = df_to_write.sort_values('timestamp', ascending=False).reset_index(drop=True)

    validate_raw_price_schema(df_to_write, context=context)

    df_to_write['timestamp'] = df_to_write['timestamp'].dt.strftime('%Y-%m-%d %H:%M:%S')
    df_to_write.to_csv(path, index=False, columns=RAW_PRICE_REQUIRED_COLUMNS)
