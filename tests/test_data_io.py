"""
Tests for src/data/io.py

Uses pytest's tmp_path fixture so every test reads and writes real CSV files
in an isolated directory.
"""

import pandas as pd
import pytest

from src.data.io import (
    normalize_timestamp_column,
    read_raw_price_csv,
    write_normalized_csv,
    write_raw_price_csv,
)
from src.data.schemas import RAW_PRICE_REQUIRED_COLUMNS, SchemaValidationError


@pytest.fixture
def ascending_bars():
    """Three bars, oldest first (the order providers usually return)."""
    return pd.DataFrame({
        'timestamp': pd.to_datetime(["2024-01-02", "2024-01-03", "2024-01-04"]),
        'open_price': [10.0, 11.0, 12.0],
        'high_price': [10.5, 11.5, 12.5],
        'low_price': [9.5, 10.5, 11.5],
        'closing_price': [10.2, 11.2, 12.2],
        'volume': [100, 200, 300],
    })


def test_normalize_timestamp_column_parses_and_sorts_descending():
    df = pd.DataFrame({'timestamp': ["2024-01-01", "2024-01-03T00:00:00", "2024-01-02 00:00:00"], 'x': [1, 3, 2]})
    out = normalize_timestamp_column(df)

    assert pd.api.types.is_datetime64_any_dtype(out['timestamp'])
    assert out['x'].tolist() == [3, 2, 1]
    # Input untouched
    assert df['timestamp'].iloc[0] == "2024-01-01"


def test_normalize_timestamp_column_missing_column():
    with pytest.raises(KeyError, match="not found"):
        normalize_timestamp_column(pd.DataFrame({'date': ["2024-01-01"]}))


def test_normalize_timestamp_column_bad_values():
    with pytest.raises(ValueError, match="Failed to parse"):
        normalize_timestamp_column(pd.DataFrame({'timestamp': ["yesterday"]}))


def test_write_raw_price_csv_sorts_newest_first(tmp_path, ascending_bars):
    path = tmp_path / "raw" / "TEST.csv"
    write_raw_price_csv(ascending_bars, path)

    text = path.read_text().splitlines()
    assert text[0] == ",".join(RAW_PRICE_REQUIRED_COLUMNS)
    assert text[1].startswith("2024-01-04 00:00:00,")
    assert text[3].startswith("2024-01-02 00:00:00,")


def test_write_raw_price_csv_rejects_duplicates(tmp_path, ascending_bars):
    dup = pd.concat([ascending_bars, ascending_bars.iloc[[0]]], ignore_index=True)
    with pytest.raises(SchemaValidationError):
        write_raw_price_csv(dup, tmp_path / "TEST.csv")


def test_write_raw_price_csv_rejects_missing_columns(tmp_path, ascending_bars):
    with pytest.raises(SchemaValidationError, match="Missing required columns"):
        write_raw_price_csv(ascending_bars.drop(columns=['volume']), tmp_path / "TEST.csv")


def test_read_raw_price_csv_round_trip(tmp_path, ascending_bars):
    path = tmp_path / "TEST.csv"
    write_raw_price_csv(ascending_bars, path)
    df = read_raw_price_csv(path, instrument_name="TEST")

    assert list(df.columns) == RAW_PRICE_REQUIRED_COLUMNS
    assert pd.api.types.is_datetime64_any_dtype(df['timestamp'])
    assert df['closing_price'].tolist() == [12.2, 11.2, 10.2]


def test_read_raw_price_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="sync_price_history"):
        read_raw_price_csv(tmp_path / "NOPE.csv")


def test_read_raw_price_csv_ascending_file_rejected(tmp_path, ascending_bars):
    path = tmp_path / "TEST.csv"
    ascending_bars.to_csv(path, index=False)

    with pytest.raises(SchemaValidationError, match="TEST: Timestamps are not in strictly descending order"):
        read_raw_price_csv(path, instrument_name="TEST")


def test_read_raw_price_csv_without_timestamp_column(tmp_path):
    path = tmp_path / "TEST.csv"
    pd.DataFrame({'date': ["2024-01-01"], 'closing_price': [1.0]}).to_csv(path, index=False)

    with pytest.raises(SchemaValidationError, match="'timestamp' column missing"):
        read_raw_price_csv(path)


def test_write_normalized_csv_formats_timestamps(tmp_path):
    df = pd.DataFrame({
        'timestamp': ["2024-01-02", "2024-01-03"],
        'portfolioValue': [1000.0, 1010.0],
    })
    path = tmp_path / "results" / "chart.csv"
    write_normalized_csv(df, path)

    lines = path.read_text().splitlines()
    assert lines[0] == "timestamp,portfolioValue"
    assert lines[1] == "2024-01-03 00:00:00,1010.0"
    assert lines[2] == "2024-01-02 00:00:00,1000.0"


def test_write_normalized_csv_empty_frame(tmp_path):
    df = pd.DataFrame(columns=['timestamp', 'type'])
    path = tmp_path / "trades.csv"
    write_normalized_csv(df, path)

    assert path.read_text().strip() == "timestamp,type"
