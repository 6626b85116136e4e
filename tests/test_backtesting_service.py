"""
Tests for the request-level backtest service.

The service is exercised end to end against a CsvPriceStore and a results
store in tmp_path, with a FrozenClock pinning "today" so the lookback window
is known exactly.
"""

from datetime import date, datetime, timedelta, timezone

import pandas as pd
import pytest

from src.backtesting.errors import (
    BacktestError,
    ConfigurationError,
    InsufficientDataError,
    UpstreamDataError,
)
from src.backtesting.results_store import BacktestResultStore
from src.backtesting.service import (
    BacktestErr,
    BacktestOk,
    BacktestRequest,
    BacktestService,
    compute_window,
    error_outcome,
)
from src.data.price_store import CsvPriceStore
from src.utils.time import FrozenClock

NOW = datetime(2024, 6, 28, 12, 0, tzinfo=timezone.utc)
DIP_AND_RECOVERY = [12, 11, 10, 9, 8, 9, 10, 11, 12, 13]


def _bars(closes, last_day: date = date(2024, 6, 27)):
    days = pd.bdate_range(end=last_day, periods=len(closes))
    return pd.DataFrame({
        'timestamp': days,
        'open_price': closes,
        'high_price': [c + 0.5 for c in closes],
        'low_price': [c - 0.5 for c in closes],
        'closing_price': closes,
        'volume': [1_000_000] * len(closes),
    })


@pytest.fixture
def price_store(tmp_path):
    store = CsvPriceStore(tmp_path / "raw")
    store.replace_history("AAPL", _bars([float(c) for c in DIP_AND_RECOVERY]))
    return store


@pytest.fixture
def results_store(tmp_path):
    return BacktestResultStore(tmp_path / "results.csv", clock=FrozenClock(NOW))


@pytest.fixture
def service(price_store, results_store):
    return BacktestService(price_store, results_store=results_store, clock=FrozenClock(NOW))


# ----------------------------------------------------------------------------
# Request parsing
# ----------------------------------------------------------------------------

def test_request_defaults():
    request = BacktestRequest.from_payload({"symbol": " aapl "})
    assert request == BacktestRequest(symbol="AAPL", years=3, ma_period=30, initial_capital=100000.0)


def test_request_from_camel_case_payload():
    request = BacktestRequest.from_payload(
        {"symbol": "msft", "years": 5, "maPeriod": "50", "initialCapital": "25000"}
    )
    assert request == BacktestRequest(symbol="MSFT", years=5, ma_period=50, initial_capital=25000.0)


@pytest.mark.parametrize("payload", [{}, {"symbol": ""}, {"symbol": None}, {"symbol": 42}])
def test_request_requires_symbol(payload):
    with pytest.raises(ConfigurationError, match="Symbol is required"):
        BacktestRequest.from_payload(payload)


@pytest.mark.parametrize("field,value", [
    ("maPeriod", 2.5),
    ("maPeriod", "abc"),
    ("maPeriod", True),
    ("years", None),
    ("initialCapital", "lots"),
])
def test_request_rejects_malformed_fields(field, value):
    with pytest.raises(ConfigurationError, match="Invalid backtest request"):
        BacktestRequest.from_payload({"symbol": "AAPL", field: value})


def test_request_rejects_non_positive_years():
    with pytest.raises(ConfigurationError, match="years must be positive"):
        BacktestRequest(symbol="AAPL", years=0)


def test_compute_window():
    start, end = compute_window(NOW, 3)
    assert end == NOW
    assert start == datetime(2021, 6, 28, 12, 0, tzinfo=timezone.utc)


def test_compute_window_leap_day():
    start, _ = compute_window(datetime(2024, 2, 29), 1)
    assert start == datetime(2023, 2, 28)


# ----------------------------------------------------------------------------
# Error mapping
# ----------------------------------------------------------------------------

def test_error_outcome_insufficient_data():
    outcome = error_outcome(InsufficientDataError(found=10, required=30))
    assert outcome.status_code == 400
    assert outcome.payload == {
        "error": "Not enough data. Need at least 30 data points, found 10. Please sync data first.",
        "needsSync": True,
        "found": 10,
        "required": 30,
    }


def test_error_outcome_configuration():
    outcome = error_outcome(ConfigurationError("maPeriod must be positive, got 0"))
    assert outcome.status_code == 400
    assert outcome.payload == {"error": "maPeriod must be positive, got 0"}


def test_error_outcome_upstream():
    outcome = error_outcome(UpstreamDataError("bad file"))
    assert outcome.status_code == 502
    assert outcome.payload == {"error": "bad file"}


def test_error_outcome_generic():
    outcome = error_outcome(BacktestError("boom"))
    assert outcome.status_code == 500
    assert outcome.payload == {"error": "Failed to run backtest"}


# ----------------------------------------------------------------------------
# Running backtests
# ----------------------------------------------------------------------------

def test_run_success_payload(service):
    outcome = service.run(BacktestRequest(symbol="AAPL", years=3, ma_period=3, initial_capital=1000))

    assert isinstance(outcome, BacktestOk)
    payload = outcome.payload
    assert payload["success"] is True
    assert payload["symbol"] == "AAPL"
    assert payload["strategy"] == {
        "name": "MA3 Crossover Strategy",
        "description": "Buy when price goes below 3-day MA, sell when price goes above 3-day MA",
        "maPeriod": 3,
    }
    assert payload["period"] == {
        "years": 3,
        "startDate": "2021-06-28T12:00:00+00:00",
        "endDate": "2024-06-28T12:00:00+00:00",
        "tradingDays": 10,
    }

    results = payload["results"]
    assert results["initialCapital"] == 1000
    assert results["finalValue"] == pytest.approx(900.0)
    assert results["totalReturn"] == "-10.00%"
    assert results["totalTrades"] == 2
    assert results["winningTrades"] == 0
    assert results["losingTrades"] == 1
    assert results["winRate"] == "0.00%"
    assert results["maxDrawdown"] == "20.00%"
    assert results["buyHoldReturn"] == "30.00%"
    assert results["outperformance"] == "-40.00%"

    assert [t["type"] for t in payload["trades"]] == ["buy", "sell"]
    assert set(payload["trades"][0]) == {"date", "type", "price", "shares", "value", "portfolioValue", "signal"}

    chart = payload["chartData"]
    assert len(chart) == 10
    assert set(chart[0]) == {"date", "price", "ma", "position", "cash", "portfolioValue", "signal", "drawdown"}
    assert chart[0]["ma"] is None
    assert chart[2]["ma"] == pytest.approx(11.0)
    assert chart[2]["signal"] == "BUY"
    assert chart[2]["position"] == 100
    assert chart[5]["signal"] == "SELL"
    assert chart[9]["signal"] is None


def test_run_persists_result(service, results_store):
    outcome = service.run(BacktestRequest(symbol="AAPL", ma_period=3, initial_capital=1000))

    assert outcome.record is not None
    assert outcome.record.id == 1
    (stored,) = results_store.list_recent()
    assert stored.symbol == "AAPL"
    assert stored.strategy_name == "MA3 Crossover"


def test_run_without_results_store(price_store):
    service = BacktestService(price_store, clock=FrozenClock(NOW))
    outcome = service.run(BacktestRequest(symbol="AAPL", ma_period=3, initial_capital=1000))

    assert isinstance(outcome, BacktestOk)
    assert outcome.record is None
    assert service.list_results() == {"results": []}


def test_run_insufficient_data(service, results_store):
    outcome = service.run(BacktestRequest(symbol="AAPL", ma_period=30))

    assert isinstance(outcome, BacktestErr)
    assert outcome.status_code == 400
    assert outcome.payload["needsSync"] is True
    assert outcome.payload["found"] == 10
    assert outcome.payload["required"] == 30
    assert results_store.list_recent() == []


def test_run_unsynced_symbol(service):
    outcome = service.run(BacktestRequest(symbol="NOPE", ma_period=3))

    assert isinstance(outcome, BacktestErr)
    assert outcome.payload["found"] == 0


def test_run_invalid_capital(service):
    outcome = service.run(BacktestRequest(symbol="AAPL", ma_period=3, initial_capital=0))

    assert isinstance(outcome, BacktestErr)
    assert outcome.status_code == 400
    assert "initialCapital" in outcome.payload["error"]


def test_run_upstream_failure(service, price_store):
    price_store.replace_history("BAD", _bars([10.0, 0.0, 10.0, 10.0]))
    outcome = service.run(BacktestRequest(symbol="BAD", ma_period=3))

    assert isinstance(outcome, BacktestErr)
    assert outcome.status_code == 502


def test_run_payload_validation_error(service):
    outcome = service.run_payload({"maPeriod": 3})

    assert isinstance(outcome, BacktestErr)
    assert outcome.status_code == 400
    assert outcome.payload == {"error": "Symbol is required"}


def test_run_payload_success(service):
    outcome = service.run_payload({"symbol": "aapl", "maPeriod": 3, "initialCapital": 1000})
    assert isinstance(outcome, BacktestOk)
    assert outcome.payload["symbol"] == "AAPL"


def test_window_excludes_old_history(tmp_path):
    store = CsvPriceStore(tmp_path)
    # Ten closes ending well before the one-year window
    store.replace_history("OLD", _bars([float(c) for c in DIP_AND_RECOVERY], last_day=date(2020, 1, 31)))
    service = BacktestService(store, clock=FrozenClock(NOW))

    outcome = service.run(BacktestRequest(symbol="OLD", years=1, ma_period=3))
    assert isinstance(outcome, BacktestErr)
    assert outcome.payload["found"] == 0


# ----------------------------------------------------------------------------
# Read-only views
# ----------------------------------------------------------------------------

def test_list_results(service):
    service.run(BacktestRequest(symbol="AAPL", ma_period=3, initial_capital=1000))
    service.run(BacktestRequest(symbol="AAPL", ma_period=2, initial_capital=1000))

    listing = service.list_results()
    assert [r["strategyName"] for r in listing["results"]] == ["MA2 Crossover", "MA3 Crossover"]
    assert service.list_results(symbol="MSFT") == {"results": []}
    assert len(service.list_results(limit=1)["results"]) == 1


def test_price_history_with_overlays(service):
    history = service.price_history("aapl", years=1, ma_periods=(3, 20))

    assert history["symbol"] == "AAPL"
    rows = history["data"]
    assert len(rows) == 10
    assert rows[0]["close"] == 12.0
    assert rows[-1]["close"] == 13.0
    assert set(rows[0]) == {"symbol", "date", "open", "high", "low", "close", "volume", "ma3", "ma20"}
    assert rows[1]["ma3"] is None
    assert rows[2]["ma3"] == pytest.approx(11.0)
    # Fewer rows than the period: the overlay is absent throughout
    assert all(r["ma20"] is None for r in rows)

    assert history["stats"] == {
        "totalRecords": 10,
        "startDate": rows[0]["date"],
        "endDate": "2024-06-27",
        "years": 1,
    }


def test_price_history_empty(service):
    assert service.price_history("NOPE") == {
        "symbol": "NOPE",
        "data": [],
        "message": "No historical data found. Please sync data first.",
        "needsSync": True,
    }
