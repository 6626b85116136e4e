"""
Request-level entry point for backtests: validation, execution, persistence
and response shaping.

**Conceptual**: The engine speaks in exceptions and dataclasses. Callers at
the edge (actions, an HTTP handler) want a single value that says either
"here is the result" or "here is what went wrong, with a status code". The
service provides that as a tagged outcome:

    outcome = service.run(BacktestRequest.from_payload(body))
    if isinstance(outcome, BacktestOk):
        ... outcome.payload ...
    else:
        ... outcome.status_code, outcome.payload ...

**Error mapping**:
    ConfigurationError     -> 400 {error}
    InsufficientDataError  -> 400 {error, needsSync: true, found, required}
    UpstreamDataError      -> 502 {error}

The service also serves the two read-only views the dashboard needs: the
list of past results and the price history with moving-average overlays.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

import pandas as pd

from src.backtesting.engine import BacktestOrchestrator, BacktestResult
from src.backtesting.errors import (
    BacktestError,
    ConfigurationError,
    InsufficientDataError,
    UpstreamDataError,
)
from src.backtesting.payloads import build_backtest_payload, format_date
from src.backtesting.results_store import BacktestRecord, BacktestResultStore
from src.data.price_store import CsvPriceStore
from src.utils.math import compute_moving_average_simple
from src.utils.time import Clock, RealClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestRequest:
    """
    A validated backtest request.

    Attributes:
        symbol: Ticker symbol, upper-cased.
        years: Length of the lookback window ending today.
        ma_period: Moving-average window in trading days.
        initial_capital: Starting cash.
    """
    symbol: str
    years: int = 3
    ma_period: int = 30
    initial_capital: float = 100000.0

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ConfigurationError("Symbol is required")
        if self.years <= 0:
            raise ConfigurationError(f"years must be positive, got {self.years}")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BacktestRequest":
        """
        Build a request from a camelCase body `{symbol, years, maPeriod, initialCapital}`.

        Missing fields take the defaults (3 years, MA30, 100,000).

        Raises:
            ConfigurationError: Missing symbol or a field of the wrong type.
        """
        symbol = payload.get("symbol")
        if not symbol or not isinstance(symbol, str):
            raise ConfigurationError("Symbol is required")

        try:
            years = _as_int(payload.get("years", 3), "years")
            ma_period = _as_int(payload.get("maPeriod", 30), "maPeriod")
            initial_capital = float(payload.get("initialCapital", 100000))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid backtest request: {e}") from e

        return cls(
            symbol=symbol.strip().upper(),
            years=years,
            ma_period=ma_period,
            initial_capital=initial_capital,
        )


def _as_int(value: Any, field_name: str) -> int:
    """Accept ints and integral floats/strings; reject anything else."""
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    return int(number)


@dataclass(frozen=True)
class BacktestOk:
    """Successful run: the engine result plus its response payload."""
    result: BacktestResult
    payload: dict
    record: BacktestRecord | None = None


@dataclass(frozen=True)
class BacktestErr:
    """Failed run: the error, its HTTP-style status and the response payload."""
    error: BacktestError
    status_code: int
    payload: dict


BacktestOutcome = BacktestOk | BacktestErr


def error_outcome(error: BacktestError) -> BacktestErr:
    """Map an engine error to its status code and payload."""
    if isinstance(error, InsufficientDataError):
        return BacktestErr(
            error=error,
            status_code=400,
            payload={
                "error": str(error),
                "needsSync": True,
                "found": error.found,
                "required": error.required,
            },
        )
    if isinstance(error, ConfigurationError):
        return BacktestErr(error=error, status_code=400, payload={"error": str(error)})
    if isinstance(error, UpstreamDataError):
        return BacktestErr(error=error, status_code=502, payload={"error": str(error)})
    return BacktestErr(error=error, status_code=500, payload={"error": "Failed to run backtest"})


def compute_window(now: datetime, years: int) -> tuple[datetime, datetime]:
    """
    Lookback window ending at `now` and starting the same calendar day
    `years` earlier (Feb 29 falls back to Feb 28).
    """
    start = pd.Timestamp(now) - pd.DateOffset(years=years)
    return start.to_pydatetime(), now


class BacktestService:
    """
    Runs backtests for requests and serves the read-only views.

    Args:
        price_store: Source of stored price history.
        results_store: Where successful runs are persisted; None disables
                       persistence.
        clock: Time source for the lookback window.
    """

    def __init__(
        self,
        price_store: CsvPriceStore,
        results_store: BacktestResultStore | None = None,
        clock: Clock | None = None,
    ):
        self.price_store = price_store
        self.results_store = results_store
        self.clock = clock or RealClock()
        self.orchestrator = BacktestOrchestrator(price_store)

    def run(self, request: BacktestRequest) -> BacktestOutcome:
        """
        Run one backtest over the last `request.years` years.

        Engine errors are returned as BacktestErr, never raised. Successful
        runs are persisted when a results store is configured.
        """
        window_start, window_end = compute_window(self.clock.now(), request.years)

        try:
            result = self.orchestrator.run(
                symbol=request.symbol,
                window_start=window_start.date(),
                window_end=window_end.date(),
                ma_period=request.ma_period,
                initial_capital=request.initial_capital,
            )
        except BacktestError as e:
            logger.warning("Backtest for %s failed: %s", request.symbol, e)
            return error_outcome(e)

        payload = build_backtest_payload(result, request.symbol, request.years, window_start, window_end)

        record = None
        if self.results_store is not None:
            record = self.results_store.save(
                BacktestRecord.from_result(result, request.symbol, window_start, window_end)
            )

        return BacktestOk(result=result, payload=payload, record=record)

    def run_payload(self, payload: Mapping[str, Any]) -> BacktestOutcome:
        """Validate a camelCase request body, then run it."""
        try:
            request = BacktestRequest.from_payload(payload)
        except ConfigurationError as e:
            return error_outcome(e)
        return self.run(request)

    def list_results(self, symbol: str | None = None, limit: int = 20) -> dict:
        """Past results, newest first: `{results: [...]}`."""
        if self.results_store is None:
            return {"results": []}
        records = self.results_store.list_recent(symbol=symbol, limit=limit)
        return {"results": [r.to_payload() for r in records]}

    def price_history(
        self,
        symbol: str,
        years: int = 1,
        ma_periods: Sequence[int] = (),
    ) -> dict:
        """
        Stored OHLCV history for charting, with optional SMA overlays.

        **Functionally**:
          - Rows are oldest first: `{symbol, date, open, high, low, close,
            volume, ma<N>...}`; an overlay is None until it has N closes (so
            all None when the window holds fewer than N rows).
          - An empty window returns `{symbol, data: [], message, needsSync: true}`.

        Raises:
            ConfigurationError: If an overlay period is not a positive integer.
            UpstreamDataError: If the stored history can't be read.
        """
        window_start, window_end = compute_window(self.clock.now(), years)
        df = self.price_store.load_history(symbol, window_start.date(), window_end.date())

        if df.empty:
            return {
                "symbol": symbol.upper(),
                "data": [],
                "message": "No historical data found. Please sync data first.",
                "needsSync": True,
            }

        closes = df['closing_price'].astype(float).tolist()
        overlays = {}
        for period in ma_periods:
            if period > len(closes):
                overlays[f"ma{period}"] = [None] * len(closes)
            else:
                overlays[f"ma{period}"] = compute_moving_average_simple(closes, period)

        rows = []
        for i, bar in enumerate(df.itertuples(index=False)):
            row = {
                "symbol": symbol.upper(),
                "date": format_date(bar.timestamp.date()),
                "open": float(bar.open_price),
                "high": float(bar.high_price),
                "low": float(bar.low_price),
                "close": float(bar.closing_price),
                "volume": int(bar.volume),
            }
            for key, values in overlays.items():
                row[key] = values[i]
            rows.append(row)

        return {
            "symbol": symbol.upper(),
            "data": rows,
            "stats": {
                "totalRecords": len(rows),
                "startDate": rows[0]["date"],
                "endDate": rows[-1]["date"],
                "years": years,
            },
        }
