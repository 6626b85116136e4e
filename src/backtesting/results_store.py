"""
Durable store of past backtest results.

Each successful run appends one immutable row to a CSV file (by default
data/results/backtest_results.csv). Rows are never updated; the listing reads
them back newest first, optionally filtered to one symbol.

**Columns**: id, symbol, strategy_name, start_date, end_date,
initial_capital, final_value, total_return, total_trades, winning_trades,
losing_trades, max_drawdown, sharpe_ratio, trades_json, created_at.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from pathlib import Path

import pandas as pd

from src.backtesting.engine import BacktestResult
from src.backtesting.payloads import format_date, format_pct, trade_to_payload
from src.utils.time import Clock, RealClock

logger = logging.getLogger(__name__)

RESULTS_COLUMNS = [
    'id',
    'symbol',
    'strategy_name',
    'start_date',
    'end_date',
    'initial_capital',
    'final_value',
    'total_return',
    'total_trades',
    'winning_trades',
    'losing_trades',
    'max_drawdown',
    'sharpe_ratio',
    'trades_json',
    'created_at',
]


@dataclass(frozen=True)
class BacktestRecord:
    """
    One persisted backtest result.

    `id` and `created_at` are assigned by the store on save. `total_return`
    and `max_drawdown` are percentages as numbers; `trades_json` is the trade
    ledger serialized with the same keys as the API payload.
    """
    symbol: str
    strategy_name: str
    start_date: datetime
    end_date: datetime
    initial_capital: float
    final_value: float
    total_return: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    max_drawdown: float
    sharpe_ratio: float | None
    trades_json: str
    id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_result(
        cls,
        result: BacktestResult,
        symbol: str,
        window_start: datetime,
        window_end: datetime,
    ) -> "BacktestRecord":
        """Build an unsaved record from a finished run."""
        summary = result.summary
        return cls(
            symbol=symbol.upper(),
            strategy_name=result.strategy.short_name,
            start_date=window_start,
            end_date=window_end,
            initial_capital=result.params.initial_capital,
            final_value=summary.final_value,
            total_return=summary.total_return_pct,
            total_trades=summary.total_trades,
            winning_trades=summary.winning_trades,
            losing_trades=summary.losing_trades,
            max_drawdown=summary.max_drawdown_pct,
            sharpe_ratio=summary.sharpe_ratio,
            trades_json=json.dumps([trade_to_payload(t) for t in result.trades]),
        )

    @property
    def trades(self) -> list[dict]:
        """The stored ledger, decoded."""
        return json.loads(self.trades_json)

    def to_payload(self) -> dict:
        """Listing view: camelCase keys, percentages as strings, no ledger."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "strategyName": self.strategy_name,
            "startDate": format_date(self.start_date),
            "endDate": format_date(self.end_date),
            "initialCapital": self.initial_capital,
            "finalValue": self.final_value,
            "totalReturn": format_pct(self.total_return),
            "totalTrades": self.total_trades,
            "winningTrades": self.winning_trades,
            "losingTrades": self.losing_trades,
            "maxDrawdown": format_pct(self.max_drawdown),
            "sharpeRatio": self.sharpe_ratio,
            "createdAt": format_date(self.created_at) if self.created_at else None,
        }


def _row_to_record(row: pd.Series) -> BacktestRecord:
    sharpe = row['sharpe_ratio']
    return BacktestRecord(
        id=int(row['id']),
        symbol=str(row['symbol']),
        strategy_name=str(row['strategy_name']),
        start_date=datetime.fromisoformat(str(row['start_date'])),
        end_date=datetime.fromisoformat(str(row['end_date'])),
        initial_capital=float(row['initial_capital']),
        final_value=float(row['final_value']),
        total_return=float(row['total_return']),
        total_trades=int(row['total_trades']),
        winning_trades=int(row['winning_trades']),
        losing_trades=int(row['losing_trades']),
        max_drawdown=float(row['max_drawdown']),
        sharpe_ratio=None if pd.isna(sharpe) else float(sharpe),
        trades_json=str(row['trades_json']),
        created_at=datetime.fromisoformat(str(row['created_at'])),
    )


class BacktestResultStore:
    """
    Append-only CSV of backtest results.

    Ids are sequential integers starting at 1. The engine never reads this
    store; only the listing does.
    """

    def __init__(self, path: Path | str, clock: Clock | None = None):
        self.path = Path(path)
        self.clock = clock or RealClock()

    def _read(self) -> pd.DataFrame:
        if not self.path.exists():
            return pd.DataFrame(columns=RESULTS_COLUMNS)
        return pd.read_csv(
            self.path,
            dtype={'symbol': str, 'trades_json': str},
            float_precision='round_trip',
        )

    def save(self, record: BacktestRecord) -> BacktestRecord:
        """
        Append a record and return it with `id` and `created_at` filled in.
        """
        existing = self._read()
        next_id = 1 if existing.empty else int(existing['id'].max()) + 1

        saved = replace(record, id=next_id, created_at=self.clock.now())

        row = asdict(saved)
        for key in ('start_date', 'end_date', 'created_at'):
            row[key] = format_date(row[key])
        if row['sharpe_ratio'] is not None and not math.isfinite(row['sharpe_ratio']):
            row['sharpe_ratio'] = None

        self.path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame([row], columns=RESULTS_COLUMNS).to_csv(
            self.path,
            mode='a',
            header=not self.path.exists(),
            index=False,
        )
        logger.info("Saved backtest result %d for %s (%s)", next_id, saved.symbol, saved.strategy_name)
        return saved

    def list_recent(self, symbol: str | None = None, limit: int = 20) -> list[BacktestRecord]:
        """
        Most recent records, newest first.

        Args:
            symbol: Optional symbol filter (case-insensitive).
            limit: Maximum number of records returned.
        """
        df = self._read()
        if df.empty:
            return []

        if symbol:
            df = df[df['symbol'].str.upper() == symbol.upper()]

        # Later rows win ties on created_at
        df = df.assign(_created=pd.to_datetime(df['created_at'], utc=True, format='ISO8601'))
        df = df.iloc[::-1].sort_values('_created', ascending=False, kind='stable')

        return [_row_to_record(row) for _, row in df.head(limit).iterrows()]
