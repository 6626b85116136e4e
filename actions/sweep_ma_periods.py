#!/usr/bin/env python3
"""
Sweep the moving-average period for one symbol.

**Purpose**: Runs the crossover backtest once per MA period over the same
stored price window and ranks the periods. All runs share one price series,
so differences come only from the period.

**Usage**:
    ```bash
    python actions/sweep_ma_periods.py --symbol AAPL
    python actions/sweep_ma_periods.py --symbol AAPL --periods 10,20,50,100,200 --years 5
    ```

**Outputs**:
  - CSV: `data/results/{symbol}_ma_period_sweep.csv`, one row per period.
  - Terminal: Periods ranked by total return.

**Warning**: The best period over one window is rarely the best over the
next. Treat the ranking as a sensitivity check, not a tuning result.
"""

import argparse
import sys
import time
from pathlib import Path

import pandas as pd

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.backtesting.engine import run_backtest
from src.backtesting.errors import BacktestError
from src.backtesting.service import compute_window
from src.config.settings import get_settings
from src.data.price_store import CsvPriceStore
from src.utils.logger import setup_logger
from src.utils.time import RealClock

DEFAULT_PERIODS = [5, 10, 20, 30, 50, 100, 200]


def parse_periods(raw: str) -> list[int]:
    periods = sorted({int(p) for p in raw.split(",") if p.strip()})
    if not periods:
        raise ValueError("At least one period is required")
    return periods


def run_sweep(prices, periods: list[int], initial_capital: float) -> pd.DataFrame:
    """
    One backtest per period over the same series.

    Periods the series is too short for (or any other engine error) are kept
    as rows with an `error` and no metrics.
    """
    rows = []
    for period in periods:
        try:
            result = run_backtest(prices, ma_period=period, initial_capital=initial_capital)
        except BacktestError as e:
            rows.append({'ma_period': period, 'error': str(e)})
            continue

        s = result.summary
        rows.append({
            'ma_period': period,
            'final_value': s.final_value,
            'total_return_pct': s.total_return_pct,
            'buy_hold_return_pct': s.buy_hold_return_pct,
            'outperformance_pct': result.outperformance_pct,
            'max_drawdown_pct': s.max_drawdown_pct,
            'sharpe_ratio': s.sharpe_ratio,
            'total_trades': s.total_trades,
            'win_rate_pct': s.win_rate_pct,
            'error': None,
        })
    return pd.DataFrame(rows)


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Sweep the MA period for one symbol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--symbol", type=str, required=True, help="Ticker symbol, e.g. AAPL.")
    parser.add_argument("--periods", type=str, default=",".join(str(p) for p in DEFAULT_PERIODS),
                        help="Comma-separated MA periods.")
    parser.add_argument("--years", type=int, default=settings.defaults.years,
                        help=f"Lookback window in years. Default: {settings.defaults.years}.")
    parser.add_argument("--initial-capital", type=float, default=settings.defaults.initial_capital)
    args = parser.parse_args(argv)

    setup_logger(level=settings.logging.level, log_dir=settings.logging.log_dir)
    symbol = args.symbol.strip().upper()

    print("=" * 80)
    print(f"MA Period Sweep: {symbol}")
    print("=" * 80)
    print()

    print("Step 1: Loading stored prices...")
    window_start, window_end = compute_window(RealClock().now(), args.years)
    store = CsvPriceStore(settings.storage.raw_data_dir)
    try:
        prices = store.get_close_prices(symbol, window_start.date(), window_end.date())
    except BacktestError as e:
        print(f"  ✗ {e}")
        return 1
    if not prices:
        print(f"  ✗ No data for {symbol}. Run: python actions/sync_price_history.py --symbols {symbol}")
        return 1
    print(f"  ✓ Loaded {len(prices)} closes ({prices[0].date} to {prices[-1].date})")
    print()

    periods = parse_periods(args.periods)
    print(f"Step 2: Running {len(periods)} backtests...")
    t0 = time.time()
    results_df = run_sweep(prices, periods, args.initial_capital)
    print(f"  ✓ Done in {time.time() - t0:.1f}s")
    print()

    failed = results_df[results_df['error'].notna()]
    for row in failed.itertuples():
        print(f"  ⚠ MA{row.ma_period}: {row.error}")

    print("Step 3: Saving results...")
    output_path = repo_root / "data" / "results" / f"{symbol.lower()}_ma_period_sweep.csv"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    results_df.to_csv(output_path, index=False)
    print(f"  ✓ Saved: {output_path}")
    print()

    ranked = results_df[results_df['error'].isna()].sort_values('total_return_pct', ascending=False)
    if ranked.empty:
        print("No period had enough data.")
        return 1

    print(f"{'MA':>5} {'Return':>10} {'Buy&Hold':>10} {'MaxDD':>9} {'Trades':>7} {'WinRate':>8}")
    print("-" * 54)
    for row in ranked.itertuples():
        print(
            f"{row.ma_period:>5} {row.total_return_pct:>9.2f}% {row.buy_hold_return_pct:>9.2f}% "
            f"{row.max_drawdown_pct:>8.2f}% {int(row.total_trades):>7} {row.win_rate_pct:>7.2f}%"
        )
    print("-" * 54)
    return 0


if __name__ == "__main__":
    sys.exit(main())
