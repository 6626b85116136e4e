#!/usr/bin/env python3
"""
Run the moving-average crossover backtest for one symbol and save results.

**Purpose**: This script shows how the pieces fit together:
  1. Load stored daily closes for the symbol (sync them first with
     actions/sync_price_history.py).
  2. Run the MA crossover strategy through the paper broker.
  3. Print the headline statistics and the trade ledger.
  4. Save the chart trace, ledger, summary and a plot to data/results/, and
     append the run to the backtest results store.

**Usage**:
    From project root:
    ```bash
    # 3 years of AAPL with a 30-day MA and $100,000 (the defaults)
    python actions/run_ma_crossover_backtest.py --symbol AAPL

    # Custom window, MA period and capital; don't persist the run
    python actions/run_ma_crossover_backtest.py --symbol MSFT --years 5 \\
        --ma-period 50 --initial-capital 25000 --no-save
    ```

**Outputs** (saved to data/results/):
  - {symbol}_ma{n}_chart_data.csv: One row per trading day (price, MA,
    position, cash, portfolio value, signal, drawdown).
  - {symbol}_ma{n}_trades.csv: The trade ledger.
  - {symbol}_ma{n}_summary.json: The full response payload minus the trace.
  - {symbol}_ma{n}_backtest.png: Price vs MA, and portfolio value.
"""

import argparse
import json
import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import pandas as pd

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.backtesting.errors import ConfigurationError
from src.backtesting.results_store import BacktestResultStore
from src.backtesting.service import BacktestErr, BacktestRequest, BacktestService
from src.config.settings import get_settings
from src.data.io import write_normalized_csv
from src.data.price_store import CsvPriceStore
from src.utils.logger import setup_logger


def print_report(payload: dict) -> None:
    results = payload["results"]
    period = payload["period"]

    print(f"  Strategy:          {payload['strategy']['name']}")
    print(f"  Window:            {period['startDate'][:10]} to {period['endDate'][:10]} "
          f"({period['tradingDays']} trading days)")
    print("-" * 80)
    print(f"  Initial Capital:   ${results['initialCapital']:>14,.2f}")
    print(f"  Final Value:       ${results['finalValue']:>14,.2f}")
    print(f"  Total Return:      {results['totalReturn']:>15}")
    print(f"  Buy & Hold Return: {results['buyHoldReturn']:>15}")
    print(f"  Outperformance:    {results['outperformance']:>15}")
    print(f"  Max Drawdown:      {results['maxDrawdown']:>15}")
    sharpe = results['sharpeRatio']
    print(f"  Sharpe Ratio:      {sharpe:>15.2f}" if sharpe is not None else f"  Sharpe Ratio:      {'n/a':>15}")
    print(f"  Trades:            {results['totalTrades']:>15}")
    print(f"  Win Rate:          {results['winRate']:>15} "
          f"({results['winningTrades']}W / {results['losingTrades']}L)")
    print("-" * 80)


def print_trades(trades: list[dict]) -> None:
    if not trades:
        print("  No trades.")
        return
    for t in trades:
        print(
            f"  {t['date'][:10]}  {t['type'].upper():<4}  {t['shares']:>8} @ ${t['price']:>10,.2f}  "
            f"portfolio ${t['portfolioValue']:>14,.2f}  {t['signal']}"
        )


def plot_backtest(chart_df: pd.DataFrame, title: str, plot_path: Path) -> None:
    fig, (ax_price, ax_value) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

    ax_price.plot(chart_df['timestamp'], chart_df['price'], label='Close', linewidth=1.5)
    ax_price.plot(chart_df['timestamp'], chart_df['ma'], label='Moving Average', linewidth=1.5, alpha=0.8)

    buys = chart_df[chart_df['signal'] == 'BUY']
    sells = chart_df[chart_df['signal'] == 'SELL']
    ax_price.scatter(buys['timestamp'], buys['price'], marker='^', color='green', label='Buy', zorder=3)
    ax_price.scatter(sells['timestamp'], sells['price'], marker='v', color='red', label='Sell', zorder=3)
    ax_price.set_ylabel('Price ($)')
    ax_price.set_title(title)
    ax_price.legend()
    ax_price.grid(True, alpha=0.3)

    ax_value.plot(chart_df['timestamp'], chart_df['portfolioValue'], label='Portfolio Value', linewidth=2)
    ax_value.set_xlabel('Date')
    ax_value.set_ylabel('Value ($)')
    ax_value.legend()
    ax_value.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(plot_path, dpi=150)
    plt.close(fig)


def save_outputs(payload: dict, results_dir: Path, make_plot: bool) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    stem = f"{payload['symbol'].lower()}_ma{payload['strategy']['maPeriod']}"

    chart_df = pd.DataFrame(payload["chartData"]).rename(columns={'date': 'timestamp'})
    chart_path = results_dir / f"{stem}_chart_data.csv"
    write_normalized_csv(chart_df, chart_path)
    print(f"  ✓ Saved chart data: {chart_path}")

    trades_df = pd.DataFrame(
        payload["trades"],
        columns=['date', 'type', 'price', 'shares', 'value', 'portfolioValue', 'signal'],
    ).rename(columns={'date': 'timestamp'})
    trades_path = results_dir / f"{stem}_trades.csv"
    write_normalized_csv(trades_df, trades_path)
    print(f"  ✓ Saved trade ledger: {trades_path}")

    summary = {k: v for k, v in payload.items() if k != "chartData"}
    summary_path = results_dir / f"{stem}_summary.json"
    with open(summary_path, 'w') as f:
        json.dump(summary, f, indent=2)
    print(f"  ✓ Saved summary: {summary_path}")

    if make_plot:
        chart_df['timestamp'] = pd.to_datetime(chart_df['timestamp'])
        plot_path = results_dir / f"{stem}_backtest.png"
        plot_backtest(chart_df, f"{payload['strategy']['name']} on {payload['symbol']}", plot_path)
        print(f"  ✓ Saved plot: {plot_path}")


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    defaults = settings.defaults

    parser = argparse.ArgumentParser(
        description="Run the MA crossover backtest for one symbol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--symbol", type=str, required=True, help="Ticker symbol, e.g. AAPL.")
    parser.add_argument("--years", type=int, default=defaults.years,
                        help=f"Lookback window in years. Default: {defaults.years}.")
    parser.add_argument("--ma-period", type=int, default=defaults.ma_period,
                        help=f"Moving-average period in trading days. Default: {defaults.ma_period}.")
    parser.add_argument("--initial-capital", type=float, default=defaults.initial_capital,
                        help=f"Starting cash. Default: {defaults.initial_capital:,.0f}.")
    parser.add_argument("--no-save", action="store_true", help="Don't append the run to the results store.")
    parser.add_argument("--no-plot", action="store_true", help="Skip the PNG plot.")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Directory for report files. Default: data/results/.")
    args = parser.parse_args(argv)

    setup_logger(level=settings.logging.level, log_dir=settings.logging.log_dir)

    print("=" * 80)
    print(f"MA{args.ma_period} Crossover Backtest: {args.symbol.upper()}")
    print("=" * 80)
    print()

    # ========================================================================
    # Build the request and the service
    # ========================================================================
    try:
        request = BacktestRequest(
            symbol=args.symbol.strip().upper(),
            years=args.years,
            ma_period=args.ma_period,
            initial_capital=args.initial_capital,
        )
    except ConfigurationError as e:
        print(f"  ✗ {e}")
        return 2

    results_store = None if args.no_save else BacktestResultStore(settings.storage.results_path)
    service = BacktestService(
        price_store=CsvPriceStore(settings.storage.raw_data_dir),
        results_store=results_store,
    )

    # ========================================================================
    # Step 1: Run
    # ========================================================================
    print("Step 1: Running backtest...")
    outcome = service.run(request)

    if isinstance(outcome, BacktestErr):
        print(f"  ✗ {outcome.payload['error']}")
        if outcome.payload.get("needsSync"):
            print(f"    Run: python actions/sync_price_history.py --symbols {request.symbol}")
        return 1

    print(f"  ✓ {outcome.result.trading_days} trading days processed")
    print()

    # ========================================================================
    # Steps 2-3: Report
    # ========================================================================
    print("Step 2: Results:")
    print("-" * 80)
    print_report(outcome.payload)
    print()
    print("Step 3: Trade ledger:")
    print_trades(outcome.payload["trades"])
    print()

    # ========================================================================
    # Step 4: Save outputs
    # ========================================================================
    print("Step 4: Saving results...")
    results_dir = Path(args.output_dir) if args.output_dir else repo_root / "data" / "results"
    save_outputs(outcome.payload, results_dir, make_plot=not args.no_plot)
    if outcome.record is not None:
        print(f"  ✓ Stored run #{outcome.record.id} in {settings.storage.results_path}")
    print()

    print("=" * 80)
    print("Backtest complete!")
    print("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main())
