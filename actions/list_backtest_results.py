#!/usr/bin/env python3
"""
List past backtest runs from the results store, newest first.

**Usage**:
    From project root:
    ```bash
    python actions/list_backtest_results.py
    python actions/list_backtest_results.py --symbol AAPL --limit 5
    python actions/list_backtest_results.py --json
    ```
"""

import argparse
import json
import sys
from pathlib import Path

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.backtesting.results_store import BacktestResultStore
from src.backtesting.service import BacktestService
from src.config.settings import get_settings
from src.data.price_store import CsvPriceStore
from src.utils.logger import setup_logger


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="List past backtest runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--symbol", type=str, default=None, help="Only show runs for this symbol.")
    parser.add_argument("--limit", type=int, default=settings.defaults.results_limit,
                        help=f"Maximum runs to show. Default: {settings.defaults.results_limit}.")
    parser.add_argument("--json", action="store_true", help="Print the raw listing as JSON.")
    args = parser.parse_args(argv)

    setup_logger(level=settings.logging.level, log_dir=settings.logging.log_dir)

    service = BacktestService(
        price_store=CsvPriceStore(settings.storage.raw_data_dir),
        results_store=BacktestResultStore(settings.storage.results_path),
    )
    listing = service.list_results(symbol=args.symbol, limit=args.limit)

    if args.json:
        print(json.dumps(listing, indent=2))
        return 0

    if not listing["results"]:
        print("No backtest results stored yet.")
        return 0

    print(f"{'ID':>4}  {'Symbol':<8}{'Strategy':<18}{'Window':<25}{'Return':>10}{'Max DD':>10}{'Trades':>8}")
    print("-" * 83)
    for r in listing["results"]:
        window = f"{r['startDate'][:10]}..{r['endDate'][:10]}"
        print(
            f"{r['id']:>4}  {r['symbol']:<8}{r['strategyName']:<18}{window:<25}"
            f"{r['totalReturn']:>10}{r['maxDrawdown']:>10}{r['totalTrades']:>8}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
