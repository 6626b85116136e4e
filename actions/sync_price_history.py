#!/usr/bin/env python3
"""
Sync daily price history into data/raw/ for one or more symbols.

**Purpose**: Fill the price store before running backtests. For each symbol
the existing CSV is replaced with a fresh window of `--years` years ending
today. Finnhub is used when FINNHUB_API_KEY is set; otherwise (or when
Finnhub has no candles for the symbol) a synthetic series anchored on the
current price is generated and reported as such.

**Usage**:
    From project root:
    ```bash
    # Sync AAPL and MSFT (7 years by default)
    python actions/sync_price_history.py --symbols AAPL,MSFT

    # Force synthetic data with a fixed seed (offline, reproducible)
    python actions/sync_price_history.py --symbols DEMO --synthetic --seed 42

    # Show what the store holds
    python actions/sync_price_history.py --status
    python actions/sync_price_history.py --status --symbols AAPL
    ```
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path so we can import src modules
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.config.settings import get_settings
from src.data.price_store import CsvPriceStore
from src.data.schemas import SchemaValidationError
from src.data.sync import PriceHistorySyncer
from src.utils.logger import setup_logger
from src.venues.finnhub_data_provider import FinnhubDataProvider


def parse_symbols(raw: str | None) -> list[str]:
    """Split a comma-separated symbol list, dropping blanks and upper-casing."""
    if not raw:
        return []
    return [s.strip().upper() for s in raw.split(",") if s.strip()]


def print_status(syncer: PriceHistorySyncer, symbols: list[str]) -> None:
    rows = [syncer.status(s) for s in symbols] if symbols else syncer.status_all()["syncedSymbols"]
    if not rows:
        print("No symbols synced yet. Run with --symbols to sync some.")
        return

    print(f"{'Symbol':<10}{'Records':>10}  {'From':<12}{'To':<12}")
    print("-" * 46)
    for row in rows:
        date_range = row["dateRange"]
        print(
            f"{row['symbol']:<10}{row['recordCount']:>10}  "
            f"{date_range['from'] or '-':<12}{date_range['to'] or '-':<12}"
        )


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Sync daily price history into data/raw/",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--symbols", type=str, default=None, help="Comma-separated tickers, e.g. AAPL,MSFT.")
    parser.add_argument(
        "--years",
        type=int,
        default=settings.defaults.sync_years,
        help=f"Years of history to sync. Default: {settings.defaults.sync_years}.",
    )
    parser.add_argument("--synthetic", action="store_true", help="Skip Finnhub and generate synthetic data.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for synthetic data.")
    parser.add_argument("--status", action="store_true", help="Show stored history instead of syncing.")
    parser.add_argument("--data-dir", type=str, default=None, help="Override PRICE_DATA_DIR.")
    args = parser.parse_args(argv)

    setup_logger(level=settings.logging.level, log_dir=settings.logging.log_dir)

    store = CsvPriceStore(args.data_dir or settings.storage.raw_data_dir)
    symbols = parse_symbols(args.symbols)

    provider = None
    if settings.finnhub is not None and not args.synthetic:
        provider = FinnhubDataProvider(settings.finnhub)

    syncer = PriceHistorySyncer(store, provider=provider, synthetic_seed=args.seed)

    try:
        if args.status:
            print_status(syncer, symbols)
            return 0

        if not symbols:
            parser.error("--symbols is required unless --status is given")

        if provider is None:
            print("Finnhub not configured (or --synthetic): generating synthetic data.")

        failures = 0
        for symbol in symbols:
            try:
                report = syncer.sync(symbol, years=args.years)
            except (ValueError, SchemaValidationError, OSError) as e:
                print(f"  ✗ {symbol}: {e}")
                failures += 1
                continue
            print(
                f"  ✓ {report.symbol}: {report.records_inserted} records "
                f"({report.start_date} to {report.end_date}, source: {report.data_source})"
            )
        return 1 if failures else 0
    finally:
        if provider is not None:
            provider.close()


if __name__ == "__main__":
    sys.exit(main())
