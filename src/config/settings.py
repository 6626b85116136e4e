"""
Configuration settings for the backtester.

**Conceptual**: Strongly-typed configuration objects loaded from environment
variables (and a .env file at the project root, via python-dotenv). Every
value is validated when the object is built, so a typo in .env fails at
startup with a clear message instead of halfway through a sync.

**Subsystems**:
  - FinnhubSettings: market-data API credentials, request spacing, cache TTLs.
    Optional: without a key the sync pipeline falls back to synthetic data.
  - StorageSettings: where raw price CSVs and backtest results live.
  - BacktestDefaults: default request parameters (years, MA period, capital).
  - LoggingSettings: log level and optional log directory.

**Teaching note**: Secrets (FINNHUB_API_KEY) belong in .env, which stays out
of version control. Non-secret defaults live in the dataclasses below so the
code runs with no .env at all.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load .env from project root; real environment variables take precedence
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw}")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw}")


@dataclass(frozen=True)
class FinnhubSettings:
    """
    Configuration for the Finnhub market-data API.

    **Rate limiting**: The free tier allows about 60 calls per minute.
    `min_sleep_seconds` spaces requests out; the cache TTLs keep repeated
    requests for the same candles or quote off the network entirely.

    Attributes:
        api_key: Finnhub API token. REQUIRED - raises ValueError if empty.
        base_url: API base URL (default: https://finnhub.io/api/v1).
        min_sleep_seconds: Minimum spacing between requests (default 0.1).
        timeout_seconds: HTTP request timeout (default 30).
        cache_ttl_seconds: Lifetime of cached candle responses (default 30).
        quote_cache_ttl_seconds: Lifetime of cached quotes (default 15).
    """
    api_key: str
    base_url: str = "https://finnhub.io/api/v1"
    min_sleep_seconds: float = 0.1
    timeout_seconds: int = 30
    cache_ttl_seconds: float = 30.0
    quote_cache_ttl_seconds: float = 15.0

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.api_key:
            raise ValueError(
                "FINNHUB_API_KEY is required but not set. "
                "Please set it in your .env file or environment variables. "
                "Get a free API key at https://finnhub.io/register"
            )
        if self.min_sleep_seconds < 0:
            raise ValueError(
                f"min_sleep_seconds must be non-negative, got: {self.min_sleep_seconds}"
            )
        if self.cache_ttl_seconds <= 0 or self.quote_cache_ttl_seconds <= 0:
            raise ValueError("Finnhub cache TTLs must be positive")

    @classmethod
    def from_env(cls) -> "FinnhubSettings":
        """
        Load Finnhub settings from environment variables.

        **Environment variables**:
          - FINNHUB_API_KEY (required)
          - FINNHUB_BASE_URL (default "https://finnhub.io/api/v1")
          - FINNHUB_MIN_SLEEP_SECONDS (default 0.1)
          - FINNHUB_TIMEOUT_SECONDS (default 30)
          - FINNHUB_CACHE_TTL_SECONDS (default 30)
          - FINNHUB_QUOTE_CACHE_TTL_SECONDS (default 15)

        Raises:
            ValueError: If FINNHUB_API_KEY is missing or a number is malformed.
        """
        return cls(
            api_key=os.getenv("FINNHUB_API_KEY", ""),
            base_url=os.getenv("FINNHUB_BASE_URL", "https://finnhub.io/api/v1"),
            min_sleep_seconds=_env_float("FINNHUB_MIN_SLEEP_SECONDS", "0.1"),
            timeout_seconds=_env_int("FINNHUB_TIMEOUT_SECONDS", "30"),
            cache_ttl_seconds=_env_float("FINNHUB_CACHE_TTL_SECONDS", "30"),
            quote_cache_ttl_seconds=_env_float("FINNHUB_QUOTE_CACHE_TTL_SECONDS", "15"),
        )


@dataclass(frozen=True)
class StorageSettings:
    """
    File locations.

    Attributes:
        raw_data_dir: Directory of per-symbol raw price CSVs (default data/raw).
        results_path: CSV of persisted backtest results
                      (default data/results/backtest_results.csv).
    """
    raw_data_dir: Path = PROJECT_ROOT / "data" / "raw"
    results_path: Path = PROJECT_ROOT / "data" / "results" / "backtest_results.csv"

    @classmethod
    def from_env(cls) -> "StorageSettings":
        """Read PRICE_DATA_DIR and BACKTEST_RESULTS_PATH (relative paths resolve against the project root)."""
        raw_dir = os.getenv("PRICE_DATA_DIR")
        results = os.getenv("BACKTEST_RESULTS_PATH")
        return cls(
            raw_data_dir=PROJECT_ROOT / raw_dir if raw_dir else cls.raw_data_dir,
            results_path=PROJECT_ROOT / results if results else cls.results_path,
        )


@dataclass(frozen=True)
class BacktestDefaults:
    """
    Defaults applied when a request omits a field.

    Attributes:
        years: Lookback window for a backtest (default 3).
        ma_period: Moving-average window in trading days (default 30).
        initial_capital: Starting cash (default 100,000).
        sync_years: History length fetched by a sync (default 7).
        results_limit: Rows returned by the results listing (default 20).
    """
    years: int = 3
    ma_period: int = 30
    initial_capital: float = 100000.0
    sync_years: int = 7
    results_limit: int = 20

    def __post_init__(self):
        if self.years <= 0 or self.sync_years <= 0:
            raise ValueError("BACKTEST_DEFAULT_YEARS and BACKTEST_DEFAULT_SYNC_YEARS must be positive")
        if self.ma_period <= 0:
            raise ValueError(f"BACKTEST_DEFAULT_MA_PERIOD must be positive, got: {self.ma_period}")
        if self.initial_capital <= 0:
            raise ValueError(
                f"BACKTEST_DEFAULT_INITIAL_CAPITAL must be positive, got: {self.initial_capital}"
            )
        if self.results_limit <= 0:
            raise ValueError(f"BACKTEST_DEFAULT_RESULTS_LIMIT must be positive, got: {self.results_limit}")

    @classmethod
    def from_env(cls) -> "BacktestDefaults":
        """Read the BACKTEST_DEFAULT_* variables."""
        return cls(
            years=_env_int("BACKTEST_DEFAULT_YEARS", "3"),
            ma_period=_env_int("BACKTEST_DEFAULT_MA_PERIOD", "30"),
            initial_capital=_env_float("BACKTEST_DEFAULT_INITIAL_CAPITAL", "100000"),
            sync_years=_env_int("BACKTEST_DEFAULT_SYNC_YEARS", "7"),
            results_limit=_env_int("BACKTEST_DEFAULT_RESULTS_LIMIT", "20"),
        )


@dataclass(frozen=True)
class LoggingSettings:
    """
    Attributes:
        level: Logging level name (default "INFO").
        log_dir: Directory for daily log files; None logs to console only.
    """
    level: str = "INFO"
    log_dir: Optional[Path] = None

    def __post_init__(self):
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got: {self.level}")

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        log_dir = os.getenv("LOG_DIR")
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=PROJECT_ROOT / log_dir if log_dir else None,
        )


@dataclass(frozen=True)
class Settings:
    """
    Top-level settings object aggregating every subsystem.

    Attributes:
        finnhub: Finnhub settings, None when FINNHUB_API_KEY is not set.
        storage: File locations.
        defaults: Default request parameters.
        logging: Logging configuration.
    """
    finnhub: Optional[FinnhubSettings] = None
    storage: StorageSettings = StorageSettings()
    defaults: BacktestDefaults = BacktestDefaults()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def from_env(cls, require_finnhub: bool = False) -> "Settings":
        """
        Load all settings from the environment.

        Finnhub is optional by default: sync falls back to synthetic data
        without it. Pass require_finnhub=True to insist on a key.

        Raises:
            ValueError: If any value is invalid, or require_finnhub=True and
                        FINNHUB_API_KEY is missing.
        """
        finnhub_settings = None
        if os.getenv("FINNHUB_API_KEY"):
            finnhub_settings = FinnhubSettings.from_env()
        elif require_finnhub:
            raise ValueError(
                "Finnhub settings are required but FINNHUB_API_KEY is not set. "
                "Get a free API key at https://finnhub.io/register"
            )

        return cls(
            finnhub=finnhub_settings,
            storage=StorageSettings.from_env(),
            defaults=BacktestDefaults.from_env(),
            logging=LoggingSettings.from_env(),
        )


_default_settings: Optional[Settings] = None


def get_settings(require_finnhub: bool = False) -> Settings:
    """
    Get the global settings singleton, loading it on first call.

    Tests can bypass this by building Settings objects directly, or call
    reset_settings() after changing the environment.

    Raises:
        ValueError: If require_finnhub=True and Finnhub is not configured.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env(require_finnhub=require_finnhub)

    if require_finnhub and _default_settings.finnhub is None:
        raise ValueError(
            "Finnhub settings are required but not configured. "
            "Please set FINNHUB_API_KEY in your .env file. "
            "Get a free API key at https://finnhub.io/register"
        )

    return _default_settings


def reset_settings():
    """Clear the cached settings singleton (for tests)."""
    global _default_settings
    _default_settings = None
