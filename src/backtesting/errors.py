"""
Error taxonomy for backtest runs.

**Conceptual**: A backtest either completes (including the forced end-of-run
liquidation) or fails before the wallet is touched. The failures fall into
three kinds, and callers need to tell them apart:
  - ConfigurationError: the request itself is invalid (bad MA period,
    non-positive capital, missing symbol).
  - InsufficientDataError: the request is valid, but the price store does not
    hold enough history for the window. Usually fixed by syncing data.
  - UpstreamDataError: the price source failed or returned data that cannot
    be used (unreadable file, non-positive closes, unsorted dates).

All three derive from BacktestError so a caller can catch the whole family in
one place. The engine never catches these; the service layer maps them to
status codes and response payloads.
"""


class BacktestError(Exception):
    """Base class for every error raised by the backtest engine."""
    pass


class ConfigurationError(BacktestError):
    """
    Raised when backtest parameters are invalid.

    Examples: ma_period <= 0, ma_period longer than the price series,
    initial_capital <= 0, empty symbol.
    """
    pass


class InsufficientDataError(BacktestError):
    """
    Raised when the price series is shorter than the moving-average period.

    **Conceptual**: The strategy cannot produce a single signal until
    `required` closes are available. Rather than silently shrinking the window
    or the period, the run is refused and the caller is told how much data was
    found so it can prompt a sync.

    Attributes:
        found: Number of price points returned for the window.
        required: Number of price points the MA period needs.
    """

    def __init__(self, found: int, required: int):
        self.found = found
        self.required = required
        super().__init__(
            f"Not enough data. Need at least {required} data points, "
            f"found {found}. Please sync data first."
        )


class UpstreamDataError(BacktestError):
    """
    Raised when the price-series provider fails or returns unusable data.

    Distinct from InsufficientDataError: this means "we could not get usable
    prices at all", not "the strategy has too few days to trade".
    """
    pass
