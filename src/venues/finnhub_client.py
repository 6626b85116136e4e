"""
HTTP client for the Finnhub API.

**Conceptual**: A thin wrapper around HTTP requests to Finnhub's REST API.
It handles authentication, request spacing, response caching, status-code
mapping and JSON parsing. It does NOT turn responses into DataFrames; that is
FinnhubDataProvider's job.

**Endpoints used**:
  - /stock/candle: daily OHLCV history
        {"c": [...], "h": [...], "l": [...], "o": [...], "t": [...], "v": [...],
         "s": "ok" | "no_data"}
  - /quote: latest price
        {"c": current, "d": change, "dp": change %, "h": high, "l": low,
         "o": open, "pc": previous close, "t": timestamp}

**Rate limiting**: Every request goes through an injected Throttle (100 ms
minimum spacing by default) and successful responses are remembered in
injected TTLCaches (30 s for candles, 15 s for quotes). Identical requests
inside the TTL never reach the network.
"""

import logging
from typing import Any, Dict

import requests

from src.config.settings import FinnhubSettings
from src.venues.quote_cache import Throttle, TTLCache

logger = logging.getLogger(__name__)


class FinnhubClientError(Exception):
    """
    Base exception for Finnhub API client errors.

    Catch this to handle every Finnhub failure in one place, or catch a
    subclass for fine-grained handling.
    """
    pass


class FinnhubAuthenticationError(FinnhubClientError):
    """
    Raised on 401/403: the API key is invalid, expired or missing.

    **Recovery**: Check FINNHUB_API_KEY in .env. Get a free key at
    https://finnhub.io/register
    """
    pass


class FinnhubSymbolNotFoundError(FinnhubClientError):
    """
    Raised when Finnhub answers status="no_data" for a symbol/date range.
    """
    pass


class FinnhubRateLimitError(FinnhubClientError):
    """
    Raised on 429 Too Many Requests (free tier: 60 calls/minute).

    **Recovery**: Increase FINNHUB_MIN_SLEEP_SECONDS or wait a moment.
    """
    pass


class FinnhubServerError(FinnhubClientError):
    """Raised when Finnhub returns a 5xx status."""
    pass


class FinnhubClient:
    """
    Thin HTTP client for the Finnhub API.

    **Responsibilities**:
      - Build authenticated request URLs.
      - Space requests with the Throttle.
      - Serve repeated requests from the TTL caches.
      - Map HTTP failures to FinnhubClientError subclasses.

    **Example usage**:
        >>> settings = FinnhubSettings.from_env()
        >>> with FinnhubClient(settings) as client:
        ...     quote = client.get_quote("AAPL")
        ...     candles = client.get_candles("AAPL", "D", 1609459200, 1640995200)
    """

    def __init__(
        self,
        settings: FinnhubSettings,
        candle_cache: TTLCache | None = None,
        quote_cache: TTLCache | None = None,
        throttle: Throttle | None = None,
    ):
        """
        Args:
            settings: Finnhub configuration (API key, base URL, timeouts, TTLs).
            candle_cache: Cache for candle responses; built from settings if None.
            quote_cache: Cache for quote responses; built from settings if None.
            throttle: Request spacing; built from settings if None.
        """
        self.settings = settings
        self.session = requests.Session()
        # An empty TTLCache is falsy, so test against None
        self.candle_cache = candle_cache if candle_cache is not None else TTLCache(settings.cache_ttl_seconds)
        self.quote_cache = quote_cache if quote_cache is not None else TTLCache(settings.quote_cache_ttl_seconds)
        self.throttle = throttle if throttle is not None else Throttle(settings.min_sleep_seconds)

    def _request(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        GET `path` with the API token attached and return the parsed JSON.

        Raises:
            FinnhubAuthenticationError: 401/403.
            FinnhubRateLimitError: 429.
            FinnhubServerError: 5xx.
            FinnhubClientError: Timeouts, connection errors, other 4xx,
                                unparseable JSON.
        """
        self.throttle.wait()

        url = f"{self.settings.base_url}{path}"
        query = {**params, "token": self.settings.api_key}

        try:
            response = self.session.get(url, params=query, timeout=self.settings.timeout_seconds)
        except requests.exceptions.Timeout:
            raise FinnhubClientError(
                f"Request to Finnhub API timed out after {self.settings.timeout_seconds}s. "
                f"URL: {url}"
            )
        except requests.exceptions.ConnectionError as e:
            raise FinnhubClientError(f"Connection error when connecting to Finnhub API: {e}")
        except requests.exceptions.RequestException as e:
            raise FinnhubClientError(f"Unexpected error during Finnhub API request: {e}")

        if response.status_code in (401, 403):
            raise FinnhubAuthenticationError(
                f"Authentication failed (status {response.status_code}). "
                f"Check that FINNHUB_API_KEY is set correctly."
            )
        elif response.status_code == 429:
            raise FinnhubRateLimitError(
                "Rate limit exceeded (status 429). Please wait a moment and try again."
            )
        elif response.status_code >= 500:
            raise FinnhubServerError(
                f"Finnhub server error (status {response.status_code}). Retry later."
            )
        elif response.status_code >= 400:
            raise FinnhubClientError(
                f"Finnhub API error (status {response.status_code}). Response: {response.text}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise FinnhubClientError(
                f"Failed to parse JSON response from Finnhub: {e}. Response text: {response.text}"
            )

    def get_candles(
        self,
        symbol: str,
        resolution: str,
        from_timestamp: int,
        to_timestamp: int,
    ) -> Dict[str, Any]:
        """
        Fetch OHLCV candles for a symbol.

        Args:
            symbol: Ticker symbol (upper-cased before sending).
            resolution: Candle resolution; "D" for daily.
            from_timestamp: Start, Unix seconds.
            to_timestamp: End, Unix seconds.

        Returns:
            Dict with keys c, h, l, o, t, v, s (s == "ok").

        Raises:
            FinnhubSymbolNotFoundError: Status "no_data".
            FinnhubClientError: Any other failure (see `_request`).
        """
        symbol = symbol.upper()
        cache_key = ("candles", symbol, resolution, from_timestamp, to_timestamp)
        cached = self.candle_cache.get(cache_key)
        if cached is not None:
            logger.debug("Candle cache hit for %s", symbol)
            return cached

        data = self._request(
            "/stock/candle",
            {"symbol": symbol, "resolution": resolution, "from": from_timestamp, "to": to_timestamp},
        )

        status = data.get('s', '')
        if status == 'no_data':
            raise FinnhubSymbolNotFoundError(
                f"No data available for symbol '{symbol}' in requested date range. "
                f"Verify symbol spelling and date range."
            )
        elif status != 'ok':
            raise FinnhubClientError(f"Unexpected status from Finnhub API: '{status}'. Response: {data}")

        self.candle_cache.set(cache_key, data)
        return data

    def get_quote(self, symbol: str) -> Dict[str, Any]:
        """
        Fetch the latest quote for a symbol.

        Returns:
            Dict with keys c, d, dp, h, l, o, pc, t. Finnhub answers unknown
            symbols with c == 0 rather than an error status.

        Raises:
            FinnhubClientError: On any failure (see `_request`).
        """
        symbol = symbol.upper()
        cache_key = ("quote", symbol)
        cached = self.quote_cache.get(cache_key)
        if cached is not None:
            logger.debug("Quote cache hit for %s", symbol)
            return cached

        data = self._request("/quote", {"symbol": symbol})
        self.quote_cache.set(cache_key, data)
        return data

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
