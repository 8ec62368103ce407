"""Price lookup for read-side P/L display, with a short in-memory cache."""

import logging
import threading
import time
from decimal import Decimal
from typing import Callable, Optional

from config import settings
from integrations.market_data_protocol import MarketDataProvider

logger = logging.getLogger(__name__)


class PriceService:
    """Latest-price lookups backed by a pluggable MarketDataProvider.

    Prices (including misses) are cached per ticker for ``cache_ttl``
    seconds so a page of positions costs at most one provider call.
    """

    def __init__(
        self,
        provider: Optional[MarketDataProvider] = None,
        cache_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize with optional provider for dependency injection.

        Args:
            provider: Market data provider. If None, a YahooFinanceClient
                     is created on first use.
            cache_ttl: Cache lifetime in seconds; defaults to
                      settings.PRICE_CACHE_TTL_SECONDS.
            clock: Monotonic time source (overridable in tests).
        """
        self._provider = provider
        self._cache_ttl = settings.PRICE_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        self._clock = clock
        self._cache: dict[str, tuple[Decimal | None, float]] = {}
        self._lock = threading.Lock()

    @property
    def provider(self) -> MarketDataProvider:
        """Get the market data provider, creating if not provided."""
        if self._provider is None:
            from integrations.yahoo_finance_client import YahooFinanceClient

            self._provider = YahooFinanceClient()
        return self._provider

    def get_price(self, ticker: str) -> Decimal | None:
        """Latest price for one ticker, or None if unavailable."""
        return self.get_prices([ticker]).get(ticker.upper())

    def get_prices(self, tickers: list[str]) -> dict[str, Decimal | None]:
        """Latest prices for several tickers, normalized to uppercase keys."""
        symbols = list(dict.fromkeys(t.upper() for t in tickers if t))
        now = self._clock()
        result: dict[str, Decimal | None] = {}
        to_fetch = []

        with self._lock:
            for symbol in symbols:
                cached = self._cache.get(symbol)
                if cached is not None and now - cached[1] < self._cache_ttl:
                    result[symbol] = cached[0]
                else:
                    to_fetch.append(symbol)

        if to_fetch:
            try:
                fetched = self.provider.get_latest_prices(to_fetch)
            except Exception:
                # Not cached, so the next call retries.
                logger.warning("Price lookup failed for %s", to_fetch, exc_info=True)
                result.update({symbol: None for symbol in to_fetch})
                return result

            with self._lock:
                for symbol in to_fetch:
                    price_result = fetched.get(symbol)
                    price = price_result.close_price if price_result else None
                    self._cache[symbol] = (price, now)
                    result[symbol] = price

        return result

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
