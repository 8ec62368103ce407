"""Market data provider protocol definitions.

Defines the interface for latest-price lookups used by read-side P/L
reporting. The accounting engine itself never consults prices.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol


@dataclass
class PriceResult:
    """The most recent closing price for a symbol."""

    symbol: str
    price_date: date  # Actual trading date (may be earlier than today on weekends/holidays)
    close_price: Decimal
    source: str  # e.g., "yahoo"


class MarketDataProvider(Protocol):
    """Protocol for market data providers.

    Implementations fetch price data from external sources.
    """

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'yahoo')."""
        ...

    def get_latest_prices(self, symbols: list[str]) -> dict[str, PriceResult | None]:
        """Fetch the latest close for each symbol.

        Args:
            symbols: List of uppercase ticker symbols.

        Returns:
            Dict mapping each symbol to its PriceResult, or None when the
            provider has no usable price for it.
        """
        ...
