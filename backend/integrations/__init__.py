"""External API integrations.

This package contains:
- Market data protocol: interface for latest-price lookups
- Yahoo Finance client: yfinance-backed implementation
"""

from integrations.market_data_protocol import MarketDataProvider, PriceResult
from integrations.yahoo_finance_client import YahooFinanceClient

__all__ = [
    "MarketDataProvider",
    "PriceResult",
    "YahooFinanceClient",
]
