"""Yahoo Finance market data provider implementation."""

import logging
from datetime import date, timedelta
from decimal import Decimal

import yfinance as yf

from integrations.market_data_protocol import PriceResult

logger = logging.getLogger(__name__)

# Calendar days of history fetched so weekends and holidays still yield a close.
LOOKBACK_DAYS = 10


class YahooFinanceClient:
    """Market data provider using Yahoo Finance (yfinance library)."""

    @property
    def provider_name(self) -> str:
        return "yahoo"

    def get_latest_prices(
        self, symbols: list[str], as_of: date | None = None
    ) -> dict[str, PriceResult | None]:
        """Fetch the most recent close on or before ``as_of`` (default today).

        Args:
            symbols: List of ticker symbols.
            as_of: Last trading date to consider.

        Returns:
            Dict mapping each symbol to a PriceResult, or None if Yahoo
            returned nothing usable for it.
        """
        if not symbols:
            return {}

        end_date = as_of or date.today()
        logger.info(
            "Yahoo Finance: fetching latest prices for %d symbols (as of %s)",
            len(symbols), end_date,
        )

        result: dict[str, PriceResult | None] = {s: None for s in symbols}

        # yfinance end is exclusive, so add one day
        try:
            df = yf.download(
                tickers=symbols,
                start=(end_date - timedelta(days=LOOKBACK_DAYS)).isoformat(),
                end=(end_date + timedelta(days=1)).isoformat(),
                auto_adjust=True,
                progress=False,
            )
        except Exception:
            logger.warning("yfinance download failed for %s", symbols, exc_info=True)
            return result

        if df.empty:
            return result

        multi_symbol = len(symbols) > 1

        for symbol in symbols:
            try:
                if multi_symbol:
                    # MultiIndex columns: (metric, symbol)
                    if ("Close", symbol) not in df.columns:
                        continue
                    closes = df[("Close", symbol)].dropna()
                else:
                    if "Close" not in df.columns:
                        continue
                    closes = df["Close"].dropna()

                closes = closes[closes.index.date <= end_date]
                if closes.empty:
                    continue

                last = float(closes.iloc[-1])
                if last <= 0:
                    logger.warning("Yahoo Finance returned a non-positive price for %s", symbol)
                    continue
                result[symbol] = PriceResult(
                    symbol=symbol,
                    price_date=closes.index[-1].date(),
                    close_price=Decimal(str(round(last, 6))),
                    source="yahoo",
                )
            except Exception:
                logger.warning(
                    "Failed to parse prices for %s", symbol, exc_info=True
                )

        return result
