"""Tests for PriceService caching."""

from decimal import Decimal

from services.price_service import PriceService
from tests.fixtures.mocks import MockMarketDataProvider


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _service(provider, ttl=60, clock=None):
    return PriceService(provider=provider, cache_ttl=ttl, clock=clock or FakeClock())


class TestGetPrice:
    def test_returns_price(self):
        provider = MockMarketDataProvider({"AAPL": Decimal("190.5")})
        assert _service(provider).get_price("aapl") == Decimal("190.5")
        assert provider.calls == [["AAPL"]]

    def test_unknown_ticker_returns_none(self):
        assert _service(MockMarketDataProvider()).get_price("FAKE") is None

    def test_provider_failure_returns_none(self):
        service = _service(MockMarketDataProvider(should_fail=True))
        assert service.get_price("AAPL") is None


class TestCache:
    def test_hit_within_ttl(self):
        clock = FakeClock()
        provider = MockMarketDataProvider({"AAPL": Decimal("190")})
        service = _service(provider, clock=clock)

        service.get_price("AAPL")
        clock.now += 59
        service.get_price("AAPL")

        assert provider.calls == [["AAPL"]]

    def test_refetch_after_ttl(self):
        clock = FakeClock()
        provider = MockMarketDataProvider({"AAPL": Decimal("190")})
        service = _service(provider, clock=clock)

        service.get_price("AAPL")
        provider.prices["AAPL"] = Decimal("191")
        clock.now += 61

        assert service.get_price("AAPL") == Decimal("191")
        assert len(provider.calls) == 2

    def test_misses_are_cached(self):
        provider = MockMarketDataProvider()
        service = _service(provider)

        service.get_price("FAKE")
        service.get_price("FAKE")
        assert len(provider.calls) == 1

    def test_failures_are_not_cached(self):
        provider = MockMarketDataProvider(should_fail=True)
        service = _service(provider)

        service.get_price("AAPL")
        service.get_price("AAPL")
        assert len(provider.calls) == 2

    def test_batch_fetches_only_uncached(self):
        provider = MockMarketDataProvider({"AAPL": Decimal("190"), "MSFT": Decimal("410")})
        service = _service(provider)

        service.get_price("AAPL")
        result = service.get_prices(["aapl", "msft", "MSFT"])

        assert result == {"AAPL": Decimal("190"), "MSFT": Decimal("410")}
        assert provider.calls == [["AAPL"], ["MSFT"]]

    def test_zero_ttl_disables_cache(self):
        provider = MockMarketDataProvider({"AAPL": Decimal("190")})
        service = _service(provider, ttl=0)

        service.get_price("AAPL")
        service.get_price("AAPL")
        assert len(provider.calls) == 2

    def test_clear_cache(self):
        provider = MockMarketDataProvider({"AAPL": Decimal("190")})
        service = _service(provider)

        service.get_price("AAPL")
        service.clear_cache()
        service.get_price("AAPL")
        assert len(provider.calls) == 2


def test_default_provider_is_yahoo():
    from integrations.yahoo_finance_client import YahooFinanceClient

    assert isinstance(PriceService().provider, YahooFinanceClient)
