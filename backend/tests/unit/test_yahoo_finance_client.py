"""Unit tests for YahooFinanceClient (mocked yfinance)."""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pandas as pd
import pytest

from integrations.yahoo_finance_client import LOOKBACK_DAYS, YahooFinanceClient


@pytest.fixture
def client():
    return YahooFinanceClient()


def _make_df(data: dict, dates: list[str]) -> pd.DataFrame:
    """Build a DataFrame with DatetimeIndex, mimicking yfinance output."""
    index = pd.DatetimeIndex(dates)
    return pd.DataFrame(data, index=index)


class TestSingleSymbol:
    def test_returns_last_close(self, client):
        df = _make_df({"Close": [148.0, 150.25]}, ["2024-01-12", "2024-01-16"])
        with patch("yfinance.download", return_value=df) as mock_dl:
            result = client.get_latest_prices(["AAPL"], as_of=date(2024, 1, 16))

        pr = result["AAPL"]
        assert pr.symbol == "AAPL"
        assert pr.price_date == date(2024, 1, 16)
        assert pr.close_price == Decimal("150.25")
        assert pr.source == "yahoo"
        mock_dl.assert_called_once()

    def test_requests_lookback_window(self, client):
        df = _make_df({"Close": [150.0]}, ["2024-01-12"])
        with patch("yfinance.download", return_value=df) as mock_dl:
            client.get_latest_prices(["AAPL"], as_of=date(2024, 1, 13))

        kwargs = mock_dl.call_args.kwargs
        assert kwargs["start"] == (date(2024, 1, 13) - timedelta(days=LOOKBACK_DAYS)).isoformat()
        assert kwargs["end"] == "2024-01-14"

    def test_weekend_returns_prior_friday(self, client):
        df = _make_df({"Close": [148.0, 149.0, 150.0]}, ["2024-01-10", "2024-01-11", "2024-01-12"])
        with patch("yfinance.download", return_value=df):
            result = client.get_latest_prices(["AAPL"], as_of=date(2024, 1, 13))

        assert result["AAPL"].price_date == date(2024, 1, 12)  # Friday

    def test_ignores_rows_after_as_of(self, client):
        df = _make_df({"Close": [150.0, 155.0]}, ["2024-01-12", "2024-01-16"])
        with patch("yfinance.download", return_value=df):
            result = client.get_latest_prices(["AAPL"], as_of=date(2024, 1, 15))

        assert result["AAPL"].close_price == Decimal("150")

    def test_unknown_symbol_returns_none(self, client):
        with patch("yfinance.download", return_value=pd.DataFrame()):
            result = client.get_latest_prices(["FAKE"], as_of=date(2024, 1, 15))

        assert result == {"FAKE": None}

    def test_non_positive_price_returns_none(self, client):
        df = _make_df({"Close": [0.0]}, ["2024-01-15"])
        with patch("yfinance.download", return_value=df):
            result = client.get_latest_prices(["AAPL"], as_of=date(2024, 1, 15))

        assert result["AAPL"] is None


class TestMultiSymbol:
    def test_returns_each_symbol(self, client):
        cols = pd.MultiIndex.from_tuples([("Close", "AAPL"), ("Close", "MSFT")])
        data = [[150.25, 380.50], [151.0, float("nan")]]
        index = pd.DatetimeIndex(["2024-01-15", "2024-01-16"])
        df = pd.DataFrame(data, index=index, columns=cols)

        with patch("yfinance.download", return_value=df):
            result = client.get_latest_prices(["AAPL", "MSFT"], as_of=date(2024, 1, 16))

        assert result["AAPL"].close_price == Decimal("151")
        assert result["MSFT"].close_price == Decimal("380.5")
        assert result["MSFT"].price_date == date(2024, 1, 15)

    def test_missing_column_returns_none(self, client):
        cols = pd.MultiIndex.from_tuples([("Close", "AAPL")])
        df = pd.DataFrame([[150.0]], index=pd.DatetimeIndex(["2024-01-15"]), columns=cols)

        with patch("yfinance.download", return_value=df):
            result = client.get_latest_prices(["AAPL", "FAKE"], as_of=date(2024, 1, 15))

        assert result["FAKE"] is None
        assert result["AAPL"].close_price == Decimal("150")


class TestErrorHandling:
    def test_download_exception_returns_none(self, client):
        with patch("yfinance.download", side_effect=Exception("network error")):
            result = client.get_latest_prices(["AAPL"], as_of=date(2024, 1, 15))

        assert result == {"AAPL": None}

    def test_empty_symbols_returns_empty_dict(self, client):
        assert client.get_latest_prices([]) == {}


class TestDecimalPrecision:
    def test_preserves_precision(self, client):
        df = _make_df({"Close": [150.123456]}, ["2024-01-15"])
        with patch("yfinance.download", return_value=df):
            result = client.get_latest_prices(["AAPL"], as_of=date(2024, 1, 15))

        assert result["AAPL"].close_price == Decimal("150.123456")


class TestProviderName:
    def test_provider_name(self, client):
        assert client.provider_name == "yahoo"
