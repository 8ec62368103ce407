"""Fixtures for live Yahoo Finance tests (``-m yahoo``)."""

import pytest

from integrations.yahoo_finance_client import YahooFinanceClient


@pytest.fixture
def yahoo_client() -> YahooFinanceClient:
    """A real client; every call goes to the network."""
    return YahooFinanceClient()
