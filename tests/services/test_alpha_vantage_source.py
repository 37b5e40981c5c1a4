from __future__ import annotations

from decimal import Decimal
from typing import cast

import pytest
import requests

from domain.assets import Currency, Metal, ProviderSource
from services.alpha_vantage_source import AlphaVantageSource
from services.http_client import JsonHttpClient
from services.price_sources import ProviderError
from tests.helpers.fakes import FixedFxRates
from tests.helpers.http_stubs import StubResponse, StubSession


def _source(session: StubSession, api_key: str | None = "demo") -> AlphaVantageSource:
    http = JsonHttpClient(
        base_url="https://www.alphavantage.co", provider_label="Alpha Vantage", session=cast(requests.Session, session)
    )
    return AlphaVantageSource(api_key=api_key, fx=FixedFxRates(), http=http)


def test_live_quote_reads_spot_price() -> None:
    payload = {"data": [{"price": "2875.40", "timestamp": "2026-02-12 05:00:00"}]}
    session = StubSession({"/query": StubResponse(payload)})

    quote = _source(session).live_quote(Metal.GOLD, Currency.GBP)

    assert quote.source is ProviderSource.ALPHA_VANTAGE
    assert quote.price == Decimal("2271.57")
    assert quote.change == Decimal("0")
    assert session.requests[0]["params"] == {"function": "GOLD_SILVER_SPOT", "symbol": "GOLD", "apikey": "demo"}


def test_live_quote_reads_flat_payload() -> None:
    session = StubSession({"/query": StubResponse({"Value": 31.2})})

    assert _source(session).live_quote(Metal.SILVER, Currency.USD).price == Decimal("31.20")


def test_missing_key_fails_without_request() -> None:
    session = StubSession()

    with pytest.raises(ProviderError, match="ALPHA_VANTAGE_API_KEY"):
        _source(session, api_key=None).live_quote(Metal.GOLD, Currency.USD)
    assert session.requests == []


@pytest.mark.parametrize("field", ["Note", "Information", "Error Message"])
def test_rate_limit_notices_are_failures(field: str) -> None:
    session = StubSession({"/query": StubResponse({field: "Thank you for using Alpha Vantage!"})})

    with pytest.raises(ProviderError, match="Thank you"):
        _source(session).live_quote(Metal.GOLD, Currency.USD)


def test_history_merges_data_rows_and_daily_series() -> None:
    payload = {
        "data": [{"date": "2026-01-01", "price": "2900"}],
        "Time Series (Daily)": {
            "2026-01-02": {"4. close": "2910"},
            "2026-01-03": {"1. open": "2920"},
        },
    }
    session = StubSession({"/query": StubResponse(payload)})

    series = _source(session).historical_series(Metal.GOLD, Currency.USD, 10)

    assert [point.price for point in series] == [Decimal("2900.00"), Decimal("2910.00"), Decimal("2920.00")]
    assert session.requests[0]["params"]["function"] == "GOLD_SILVER_HISTORY"
    assert session.requests[0]["params"]["interval"] == "daily"
