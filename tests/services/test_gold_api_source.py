from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import cast

import pytest
import requests

from domain.assets import Currency, Metal, ProviderSource
from services.gold_api_source import BASELINE_TTL_SECONDS, GoldApiSource
from services.http_client import JsonHttpClient
from services.price_sources import ProviderError
from tests.helpers.fakes import FakeClock, FixedFxRates
from tests.helpers.http_stubs import StubResponse, StubSession


def _source(session: StubSession, *, api_key: str | None = None, clock: FakeClock | None = None) -> GoldApiSource:
    http = JsonHttpClient(
        base_url="https://api.gold-api.com", provider_label="Gold-API", session=cast(requests.Session, session)
    )
    return GoldApiSource(fx=FixedFxRates(), api_key=api_key, http=http, clock=clock or FakeClock())


def test_live_quote_converts_usd_price() -> None:
    payload = {"name": "Gold", "price": 2900.5, "symbol": "XAU", "updatedAt": "2026-02-12T05:14:43Z"}
    session = StubSession({"/price/XAU": StubResponse(payload)})

    quote = _source(session).live_quote(Metal.GOLD, Currency.INR)

    assert quote.source is ProviderSource.GOLD_API
    assert quote.price == Decimal("242191.75")
    assert quote.change == Decimal("0.00")
    assert quote.timestamp == datetime(2026, 2, 12, 5, 14, 43, tzinfo=timezone.utc)
    assert session.requests[0]["url"] == "https://api.gold-api.com/price/XAU"
    assert session.requests[0]["timeout"] == 8.0


def test_live_quote_reports_change_against_baseline(clock: FakeClock) -> None:
    responses = {"/price/XAG": StubResponse({"price": "32.00"})}
    session = StubSession(responses)
    source = _source(session, clock=clock)
    source.live_quote(Metal.SILVER, Currency.USD)

    responses["/price/XAG"] = StubResponse({"Price": 33})
    moved = source.live_quote(Metal.SILVER, Currency.USD)
    assert moved.change == Decimal("1.00")
    assert moved.change_percent == Decimal("3.1250")

    clock.advance(BASELINE_TTL_SECONDS)
    rebased = source.live_quote(Metal.SILVER, Currency.USD)
    assert rebased.change == Decimal("0.00")


@pytest.mark.parametrize("payload", [{"price": 0}, {"price": "n/a"}, {}, ["unexpected"]])
def test_live_quote_rejects_unusable_price(payload: object) -> None:
    session = StubSession({"/price/XAU": StubResponse(payload)})

    with pytest.raises(ProviderError):
        _source(session).live_quote(Metal.GOLD, Currency.USD)


def test_history_requires_api_key() -> None:
    session = StubSession()
    source = _source(session)

    assert not source.supports_history
    with pytest.raises(ProviderError, match="GOLD_API_KEY"):
        source.historical_series(Metal.GOLD, Currency.USD, 10)
    assert session.requests == []


def test_history_sends_key_and_normalizes_series() -> None:
    payload = {
        "history": [
            {"date": "2026-01-03", "price": 2903},
            {"date": "2026-01-01", "close": "2901"},
            {"timestamp": 1767312000, "value": 2902},
            {"date": "2026-01-03", "price": 2904},
            {"date": "garbage", "price": 1},
        ]
    }
    session = StubSession({"/history/XAU": StubResponse(payload)})
    source = _source(session, api_key="secret")

    series = source.historical_series(Metal.GOLD, Currency.USD, 2)

    assert source.supports_history
    assert session.requests[0]["headers"]["x-api-key"] == "secret"
    assert [point.price for point in series] == [Decimal("2902.00"), Decimal("2904.00")]
    assert series[0].time < series[1].time


def test_history_accepts_top_level_list() -> None:
    session = StubSession({"/history/XAG": StubResponse([{"date": "2026-01-01", "price": 30}])})

    series = _source(session, api_key="k").historical_series(Metal.SILVER, Currency.EUR, 10)

    assert [point.price for point in series] == [Decimal("27.60")]


def test_history_without_rows_fails() -> None:
    session = StubSession({"/history/XAU": StubResponse({"data": []})})

    with pytest.raises(ProviderError, match="Gold-API"):
        _source(session, api_key="k").historical_series(Metal.GOLD, Currency.USD, 10)
