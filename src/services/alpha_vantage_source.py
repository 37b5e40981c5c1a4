from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from domain.assets import Currency, HistoricalPoint, Metal, ProviderSource, Quote

from .http_client import JsonHttpClient
from .price_sources import (
    FxRates,
    ProviderError,
    as_record,
    finalize_series,
    first_number,
    first_string,
    parse_time,
    round_price,
)

# API docs: https://www.alphavantage.co/documentation/
_SYMBOLS = {Metal.GOLD: "GOLD", Metal.SILVER: "SILVER"}
_PRICE_FIELDS = ("price", "Price", "value", "Value", "close", "Close")
_TIME_FIELDS = ("timestamp", "Timestamp", "date", "Date", "last_refreshed")
_ROW_TIME_FIELDS = ("date", "timestamp", "time", "Date", "Timestamp")
_ROW_PRICE_FIELDS = ("price", "value", "close", "Price", "Value", "Close")
_DAILY_PRICE_FIELDS = ("4. close", "3. low", "2. high", "1. open", "close", "price", "value")
_NOTICE_FIELDS = ("Note", "Information", "Error Message")


class AlphaVantageSource:
    """Key-gated, rate-limited free tier. Notices about limits count as failures."""

    source_name = ProviderSource.ALPHA_VANTAGE

    def __init__(
        self,
        *,
        api_key: str | None,
        fx: FxRates,
        http: JsonHttpClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.fx = fx
        self.http = http or JsonHttpClient(
            base_url="https://www.alphavantage.co", provider_label="Alpha Vantage", timeout=timeout
        )

    def live_quote(self, metal: Metal, currency: Currency) -> Quote:
        root = self._query(function="GOLD_SILVER_SPOT", symbol=_SYMBOLS[metal])
        data = root.get("data")
        primary = as_record(data[0]) if isinstance(data, list) and data else root

        price_usd = first_number(primary, _PRICE_FIELDS)
        if price_usd is None:
            price_usd = first_number(root, _PRICE_FIELDS)
        if price_usd is None or price_usd <= 0:
            raise ProviderError("Unable to parse live spot price from Alpha Vantage response", payload=root)

        time_raw = first_string(primary, _TIME_FIELDS) or first_string(root, _TIME_FIELDS)
        return Quote(
            metal=metal,
            currency=currency,
            price=round_price(price_usd * self.fx.rate(currency)),
            change=Decimal("0"),
            change_percent=Decimal("0"),
            timestamp=parse_time(time_raw) or datetime.now(timezone.utc),
            source=self.source_name,
        )

    def historical_series(self, metal: Metal, currency: Currency, points: int) -> list[HistoricalPoint]:
        root = self._query(function="GOLD_SILVER_HISTORY", symbol=_SYMBOLS[metal], interval="daily")
        fx_rate = self.fx.rate(currency)

        rows: list[HistoricalPoint] = []
        data = root.get("data")
        for item in data if isinstance(data, list) else []:
            entry = as_record(item)
            when = parse_time(first_string(entry, _ROW_TIME_FIELDS))
            usd_price = first_number(entry, _ROW_PRICE_FIELDS)
            if when is None or usd_price is None:
                continue
            rows.append(HistoricalPoint(time=when, price=round_price(usd_price * fx_rate)))

        for date_raw, value in as_record(root.get("Time Series (Daily)")).items():
            when = parse_time(date_raw)
            usd_price = first_number(as_record(value), _DAILY_PRICE_FIELDS)
            if when is None or usd_price is None:
                continue
            rows.append(HistoricalPoint(time=when, price=round_price(usd_price * fx_rate)))

        return finalize_series(rows, points, provider="Alpha Vantage")

    def _query(self, **params: str) -> dict[str, Any]:
        if not self.api_key:
            raise ProviderError("ALPHA_VANTAGE_API_KEY is missing")

        payload = self.http.get_json("/query", params={**params, "apikey": self.api_key})
        if not isinstance(payload, dict):
            raise ProviderError("Alpha Vantage returned unexpected payload type", payload=payload)
        notice = first_string(payload, _NOTICE_FIELDS)
        if notice:
            raise ProviderError(notice, payload=payload)
        return payload


__all__ = ["AlphaVantageSource"]
