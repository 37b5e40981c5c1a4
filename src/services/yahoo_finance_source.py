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
    parse_number,
    parse_time,
    round_percent,
    round_price,
)

# COMEX futures, quoted in USD per troy ounce.
_TICKERS = {Metal.GOLD: "GC=F", Metal.SILVER: "SI=F"}
_USER_AGENT = "Mozilla/5.0 (compatible; BullionPrices/1.0)"


def chart_window(points: int) -> tuple[str, str]:
    """Map a requested point count to a Yahoo chart (range, interval) pair."""
    if points <= 24:
        return "1d", "5m"
    if points <= 30:
        return "1mo", "1d"
    if points <= 150:
        return "6mo", "1d"
    if points <= 365:
        return "1y", "1d"
    if points <= 1825:
        return "5y", "1wk"
    return "10y", "1mo"


class YahooFinanceSource:
    source_name = ProviderSource.YAHOO_FINANCE

    def __init__(
        self,
        *,
        fx: FxRates,
        http: JsonHttpClient | None = None,
        live_timeout: float = 8.0,
        history_timeout: float = 10.0,
    ) -> None:
        self.fx = fx
        self.http = http or JsonHttpClient(
            base_url="https://query1.finance.yahoo.com/v8/finance/chart", provider_label="Yahoo Finance"
        )
        self.live_timeout = live_timeout
        self.history_timeout = history_timeout

    def live_quote(self, metal: Metal, currency: Currency) -> Quote:
        result = self._chart(metal, range_="1d", interval="1m", timeout=self.live_timeout)
        meta = as_record(result.get("meta"))

        closes = [close for _, close in self._rows(result)]
        last_price = parse_number(meta.get("regularMarketPrice"))
        if last_price is None and closes:
            last_price = closes[-1]
        if last_price is None or last_price <= 0:
            raise ProviderError("Unable to parse Yahoo Finance live price", payload=meta)

        previous_close = parse_number(meta.get("previousClose")) or parse_number(meta.get("chartPreviousClose"))
        if previous_close is None or previous_close <= 0:
            previous_close = last_price
        change_usd = last_price - previous_close
        change_pct = change_usd / previous_close * 100

        fx_rate = self.fx.rate(currency)
        timestamp = parse_time(meta.get("regularMarketTime")) or datetime.now(timezone.utc)
        return Quote(
            metal=metal,
            currency=currency,
            price=round_price(last_price * fx_rate),
            change=round_price(change_usd * fx_rate),
            change_percent=round_percent(change_pct),
            timestamp=timestamp,
            source=self.source_name,
        )

    def historical_series(self, metal: Metal, currency: Currency, points: int) -> list[HistoricalPoint]:
        range_, interval = chart_window(points)
        result = self._chart(metal, range_=range_, interval=interval, timeout=self.history_timeout)
        fx_rate = self.fx.rate(currency)
        rows = [HistoricalPoint(time=when, price=round_price(close * fx_rate)) for when, close in self._rows(result)]
        return finalize_series(rows, points, provider="Yahoo Finance")

    def _chart(self, metal: Metal, *, range_: str, interval: str, timeout: float) -> dict[str, Any]:
        ticker = _TICKERS[metal]
        payload = as_record(
            self.http.get_json(
                f"/{ticker}",
                params={"interval": interval, "range": range_},
                headers={"User-Agent": _USER_AGENT},
                timeout=timeout,
            )
        )
        chart = as_record(payload.get("chart"))
        if chart.get("error"):
            raise ProviderError(f"Yahoo Finance error: {chart['error']}", payload=payload)

        results = chart.get("result")
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            raise ProviderError("No data from Yahoo Finance", payload=payload)
        return results[0]

    @staticmethod
    def _rows(result: dict[str, Any]) -> list[tuple[datetime, Decimal]]:
        timestamps = result.get("timestamp")
        quotes = as_record(result.get("indicators")).get("quote")
        if not isinstance(timestamps, list) or not isinstance(quotes, list) or not quotes:
            return []
        closes = as_record(quotes[0]).get("close")
        if not isinstance(closes, list):
            return []

        rows: list[tuple[datetime, Decimal]] = []
        for ts_raw, close_raw in zip(timestamps, closes):
            when = parse_time(ts_raw)
            close = parse_number(close_raw)
            if when is None or close is None or close <= 0:
                continue
            rows.append((when, close))
        return rows


__all__ = ["YahooFinanceSource", "chart_window"]
