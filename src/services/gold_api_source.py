"""Gold-API.com adapter.

Live prices are free and unlimited (no key). Historical prices are rate
limited and require an API key, sent as ``x-api-key``.

Live response example::

    {"name": "Gold", "price": 5076.10, "symbol": "XAU",
     "updatedAt": "2026-02-12T05:14:43Z", "updatedAtReadable": "a few seconds ago"}
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from domain.assets import Currency, HistoricalPoint, Metal, ProviderSource, Quote

from .http_client import JsonHttpClient
from .price_sources import (
    FxRates,
    ProviderError,
    as_record,
    finalize_series,
    first_number,
    parse_time,
    round_percent,
    round_price,
)

_SYMBOLS = {Metal.GOLD: "XAU", Metal.SILVER: "XAG"}
_LIVE_PRICE_FIELDS = ("price", "Price", "value", "close")
_HISTORY_TIME_FIELDS = ("date", "timestamp", "time")
_HISTORY_PRICE_FIELDS = ("price", "close", "value")
BASELINE_TTL_SECONDS = 6 * 60 * 60


class GoldApiSource:
    source_name = ProviderSource.GOLD_API

    def __init__(
        self,
        *,
        fx: FxRates,
        api_key: str | None = None,
        http: JsonHttpClient | None = None,
        live_timeout: float = 8.0,
        history_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.fx = fx
        self.api_key = api_key
        self.http = http or JsonHttpClient(base_url="https://api.gold-api.com", provider_label="Gold-API")
        self.live_timeout = live_timeout
        self.history_timeout = history_timeout
        self._clock = clock
        # Reference price per symbol used to report change until it ages out.
        self._baselines: dict[str, tuple[Decimal, float]] = {}
        self._lock = threading.Lock()

    @property
    def supports_history(self) -> bool:
        return bool(self.api_key)

    def live_quote(self, metal: Metal, currency: Currency) -> Quote:
        symbol = _SYMBOLS[metal]
        payload = as_record(self.http.get_json(f"/price/{symbol}", timeout=self.live_timeout))

        price_usd = first_number(payload, _LIVE_PRICE_FIELDS)
        if price_usd is None or price_usd <= 0:
            raise ProviderError("Unable to parse live price from Gold-API", payload=payload)

        previous = self._baseline(symbol, price_usd)
        change_usd = price_usd - previous
        change_pct = change_usd / previous * 100 if previous > 0 else Decimal("0")

        fx_rate = self.fx.rate(currency)
        timestamp = parse_time(payload.get("updatedAt")) or datetime.now(timezone.utc)
        return Quote(
            metal=metal,
            currency=currency,
            price=round_price(price_usd * fx_rate),
            change=round_price(change_usd * fx_rate),
            change_percent=round_percent(change_pct),
            timestamp=timestamp,
            source=self.source_name,
        )

    def historical_series(self, metal: Metal, currency: Currency, points: int) -> list[HistoricalPoint]:
        if not self.api_key:
            raise ProviderError("GOLD_API_KEY not set, skipping Gold-API historical")

        symbol = _SYMBOLS[metal]
        payload = self.http.get_json(
            f"/history/{symbol}",
            headers={"x-api-key": self.api_key},
            timeout=self.history_timeout,
        )
        fx_rate = self.fx.rate(currency)

        rows: list[HistoricalPoint] = []
        for item in self._history_items(payload):
            entry = as_record(item)
            time_raw = next((entry[key] for key in _HISTORY_TIME_FIELDS if entry.get(key)), None)
            when = parse_time(time_raw)
            price = first_number(entry, _HISTORY_PRICE_FIELDS)
            if when is None or price is None:
                continue
            rows.append(HistoricalPoint(time=when, price=round_price(price * fx_rate)))

        return finalize_series(rows, points, provider="Gold-API")

    @staticmethod
    def _history_items(payload: Any) -> list[Any]:
        if isinstance(payload, list):
            return payload
        record = as_record(payload)
        for key in ("history", "data"):
            items = record.get(key)
            if isinstance(items, list):
                return items
        return []

    def _baseline(self, symbol: str, price_usd: Decimal) -> Decimal:
        now = self._clock()
        with self._lock:
            entry = self._baselines.get(symbol)
            if entry is not None and now - entry[1] < BASELINE_TTL_SECONDS:
                return entry[0]
            self._baselines[symbol] = (price_usd, now)
            return price_usd


__all__ = ["GoldApiSource"]
