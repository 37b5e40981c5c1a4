from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from domain.assets import Currency, HistoricalPoint, Metal, ProviderSource, Quote
from services.fx_rates import FALLBACK_FX_RATES
from services.price_sources import ProviderError

FIXED_NOW = datetime(2026, 2, 12, 5, 14, 43, tzinfo=timezone.utc)
USD_PRICES = {Metal.GOLD: Decimal("2900.00"), Metal.SILVER: Decimal("33.00")}


@dataclass
class FakeClock:
    now: float = 1_000_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedFxRates:
    def rate(self, currency: Currency) -> Decimal:
        return FALLBACK_FX_RATES[Currency(currency)]


@dataclass
class StubLiveSource:
    """Live source returning fixed USD prices converted with the static FX table."""

    source_name: ProviderSource = ProviderSource.GOLD_API
    fail: bool = False
    delay_seconds: float = 0.0
    calls: list[tuple[Metal, Currency]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def live_quote(self, metal: Metal, currency: Currency) -> Quote:
        with self._lock:
            self.calls.append((metal, currency))
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.fail:
            raise ProviderError(f"{self.source_name} unavailable")
        return Quote(
            metal=metal,
            currency=currency,
            price=USD_PRICES[metal] * FALLBACK_FX_RATES[currency],
            change=Decimal("1.50"),
            change_percent=Decimal("0.0517"),
            timestamp=FIXED_NOW,
            source=self.source_name,
        )


@dataclass
class StubHistoricalSource:
    source_name: ProviderSource = ProviderSource.YAHOO_FINANCE
    fail: bool = False
    delay_seconds: float = 0.0
    calls: list[tuple[Metal, Currency, int]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def historical_series(self, metal: Metal, currency: Currency, points: int) -> list[HistoricalPoint]:
        with self._lock:
            self.calls.append((metal, currency, points))
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.fail:
            raise ProviderError(f"{self.source_name} unavailable")
        base = USD_PRICES[metal] * FALLBACK_FX_RATES[currency]
        return [
            HistoricalPoint(time=FIXED_NOW - timedelta(days=points - index), price=base + index)
            for index in range(points)
        ]
