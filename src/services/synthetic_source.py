from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from domain.assets import Currency, HistoricalPoint, Metal, ProviderSource, Quote

from .fx_rates import StaticFxRates
from .price_sources import FxRates, round_percent, round_price

BASE_PRICE_PER_OUNCE: dict[Metal, float] = {Metal.GOLD: 2870.0, Metal.SILVER: 32.0}
LIVE_DRIFT_SCALE = 0.6
CHANGE_SCALE = 2.0
HISTORY_STEP = timedelta(minutes=30)
_WAVE_AMPLITUDE = {Metal.GOLD: 7.0, Metal.SILVER: 0.2}
_NOISE_AMPLITUDE = {Metal.GOLD: 4.0, Metal.SILVER: 0.1}


def seeded_noise(seed: float) -> float:
    """Deterministic pseudo-random value in [-0.5, 0.5) for a given seed."""
    value = math.sin(seed * 12.9898) * 43758.5453
    return (value - math.floor(value)) - 0.5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyntheticPriceSource:
    """Last-resort generator. Never fails and never touches the network."""

    source_name = ProviderSource.MOCK

    def __init__(self, *, fx: FxRates | None = None, now: Callable[[], datetime] = _utc_now) -> None:
        self.fx = fx or StaticFxRates()
        self._now = now

    def live_quote(self, metal: Metal, currency: Currency) -> Quote:
        now = self._now()
        return Quote(
            metal=metal,
            currency=currency,
            price=round_price(self._live_price(metal, currency, now)),
            change=round_price(Decimal(str(self._change(now)))),
            change_percent=round_percent(self._change_percent(metal, currency, now)),
            timestamp=now,
            source=self.source_name,
        )

    def historical_series(self, metal: Metal, currency: Currency, points: int) -> list[HistoricalPoint]:
        now = self._now()
        live = round_price(self._live_price(metal, currency, now))
        series: list[HistoricalPoint] = []
        for index in range(points):
            wave = math.sin(index / 4) * _WAVE_AMPLITUDE[metal]
            noise = seeded_noise(index * 17.31) * _NOISE_AMPLITUDE[metal]
            series.append(
                HistoricalPoint(
                    time=now - (points - index) * HISTORY_STEP,
                    price=round_price(live + Decimal(str(wave + noise))),
                )
            )
        return series

    def _live_price(self, metal: Metal, currency: Currency, now: datetime) -> Decimal:
        drift = seeded_noise(self._millis(now) / 100_000) * LIVE_DRIFT_SCALE
        return Decimal(str(BASE_PRICE_PER_OUNCE[metal] + drift)) * self.fx.rate(currency)

    def _change(self, now: datetime) -> float:
        return seeded_noise(self._millis(now) / 300_000) * CHANGE_SCALE

    def _change_percent(self, metal: Metal, currency: Currency, now: datetime) -> Decimal:
        price = self._live_price(metal, currency, now)
        return Decimal(str(self._change(now))) / price * 100

    @staticmethod
    def _millis(now: datetime) -> float:
        return now.timestamp() * 1000


__all__ = ["BASE_PRICE_PER_OUNCE", "SyntheticPriceSource", "seeded_noise"]
