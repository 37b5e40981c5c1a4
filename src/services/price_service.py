"""Price resolution engine.

Resolves live quotes and historical series through an ordered provider chain
with the synthetic generator as unconditional last resort. Results are kept in
two cache regions: ``primary`` (whatever was last resolved, short TTL) and
``sticky`` (last real result only, long TTL). A synthetic result is replaced
by the sticky entry whenever one exists, so callers never regress to
synthetic data while real data is still remembered. Concurrent requests for
the same query share a single resolution.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from functools import cache
from typing import Mapping, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from config import AppSettings, ProviderMode, config
from domain.assets import (
    MAX_HISTORY_POINTS,
    MIN_HISTORY_POINTS,
    Currency,
    HistoricalSeries,
    Metal,
    Overview,
    ProviderSource,
    Quote,
    RateTable,
)

from .alpha_vantage_source import AlphaVantageSource
from .cache import TwoTierCache, build_cache
from .fx_rates import FxRateService
from .gold_api_source import GoldApiSource
from .inflight import InFlightRegistry
from .price_sources import HistoricalSeriesSource, LiveQuoteSource
from .rate_tables import rate_table_for
from .synthetic_source import SyntheticPriceSource
from .yahoo_finance_source import YahooFinanceSource

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
Resolved = TypeVar("Resolved", Quote, HistoricalSeries)

DAY_SECONDS = 24 * 60 * 60


class QueryKind(StrEnum):
    LIVE = "live"
    HISTORY = "history"


class CacheRegion:
    """Named slice of the shared cache with its own TTL per query kind."""

    def __init__(
        self,
        cache: TwoTierCache,
        *,
        name: str,
        ttl_seconds: Mapping[QueryKind, int],
        namespace: str = "asset",
    ) -> None:
        self.cache = cache
        self.name = name
        self.ttl_seconds = dict(ttl_seconds)
        self.namespace = namespace

    def key(self, kind: QueryKind, parts: Sequence[str]) -> str:
        return ":".join([self.namespace, self.name, kind.value, *parts])

    def load(self, kind: QueryKind, parts: Sequence[str], model: type[M]) -> M | None:
        key = self.key(kind, parts)
        raw = self.cache.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cache entry %s", key)
            return None

    def store(self, kind: QueryKind, parts: Sequence[str], value: BaseModel) -> None:
        self.cache.set(self.key(kind, parts), value.model_dump_json(), self.ttl_seconds[kind])


@dataclass(frozen=True)
class CachePolicy:
    live_ttl_seconds: int = 3600
    historical_ttl_seconds: int = DAY_SECONDS
    min_ttl_seconds: int = 30
    sticky_live_ttl_seconds: int = 7 * DAY_SECONDS
    sticky_historical_ttl_seconds: int = 30 * DAY_SECONDS

    def primary_ttls(self) -> dict[QueryKind, int]:
        return {
            QueryKind.LIVE: max(self.live_ttl_seconds, self.min_ttl_seconds),
            QueryKind.HISTORY: max(self.historical_ttl_seconds, self.min_ttl_seconds),
        }

    def sticky_ttls(self) -> dict[QueryKind, int]:
        return {
            QueryKind.LIVE: self.sticky_live_ttl_seconds,
            QueryKind.HISTORY: self.sticky_historical_ttl_seconds,
        }


@dataclass
class PricingContext:
    """Process-wide mutable state owned by one engine: the cache and in-flight registries."""

    cache: TwoTierCache = field(default_factory=TwoTierCache)
    live_in_flight: InFlightRegistry[Quote] = field(default_factory=lambda: InFlightRegistry("live"))
    history_in_flight: InFlightRegistry[HistoricalSeries] = field(
        default_factory=lambda: InFlightRegistry("history")
    )


class AssetPriceService:
    def __init__(
        self,
        *,
        live_sources: Sequence[LiveQuoteSource],
        historical_sources: Sequence[HistoricalSeriesSource],
        synthetic: SyntheticPriceSource | None = None,
        context: PricingContext | None = None,
        mode: ProviderMode = ProviderMode.AUTO,
        policy: CachePolicy | None = None,
    ) -> None:
        self.mode = ProviderMode(mode)
        self.synthetic = synthetic or SyntheticPriceSource()
        self.context = context or PricingContext()
        self.policy = policy or CachePolicy()
        self.live_sources = [source for source in live_sources if self._enabled(source.source_name)]
        self.historical_sources = [source for source in historical_sources if self._enabled(source.source_name)]

        self.primary = CacheRegion(self.context.cache, name="primary", ttl_seconds=self.policy.primary_ttls())
        self.sticky = CacheRegion(self.context.cache, name="sticky", ttl_seconds=self.policy.sticky_ttls())

    def live_quote(self, metal: Metal | str, currency: Currency | str) -> Quote:
        metal, currency = _coerce_metal(metal), _coerce_currency(currency)
        parts = (metal.value, currency.value)

        cached = self._usable(self.primary.load(QueryKind.LIVE, parts, Quote))
        if cached is not None:
            logger.debug("Live quote cache hit for %s/%s (%s)", metal, currency, cached.source)
            return cached

        return self.context.live_in_flight.run(parts, lambda: self._resolve_live(metal, currency, parts))

    def historical_quote(self, metal: Metal | str, currency: Currency | str, points: int) -> HistoricalSeries:
        metal, currency = _coerce_metal(metal), _coerce_currency(currency)
        if isinstance(points, bool) or not isinstance(points, int):
            raise ValueError("points must be an integer")
        if not MIN_HISTORY_POINTS <= points <= MAX_HISTORY_POINTS:
            raise ValueError(f"points must be between {MIN_HISTORY_POINTS} and {MAX_HISTORY_POINTS}")
        parts = (metal.value, currency.value, str(points))

        cached = self._usable(self.primary.load(QueryKind.HISTORY, parts, HistoricalSeries))
        if cached is not None:
            logger.debug("Historical cache hit for %s/%s x%d (%s)", metal, currency, points, cached.source)
            return cached

        return self.context.history_in_flight.run(
            parts, lambda: self._resolve_history(metal, currency, points, parts)
        )

    def rate_table(self, metal: Metal | str, currency: Currency | str) -> RateTable:
        return rate_table_for(self.live_quote(metal, currency))

    def gold_rate_table(self, currency: Currency | str) -> RateTable:
        return self.rate_table(Metal.GOLD, currency)

    def silver_rate_table(self, currency: Currency | str) -> RateTable:
        return self.rate_table(Metal.SILVER, currency)

    def overview(self, currency: Currency | str) -> Overview:
        currency = _coerce_currency(currency)
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="overview") as pool:
            gold_future = pool.submit(self.live_quote, Metal.GOLD, currency)
            silver_future = pool.submit(self.live_quote, Metal.SILVER, currency)
            gold, silver = gold_future.result(), silver_future.result()

        both_real = not gold.is_synthetic and not silver.is_synthetic
        return Overview(
            currency=currency,
            updated_at=datetime.now(timezone.utc),
            source=gold.source if both_real else ProviderSource.MOCK,
            gold=gold,
            silver=silver,
        )

    def _resolve_live(self, metal: Metal, currency: Currency, parts: tuple[str, ...]) -> Quote:
        # A resolution that finished between our cache miss and joining the registry.
        cached = self._usable(self.primary.load(QueryKind.LIVE, parts, Quote))
        if cached is not None:
            return cached

        quote = self._first_live_quote(metal, currency)
        if not quote.is_synthetic:
            self.sticky.store(QueryKind.LIVE, parts, quote)
        elif self.mode is not ProviderMode.MOCK:
            sticky = self.sticky.load(QueryKind.LIVE, parts, Quote)
            if sticky is not None:
                logger.warning(
                    "All live providers failed for %s/%s, serving last real quote from %s",
                    metal,
                    currency,
                    sticky.source,
                )
                quote = sticky

        self.primary.store(QueryKind.LIVE, parts, quote)
        return quote

    def _resolve_history(
        self, metal: Metal, currency: Currency, points: int, parts: tuple[str, ...]
    ) -> HistoricalSeries:
        cached = self._usable(self.primary.load(QueryKind.HISTORY, parts, HistoricalSeries))
        if cached is not None:
            return cached

        series = self._first_historical_series(metal, currency, points)
        if not series.is_synthetic:
            self.sticky.store(QueryKind.HISTORY, parts, series)
        elif self.mode is not ProviderMode.MOCK:
            sticky = self.sticky.load(QueryKind.HISTORY, parts, HistoricalSeries)
            if sticky is not None:
                logger.warning(
                    "All historical providers failed for %s/%s x%d, serving last real series from %s",
                    metal,
                    currency,
                    points,
                    sticky.source,
                )
                series = sticky

        self.primary.store(QueryKind.HISTORY, parts, series)
        return series

    def _first_live_quote(self, metal: Metal, currency: Currency) -> Quote:
        for source in self.live_sources:
            try:
                return source.live_quote(metal, currency)
            except Exception as exc:
                logger.warning("%s live quote failed for %s/%s: %s", source.source_name, metal, currency, exc)
        return self.synthetic.live_quote(metal, currency)

    def _first_historical_series(self, metal: Metal, currency: Currency, points: int) -> HistoricalSeries:
        for source in self.historical_sources:
            try:
                data = source.historical_series(metal, currency, points)
            except Exception as exc:
                logger.warning(
                    "%s historical series failed for %s/%s x%d: %s", source.source_name, metal, currency, points, exc
                )
                continue
            return HistoricalSeries(points=data, source=source.source_name)
        return HistoricalSeries(
            points=self.synthetic.historical_series(metal, currency, points), source=self.synthetic.source_name
        )

    def _usable(self, cached: Resolved | None) -> Resolved | None:
        if cached is None:
            return None
        # Cached synthetic data is only final when nothing real can be tried.
        if cached.is_synthetic and self.mode is not ProviderMode.MOCK:
            return None
        return cached

    def _enabled(self, source: ProviderSource) -> bool:
        if self.mode is ProviderMode.AUTO:
            return True
        return self.mode.value == source.value


def _coerce_metal(value: Metal | str) -> Metal:
    return Metal(str(value).lower())


def _coerce_currency(value: Currency | str) -> Currency:
    return Currency(str(value).upper())


def build_default_service(settings: AppSettings | None = None) -> AssetPriceService:
    settings = settings or config()
    fx = FxRateService(ttl_seconds=settings.fx_cache_ttl_seconds)

    gold_api = GoldApiSource(fx=fx, api_key=settings.gold_api_key)
    yahoo = YahooFinanceSource(fx=fx)
    live_sources: list[LiveQuoteSource] = [gold_api, yahoo]
    historical_sources: list[HistoricalSeriesSource] = [yahoo]
    if gold_api.supports_history:
        historical_sources.append(gold_api)
    if settings.alpha_vantage_api_key:
        alpha = AlphaVantageSource(api_key=settings.alpha_vantage_api_key, fx=fx)
        live_sources.append(alpha)
        historical_sources.append(alpha)

    cache_layers = build_cache(
        durable_url=settings.durable_cache_url or None,
        connect_timeout=settings.durable_cache_connect_timeout_seconds,
        retry_cooldown_seconds=settings.durable_cache_retry_cooldown_seconds,
        warm_ttl_seconds=settings.local_warm_ttl_seconds,
    )
    policy = CachePolicy(
        live_ttl_seconds=settings.live_cache_ttl_seconds,
        historical_ttl_seconds=settings.historical_cache_ttl_seconds,
        min_ttl_seconds=settings.cache_ttl_seconds,
    )
    return AssetPriceService(
        live_sources=live_sources,
        historical_sources=historical_sources,
        synthetic=SyntheticPriceSource(),
        context=PricingContext(cache=cache_layers),
        mode=settings.data_provider_mode,
        policy=policy,
    )


@cache
def default_service() -> AssetPriceService:
    return build_default_service()


__all__ = [
    "AssetPriceService",
    "CachePolicy",
    "CacheRegion",
    "PricingContext",
    "QueryKind",
    "build_default_service",
    "default_service",
]
