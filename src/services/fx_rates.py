from __future__ import annotations

import logging
import threading
import time
from decimal import Decimal
from typing import Callable

from domain.assets import BASE_CURRENCY, Currency

from .http_client import JsonHttpClient
from .price_sources import ProviderError, as_record, parse_number

logger = logging.getLogger(__name__)

FALLBACK_FX_RATES: dict[Currency, Decimal] = {
    Currency.USD: Decimal("1"),
    Currency.INR: Decimal("83.5"),
    Currency.EUR: Decimal("0.92"),
    Currency.GBP: Decimal("0.79"),
    Currency.AED: Decimal("3.67"),
}

# Published by Frankfurter (ECB reference rates); AED is not.
FRANKFURTER_SYMBOLS: tuple[Currency, ...] = (Currency.INR, Currency.EUR, Currency.GBP)


class FrankfurterClient:
    """Latest USD-based reference rates from the Frankfurter API (no key)."""

    def __init__(
        self,
        *,
        base_url: str = "https://api.frankfurter.dev/v1",
        timeout: float = 5.0,
        http: JsonHttpClient | None = None,
    ) -> None:
        self.http = http or JsonHttpClient(base_url=base_url, provider_label="Frankfurter", timeout=timeout)

    def latest_rates(self, symbols: list[str]) -> dict[str, Decimal]:
        payload = as_record(self.http.get_json("/latest", params={"base": "USD", "symbols": ",".join(symbols)}))
        rates_raw = payload.get("rates")
        if not isinstance(rates_raw, dict):
            raise ProviderError("Frankfurter payload missing rates", payload=payload)

        rates: dict[str, Decimal] = {}
        for code_raw, value in rates_raw.items():
            parsed = parse_number(value)
            if parsed is not None and parsed > 0:
                rates[str(code_raw).upper()] = parsed
        return rates


class FxRateService:
    """USD -> currency multipliers; never fails, falls back to a static table."""

    def __init__(
        self,
        *,
        client: FrankfurterClient | None = None,
        ttl_seconds: float = 3600.0,
        retry_after_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client or FrankfurterClient()
        self.ttl_seconds = ttl_seconds
        self.retry_after_seconds = retry_after_seconds
        self._clock = clock
        self._rates: dict[str, Decimal] = {}
        self._next_refresh_at: float | None = None
        self._lock = threading.Lock()

    def rate(self, currency: Currency) -> Decimal:
        currency = Currency(currency)
        if currency is BASE_CURRENCY:
            return Decimal("1")

        with self._lock:
            if self._is_stale():
                self._refresh()
            cached = self._rates.get(currency.value)
        if cached is not None:
            return cached
        return FALLBACK_FX_RATES[currency]

    def _is_stale(self) -> bool:
        return self._next_refresh_at is None or self._clock() >= self._next_refresh_at

    def _refresh(self) -> None:
        symbols = [code.value for code in FRANKFURTER_SYMBOLS]
        try:
            rates = self.client.latest_rates(symbols)
        except ProviderError as exc:
            logger.warning("FX rate fetch failed, using static fallback rates: %s", exc)
            self._rates = {}
            self._next_refresh_at = self._clock() + self.retry_after_seconds
            return
        self._rates = rates
        self._next_refresh_at = self._clock() + self.ttl_seconds
        logger.debug("Refreshed FX rates for %s", ", ".join(sorted(rates)))


class StaticFxRates:
    def rate(self, currency: Currency) -> Decimal:
        return FALLBACK_FX_RATES[Currency(currency)]


__all__ = ["FALLBACK_FX_RATES", "FRANKFURTER_SYMBOLS", "FrankfurterClient", "FxRateService", "StaticFxRates"]
