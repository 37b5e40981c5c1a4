from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from .assets import Currency, Metal, Quote

GRAMS_PER_OUNCE = Decimal("31.1035")


class LiveQuoteProvider(Protocol):
    """Lookup interface consumers (trading, schemes, delivery) price against."""

    def live_quote(self, metal: Metal | str, currency: Currency | str) -> Quote: ...


def price_per_gram(quote: Quote) -> Decimal:
    return quote.price / GRAMS_PER_OUNCE


def gold_price_per_gram_paise(provider: LiveQuoteProvider) -> int:
    """Current 24K gold price for one gram in paise (1 INR = 100 paise)."""
    quote = provider.live_quote(Metal.GOLD, Currency.INR)
    paise = price_per_gram(quote) * 100
    return int(paise.to_integral_value(rounding=ROUND_HALF_UP))


__all__ = ["GRAMS_PER_OUNCE", "LiveQuoteProvider", "gold_price_per_gram_paise", "price_per_gram"]
