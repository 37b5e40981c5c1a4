from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from domain.assets import Metal, Quote, RateTable, RateTableRow
from domain.pricing import GRAMS_PER_OUNCE, price_per_gram

from .price_sources import round_price


@dataclass(frozen=True)
class Purity:
    label: str
    fraction: Decimal


GOLD_PURITIES: tuple[Purity, ...] = (
    Purity("Gold 24K", Decimal(1)),
    Purity("Gold 22K", Decimal(22) / Decimal(24)),
    Purity("Gold 20K", Decimal(20) / Decimal(24)),
    Purity("Gold 18K", Decimal(18) / Decimal(24)),
    Purity("Gold 14K", Decimal(14) / Decimal(24)),
    Purity("Gold 10K", Decimal(10) / Decimal(24)),
)

SILVER_PURITIES: tuple[Purity, ...] = (
    Purity("Silver 999", Decimal(1)),
    Purity("Silver 925", Decimal("0.925")),
    Purity("Silver 900", Decimal("0.9")),
)

PURITIES: dict[Metal, tuple[Purity, ...]] = {Metal.GOLD: GOLD_PURITIES, Metal.SILVER: SILVER_PURITIES}


def build_rate_rows(per_gram_pure: Decimal, purities: tuple[Purity, ...]) -> list[RateTableRow]:
    rows: list[RateTableRow] = []
    for purity in purities:
        grams1 = per_gram_pure * purity.fraction
        rows.append(
            RateTableRow(
                label=purity.label,
                grams1=round_price(grams1),
                grams10=round_price(grams1 * 10),
                grams100=round_price(grams1 * 100),
                kilogram1=round_price(grams1 * 1000),
                ounce1=round_price(grams1 * GRAMS_PER_OUNCE),
            )
        )
    return rows


def rate_table_for(quote: Quote, *, updated_at: datetime | None = None) -> RateTable:
    return RateTable(
        metal=quote.metal,
        currency=quote.currency,
        source=quote.source,
        updated_at=updated_at or datetime.now(timezone.utc),
        rows=build_rate_rows(price_per_gram(quote), PURITIES[quote.metal]),
    )


__all__ = ["GOLD_PURITIES", "PURITIES", "Purity", "SILVER_PURITIES", "build_rate_rows", "rate_table_for"]
