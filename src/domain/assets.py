from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Metal(StrEnum):
    GOLD = "gold"
    SILVER = "silver"


class Currency(StrEnum):
    USD = "USD"
    INR = "INR"
    EUR = "EUR"
    GBP = "GBP"
    AED = "AED"


class ProviderSource(StrEnum):
    GOLD_API = "gold_api"
    YAHOO_FINANCE = "yahoo_finance"
    ALPHA_VANTAGE = "alpha_vantage"
    MOCK = "mock"


BASE_CURRENCY = Currency.USD
MIN_HISTORY_POINTS = 10
MAX_HISTORY_POINTS = 4000


class Quote(BaseModel):
    """Spot price of one troy ounce of ``metal`` expressed in ``currency``."""

    model_config = ConfigDict(frozen=True)

    metal: Metal
    currency: Currency
    unit: Literal["oz"] = "oz"
    price: Decimal
    change: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")
    timestamp: datetime
    source: ProviderSource

    @model_validator(mode="after")
    def _validate_price(self) -> Quote:
        if self.price <= 0:
            raise ValueError("price must be > 0")
        return self

    @property
    def is_synthetic(self) -> bool:
        return self.source is ProviderSource.MOCK


class HistoricalPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: datetime
    price: Decimal


class HistoricalSeries(BaseModel):
    model_config = ConfigDict(frozen=True)

    points: list[HistoricalPoint] = Field(default_factory=list)
    source: ProviderSource

    @property
    def is_synthetic(self) -> bool:
        return self.source is ProviderSource.MOCK


class RateTableRow(BaseModel):
    label: str
    grams1: Decimal
    grams10: Decimal
    grams100: Decimal
    kilogram1: Decimal
    ounce1: Decimal


class RateTable(BaseModel):
    metal: Metal
    currency: Currency
    source: ProviderSource
    updated_at: datetime
    rows: list[RateTableRow]


class Overview(BaseModel):
    currency: Currency
    updated_at: datetime
    source: ProviderSource
    gold: Quote
    silver: Quote


__all__ = [
    "BASE_CURRENCY",
    "Currency",
    "HistoricalPoint",
    "HistoricalSeries",
    "MAX_HISTORY_POINTS",
    "MIN_HISTORY_POINTS",
    "Metal",
    "Overview",
    "ProviderSource",
    "Quote",
    "RateTable",
    "RateTableRow",
]
