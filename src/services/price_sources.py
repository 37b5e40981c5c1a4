from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Protocol, Sequence

from domain.assets import Currency, HistoricalPoint, Metal, ProviderSource, Quote

PRICE_SCALE = Decimal("0.01")
PERCENT_SCALE = Decimal("0.0001")


class ProviderError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class LiveQuoteSource(Protocol):
    source_name: ProviderSource

    def live_quote(self, metal: Metal, currency: Currency) -> Quote: ...


class HistoricalSeriesSource(Protocol):
    source_name: ProviderSource

    def historical_series(self, metal: Metal, currency: Currency, points: int) -> list[HistoricalPoint]: ...


class FxRates(Protocol):
    def rate(self, currency: Currency) -> Decimal: ...


def round_price(value: Decimal) -> Decimal:
    return value.quantize(PRICE_SCALE, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    return value.quantize(PERCENT_SCALE, rounding=ROUND_HALF_UP)


def parse_number(value: Any) -> Decimal | None:
    """Parse numbers and numeric strings ("2,870.50") into a finite Decimal."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        raw = str(value)
    elif isinstance(value, str):
        raw = value.replace(",", "").strip()
        if not raw:
            return None
    else:
        return None
    try:
        parsed = Decimal(raw)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def first_number(record: Mapping[str, Any], keys: Sequence[str]) -> Decimal | None:
    for key in keys:
        parsed = parse_number(record.get(key))
        if parsed is not None:
            return parsed
    return None


def first_string(record: Mapping[str, Any], keys: Sequence[str]) -> str | None:
    for key in keys:
        raw = record.get(key)
        if isinstance(raw, str) and raw.strip():
            return raw
    return None


def as_record(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_time(value: Any) -> datetime | None:
    """Parse epoch seconds or ISO-8601 strings into an aware UTC datetime."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def finalize_series(rows: Iterable[HistoricalPoint], points: int, *, provider: str) -> list[HistoricalPoint]:
    """Deduplicate by time (last row wins), sort ascending and keep the trailing ``points``."""
    by_time: dict[datetime, HistoricalPoint] = {}
    for row in rows:
        by_time[row.time] = row
    if not by_time:
        raise ProviderError(f"Unable to parse historical prices from {provider}")
    ordered = sorted(by_time.values(), key=lambda row: row.time)
    return ordered[-points:]


__all__ = [
    "FxRates",
    "HistoricalSeriesSource",
    "LiveQuoteSource",
    "ProviderError",
    "as_record",
    "finalize_series",
    "first_number",
    "first_string",
    "parse_number",
    "parse_time",
    "round_percent",
    "round_price",
]
