from __future__ import annotations

import json

import pytest

from main import RANGE_TO_POINTS, build_parser, run
from services.price_service import AssetPriceService
from tests.helpers.fakes import StubHistoricalSource


def test_parser_normalizes_metal_and_currency() -> None:
    args = build_parser().parse_args(["--currency", "usd", "live", "GOLD"])

    assert args.command == "live"
    assert args.metal == "gold"
    assert args.currency == "USD"


def test_history_range_maps_to_points(
    price_service: AssetPriceService, historical_source: StubHistoricalSource
) -> None:
    args = build_parser().parse_args(["history", "silver", "--range", "1Y"])

    series = run(price_service, args)

    assert historical_source.calls[-1][2] == RANGE_TO_POINTS["1Y"] == 365
    assert json.loads(series.model_dump_json())["source"] == "yahoo_finance"


def test_history_points_are_validated() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["history", "gold", "--points", "5"])


def test_rates_and_overview_commands(price_service: AssetPriceService) -> None:
    rates = run(price_service, build_parser().parse_args(["rates", "gold"]))
    overview = run(price_service, build_parser().parse_args(["--currency", "EUR", "overview"]))

    assert json.loads(rates.model_dump_json())["rows"][0]["label"] == "Gold 24K"
    assert json.loads(overview.model_dump_json())["currency"] == "EUR"
