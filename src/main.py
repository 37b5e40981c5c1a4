from __future__ import annotations

import argparse
import logging
from typing import Sequence

from pydantic import BaseModel

from domain.assets import MAX_HISTORY_POINTS, MIN_HISTORY_POINTS, Currency, Metal
from services.price_service import AssetPriceService, build_default_service

RANGE_TO_POINTS = {
    "1D": 24,
    "1M": 30,
    "5M": 150,
    "1Y": 365,
    "5Y": 1825,
    "10Y": 3650,
}


def _points(raw: str) -> int:
    value = int(raw)
    if not MIN_HISTORY_POINTS <= value <= MAX_HISTORY_POINTS:
        msg = f"points must be between {MIN_HISTORY_POINTS} and {MAX_HISTORY_POINTS}"
        raise argparse.ArgumentTypeError(msg)
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve gold and silver prices and print them as JSON.")
    parser.add_argument("--currency", type=str.upper, choices=[c.value for c in Currency], default=Currency.INR.value)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    live = commands.add_parser("live", help="Current spot quote per troy ounce.")
    live.add_argument("metal", type=str.lower, choices=[m.value for m in Metal])

    history = commands.add_parser("history", help="Historical price series.")
    history.add_argument("metal", type=str.lower, choices=[m.value for m in Metal])
    window = history.add_mutually_exclusive_group()
    window.add_argument("--points", type=_points)
    window.add_argument("--range", dest="range_", choices=list(RANGE_TO_POINTS), default="1M")

    rates = commands.add_parser("rates", help="Purity rate table (1g, 10g, 100g, 1kg, 1oz).")
    rates.add_argument("metal", type=str.lower, choices=[m.value for m in Metal])

    commands.add_parser("overview", help="Gold and silver quotes together.")
    return parser


def run(service: AssetPriceService, args: argparse.Namespace) -> BaseModel:
    if args.command == "live":
        return service.live_quote(args.metal, args.currency)
    if args.command == "history":
        points = args.points or RANGE_TO_POINTS[args.range_]
        return service.historical_quote(args.metal, args.currency, points)
    if args.command == "rates":
        return service.rate_table(args.metal, args.currency)
    return service.overview(args.currency)


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    result = run(build_default_service(), args)
    print(result.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
