# flake8: noqa E402
# Run via uv for access to dev deps, e.g.:
# uv run scripts/price_service_probe.py --metal gold --currency INR --requests 3 --concurrency 20
from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from time import perf_counter

# Ensure the src directory is importable when the script is invoked via uv/python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from domain.assets import Currency, Metal, Quote
from services.price_service import build_default_service


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe live quote caching and request coalescing.")
    parser.add_argument("--metal", default="gold", choices=[m.value for m in Metal])
    parser.add_argument("--currency", default="INR", choices=[c.value for c in Currency])
    parser.add_argument("--requests", type=int, default=3, help="Sequential rounds to issue (default: 3).")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=10,
        help="Simultaneous callers per round; they should share one upstream resolution (default: 10).",
    )
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    args = parse_args()
    service = build_default_service()

    with ThreadPoolExecutor(max_workers=args.concurrency) as pool:
        for idx in range(1, args.requests + 1):
            started = perf_counter()
            futures = [pool.submit(service.live_quote, args.metal, args.currency) for _ in range(args.concurrency)]
            quotes: list[Quote] = [future.result() for future in futures]
            elapsed = perf_counter() - started
            distinct = {quote.model_dump_json() for quote in quotes}
            print(
                f"[round {idx}] {args.metal}/{args.currency} => {quotes[0].price} ({quotes[0].source}) "
                f"callers={len(quotes)} distinct_results={len(distinct)} in {elapsed:.3f}s",
            )


if __name__ == "__main__":
    main()
