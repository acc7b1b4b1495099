"""Command line entry point for Deal Scout."""

from __future__ import annotations

import argparse
import asyncio
from typing import Iterable

from dotenv import load_dotenv

from deal_scout.cancel import CancelToken
from deal_scout.config import load_settings
from deal_scout.errors import ConfigurationError
from deal_scout.logging_config import get_logger
from deal_scout.retailers.homedepot import (
    run_paginated_scrape,
    scrape_discounted_products,
    scrape_single_page,
)
from deal_scout.storage.export import build_summary, write_csv, write_json

LOGGER = get_logger(__name__)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the application."""

    parser = argparse.ArgumentParser(
        description="Scrape a Home Depot listing across all of its pages."
    )
    parser.add_argument(
        "--url",
        type=str,
        help="Listing URL to scrape (defaults to base_url from the configuration).",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        help="Upper bound on the number of pages to fetch.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--single",
        action="store_true",
        help="Scrape only the given page without following pagination.",
    )
    mode.add_argument(
        "--discounted",
        action="store_true",
        help="Keep only items showing a previous price or a saving.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to a YAML configuration file (default: config.yml or $DEALSCOUT_CONFIG).",
    )
    parser.add_argument("--json", dest="json_path", type=str, help="Write the result as JSON here.")
    parser.add_argument("--csv", dest="csv_path", type=str, help="Write the merged items as CSV here.")
    parser.add_argument(
        "--timeout",
        type=float,
        help="Abort the run after this many seconds, keeping pages already scraped.",
    )

    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.max_pages is not None and args.max_pages <= 0:
        parser.error("--max-pages must be a positive integer")
    if args.timeout is not None and args.timeout <= 0:
        parser.error("--timeout must be positive")
    return args


async def _async_main(args: argparse.Namespace) -> int:
    load_dotenv()

    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1

    cancel = CancelToken(timeout_s=args.timeout) if args.timeout else None
    if args.single:
        result, _ = await scrape_single_page(args.url, settings=settings)
    elif args.discounted:
        result = await scrape_discounted_products(
            args.url, args.max_pages, settings=settings, cancel=cancel
        )
    else:
        result = await run_paginated_scrape(
            args.url, args.max_pages, settings=settings, cancel=cancel
        )

    summary = build_summary(result)
    print(
        "success={success} pages={totalPages} products={totalProducts} "
        "discounted={discountedProducts} avg_discount={averageDiscountPct}%".format(**summary)
        + (f" error={result.error}" if result.error else "")
    )

    json_path = args.json_path or settings.output.json_path
    csv_path = args.csv_path or settings.output.csv_path
    if json_path:
        write_json(result, json_path)
    if csv_path and result.success:
        write_csv(result.all_products, csv_path)

    return 0 if result.success else 1


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        exit_code = asyncio.run(_async_main(args))
    except KeyboardInterrupt:  # pragma: no cover - interactive safety
        LOGGER.info("Interrupted by user")
        exit_code = 1
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
