"""Home Depot listing scraping interface.

These are the public entry points. They wire configuration, the rendering
client and the pagination driver together, and they always return a
:class:`~deal_scout.extractors.schemas.ScrapeResult` instead of raising.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from deal_scout import selectors
from deal_scout.cancel import CancelToken
from deal_scout.config import Settings, load_settings
from deal_scout.driver import PaginationDriver
from deal_scout.errors import ConfigurationError, FetchError, ScrapeCancelled
from deal_scout.extractors.schemas import Item, PageResult, ScrapeResult
from deal_scout.extractors.strategies import extract_items
from deal_scout.fetcher import PageFetcher, PatienceLevel, RenderClient, strategy_for
from deal_scout.health import HealthMonitor
from deal_scout.logging_config import get_logger
from deal_scout.merge import failed_result, merge_pages

LOGGER = get_logger(__name__)


def _build_client(settings: Settings) -> RenderClient:
    return RenderClient(settings.render)


def _build_health(settings: Settings) -> HealthMonitor:
    log_path = Path(settings.health_log) if settings.health_log else None
    return HealthMonitor(run_id=uuid.uuid4().hex[:8], log_path=log_path)


def _build_token(settings: Settings, cancel: CancelToken | None) -> CancelToken:
    if cancel is not None:
        return cancel
    return CancelToken(timeout_s=settings.run.timeout_s or None)


async def run_paginated_scrape(
    base_url: str | None = None,
    max_pages: int | None = None,
    *,
    settings: Settings | None = None,
    client: PageFetcher | None = None,
    cancel: CancelToken | None = None,
) -> ScrapeResult:
    """Scrape a listing and all of its follow-up pages into one merged result."""

    url = base_url or (settings.base_url if settings else "")
    try:
        settings = settings or load_settings()
        url = base_url or settings.base_url
        fetcher = client or _build_client(settings)
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return failed_result(url, str(exc))

    driver = PaginationDriver(
        fetcher,
        settings.pagination,
        health=_build_health(settings),
    )
    try:
        return await driver.run(url, max_pages, cancel=_build_token(settings, cancel))
    finally:
        if client is None and isinstance(fetcher, RenderClient):
            fetcher.close()


async def scrape_single_page(
    url: str | None = None,
    *,
    settings: Settings | None = None,
    client: PageFetcher | None = None,
    keep_markup: bool = False,
) -> tuple[ScrapeResult, str | None]:
    """Fetch and extract exactly one page.

    Returns the one-page result and, when *keep_markup* is set, the raw
    markup that produced it.
    """

    target = url or (settings.base_url if settings else "")
    try:
        settings = settings or load_settings()
        target = url or settings.base_url
        fetcher = client or _build_client(settings)
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return failed_result(target, str(exc)), None

    driver = PaginationDriver(fetcher, settings.pagination, health=_build_health(settings))
    token = _build_token(settings, None)
    try:
        rendered = await driver.fetch_with_retry(
            target, 1, strategy_for(PatienceLevel.STANDARD), token
        )
    except (FetchError, ScrapeCancelled) as exc:
        LOGGER.warning("Single page scrape failed: %s", exc)
        return failed_result(target, f"Failed to scrape page: {exc}"), None
    finally:
        if client is None and isinstance(fetcher, RenderClient):
            fetcher.close()

    items = extract_items(rendered.markup, base_url=selectors.BASE_URL)
    page = PageResult(page_number=1, url=target, products=tuple(items))
    LOGGER.info("Single page: %d items", len(items))
    return merge_pages([page], base_url=target, detected_pages=1), (
        rendered.markup if keep_markup else None
    )


def filter_discounted(items: tuple[Item, ...] | list[Item]) -> list[Item]:
    return [item for item in items if item.is_discounted()]


async def scrape_discounted_products(
    url: str | None = None,
    max_pages: int | None = None,
    **kwargs,
) -> ScrapeResult:
    """Paginated scrape reduced to items showing a previous price or a saving."""

    result = await run_paginated_scrape(url, max_pages, **kwargs)
    if not result.success:
        return result
    discounted = filter_discounted(result.all_products)
    LOGGER.info("Discounted items: %d of %d", len(discounted), result.total_products)
    return result.model_copy(
        update={"all_products": tuple(discounted), "total_products": len(discounted)}
    )


__all__ = [
    "filter_discounted",
    "run_paginated_scrape",
    "scrape_discounted_products",
    "scrape_single_page",
]
