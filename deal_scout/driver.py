"""Pagination driver: walk a listing from page 1 through its follow-up pages.

Pages are fetched strictly one after another. The offset of page ``n + 1``
depends on what page ``n`` returned, and the growing pause between pages is
part of staying under the target site's bot defences.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Sequence

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from deal_scout import selectors
from deal_scout.cancel import CancelToken
from deal_scout.config import PaginationSettings
from deal_scout.errors import FetchError, ScrapeCancelled
from deal_scout.extractors.dom_utils import has_product_markers
from deal_scout.extractors.schemas import Item, PageResult, ScrapeResult
from deal_scout.extractors.strategies import extract_items
from deal_scout.fetcher import (
    ESCALATION_LEVELS,
    FetchStrategy,
    PageFetcher,
    PatienceLevel,
    RenderedPage,
    strategy_for,
)
from deal_scout.health import HealthMonitor
from deal_scout.logging_config import get_logger
from deal_scout.merge import failed_result, merge_pages
from deal_scout.pagination import detect_total_pages, read_offset, with_offset

LOGGER = get_logger(__name__)

Extractor = Callable[[str], Sequence[Item]]


@dataclass
class _PageOutcome:
    items: tuple[Item, ...] = ()
    error: FetchError | None = None
    level: PatienceLevel | None = None


@dataclass
class _PendingPage:
    """A fetched page whose continuation flag is not known yet."""

    number: int
    url: str
    items: tuple[Item, ...]

    def accept(self, next_url: str | None) -> PageResult:
        return PageResult(
            page_number=self.number,
            url=self.url,
            products=self.items,
            has_next_page=next_url is not None,
            next_page_url=next_url,
        )


@dataclass
class _RunState:
    pages: list[PageResult] = field(default_factory=list)
    detected_pages: int | None = None
    pending: _PendingPage | None = None

    def close_pending(self) -> None:
        """Accept the in-flight page as the last one."""

        if self.pending is not None:
            self.pages.append(self.pending.accept(None))
            self.pending = None


class PaginationDriver:
    """Runs the fetch -> extract -> continue loop for one base listing URL."""

    def __init__(
        self,
        fetcher: PageFetcher,
        settings: PaginationSettings | None = None,
        *,
        extractor: Extractor | None = None,
        health: HealthMonitor | None = None,
        link_base: str = selectors.BASE_URL,
    ) -> None:
        self._fetcher = fetcher
        self._settings = settings or PaginationSettings()
        self._extract = extractor or (lambda markup: extract_items(markup, base_url=link_base))
        self.health = health or HealthMonitor(run_id=uuid.uuid4().hex[:8])

    async def run(
        self,
        base_url: str,
        max_pages: int | None = None,
        *,
        cancel: CancelToken | None = None,
    ) -> ScrapeResult:
        """Scrape *base_url* and its follow-up pages; never raises."""

        token = cancel or CancelToken()
        state = _RunState()
        try:
            return await self._run(base_url, max_pages, token, state)
        except Exception as exc:
            LOGGER.exception("Unexpected error while scraping %s", base_url)
            state.close_pending()
            if not state.pages:
                return failed_result(base_url, f"Unexpected scraping error: {exc}")
            return self._finish(base_url, state, error=f"Unexpected scraping error: {exc}")

    async def _run(
        self,
        base_url: str,
        max_pages: int | None,
        token: CancelToken,
        state: _RunState,
    ) -> ScrapeResult:
        LOGGER.info("Starting paginated scrape | url=%s max_pages=%s", base_url, max_pages)
        try:
            first = await self.fetch_with_retry(
                base_url, 1, strategy_for(PatienceLevel.STANDARD), token
            )
        except FetchError as exc:
            LOGGER.warning("First page failed: %s", exc)
            return failed_result(base_url, f"Failed to scrape first page: {exc}")
        except ScrapeCancelled as exc:
            return failed_result(base_url, str(exc))

        first_items = tuple(self._extract(first.markup))
        per_page = len(first_items)
        state.pending = _PendingPage(number=1, url=base_url, items=first_items)
        state.detected_pages = detect_total_pages(
            first.markup,
            per_page,
            ceiling=self._settings.max_pages,
            offset_param=self._settings.offset_param,
        )
        limit = state.detected_pages
        if max_pages is not None:
            limit = min(limit, max(1, max_pages))
        LOGGER.info(
            "Page 1: %d items | detected_pages=%d scraping_up_to=%d",
            per_page,
            state.detected_pages,
            limit,
        )

        start_offset = read_offset(base_url, self._settings.offset_param) or 0
        collected = 0
        self.health.record_page(1, per_page, base_url)

        while True:
            pending = state.pending
            count = len(pending.items)
            collected += count
            terminal = count == 0 or count < per_page
            next_number = pending.number + 1
            if terminal or next_number > limit:
                state.close_pending()
                return self._finish(base_url, state)

            next_url = with_offset(base_url, start_offset + collected, self._settings.offset_param)
            try:
                token.check(url=next_url, page=next_number)
                await token.sleep(self._settings.page_delay_ms(next_number) / 1000)
                outcome = await self._collect_page(next_url, next_number, token)
            except ScrapeCancelled as exc:
                LOGGER.warning("Run stopped before page %d: %s", next_number, exc)
                state.close_pending()
                return self._finish(base_url, state, error=str(exc))

            state.pages.append(pending.accept(next_url))
            state.pending = _PendingPage(number=next_number, url=next_url, items=outcome.items)
            self.health.record_page(next_number, len(outcome.items), next_url)

            if outcome.error is not None:
                state.close_pending()
                return self._finish(
                    base_url,
                    state,
                    error=f"Page {next_number} failed after retries: {outcome.error}",
                )

            LOGGER.info(
                "Page %d: %d items%s",
                next_number,
                len(outcome.items),
                f" (recovered at {outcome.level.value} patience)" if outcome.level else "",
            )

    async def _collect_page(self, url: str, page: int, token: CancelToken) -> _PageOutcome:
        """Fetch page *page* (> 1), escalating patience while it comes back empty."""

        last_error: FetchError | None = None
        try:
            rendered = await self.fetch_with_retry(
                url, page, strategy_for(PatienceLevel.PAGINATION), token
            )
        except FetchError as exc:
            LOGGER.warning("Page %d fetch failed: %s", page, exc)
            last_error = exc
        else:
            if not has_product_markers(rendered.markup):
                LOGGER.warning("Page %d markup has no product indicators", page)
            items = tuple(self._extract(rendered.markup))
            if items:
                return _PageOutcome(items=items)
            LOGGER.warning("Page %d returned 0 items; escalating", page)

        delays = self._settings.escalation_delays_ms
        for index, level in enumerate(ESCALATION_LEVELS):
            delay_ms = delays[min(index, len(delays) - 1)] if delays else 0
            await token.sleep(delay_ms / 1000)
            LOGGER.info("Page %d retry at %s patience", page, level.value)
            try:
                rendered = await self._fetch_once(url, page, strategy_for(level), token)
            except FetchError as exc:
                LOGGER.warning("Page %d %s retry failed: %s", page, level.value, exc)
                last_error = exc
                continue
            last_error = None
            items = tuple(self._extract(rendered.markup))
            if items:
                return _PageOutcome(items=items, level=level)

        if last_error is None:
            LOGGER.warning("Page %d still empty after all escalations; treating as last page", page)
        return _PageOutcome(error=last_error)

    async def _fetch_once(
        self, url: str, page: int, strategy: FetchStrategy, token: CancelToken
    ) -> RenderedPage:
        token.check(url=url, page=page)
        try:
            return await token.run(self._fetcher.fetch(url, strategy, page=page))
        except FetchError as exc:
            self.health.record_fetch_error(exc)
            raise

    async def fetch_with_retry(
        self, url: str, page: int, strategy: FetchStrategy, token: CancelToken
    ) -> RenderedPage:
        """Fetch with linearly backed-off retries on :class:`FetchError`."""

        backoff_s = self._settings.retry_backoff_ms / 1000
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.retry_attempts + 1),
            wait=wait_incrementing(start=backoff_s, increment=backoff_s),
            retry=retry_if_exception_type(FetchError),
            sleep=token.sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._fetch_once(url, page, strategy, token)
        raise FetchError("Fetch retries exhausted", url=url, page=page)

    def _finish(
        self,
        base_url: str,
        state: _RunState,
        *,
        error: str | None = None,
    ) -> ScrapeResult:
        result = merge_pages(
            state.pages,
            base_url=base_url,
            error=error,
            partial=error is not None,
            detected_pages=state.detected_pages,
        )
        LOGGER.info(
            "Scrape complete | pages=%d raw_items=%d unique_valid=%d health=%s%s",
            result.total_pages,
            result.raw_product_count,
            result.total_products,
            self.health.summary(),
            f" | partial: {error}" if error else "",
        )
        return result


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    LOGGER.warning(
        "Fetch attempt %d failed (%s); retrying in %.1fs",
        retry_state.attempt_number,
        exc,
        retry_state.next_action.sleep if retry_state.next_action else 0.0,
    )


__all__ = ["PaginationDriver"]
