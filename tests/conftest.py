from __future__ import annotations

import pytest

from deal_scout.config import PaginationSettings
from deal_scout.errors import FetchError
from deal_scout.fetcher import FetchStrategy, RenderedPage


def card_html(sku: str, title: str, price: str = "$99.00", *, brand: str = "Acme") -> str:
    return (
        f'<div class="product-pod" data-product-id="{sku}">'
        f'<a href="/p/{title.replace(" ", "-")}/{sku}"><img src="//images.example/{sku}.jpg" alt="{title}"></a>'
        f'<span data-testid="attribute-brandname-inline">{brand}</span>'
        f'<span data-testid="attribute-product-label">{title}</span>'
        f'<div class="price">{price}</div>'
        "</div>"
    )


def listing_html(skus, *, controls=(), per_page: int | None = None) -> str:
    cards = "".join(card_html(sku, f"Widget {sku}") for sku in skus)
    nav = ""
    if controls:
        links = "".join(
            f'<a href="/b/N-5yc1v?Nao={offset}">{index + 1}</a>' for index, offset in enumerate(controls)
        )
        nav = f'<nav class="pagination">{links}</nav>'
    return f'<html><body><div class="sui-grid">{cards}</div>{nav}</body></html>'


class ScriptedFetcher:
    """Fake rendering client replaying a fixed list of outcomes."""

    def __init__(self, outcomes, on_fetch=None):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str, int | None]] = []
        self.on_fetch = on_fetch

    async def fetch(self, target: str, strategy: FetchStrategy, *, page: int | None = None) -> RenderedPage:
        self.calls.append((target, strategy.level.value, page))
        if self.on_fetch is not None:
            self.on_fetch(len(self.calls))
        if not self.outcomes:
            raise AssertionError(f"unexpected fetch of {target}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return RenderedPage(url=target, markup=outcome, status_code=200, level=strategy.level)

    @property
    def levels(self) -> list[str]:
        return [level for _, level, _ in self.calls]


@pytest.fixture
def card():
    return card_html


@pytest.fixture
def listing():
    return listing_html


@pytest.fixture
def scripted_fetcher():
    return ScriptedFetcher


@pytest.fixture
def fetch_error():
    def _make(message: str = "Render API error: 500") -> FetchError:
        return FetchError(message)

    return _make


@pytest.fixture
def fast_settings() -> PaginationSettings:
    return PaginationSettings(
        max_pages=10,
        retry_attempts=1,
        retry_backoff_ms=0,
        page_delay_base_ms=0,
        page_delay_step_ms=0,
        escalation_delays_ms=(0, 0),
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in (
        "SCRAPINGBEE_API_KEY",
        "DEALSCOUT_CONFIG",
        "DEALSCOUT_MAX_PAGES",
        "DEALSCOUT_RETRY_ATTEMPTS",
        "DEALSCOUT_PAGE_DELAY_BASE_MS",
        "DEALSCOUT_PAGE_DELAY_STEP_MS",
        "DEALSCOUT_RUN_TIMEOUT_S",
        "DEALSCOUT_COUNTRY_CODE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
