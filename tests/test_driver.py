import asyncio

from deal_scout.cancel import CancelToken
from deal_scout.config import PaginationSettings
from deal_scout.driver import PaginationDriver
from deal_scout.extractors.strategies import extract_items
from deal_scout.pagination import read_offset

BASE = "https://www.homedepot.com/b/Appliances/Special-Buys/N-5yc1v"


def _skus(start: int, count: int) -> list[str]:
    return [str(100000 + start + index) for index in range(count)]


def _run(fetcher, settings, max_pages=None, cancel=None):
    driver = PaginationDriver(fetcher, settings)
    return asyncio.run(driver.run(BASE, max_pages, cancel=cancel))


def test_follows_pages_until_short_page(scripted_fetcher, listing, fast_settings) -> None:
    fetcher = scripted_fetcher(
        [
            listing(_skus(0, 4), controls=(0, 4, 8)),
            listing(_skus(4, 4)),
            listing(_skus(8, 2)),
        ]
    )

    result = _run(fetcher, fast_settings)

    assert result.success is True
    assert result.partial is False
    assert result.total_pages == 3
    assert result.total_products == 10
    assert [page.has_next_page for page in result.pages] == [True, True, False]
    assert [page.products_count for page in result.pages] == [4, 4, 2]
    assert fetcher.levels == ["standard", "pagination", "pagination"]
    assert [read_offset(url) for url, _, _ in fetcher.calls] == [None, 4, 8]
    assert result.pages[0].next_page_url == result.pages[1].url
    assert result.pages[-1].next_page_url is None


def test_page_numbers_are_contiguous_and_offsets_increase(
    scripted_fetcher, listing, fast_settings
) -> None:
    fetcher = scripted_fetcher(
        [
            listing(_skus(0, 4), controls=(0, 4, 8, 12)),
            listing(_skus(4, 4)),
            listing(_skus(8, 4)),
            listing(_skus(12, 4)),
        ]
    )

    result = _run(fetcher, fast_settings)

    assert [page.page_number for page in result.pages] == [1, 2, 3, 4]
    assert [page.has_next_page for page in result.pages] == [True, True, True, False]
    offsets = [read_offset(page.url) or 0 for page in result.pages]
    assert offsets == sorted(set(offsets))
    assert offsets == [0, 4, 8, 12]


def test_empty_first_page_stops_without_second_fetch(
    scripted_fetcher, listing, fast_settings
) -> None:
    fetcher = scripted_fetcher([listing([], controls=(0, 24, 48))])

    result = _run(fetcher, fast_settings)

    assert result.success is True
    assert result.total_pages == 1
    assert result.total_products == 0
    assert result.pages[0].has_next_page is False
    assert len(fetcher.calls) == 1


def test_empty_pagination_page_escalates_until_items_appear(
    scripted_fetcher, listing, fast_settings
) -> None:
    fetcher = scripted_fetcher(
        [
            listing(_skus(0, 12), controls=(0, 12, 24)),
            listing([]),
            listing([]),
            listing(_skus(12, 10)),
        ]
    )

    result = _run(fetcher, fast_settings)

    assert fetcher.levels == ["standard", "pagination", "extended", "ultra"]
    assert result.success is True
    assert result.total_pages == 2
    assert result.pages[1].products_count == 10
    # 10 < 12 marks the recovered page as the last one.
    assert result.pages[1].has_next_page is False
    assert result.total_products == 22


def test_recovered_full_page_keeps_paginating(scripted_fetcher, listing, fast_settings) -> None:
    fetcher = scripted_fetcher(
        [
            listing(_skus(0, 4), controls=(0, 4, 8)),
            listing([]),
            listing(_skus(4, 4)),
            listing(_skus(8, 1)),
        ]
    )

    result = _run(fetcher, fast_settings)

    assert fetcher.levels == ["standard", "pagination", "extended", "pagination"]
    assert [page.products_count for page in result.pages] == [4, 4, 1]


def test_page_empty_after_all_escalations_is_terminal(
    scripted_fetcher, listing, fast_settings
) -> None:
    fetcher = scripted_fetcher(
        [listing(_skus(0, 4), controls=(0, 4, 8)), listing([]), listing([]), listing([])]
    )

    result = _run(fetcher, fast_settings)

    assert result.success is True
    assert result.partial is False
    assert result.error is None
    assert result.total_pages == 2
    assert result.pages[1].products_count == 0
    assert result.pages[1].has_next_page is False
    assert result.total_products == 4


def test_page_fetch_failure_returns_partial_result(
    scripted_fetcher, listing, fetch_error, fast_settings
) -> None:
    fetcher = scripted_fetcher(
        [
            listing(_skus(0, 4), controls=(0, 4, 8)),
            fetch_error(),
            fetch_error(),
            fetch_error(),
            fetch_error(),
        ]
    )

    result = _run(fetcher, fast_settings)

    assert fetcher.levels == ["standard", "pagination", "pagination", "extended", "ultra"]
    assert result.success is True
    assert result.partial is True
    assert "Page 2" in result.error
    assert result.total_products == 4
    assert [page.has_next_page for page in result.pages] == [True, False]
    assert result.pages[1].products == ()


def test_first_page_failure_is_a_failure(scripted_fetcher, fetch_error, fast_settings) -> None:
    fetcher = scripted_fetcher([fetch_error(), fetch_error()])

    result = _run(fetcher, fast_settings)

    assert result.success is False
    assert result.pages == ()
    assert result.all_products == ()
    assert "first page" in result.error
    assert len(fetcher.calls) == fast_settings.retry_attempts + 1


def test_first_page_retry_recovers(scripted_fetcher, listing, fetch_error, fast_settings) -> None:
    fetcher = scripted_fetcher([fetch_error(), listing(_skus(0, 3))])

    result = _run(fetcher, fast_settings)

    assert result.success is True
    assert result.total_products == 3
    assert fetcher.levels == ["standard", "standard"]


def test_max_pages_bounds_the_run(scripted_fetcher, listing, fast_settings) -> None:
    fetcher = scripted_fetcher(
        [listing(_skus(0, 4), controls=(0, 4, 8, 12)), listing(_skus(4, 4))]
    )

    result = _run(fetcher, fast_settings, max_pages=2)

    assert result.total_pages == 2
    assert result.detected_pages == 4
    assert result.pages[-1].has_next_page is False
    assert len(fetcher.calls) == 2


def test_duplicates_across_pages_are_merged(scripted_fetcher, listing, fast_settings) -> None:
    fetcher = scripted_fetcher(
        [
            listing(["100001", "100002"], controls=(0, 2)),
            listing(["100002", "100003"]),
        ]
    )

    result = _run(fetcher, fast_settings)

    assert result.raw_product_count == 4
    assert [item.sku for item in result.all_products] == ["100001", "100002", "100003"]


def test_cancel_before_first_page_fails(scripted_fetcher, listing, fast_settings) -> None:
    token = CancelToken()
    token.cancel("stop requested")
    fetcher = scripted_fetcher([listing(_skus(0, 4))])

    result = _run(fetcher, fast_settings, cancel=token)

    assert result.success is False
    assert "stop requested" in result.error
    assert fetcher.calls == []


def test_cancel_between_pages_keeps_scraped_pages(
    scripted_fetcher, listing, fast_settings
) -> None:
    token = CancelToken()
    fetcher = scripted_fetcher(
        [listing(_skus(0, 4), controls=(0, 4, 8)), listing(_skus(4, 4))],
        on_fetch=lambda count: token.cancel("stop requested"),
    )

    result = _run(fetcher, fast_settings, cancel=token)

    assert result.success is True
    assert result.partial is True
    assert result.total_pages == 1
    assert result.pages[0].has_next_page is False
    assert result.total_products == 4
    assert "stop requested" in result.error


def test_deadline_stops_the_run(scripted_fetcher, listing, fast_settings) -> None:
    now = [0.0]
    token = CancelToken(timeout_s=30, clock=lambda: now[0])

    def _advance(count: int) -> None:
        now[0] += 20

    fetcher = scripted_fetcher(
        [
            listing(_skus(0, 4), controls=(0, 4, 8, 12)),
            listing(_skus(4, 4)),
            listing(_skus(8, 4)),
        ],
        on_fetch=_advance,
    )

    result = _run(fetcher, fast_settings, cancel=token)

    assert result.partial is True
    assert result.total_pages == 2
    assert "deadline" in result.error
    assert len(fetcher.calls) == 2


def test_health_monitor_sees_fetch_errors(
    scripted_fetcher, listing, fetch_error, fast_settings
) -> None:
    fetcher = scripted_fetcher([fetch_error(), listing(_skus(0, 2))])
    driver = PaginationDriver(fetcher, fast_settings)

    asyncio.run(driver.run(BASE))

    assert driver.health.fetch_errors == 1
    assert driver.health.summary()["state"] == "healthy"


def test_unexpected_error_keeps_collected_pages(scripted_fetcher, listing, fast_settings) -> None:
    calls = []

    def _extract(markup):
        calls.append(markup)
        if len(calls) == 2:
            raise RuntimeError("layout changed")
        return extract_items(markup)

    fetcher = scripted_fetcher(
        [
            listing(_skus(0, 4), controls=(0, 4, 8)),
            listing(_skus(4, 4)),
        ]
    )
    driver = PaginationDriver(fetcher, fast_settings, extractor=_extract)

    result = asyncio.run(driver.run(BASE))

    assert result.success is True
    assert result.partial is True
    assert result.total_pages == 1
    assert result.pages[0].has_next_page is False
    assert result.pages[0].next_page_url is None
    assert result.total_products == 4
    assert "Unexpected scraping error: layout changed" in result.error


class _RecordingToken(CancelToken):
    def __init__(self) -> None:
        super().__init__()
        self.slept: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.check()


def test_waits_follow_backoff_page_and_escalation_schedule(
    scripted_fetcher, listing, fetch_error
) -> None:
    settings = PaginationSettings(
        max_pages=10,
        retry_attempts=2,
        retry_backoff_ms=2000,
        page_delay_base_ms=1000,
        page_delay_step_ms=100,
        escalation_delays_ms=(5000, 7000),
    )
    fetcher = scripted_fetcher(
        [
            fetch_error(),
            fetch_error(),
            listing(_skus(0, 4), controls=(0, 4, 8)),
            listing([]),
            listing([]),
            listing(_skus(4, 4)),
            listing(_skus(8, 2)),
        ]
    )
    token = _RecordingToken()

    result = _run(fetcher, settings, cancel=token)

    assert result.total_pages == 3
    assert result.total_products == 10
    assert token.slept == [2.0, 4.0, 1.2, 5.0, 7.0, 1.3]
    assert fetcher.levels == [
        "standard",
        "standard",
        "standard",
        "pagination",
        "extended",
        "ultra",
        "pagination",
    ]
