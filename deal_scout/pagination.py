"""Continuation detection and offset-based page URL helpers."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from urllib.parse import parse_qsl, quote_plus, unquote_plus, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from deal_scout import selectors
from deal_scout.extractors.dom_utils import attr_of, load_markup, text_of
from deal_scout.logging_config import get_logger

LOGGER = get_logger(__name__)

DEFAULT_PAGE_CEILING = 10

_PAGE_OF_RE = re.compile(r"page\s+\d+\s+of\s+(\d+)", re.I)
_ID_ATTRIBUTE_RE = re.compile(r"data-product-id\s*=")


def read_offset(url: str, param: str = selectors.OFFSET_PARAM) -> int | None:
    """Return the integer offset query parameter of *url* (key matched case-insensitively)."""

    if not url:
        return None
    wanted = param.lower()
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key.lower() == wanted:
            try:
                return int(value)
            except ValueError:
                return None
    return None


def with_offset(url: str, offset: int, param: str = selectors.OFFSET_PARAM) -> str:
    """Return *url* with its offset parameter replaced by *offset*.

    Any existing spelling of the parameter (``Nao``, ``nao``...) is removed
    first; every other query segment is kept verbatim and in order.
    """

    parts = urlsplit(url)
    wanted = param.lower()
    segments = [
        segment
        for segment in parts.query.split("&")
        if segment and unquote_plus(segment.split("=", 1)[0]).lower() != wanted
    ]
    segments.append(f"{quote_plus(param)}={offset}")
    return urlunsplit(parts._replace(query="&".join(segments)))


@dataclass(frozen=True)
class PaginationSignals:
    """Independent page-count estimates read from a first page."""

    page_of_text: int = 0
    controls: int = 0
    id_count_estimate: int = 0

    def best(self) -> int:
        return max(1, self.page_of_text, self.controls, self.id_count_estimate)


def _page_of_signal(soup: BeautifulSoup) -> int:
    match = _PAGE_OF_RE.search(text_of(soup))
    return int(match.group(1)) if match else 0


def _controls_signal(soup: BeautifulSoup, items_per_page: int, param: str) -> int:
    best = 0
    for control in soup.select(selectors.PAGINATION_CONTROLS):
        text = text_of(control)
        if text.isdecimal():
            best = max(best, int(text))
        offset = read_offset(attr_of(control, "href"), param)
        if offset is not None and items_per_page > 0 and offset % items_per_page == 0:
            best = max(best, offset // items_per_page + 1)
    return best


def _id_count_signal(markup: str, items_per_page: int) -> int:
    if items_per_page <= 0:
        return 0
    count = len(_ID_ATTRIBUTE_RE.findall(markup))
    return math.ceil(count / items_per_page) if count else 0


def pagination_signals(
    markup: str,
    items_on_first_page: int,
    *,
    offset_param: str = selectors.OFFSET_PARAM,
) -> PaginationSignals:
    soup = load_markup(markup)
    return PaginationSignals(
        page_of_text=_page_of_signal(soup),
        controls=_controls_signal(soup, items_on_first_page, offset_param),
        id_count_estimate=_id_count_signal(markup or "", items_on_first_page),
    )


def detect_total_pages(
    markup: str,
    items_on_first_page: int,
    *,
    ceiling: int = DEFAULT_PAGE_CEILING,
    offset_param: str = selectors.OFFSET_PARAM,
) -> int:
    """Estimate how many listing pages exist, between 1 and *ceiling*.

    Returns 1 when the first page produced no items.
    """

    if items_on_first_page <= 0 or not markup:
        return 1

    signals = pagination_signals(markup, items_on_first_page, offset_param=offset_param)
    total = min(signals.best(), max(1, ceiling))
    LOGGER.debug(
        "Pagination signals | page_of=%d controls=%d id_estimate=%d -> %d (ceiling=%d)",
        signals.page_of_text,
        signals.controls,
        signals.id_count_estimate,
        total,
        ceiling,
    )
    return total


__all__ = [
    "DEFAULT_PAGE_CEILING",
    "PaginationSignals",
    "detect_total_pages",
    "pagination_signals",
    "read_offset",
    "with_offset",
]
