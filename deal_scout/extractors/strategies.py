"""Ordered item-extraction strategies and the cascade that merges them.

Each strategy turns a parsed listing page into plausible :class:`Item`
records on its own. :func:`extract_items` runs them in order and merges the
hits by identifier, so a record produced by an earlier (more reliable)
strategy is never replaced by a later one. The pattern-based fallback only
runs when nothing else produced an item.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence

from bs4 import BeautifulSoup, Tag

from deal_scout import selectors
from deal_scout.extractors.dom_utils import absolute_url, identifier_of, load_markup, text_of
from deal_scout.extractors.fields import CURRENCY_RE, DETAIL_ID_RE, build_item, identifier_from_url
from deal_scout.extractors.schemas import Item
from deal_scout.logging_config import get_logger
from deal_scout.normalizers import clean_text, format_price, normalize_availability

LOGGER = get_logger(__name__)

_ITEM_KEYWORDS = re.compile(r"product|item|sku|buy|add to cart|reviews?|rating", re.I)
_MIN_CARD_TEXT = 50
_MAX_CARD_TEXT = 3000
_MAX_ANCESTOR_HOPS = 6


@dataclass(frozen=True)
class ParsedPage:
    """A listing page parsed once and shared by every strategy."""

    soup: BeautifulSoup
    markup: str
    base_url: str = selectors.BASE_URL


def looks_like_item(node: Tag) -> bool:
    """Heuristic card test used where no identifier attribute is available."""

    text = text_of(node)
    if not (_MIN_CARD_TEXT < len(text) < _MAX_CARD_TEXT):
        return False
    if not CURRENCY_RE.search(text):
        return False
    has_visual = node.find("img") is not None or node.select_one(selectors.DETAIL_LINK) is not None
    return has_visual and bool(_ITEM_KEYWORDS.search(text))


def _nested_identifier(node: Tag) -> str:
    own = identifier_of(node)
    if own:
        return own
    for name in selectors.ID_ATTRIBUTES:
        inner = node.find(attrs={name: True})
        if inner is not None:
            value = identifier_of(inner)
            if value:
                return value
    return ""


class ExtractionStrategy:
    """Base class: ``try_extract`` returns plausible items in document order."""

    name = "base"

    def try_extract(self, page: ParsedPage) -> list[Item]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class IdentifierAttributeStrategy(ExtractionStrategy):
    """Cards carrying an explicit ``data-product-id`` / ``data-sku`` attribute."""

    name = "identifier-attribute"

    def try_extract(self, page: ParsedPage) -> list[Item]:
        items: list[Item] = []
        for position, card in enumerate(page.soup.select(selectors.ID_CARD)):
            item = build_item(card, position, base_url=page.base_url)
            if item.is_plausible():
                items.append(item)
        return items


class StructuredMetadataStrategy(ExtractionStrategy):
    """schema.org ``Product`` entries embedded as JSON-LD script blocks."""

    name = "structured-metadata"

    def try_extract(self, page: ParsedPage) -> list[Item]:
        items: list[Item] = []
        for script in page.soup.select(selectors.STRUCTURED_DATA):
            raw = script.string or script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                payload = json.loads(raw)
            except ValueError as exc:
                LOGGER.debug("Skipping unparseable JSON-LD block: %s", exc)
                continue
            for product in _iter_products(payload):
                item = _item_from_metadata(product, page.base_url)
                if item is not None and item.is_plausible():
                    items.append(item)
        return items


class GridContainerStrategy(ExtractionStrategy):
    """Children of known product-grid containers that look like item cards."""

    name = "grid-container"

    def try_extract(self, page: ParsedPage) -> list[Item]:
        items: list[Item] = []
        seen: set[int] = set()
        for container_selector in selectors.GRID_CONTAINERS:
            for container in page.soup.select(container_selector):
                for child in container.find_all(list(selectors.GRID_CHILD_TAGS), recursive=False):
                    if id(child) in seen or not looks_like_item(child):
                        continue
                    seen.add(id(child))
                    item = build_item(
                        child,
                        len(seen),
                        base_url=page.base_url,
                        sku=_nested_identifier(child) or None,
                    )
                    if item.is_plausible():
                        items.append(item)
        return items


class PatternFallbackStrategy(ExtractionStrategy):
    """Scan raw markup for identifier-looking text and map it back to the DOM."""

    name = "pattern-fallback"

    patterns: Sequence[re.Pattern[str]] = (
        re.compile(r"data-product-id\s*=\s*[\"']?([\w-]+)"),
        re.compile(r"data-sku\s*=\s*[\"']?([\w-]+)"),
        re.compile(r"\"itemId\"\s*:\s*\"(\d{6,})\""),
        DETAIL_ID_RE,
    )

    def try_extract(self, page: ParsedPage) -> list[Item]:
        items: list[Item] = []
        seen_cards: set[int] = set()
        for position, identifier in enumerate(self._identifiers(page.markup)):
            anchor = _resolve_identifier(page.soup, identifier)
            if anchor is None:
                continue
            card = _enclosing_card(anchor)
            if id(card) in seen_cards:
                continue
            seen_cards.add(id(card))
            item = build_item(card, position, base_url=page.base_url, sku=identifier)
            if item.is_plausible():
                items.append(item)
        return items

    def _identifiers(self, markup: str) -> list[str]:
        found: dict[str, None] = {}
        for pattern in self.patterns:
            for match in pattern.finditer(markup):
                found.setdefault(match.group(1), None)
        return list(found)


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    IdentifierAttributeStrategy(),
    StructuredMetadataStrategy(),
    GridContainerStrategy(),
)
FALLBACK_STRATEGIES: tuple[ExtractionStrategy, ...] = (PatternFallbackStrategy(),)


def merge_by_identifier(merged: dict[str, Item], items: Iterable[Item]) -> int:
    """Add *items* whose identifier is not yet present; return how many were added."""

    added = 0
    for item in items:
        if item.sku in merged:
            continue
        merged[item.sku] = item
        added += 1
    return added


def extract_items(
    markup: str,
    *,
    base_url: str = selectors.BASE_URL,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
    fallbacks: Sequence[ExtractionStrategy] = FALLBACK_STRATEGIES,
) -> list[Item]:
    """Return every plausible item in *markup*, in strategy then document order.

    Pure function of its input: no network access, no clock, no shared state.
    """

    page = ParsedPage(soup=load_markup(markup), markup=markup or "", base_url=base_url)
    merged: dict[str, Item] = {}

    for strategy in strategies:
        added = merge_by_identifier(merged, strategy.try_extract(page))
        LOGGER.debug("Strategy %s contributed %d items", strategy.name, added)

    if not merged:
        for strategy in fallbacks:
            added = merge_by_identifier(merged, strategy.try_extract(page))
            LOGGER.debug("Fallback %s contributed %d items", strategy.name, added)

    return list(merged.values())


def _iter_products(node: Any) -> Iterator[dict[str, Any]]:
    if isinstance(node, list):
        for entry in node:
            yield from _iter_products(entry)
        return
    if not isinstance(node, dict):
        return

    kinds = node.get("@type")
    if isinstance(kinds, str):
        kinds = [kinds]
    if isinstance(kinds, list) and "Product" in kinds:
        yield node
    for key in ("@graph", "itemListElement", "item", "mainEntity"):
        if key in node:
            yield from _iter_products(node[key])


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return clean_text(str(value))


def _item_from_metadata(product: dict[str, Any], base_url: str) -> Item | None:
    title = _as_text(product.get("name"))
    url = absolute_url(_as_text(_first(product.get("url"))), base_url)
    sku = (
        _as_text(product.get("sku"))
        or _as_text(product.get("productID"))
        or identifier_from_url(url)
    )
    if not title or not sku:
        return None

    brand = product.get("brand")
    brand_name = _as_text(brand.get("name")) if isinstance(brand, dict) else _as_text(brand)

    offer = _first(product.get("offers")) or {}
    if not isinstance(offer, dict):
        offer = {}
    price = format_price(_as_text(offer.get("price")) or _as_text(offer.get("lowPrice")))
    availability = normalize_availability(_as_text(offer.get("availability"))) or ""

    image = _first(product.get("image"))
    if isinstance(image, dict):
        image = image.get("url")

    rating = product.get("aggregateRating")
    if not isinstance(rating, dict):
        rating = {}

    return Item(
        sku=sku,
        title=title,
        brand=brand_name,
        price=price,
        image=_as_text(image),
        url=url,
        rating=_as_text(rating.get("ratingValue")),
        review_count=_as_text(rating.get("reviewCount")),
        pickup=availability if availability == "In Store Only" else "",
        delivery=availability if availability != "In Store Only" else "",
    )


def _resolve_identifier(soup: BeautifulSoup, identifier: str) -> Tag | None:
    for name in selectors.ID_ATTRIBUTES:
        node = soup.find(attrs={name: identifier})
        if node is not None:
            return node
    return soup.find(
        "a",
        href=lambda href: bool(href)
        and selectors.PRODUCT_PATH_FRAGMENT in href
        and identifier in href,
    )


def _enclosing_card(anchor: Tag) -> Tag:
    node: Tag | None = anchor
    for _ in range(_MAX_ANCESTOR_HOPS):
        if node is None or node.name == "[document]":
            break
        if looks_like_item(node):
            return node
        node = node.parent
    return anchor


__all__ = [
    "DEFAULT_STRATEGIES",
    "FALLBACK_STRATEGIES",
    "ExtractionStrategy",
    "GridContainerStrategy",
    "IdentifierAttributeStrategy",
    "ParsedPage",
    "PatternFallbackStrategy",
    "StructuredMetadataStrategy",
    "extract_items",
    "looks_like_item",
    "merge_by_identifier",
]
