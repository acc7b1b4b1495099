"""Helper utilities for safely reading retailer DOM content."""

from __future__ import annotations

from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from deal_scout import selectors
from deal_scout.normalizers import clean_text


def load_markup(markup: str) -> BeautifulSoup:
    """Parse *markup* with the stdlib-backed parser bs4 ships with."""

    return BeautifulSoup(markup or "", "html.parser")


def text_of(node: Tag | None) -> str:
    """Return whitespace-collapsed visible text for *node* (empty when missing)."""

    if node is None:
        return ""
    return clean_text(node.get_text(" "))


def select_text(root: Tag, selector: str, *, last: bool = False) -> str:
    """Return the text of the first (or last) element matching *selector*."""

    matches = root.select(selector)
    if not matches:
        return ""
    return text_of(matches[-1] if last else matches[0])


def attr_of(node: Tag | None, name: str) -> str:
    """Return attribute *name* as a stripped string (joined when multi-valued)."""

    if node is None:
        return ""
    value = node.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        value = " ".join(value)
    return str(value).strip()


def identifier_of(node: Tag) -> str:
    """Return the first identifier attribute present on *node*."""

    for name in selectors.ID_ATTRIBUTES:
        value = attr_of(node, name)
        if value:
            return value
    return ""


def absolute_url(href: str, base_url: str = selectors.BASE_URL) -> str:
    """Resolve *href* against the site origin; protocol-relative URLs get https."""

    if not href:
        return ""
    if href.startswith("//"):
        return "https:" + href
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base_url, href)


def has_product_markers(markup: str) -> bool:
    """Return True when raw markup contains any known listing indicator."""

    if not markup:
        return False
    return any(marker in markup for marker in selectors.PRODUCT_MARKERS)


__all__ = [
    "absolute_url",
    "attr_of",
    "has_product_markers",
    "identifier_of",
    "load_markup",
    "select_text",
    "text_of",
]
