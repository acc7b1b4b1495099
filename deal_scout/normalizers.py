"""Utility helpers for normalising scraped text values."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_PRICE_PATTERN = re.compile(r"(?P<number>-?\d{1,3}(?:,\d{3})*(?:\.\d+)?|-?\d*\.\d+|-?\d+)")
_PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*%")


def clean_text(value: str | None) -> str:
    """Collapse runs of whitespace and trim the result."""

    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def normalize_availability(value: str | None) -> str | None:
    """Convert schema.org availability URIs into human-readable labels."""

    if not value:
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    lowered = trimmed.lower()
    if lowered.startswith("http://schema.org/"):
        trimmed = trimmed[len("http://schema.org/") :]
        lowered = trimmed.lower()
    elif lowered.startswith("https://schema.org/"):
        trimmed = trimmed[len("https://schema.org/") :]
        lowered = trimmed.lower()

    mapped = {
        "instock": "In Stock",
        "outofstock": "Out of Stock",
        "preorder": "Preorder",
        "soldout": "Sold Out",
        "limitedavailability": "Limited",
        "onlineonly": "Online Only",
        "instoreonly": "In Store Only",
    }

    if lowered in mapped:
        return mapped[lowered]

    if lowered in {"limited", "limited availability"}:
        return "Limited"

    return trimmed


def parse_price(text: str | None) -> float | None:
    """Parse a price-like string such as ``"$1,198.00"`` into a float.

    Returns ``None`` when no positive number below 100,000 is present.
    """

    if not text:
        return None

    match = _PRICE_PATTERN.search(text)
    if not match:
        return None

    number = match.group("number").replace(",", "")
    try:
        value = float(number)
    except (TypeError, ValueError):
        return None

    if value <= 0 or value >= 100_000:
        return None

    return value


def parse_percent(text: str | None) -> float | None:
    """Return the percentage in ``"40%"`` as a fraction (0.4)."""

    if not text:
        return None
    match = _PERCENT_PATTERN.search(text)
    if not match:
        return None
    value = float(match.group(1))
    if value <= 0 or value > 100:
        return None
    return value / 100


def format_price(value: float | int | str | None) -> str:
    """Render a numeric price the way listing pages show it (``$1,198.00``)."""

    if value is None or value == "":
        return ""
    try:
        number = float(str(value).replace(",", "").lstrip("$"))
    except ValueError:
        return ""
    return f"${number:,.2f}"


def compute_pct_off(price: float | None, was: float | None) -> float | None:
    """Compute the fraction off between ``price`` and ``was`` values."""

    if price is None or was is None:
        return None

    if price <= 0 or was <= 0:
        return None

    if price >= was:
        return None

    return (was - price) / was


def strip_label(text: str, *labels: str) -> str:
    """Drop a leading ``"Pickup:"``-style label from fulfillment text."""

    cleaned = clean_text(text)
    for label in labels:
        match = re.match(rf"^\s*{re.escape(label)}\s*:?\s*", cleaned, re.I)
        if match:
            return cleaned[match.end() :].strip()
    return cleaned


__all__ = [
    "clean_text",
    "compute_pct_off",
    "format_price",
    "normalize_availability",
    "parse_percent",
    "parse_price",
    "strip_label",
]
