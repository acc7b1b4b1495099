"""Per-card field extraction shared by every DOM-based strategy."""

from __future__ import annotations

import re

from bs4 import Tag

from deal_scout import selectors
from deal_scout.extractors.dom_utils import (
    absolute_url,
    attr_of,
    identifier_of,
    select_text,
    text_of,
)
from deal_scout.extractors.schemas import UNKNOWN_TITLE, Item, generated_id
from deal_scout.normalizers import strip_label

CURRENCY_RE = re.compile(r"\$[0-9,]+\.?[0-9]*")
_SAVE_AMOUNT_RE = re.compile(r"\$([\d,]+\.?\d*)")
_SAVE_PERCENT_RE = re.compile(r"\((\d+)%\)")
DETAIL_ID_RE = re.compile(
    rf"{re.escape(selectors.PRODUCT_PATH_FRAGMENT)}(?:[^/?#\"'\s]+/)*(\d{{6,}})(?=[/?#\"'\s]|$)"
)

_FULFILLMENT = {
    "pickup": (selectors.PICKUP, ("Pickup",)),
    "delivery": (selectors.DELIVERY, ("Delivery", "Shipping")),
}
_FULFILLMENT_TEXT_LIMIT = 120
_MIN_FALLBACK_TITLE = 3


def extract_title(card: Tag) -> tuple[str, str, str]:
    """Return ``(title, brand, label)`` for *card*."""

    brand = select_text(card, selectors.BRAND)
    label = select_text(card, selectors.LABEL)
    if brand and label:
        return f"{brand} {label}", brand, label
    if label or brand:
        return label or brand, brand, label

    heading = card.select_one(selectors.HEADINGS)
    candidates = (
        attr_of(card.find("img"), "alt"),
        attr_of(card.find("a"), "title"),
        text_of(heading),
        select_text(card, selectors.TITLE_FALLBACK_NAMED),
        select_text(card, selectors.TITLE_FALLBACK_CLASS),
    )
    for candidate in candidates:
        if candidate and len(candidate) > _MIN_FALLBACK_TITLE:
            return candidate, brand, label
    return UNKNOWN_TITLE, brand, label


def extract_price(card: Tag) -> str:
    """Return the current price as ``$dollars.cents``, or an empty string."""

    dollars = select_text(card, selectors.PRICE_DOLLARS).lstrip("$").strip()
    if dollars:
        cents = select_text(card, selectors.PRICE_CENTS, last=True).replace(".", "").strip()
        # The currency sign shares the cents styling; anything non-numeric is not cents.
        if not cents.isdigit():
            cents = ""
        return f"${dollars}.{cents or '00'}"

    for selector in selectors.PRICE_FALLBACKS:
        match = CURRENCY_RE.search(select_text(card, selector))
        if match:
            return match.group(0)
    return ""


def extract_savings(card: Tag) -> tuple[str, str, str]:
    """Return ``(old_price, save_amount, save_percentage)``."""

    was_text = select_text(card, selectors.WAS_PRICE)
    was_match = CURRENCY_RE.search(was_text)
    old_price = was_match.group(0) if was_match else was_text

    save_amount = ""
    save_percentage = ""
    save_text = " ".join(text_of(node) for node in card.select(selectors.SAVINGS))
    if save_text:
        amount = _SAVE_AMOUNT_RE.search(save_text)
        if amount:
            save_amount = f"${amount.group(1)}"
        percent = _SAVE_PERCENT_RE.search(save_text)
        if percent:
            save_percentage = f"{percent.group(1)}%"
    return old_price, save_amount, save_percentage


def extract_image(card: Tag) -> str:
    img = card.find("img")
    if img is None:
        return ""
    src = attr_of(img, "src") or attr_of(img, "data-src") or attr_of(img, "data-lazy")
    if not src:
        srcset = attr_of(img, "data-srcset") or attr_of(img, "srcset")
        first = srcset.split(",")[0].strip() if srcset else ""
        src = first.split(" ")[0] if first else ""
    if src.startswith("//"):
        src = "https:" + src
    return src


def extract_url(card: Tag, base_url: str = selectors.BASE_URL) -> str:
    link = card.find("a", href=True)
    href = attr_of(link, "href")
    if not href:
        href = attr_of(card.select_one(selectors.DETAIL_LINK), "href")
    return absolute_url(href, base_url)


def extract_fulfillment(card: Tag, kind: str) -> str:
    """Return pickup or delivery text for *card* (``kind`` is ``"pickup"``/``"delivery"``)."""

    selector_list, labels = _FULFILLMENT[kind]
    for selector in selector_list:
        node = card.select_one(selector)
        if node is not None:
            return strip_label(text_of(node), *labels)

    full_text = card.get_text("\n")
    for label in labels:
        match = re.search(rf"\b{label}\b\s*:?\s*([^\n]+)", full_text)
        if match:
            return match.group(1).strip()[:_FULFILLMENT_TEXT_LIMIT]
    return ""


def identifier_from_url(url: str) -> str:
    """Recover the numeric item id from a ``/p/<slug>/<id>`` detail URL."""

    match = DETAIL_ID_RE.search(url or "")
    return match.group(1) if match else ""


def build_item(
    card: Tag,
    position: int,
    *,
    base_url: str = selectors.BASE_URL,
    sku: str | None = None,
) -> Item:
    """Build an :class:`Item` from a card element."""

    title, brand, label = extract_title(card)
    old_price, save_amount, save_percentage = extract_savings(card)
    url = extract_url(card, base_url)
    identifier = sku or identifier_of(card) or identifier_from_url(url)
    if not identifier:
        identifier = generated_id(str(card), position)

    return Item(
        sku=identifier,
        title=title,
        brand=brand,
        label=label,
        price=extract_price(card),
        old_price=old_price,
        save_amount=save_amount,
        save_percentage=save_percentage,
        image=extract_image(card),
        url=url,
        rating=select_text(card, selectors.RATING),
        review_count=select_text(card, selectors.REVIEW_COUNT),
        pickup=extract_fulfillment(card, "pickup"),
        delivery=extract_fulfillment(card, "delivery"),
    )


__all__ = [
    "CURRENCY_RE",
    "DETAIL_ID_RE",
    "build_item",
    "extract_fulfillment",
    "extract_image",
    "extract_price",
    "extract_savings",
    "extract_title",
    "extract_url",
    "identifier_from_url",
]
