"""Data models for extracted records and scrape results."""

from __future__ import annotations

import hashlib
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

UNKNOWN_TITLE = "Unknown Product"
TEMP_ID_PREFIX = "temp-"

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
    extra="ignore",
)


def generated_id(seed: str, position: int) -> str:
    """Return a placeholder identifier for a card that exposes none.

    The value depends only on the card markup and its position so repeated
    extraction of the same document yields the same records.
    """

    digest = hashlib.sha1(seed.encode("utf-8", "replace")).hexdigest()[:10]
    return f"{TEMP_ID_PREFIX}{position}-{digest}"


class Item(BaseModel):
    """One product card scraped from a listing page."""

    model_config = _MODEL_CONFIG

    sku: str
    title: str = UNKNOWN_TITLE
    brand: str = ""
    label: str = ""
    price: str = ""
    old_price: str = ""
    save_amount: str = ""
    save_percentage: str = ""
    image: str = ""
    url: str = ""
    rating: str = ""
    review_count: str = ""
    pickup: str = ""
    delivery: str = ""

    @property
    def has_generated_id(self) -> bool:
        return not self.sku or self.sku.startswith(TEMP_ID_PREFIX)

    def is_plausible(self) -> bool:
        """A card worth keeping: it has a real title and a price or a link."""

        return bool(self.title) and self.title != UNKNOWN_TITLE and bool(self.price or self.url)

    def is_valid(self) -> bool:
        """Plausible and carrying a site-provided identifier."""

        return self.is_plausible() and not self.has_generated_id

    def is_discounted(self) -> bool:
        return bool(self.old_price or self.save_amount or self.save_percentage)


class PageResult(BaseModel):
    """Items accepted for one logical listing page."""

    model_config = _MODEL_CONFIG

    page_number: int = Field(ge=1)
    url: str
    products: tuple[Item, ...] = ()
    has_next_page: bool = False
    next_page_url: str | None = None

    @computed_field(alias="productsCount")  # type: ignore[prop-decorator]
    @property
    def products_count(self) -> int:
        return len(self.products)


class ScrapeResult(BaseModel):
    """Outcome of one paginated run."""

    model_config = _MODEL_CONFIG

    success: bool
    base_url: str
    total_pages: int = 0
    total_products: int = 0
    pages: tuple[PageResult, ...] = ()
    all_products: tuple[Item, ...] = ()
    raw_product_count: int = 0
    detected_pages: int | None = None
    partial: bool = False
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialise with the camelCase keys consumers of the JSON expect."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = [
    "Item",
    "PageResult",
    "ScrapeResult",
    "TEMP_ID_PREFIX",
    "UNKNOWN_TITLE",
    "generated_id",
]
