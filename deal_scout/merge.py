"""Cross-page merge: order-preserving de-duplication and validity filtering."""

from __future__ import annotations

from typing import Iterable, Sequence

from deal_scout.extractors.schemas import Item, PageResult, ScrapeResult


def remove_duplicates(items: Iterable[Item]) -> list[Item]:
    """Keep the first occurrence of every ``(sku, title)`` pair.

    Items with a generated identifier are never treated as duplicates of
    one another.
    """

    seen: set[tuple[str, str]] = set()
    unique: list[Item] = []
    for item in items:
        if item.has_generated_id:
            unique.append(item)
            continue
        key = (item.sku, item.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def validate_items(items: Iterable[Item]) -> list[Item]:
    """Drop items without a real identifier, a real title, or a price/URL."""

    return [item for item in items if item.is_valid()]


def merge_pages(
    pages: Sequence[PageResult],
    *,
    base_url: str,
    success: bool = True,
    error: str | None = None,
    partial: bool = False,
    detected_pages: int | None = None,
) -> ScrapeResult:
    """Assemble the final :class:`ScrapeResult` from accepted pages in page order."""

    ordered = sorted(pages, key=lambda page: page.page_number)
    concatenated = [item for page in ordered for item in page.products]
    merged = validate_items(remove_duplicates(concatenated))

    return ScrapeResult(
        success=success,
        base_url=base_url,
        total_pages=len(ordered),
        total_products=len(merged),
        pages=tuple(ordered),
        all_products=tuple(merged),
        raw_product_count=len(concatenated),
        detected_pages=detected_pages,
        partial=partial,
        error=error,
    )


def failed_result(base_url: str, error: str) -> ScrapeResult:
    """A failure carrying no pages (configuration error or page-1 failure)."""

    return ScrapeResult(success=False, base_url=base_url, error=error)


__all__ = ["failed_result", "merge_pages", "remove_duplicates", "validate_items"]
