"""Write scrape results to disk and summarise them."""

from __future__ import annotations

import csv
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Iterable

from deal_scout.extractors.schemas import Item, ScrapeResult
from deal_scout.logging_config import get_logger
from deal_scout.normalizers import compute_pct_off, parse_percent, parse_price

LOGGER = get_logger(__name__)

CSV_HEADER = [
    "sku",
    "title",
    "brand",
    "label",
    "price",
    "old_price",
    "save_amount",
    "save_percentage",
    "rating",
    "review_count",
    "pickup",
    "delivery",
    "url",
    "image",
]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _atomic_write(path: Path, write) -> None:
    os.makedirs(path.parent, exist_ok=True)
    with NamedTemporaryFile(
        mode="w", newline="", encoding="utf-8", dir=str(path.parent), delete=False
    ) as handle:
        write(handle)
        handle.flush()
        os.fsync(handle.fileno())
        tmp_name = handle.name
    os.replace(tmp_name, path)


def write_json(result: ScrapeResult, json_path: str | Path) -> Path:
    """Write the camelCase result payload plus a ``scrapedAt`` timestamp."""

    path = Path(json_path)
    payload = result.to_payload()
    payload["scrapedAt"] = _utc_now()
    _atomic_write(path, lambda handle: json.dump(payload, handle, indent=2, ensure_ascii=False))
    LOGGER.info("Wrote %s", path)
    return path


def write_csv(items: Iterable[Item], csv_path: str | Path) -> Path:
    path = Path(csv_path)

    def _write(handle) -> None:
        writer = csv.writer(handle)
        writer.writerow(CSV_HEADER)
        for item in items:
            writer.writerow([getattr(item, column) for column in CSV_HEADER])

    _atomic_write(path, _write)
    LOGGER.info("Wrote %s", path)
    return path


def _discount_pct(item: Item) -> float | None:
    price = parse_price(item.price)
    was = parse_price(item.old_price)
    if price is not None and was is not None:
        pct = compute_pct_off(price, was)
        if pct is not None:
            return pct * 100
    saving = parse_price(item.save_amount)
    if price is not None and saving is not None and saving > 0:
        return saving / (price + saving) * 100
    fraction = parse_percent(item.save_percentage)
    return fraction * 100 if fraction is not None else None


def build_summary(result: ScrapeResult) -> dict[str, Any]:
    """Headline numbers for a run: pages, products and discount depth."""

    discounted = [item for item in result.all_products if item.is_discounted()]
    pcts = [pct for pct in (_discount_pct(item) for item in discounted) if pct is not None]
    return {
        "timestamp": _utc_now(),
        "success": result.success,
        "totalPages": result.total_pages,
        "totalProducts": result.total_products,
        "discountedProducts": len(discounted),
        "averageDiscountPct": round(sum(pcts) / len(pcts), 1) if pcts else 0.0,
        "partial": result.partial,
        "error": result.error,
    }


__all__ = ["CSV_HEADER", "build_summary", "write_csv", "write_json"]
