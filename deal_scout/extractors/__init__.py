"""Markup parsing: item records and the extraction strategy cascade."""

from deal_scout.extractors.schemas import Item, PageResult, ScrapeResult
from deal_scout.extractors.strategies import DEFAULT_STRATEGIES, extract_items

__all__ = ["DEFAULT_STRATEGIES", "Item", "PageResult", "ScrapeResult", "extract_items"]
