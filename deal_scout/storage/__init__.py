"""Result export helpers."""

from deal_scout.storage.export import build_summary, write_csv, write_json

__all__ = ["build_summary", "write_csv", "write_json"]
