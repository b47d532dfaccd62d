"""
Utility modules for the DWV scraper.
"""

from src.utils.dedup import dedupe_against_store, dedupe_within_run
from src.utils.normalizer import (
    format_price,
    get_path,
    locate_items,
    normalize_card,
    normalize_item,
)

__all__ = [
    # Normalizer
    "format_price",
    "get_path",
    "locate_items",
    "normalize_card",
    "normalize_item",
    # Dedup
    "dedupe_within_run",
    "dedupe_against_store",
]
