"""Listings module."""

from src.modules.listings.models import (
    DEFAULT_LOCATION,
    DEFAULT_PRICE,
    DEFAULT_TITLE,
    Listing,
    ListingStatus,
)
from src.modules.listings.repository import ListingRepository, ListingStore

__all__ = [
    "DEFAULT_LOCATION",
    "DEFAULT_PRICE",
    "DEFAULT_TITLE",
    "Listing",
    "ListingStatus",
    "ListingRepository",
    "ListingStore",
]
