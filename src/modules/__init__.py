"""Modules package - Domain modules with repository pattern."""

from src.modules.listings import (
    Listing,
    ListingRepository,
    ListingStatus,
    ListingStore,
)
from src.modules.process_metadata import ProcessMetadataRepository

__all__ = [
    # Listings
    "Listing",
    "ListingStatus",
    "ListingStore",
    "ListingRepository",
    # Process metadata
    "ProcessMetadataRepository",
]
