"""
Listing deduplication.

Two passes: within one run by (title, location), then against storage by
exact title.
"""

from collections.abc import Iterable

from src.modules.listings.models import Listing


def dedupe_within_run(listings: Iterable[Listing]) -> list[Listing]:
    """
    Keep the first listing per case-insensitive, trimmed (title, location).

    Args:
        listings: Listings in extraction order

    Returns:
        Listings with later duplicates removed, order preserved
    """
    seen: set[tuple[str, str]] = set()
    unique: list[Listing] = []
    for listing in listings:
        key = listing.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(listing)
    return unique


def dedupe_against_store(
    listings: Iterable[Listing],
    existing_titles: Iterable[str],
) -> list[Listing]:
    """
    Drop listings whose title already exists in storage (exact match).

    Args:
        listings: Candidate listings
        existing_titles: Titles already stored

    Returns:
        Listings not yet stored
    """
    existing = set(existing_titles)
    return [listing for listing in listings if listing.title not in existing]
