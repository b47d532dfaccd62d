"""
Listing Repository.

Data access layer for the properties table.
"""

from abc import ABC, abstractmethod

import asyncpg
from asyncpg import Pool
from loguru import logger

from src.crawler.errors import PersistenceError
from src.modules.listings.models import Listing

listings_log = logger.bind(module="Listings")


class ListingStore(ABC):
    """Persistence contract the pipeline depends on."""

    @abstractmethod
    async def get_existing_titles(self, titles: list[str]) -> list[str]:
        """Return the subset of titles already stored."""

    @abstractmethod
    async def insert_listings(self, listings: list[Listing]) -> list[Listing]:
        """Insert listings, returning the ones actually saved."""


class ListingRepository(ListingStore):
    """Repository for listing database operations."""

    COLUMNS = (
        "title",
        "price",
        "location",
        "bedrooms",
        "bathrooms",
        "square_feet",
        "description",
        "image_url",
        "property_type",
        "listing_url",
        "scraped_at",
        "features",
        "agent_name",
        "agent_phone",
        "status",
    )

    def __init__(self, pool: Pool):
        """
        Initialize repository with database connection pool.

        Args:
            pool: asyncpg connection pool
        """
        self._pool = pool

    async def get_existing_titles(self, titles: list[str]) -> list[str]:
        """
        Find which of the given titles already exist in storage.

        Args:
            titles: Candidate listing titles

        Returns:
            Titles already present (exact match)

        Raises:
            PersistenceError: If the query fails
        """
        if not titles:
            return []

        query = "SELECT DISTINCT title FROM properties WHERE title = ANY($1::text[])"
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, list(titles))
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Failed to load existing titles: {e}") from e

        return [row["title"] for row in rows]

    async def insert_listings(self, listings: list[Listing]) -> list[Listing]:
        """
        Insert a batch of listings in one transaction.

        Args:
            listings: Listings to insert

        Returns:
            The inserted listings

        Raises:
            PersistenceError: If the insert fails (the whole batch is rolled back)
        """
        if not listings:
            return []

        placeholders = ", ".join(f"${i}" for i in range(1, len(self.COLUMNS) + 1))
        query = f"""
        INSERT INTO properties ({", ".join(self.COLUMNS)})
        VALUES ({placeholders})
        RETURNING id
        """

        saved: list[Listing] = []
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    for listing in listings:
                        row = listing.to_db_row()
                        result = await conn.fetchrow(
                            query, *(row[col] for col in self.COLUMNS)
                        )
                        if result is not None:
                            saved.append(listing)
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Failed to insert {len(listings)} listings: {e}") from e

        listings_log.info(f"Inserted {len(saved)} listings")
        return saved
