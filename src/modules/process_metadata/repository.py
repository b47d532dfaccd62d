"""
Process Metadata Repository.

Stores the outcome of the latest run per process name.
"""

from datetime import datetime, timezone

import asyncpg
from asyncpg import Pool
from loguru import logger

from src.crawler.errors import PersistenceError

metadata_log = logger.bind(module="Metadata")


class ProcessMetadataRepository:
    """Repository for the process_metadata table."""

    def __init__(self, pool: Pool):
        """
        Initialize repository with database connection pool.

        Args:
            pool: asyncpg connection pool
        """
        self._pool = pool

    async def upsert(
        self,
        process_name: str,
        success: bool,
        listings_extracted: int,
        listings_saved: int,
        error: str | None = None,
    ) -> None:
        """
        Record the latest run of a process.

        Raises:
            PersistenceError: If the write fails
        """
        query = """
        INSERT INTO process_metadata (
            process_name, last_run, success,
            listings_extracted, listings_saved, error, updated_at
        ) VALUES ($1, $2, $3, $4, $5, $6, NOW())
        ON CONFLICT (process_name) DO UPDATE SET
            last_run = EXCLUDED.last_run,
            success = EXCLUDED.success,
            listings_extracted = EXCLUDED.listings_extracted,
            listings_saved = EXCLUDED.listings_saved,
            error = EXCLUDED.error,
            updated_at = NOW()
        """
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    query,
                    process_name,
                    datetime.now(timezone.utc),
                    success,
                    listings_extracted,
                    listings_saved,
                    error,
                )
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Failed to update process metadata: {e}") from e

        metadata_log.debug(f"Process metadata updated for {process_name}")
