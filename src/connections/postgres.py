"""
PostgreSQL Connection Module.

Manages the asyncpg connection pool used by the listing repositories and
creates their tables on first connect.
"""

from typing import Optional

import asyncpg
from loguru import logger

from config.settings import get_settings

pg_log = logger.bind(module="Postgres")

# Idempotent; status values mirror ListingStatus
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS properties (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    title text NOT NULL,
    price text NOT NULL,
    location text NOT NULL,
    bedrooms integer,
    bathrooms integer,
    square_feet integer,
    description text,
    image_url text,
    property_type text,
    listing_url text NOT NULL,
    scraped_at timestamptz DEFAULT now(),
    features text[],
    agent_name text,
    agent_phone text,
    status text DEFAULT 'active' CHECK (status IN ('active', 'pending', 'sold')),
    created_at timestamptz DEFAULT now(),
    updated_at timestamptz DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_properties_title ON properties(title);
CREATE INDEX IF NOT EXISTS idx_properties_scraped_at ON properties(scraped_at DESC);
CREATE INDEX IF NOT EXISTS idx_properties_status ON properties(status);

CREATE TABLE IF NOT EXISTS process_metadata (
    process_name text PRIMARY KEY,
    last_run timestamptz NOT NULL,
    success boolean NOT NULL,
    listings_extracted integer NOT NULL DEFAULT 0,
    listings_saved integer NOT NULL DEFAULT 0,
    error text,
    updated_at timestamptz DEFAULT now()
);
"""


class PostgresConnection:
    """PostgreSQL connection manager."""

    def __init__(self):
        """Initialize PostgreSQL connection."""
        self.settings = get_settings().postgres
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Connect to PostgreSQL."""
        pg_log.info(f"Connecting to PostgreSQL at {self.settings.host}:{self.settings.port}")
        self._pool = await asyncpg.create_pool(
            host=self.settings.host,
            port=self.settings.port,
            user=self.settings.user,
            password=self.settings.password,
            database=self.settings.database,
            min_size=1,
            max_size=self.settings.pool_max,
        )
        pg_log.info("PostgreSQL connected successfully")

        if self.settings.init_schema:
            await self.ensure_schema()

    async def ensure_schema(self) -> None:
        """Create the properties and process_metadata tables if missing."""
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        pg_log.debug("Schema verified")

    async def close(self) -> None:
        """Close PostgreSQL connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            pg_log.info("PostgreSQL connection closed")

    @property
    def pool(self) -> asyncpg.Pool:
        """Get connection pool."""
        if not self._pool:
            raise RuntimeError("PostgreSQL not connected. Call connect() first.")
        return self._pool


# Singleton instance
_postgres: Optional[PostgresConnection] = None


async def get_postgres() -> PostgresConnection:
    """Get PostgreSQL connection singleton."""
    global _postgres
    if _postgres is None:
        connection = PostgresConnection()
        await connection.connect()
        _postgres = connection
    return _postgres


async def close_postgres() -> None:
    """Close PostgreSQL connection."""
    global _postgres
    if _postgres:
        await _postgres.close()
        _postgres = None
