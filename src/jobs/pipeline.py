"""
Pipeline Orchestrator Module.

Authenticates, extracts, deduplicates and stores DWV listings.
"""

import asyncio
import time
from datetime import datetime, timezone

import asyncpg
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from config.settings import Settings, get_settings
from src.connections.postgres import get_postgres
from src.crawler.auth.chain import AuthChain, build_auth_chain
from src.crawler.errors import AuthenticationError, ExtractionError, PersistenceError
from src.crawler.extractors.chain import ExtractionChain, build_extraction_chain
from src.crawler.http_client import HttpClient
from src.crawler.session_cache import create_session_cache
from src.crawler.types import AuthMethod, AuthResult, Credentials, ExtractionResult
from src.modules.listings import Listing, ListingRepository, ListingStore
from src.modules.process_metadata import ProcessMetadataRepository
from src.utils.dedup import dedupe_against_store, dedupe_within_run

pipeline_log = logger.bind(module="Pipeline")

PROCESS_NAME = "dwv_scraper"


class ProcessResult(BaseModel):
    """Outcome of one pipeline run. Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str
    listings_extracted: int = 0
    listings_saved: int = 0
    error: str | None = None
    auth_method: str | None = None
    duration_ms: int = 0


def configured_credentials(settings: Settings | None = None) -> Credentials:
    """Credentials from deployment configuration (DWV_EMAIL / DWV_PASSWORD)."""
    dwv = (settings or get_settings()).dwv
    return Credentials(email=dwv.email, password=dwv.password)


class Pipeline:
    """
    End-to-end scraping run.

    Workflow:
    1. Refuse to start while another run is in progress
    2. Authenticate (retried with linear backoff)
    3. Extract (retried; re-authenticates when the session expired)
    4. Deduplicate within the run, then against stored titles
    5. Insert in batches; a failed batch does not stop the others
    6. Record process metadata
    """

    def __init__(
        self,
        auth_chain: AuthChain | None = None,
        extraction_chain: ExtractionChain | None = None,
        store: ListingStore | None = None,
        metadata: ProcessMetadataRepository | None = None,
        http: HttpClient | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize Pipeline.

        Args:
            auth_chain: Authentication chain (built from settings if not provided)
            extraction_chain: Extraction chain (built from settings if not provided)
            store: Listing store (PostgreSQL repository if not provided)
            metadata: Process metadata repository (PostgreSQL if store not provided)
            http: HTTP client shared by both chains (created if not provided)
            settings: Application settings
        """
        self._settings = settings or get_settings()
        self._auth_chain = auth_chain
        self._extraction_chain = extraction_chain
        self._store = store
        self._metadata = metadata
        self._http = http
        self._owns_http = False

        self._running = False
        self._last_run: datetime | None = None
        self._last_result: ProcessResult | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def auth_chain(self) -> AuthChain:
        """Authentication chain, built on first use."""
        self._ensure_chains()
        return self._auth_chain

    def _ensure_chains(self) -> None:
        """Build the HTTP client and both chains when not injected."""
        dwv = self._settings.dwv
        if self._http is None and (self._auth_chain is None or self._extraction_chain is None):
            self._http = HttpClient(
                base_url=dwv.base_url,
                user_agent=dwv.user_agent,
                timeout=dwv.request_timeout,
            )
            self._owns_http = True
        if self._auth_chain is None:
            cache = create_session_cache(dwv.session_backend)
            self._auth_chain = build_auth_chain(self._http, cache, dwv)
        if self._extraction_chain is None:
            self._extraction_chain = build_extraction_chain(self._http, self._settings.crawler)

    async def _ensure_store(self) -> None:
        """Connect the PostgreSQL repositories when no store was injected."""
        if self._store is not None:
            return
        try:
            postgres = await get_postgres()
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"PostgreSQL unavailable: {e}") from e
        self._store = ListingRepository(postgres.pool)
        if self._metadata is None:
            self._metadata = ProcessMetadataRepository(postgres.pool)

    async def close(self) -> None:
        """Close owned resources."""
        if self._owns_http and self._http:
            await self._http.close()

    def status(self) -> dict:
        """Current run flag and the last run's outcome."""
        return {
            "is_running": self._running,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_result": (
                self._last_result.model_dump(by_alias=True) if self._last_result else None
            ),
        }

    async def run(self, credentials: Credentials) -> ProcessResult:
        """
        Execute one full run.

        Args:
            credentials: Account credentials

        Returns:
            ProcessResult; never raises
        """
        # Checked and set before the first await
        if self._running:
            pipeline_log.warning("Run requested while another run is in progress")
            return ProcessResult(
                success=False,
                message="Process is already running",
                error="already running",
            )
        self._running = True
        started = time.monotonic()

        try:
            try:
                result = await self._run(credentials, started)
            except Exception as e:
                pipeline_log.exception(f"Pipeline crashed: {e}")
                result = self._failure("Unexpected pipeline failure", str(e), started)

            self._last_run = datetime.now(timezone.utc)
            self._last_result = result
            await self._record(result)
            return result
        finally:
            self._running = False

    async def _run(self, credentials: Credentials, started: float) -> ProcessResult:
        if not credentials.is_complete():
            return self._failure("Email and password are required", "invalid credentials", started)

        self._ensure_chains()
        pipeline_log.info("Starting DWV scraping run")

        try:
            auth = await self._authenticate(credentials)
        except AuthenticationError as e:
            return self._failure(f"Authentication failed: {e}", "authentication failed", started)

        try:
            extraction, auth = await self._extract(credentials, auth)
        except AuthenticationError as e:
            return self._failure(
                f"Re-authentication failed: {e}", "authentication failed", started, auth.method_used
            )
        except ExtractionError as e:
            return self._failure(str(e), "no data found", started, auth.method_used)

        unique = dedupe_within_run(extraction.listings)
        removed = len(extraction.listings) - len(unique)
        if removed:
            pipeline_log.info(f"Removed {removed} in-run duplicates")

        saved = await self._persist(unique)

        message = f"Extracted {len(unique)} listings from {extraction.source}, saved {saved}"
        pipeline_log.info(message)
        return ProcessResult(
            success=True,
            message=message,
            listings_extracted=len(unique),
            listings_saved=saved,
            auth_method=auth.method_used,
            duration_ms=_elapsed_ms(started),
        )

    async def _authenticate(self, credentials: Credentials) -> AuthResult:
        """Run the auth chain with retries; raises AuthenticationError."""
        cfg = self._settings.pipeline
        attempts = max(1, cfg.max_retries)
        last_message = ""

        for attempt in range(1, attempts + 1):
            result = await self._auth_chain.authenticate(credentials)
            if result.success and result.session is not None:
                return result

            last_message = result.message
            if result.method_used == AuthMethod.INVALID_CREDENTIALS.value:
                break
            pipeline_log.warning(f"Authentication attempt {attempt}/{attempts} failed")
            if attempt < attempts:
                await asyncio.sleep(cfg.retry_delay * attempt)

        raise AuthenticationError(last_message or "no strategy succeeded")

    async def _extract(
        self,
        credentials: Credentials,
        auth: AuthResult,
    ) -> tuple[ExtractionResult, AuthResult]:
        """Run the extraction chain with retries; raises ExtractionError."""
        cfg = self._settings.pipeline
        attempts = max(1, cfg.max_retries)

        for attempt in range(1, attempts + 1):
            result = await self._extraction_chain.extract(auth.session)
            if result.listings:
                return result, auth

            pipeline_log.warning(f"Extraction attempt {attempt}/{attempts} found no listings")
            if attempt == attempts:
                break

            await asyncio.sleep(cfg.retry_delay * attempt)
            if result.session_expired:
                pipeline_log.info("Session expired during extraction, re-authenticating")
                await self._auth_chain.invalidate(credentials)
                auth = await self._authenticate(credentials)

        raise ExtractionError(f"No data found after {attempts} extraction attempts")

    async def _persist(self, listings: list[Listing]) -> int:
        """Store listings not already present; returns the saved count."""
        if not listings:
            return 0

        try:
            await self._ensure_store()
        except PersistenceError as e:
            pipeline_log.error(f"Cannot store listings: {e}")
            return 0

        try:
            existing = await self._store.get_existing_titles([item.title for item in listings])
        except PersistenceError as e:
            pipeline_log.warning(f"Existing title lookup failed, assuming none: {e}")
            existing = []

        fresh = dedupe_against_store(listings, existing)
        if len(fresh) < len(listings):
            pipeline_log.info(f"Skipping {len(listings) - len(fresh)} already stored listings")

        cfg = self._settings.pipeline
        size = max(1, cfg.batch_size)
        batches = [fresh[i : i + size] for i in range(0, len(fresh), size)]

        saved = 0
        failed = 0
        for index, batch in enumerate(batches):
            if index:
                await asyncio.sleep(cfg.batch_delay)
            try:
                stored = await self._store.insert_listings(batch)
            except PersistenceError as e:
                failed += 1
                pipeline_log.error(f"Batch {index + 1}/{len(batches)} failed: {e}")
                continue
            saved += len(stored)

        if failed:
            pipeline_log.warning(f"{failed}/{len(batches)} batches failed")
        return saved

    async def _record(self, result: ProcessResult) -> None:
        """Upsert process metadata; failures are only logged."""
        if self._metadata is None:
            return
        try:
            await self._metadata.upsert(
                process_name=PROCESS_NAME,
                success=result.success,
                listings_extracted=result.listings_extracted,
                listings_saved=result.listings_saved,
                error=result.error,
            )
        except PersistenceError as e:
            pipeline_log.warning(f"Could not record process metadata: {e}")

    def _failure(
        self,
        message: str,
        error: str,
        started: float,
        auth_method: str | None = None,
    ) -> ProcessResult:
        pipeline_log.error(f"Run failed: {message}")
        return ProcessResult(
            success=False,
            message=message,
            error=error,
            auth_method=auth_method,
            duration_ms=_elapsed_ms(started),
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
