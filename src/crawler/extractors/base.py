"""
Extraction stage interface and shared fetch/retry logic.
"""

import asyncio
from abc import ABC, abstractmethod

from loguru import logger

from config.settings import CrawlerSettings
from src.crawler.errors import TransientNetworkError
from src.crawler.http_client import HttpClient, HttpResponse
from src.crawler.types import ExtractionResult, Session
from src.modules.listings.models import Listing

extract_log = logger.bind(module="Extractor")

# Statuses worth another attempt; other 4xx answers are final
RETRYABLE_STATUSES = {408, 425, 429, 500, 502, 503, 504}


class ExtractionStage(ABC):
    """One independent way of collecting listings."""

    name: str

    def __init__(self, http: HttpClient, settings: CrawlerSettings):
        """
        Initialize the stage.

        Args:
            http: HTTP client bound to the site
            settings: Crawler settings (retries, delays)
        """
        self._http = http
        self._settings = settings

    @abstractmethod
    async def run(self, session: Session) -> ExtractionResult:
        """Collect listings with an authenticated session."""

    async def fetch_with_retry(
        self,
        path_or_url: str,
        session: Session,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse | None:
        """
        GET with bounded retries and linear backoff.

        Args:
            path_or_url: Site path or absolute URL
            session: Session attached to the request
            headers: Extra request headers

        Returns:
            The 2xx response, or None once attempts are exhausted
        """
        attempts = max(1, self._settings.request_retries)
        for attempt in range(1, attempts + 1):
            try:
                resp = await self._http.get(path_or_url, session=session, headers=headers)
            except TransientNetworkError as e:
                extract_log.debug(f"[{self.name}] {path_or_url} attempt {attempt}/{attempts}: {e}")
            else:
                if resp.ok:
                    return resp
                extract_log.debug(
                    f"[{self.name}] {path_or_url} attempt {attempt}/{attempts}: HTTP {resp.status_code}"
                )
                if resp.status_code not in RETRYABLE_STATUSES:
                    return None

            if attempt < attempts:
                await asyncio.sleep(self._settings.retry_delay * attempt)

        extract_log.warning(f"[{self.name}] Giving up on {path_or_url} after {attempts} attempts")
        return None

    def _result(self, listings: list[Listing], session_expired: bool = False) -> ExtractionResult:
        return ExtractionResult(
            success=bool(listings),
            listings=listings,
            source=self.name,
            message=f"{len(listings)} listings from {self.name}",
            session_expired=session_expired,
        )
