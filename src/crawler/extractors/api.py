"""
API extraction stage.

Queries the JSON endpoints the web app itself calls.
"""

import asyncio

from src.crawler.endpoints import API_LISTING_PATHS
from src.crawler.extractors.base import ExtractionStage, extract_log
from src.crawler.types import ExtractionResult, Session
from src.modules.listings.models import Listing
from src.utils.normalizer import locate_items, normalize_item


class ApiStage(ExtractionStage):
    """Read listings from JSON endpoints."""

    name = "api"

    def __init__(self, http, settings, endpoints: list[str] | None = None):
        super().__init__(http, settings)
        self._endpoints = endpoints or API_LISTING_PATHS

    async def run(self, session: Session) -> ExtractionResult:
        headers = {
            "Accept": "application/json, text/plain, */*",
            "X-Requested-With": "XMLHttpRequest",
            "Referer": self._http.url_for("/dashboard"),
        }

        listings: list[Listing] = []
        for index, path in enumerate(self._endpoints):
            if index:
                await asyncio.sleep(self._settings.api_delay)

            resp = await self.fetch_with_retry(path, session, headers=headers)
            if resp is None:
                continue

            data = resp.json()
            if data is None:
                extract_log.debug(f"[api] {path} did not return JSON")
                continue

            source_url = resp.url or self._http.url_for(path)
            found = self._normalize_all(locate_items(data), source_url, path)
            if found:
                extract_log.info(f"[api] {path}: {len(found)} listings")
            listings.extend(found)

        return self._result(listings)

    @staticmethod
    def _normalize_all(items: list, source_url: str, path: str) -> list[Listing]:
        found: list[Listing] = []
        for item in items:
            try:
                listing = normalize_item(item, source_url)
            except (ValueError, OverflowError) as e:
                extract_log.warning(f"[api] {path}: skipped malformed item: {e}")
                continue
            if listing is not None:
                found.append(listing)
        return found
