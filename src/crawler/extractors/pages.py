"""
Rendered page extraction stages.

Listing pages, dashboard sections (with bounded link following) and
keyword search all share the same HTML parsing.
"""

import asyncio
from urllib.parse import quote

from src.crawler.auth.indicators import is_login_page
from src.crawler.endpoints import (
    DASHBOARD_PATHS,
    LISTING_PAGE_PATHS,
    SEARCH_PATH,
    SEARCH_QUERIES,
)
from src.crawler.extractors.base import ExtractionStage, extract_log
from src.crawler.extractors.html import find_listing_links, parse_listing_page
from src.crawler.types import ExtractionResult, Session
from src.modules.listings.models import Listing


class HtmlPageStage(ExtractionStage):
    """Fetch a fixed list of pages and parse each for listings."""

    name = "pages"
    delay_setting = "page_delay"

    def __init__(self, http, settings, paths: list[str] | None = None):
        super().__init__(http, settings)
        self._paths = paths if paths is not None else self.default_paths()

    def default_paths(self) -> list[str]:
        return LISTING_PAGE_PATHS

    def request_headers(self) -> dict[str, str] | None:
        return None

    @property
    def delay(self) -> float:
        return getattr(self._settings, self.delay_setting)

    async def run(self, session: Session) -> ExtractionResult:
        listings, _, expired = await self._crawl(self._paths, session)
        return self._result(listings, session_expired=expired)

    async def _crawl(
        self,
        paths: list[str],
        session: Session,
    ) -> tuple[list[Listing], list[tuple[str, str]], bool]:
        """
        Fetch and parse pages in order, stopping at a login page.

        Returns:
            Tuple of (listings, [(url, html)], session_expired)
        """
        listings: list[Listing] = []
        pages: list[tuple[str, str]] = []

        for index, path in enumerate(paths):
            if index:
                await asyncio.sleep(self.delay)

            resp = await self.fetch_with_retry(path, session, headers=self.request_headers())
            if resp is None:
                continue

            if is_login_page(resp.text):
                extract_log.warning(f"[{self.name}] {path} shows a login form; session expired")
                return listings, pages, True

            url = resp.url or self._http.url_for(path)
            pages.append((url, resp.text))
            found = parse_listing_page(resp.text, url)
            if found:
                extract_log.info(f"[{self.name}] {path}: {len(found)} listings")
            listings.extend(found)

        return listings, pages, False


class DashboardStage(HtmlPageStage):
    """Dashboard sections, then a few listing links found on them."""

    name = "dashboard"
    delay_setting = "dashboard_delay"

    def default_paths(self) -> list[str]:
        return DASHBOARD_PATHS

    async def run(self, session: Session) -> ExtractionResult:
        listings, pages, expired = await self._crawl(self._paths, session)
        if expired:
            return self._result(listings, session_expired=True)

        visited = {url for url, _ in pages} | {self._http.url_for(p) for p in self._paths}
        links: list[str] = []
        for url, html in pages:
            for link in find_listing_links(html, url):
                if link not in visited and link not in links:
                    links.append(link)

        links = links[: self._settings.max_followed_links]
        if links:
            extract_log.info(f"[dashboard] Following {len(links)} listing links")
            await asyncio.sleep(self.delay)
            more, _, expired = await self._crawl(links, session)
            listings.extend(more)

        return self._result(listings, session_expired=expired)


class SearchStage(HtmlPageStage):
    """Keyword search, the last resort."""

    name = "search"
    delay_setting = "search_delay"

    def default_paths(self) -> list[str]:
        return [f"{SEARCH_PATH}?q={quote(query)}" for query in SEARCH_QUERIES]

    def request_headers(self) -> dict[str, str] | None:
        return {"Referer": self._http.url_for("/imoveis")}
