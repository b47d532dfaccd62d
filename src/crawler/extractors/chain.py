"""
Extraction chain.

Runs the API stage, then the HTML fallbacks while the haul is still
below the configured threshold.
"""

from loguru import logger

from config.settings import CrawlerSettings
from src.crawler.extractors.api import ApiStage
from src.crawler.extractors.base import ExtractionStage
from src.crawler.extractors.pages import DashboardStage, HtmlPageStage, SearchStage
from src.crawler.http_client import HttpClient
from src.crawler.types import ExtractionResult, Session
from src.modules.listings.models import Listing
from src.utils.dedup import dedupe_within_run

chain_log = logger.bind(module="Extractor")


class ExtractionChain:
    """
    Aggregate listings from independent stages.

    The first stage always runs; each later stage runs only while fewer
    than fallback_threshold unique listings were collected. A stage that
    crashes is logged and skipped. A stage that lands on a login page
    stops the chain and flags the result as session_expired.
    """

    def __init__(self, stages: list[ExtractionStage], fallback_threshold: int = 10):
        """
        Initialize the chain.

        Args:
            stages: Stages in the order they run
            fallback_threshold: Unique listing count that skips later stages
        """
        self._stages = stages
        self._fallback_threshold = fallback_threshold

    async def extract(self, session: Session) -> ExtractionResult:
        """
        Collect listings with an authenticated session.

        Args:
            session: Validated session

        Returns:
            Aggregated ExtractionResult; never raises
        """
        listings: list[Listing] = []
        sources: list[str] = []
        errors: list[str] = []
        session_expired = False

        for index, stage in enumerate(self._stages):
            collected = len(dedupe_within_run(listings))
            if index and collected >= self._fallback_threshold:
                chain_log.debug(f"Skipping {stage.name}: {collected} listings already")
                continue

            chain_log.info(f"Running extraction stage: {stage.name}")
            try:
                result = await stage.run(session)
            except Exception as e:
                chain_log.error(f"Stage {stage.name} failed: {e}")
                errors.append(f"{stage.name}: {e}")
                continue

            if result.listings:
                listings.extend(result.listings)
                sources.append(stage.name)

            if result.session_expired:
                session_expired = True
                chain_log.warning(f"Stage {stage.name} hit a login page, stopping")
                break

        source = ", ".join(sources) if sources else "none"
        if listings:
            message = f"Extracted {len(listings)} listings from {source}"
            chain_log.info(message)
        else:
            message = "No listings found by any stage"
            chain_log.warning(message)

        return ExtractionResult(
            success=bool(listings),
            listings=listings,
            source=source,
            message=message,
            error="; ".join(errors) or None,
            session_expired=session_expired,
        )


def build_extraction_chain(http: HttpClient, settings: CrawlerSettings) -> ExtractionChain:
    """Assemble the default chain: API, pages, dashboard, search."""
    stages: list[ExtractionStage] = [
        ApiStage(http, settings),
        HtmlPageStage(http, settings),
        DashboardStage(http, settings),
        SearchStage(http, settings),
    ]
    return ExtractionChain(stages, fallback_threshold=settings.fallback_threshold)
