"""
Extraction stages for the DWV scraper.

Stages try JSON endpoints first, then rendered pages, dashboard sections
and keyword search. Each stage catches its own failures. Public listing
pages can also be scraped one at a time, without a session.
"""

from src.crawler.extractors.api import ApiStage
from src.crawler.extractors.base import ExtractionStage
from src.crawler.extractors.chain import ExtractionChain, build_extraction_chain
from src.crawler.extractors.html import (
    extract_embedded_json,
    find_card_fragments,
    find_listing_links,
    parse_listing_page,
)
from src.crawler.extractors.pages import DashboardStage, HtmlPageStage, SearchStage
from src.crawler.extractors.public import is_public_url, scrape_public_url

__all__ = [
    # Stages
    "ExtractionStage",
    "ApiStage",
    "HtmlPageStage",
    "DashboardStage",
    "SearchStage",
    # Chain
    "ExtractionChain",
    "build_extraction_chain",
    # HTML parsing
    "extract_embedded_json",
    "find_card_fragments",
    "find_listing_links",
    "parse_listing_page",
    # Public pages
    "is_public_url",
    "scrape_public_url",
]
