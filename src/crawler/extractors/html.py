"""
HTML listing page parser.

Embedded JSON state is preferred; repeating card markup is the fallback.
"""

import json
import re
from typing import Any
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from loguru import logger

from src.crawler.endpoints import LISTING_LINK_KEYWORDS
from src.modules.listings.models import Listing
from src.utils.normalizer import locate_items, normalize_card, normalize_item

html_log = logger.bind(module="HtmlParser")

# Script assignments that hold a JSON state dump
EMBEDDED_STATE_RE = re.compile(
    r"(?:window\.__INITIAL_STATE__|window\.APP_DATA|window\.__NUXT__|var\s+properties|var\s+imoveis)\s*=\s*"
)

# Ordered card selectors; earlier ones are more specific
CARD_SELECTORS = [
    'div[class*="imovel-card"]',
    'div[class*="property-card"]',
    'div[class*="card-imovel"]',
    'div[class*="listing-card"]',
    'article[class*="imovel"]',
    'article[class*="property"]',
    'article[class*="listing"]',
    'li[class*="imovel"]',
    'li[class*="property"]',
    'li[class*="listing"]',
    "[data-property]",
    "[data-imovel]",
]

_decoder = json.JSONDecoder()


def extract_embedded_json(html: str) -> list[Any]:
    """
    Collect JSON payloads embedded in script tags.

    Args:
        html: Page HTML

    Returns:
        Decoded payloads in document order
    """
    soup = BeautifulSoup(html, "html.parser")
    payloads: list[Any] = []

    for script in soup.find_all("script"):
        content = script.string or script.get_text() or ""
        if not content.strip():
            continue

        if "json" in (script.get("type") or "").lower():
            try:
                payloads.append(json.loads(content))
            except ValueError:
                html_log.debug("Skipping invalid JSON script block")
            continue

        for match in EMBEDDED_STATE_RE.finditer(content):
            try:
                value, _ = _decoder.raw_decode(content, match.end())
            except ValueError:
                # e.g. a Nuxt IIFE instead of a literal
                continue
            payloads.append(value)

    return payloads


def find_card_fragments(html: str) -> list[str]:
    """
    Markup of each listing card, outermost duplicates removed.

    Args:
        html: Page HTML

    Returns:
        List of card HTML fragments
    """
    soup = BeautifulSoup(html, "html.parser")
    selected: list = []
    selected_ids: set[int] = set()

    for selector in CARD_SELECTORS:
        for elem in soup.select(selector):
            if id(elem) in selected_ids:
                continue
            # Skip cards nested in (or wrapping) an already selected card
            if any(id(parent) in selected_ids for parent in elem.parents):
                continue
            if any(id(child) in selected_ids for child in elem.find_all(True)):
                continue
            selected.append(elem)
            selected_ids.add(id(elem))

    return [str(elem) for elem in selected]


def parse_listing_page(html: str, source_url: str) -> list[Listing]:
    """
    Extract listings from a rendered page.

    Args:
        html: Page HTML
        source_url: URL of the page

    Returns:
        Listings found (placeholder-only records dropped)
    """
    listings: list[Listing] = []
    for payload in extract_embedded_json(html):
        for item in locate_items(payload):
            listing = normalize_item(item, source_url)
            if listing is not None and not listing.has_only_defaults:
                listings.append(listing)

    if listings:
        html_log.debug(f"{len(listings)} listings from embedded JSON at {source_url}")
        return listings

    for fragment in find_card_fragments(html):
        listing = normalize_card(fragment, source_url)
        if listing is not None:
            listings.append(listing)

    if listings:
        html_log.debug(f"{len(listings)} listings from cards at {source_url}")
    return listings


def find_listing_links(html: str, page_url: str) -> list[str]:
    """
    Same-host links that look like listing pages, in document order.

    Args:
        html: Page HTML
        page_url: URL of the page (base for relative links)

    Returns:
        Unique absolute URLs without fragments
    """
    host = urlparse(page_url).netloc
    soup = BeautifulSoup(html, "html.parser")
    links: list[str] = []

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not any(keyword in href.lower() for keyword in LISTING_LINK_KEYWORDS):
            continue
        url = urljoin(page_url, href).split("#", 1)[0]
        if urlparse(url).netloc != host:
            continue
        if url not in links:
            links.append(url)

    return links
