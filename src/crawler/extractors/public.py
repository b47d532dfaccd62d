"""
One-off scrape of a public listing page.

Fetches an arbitrary listing URL without a DWV session and runs it
through the same page parser the pipeline uses.
"""

from urllib.parse import urlparse

from loguru import logger

from src.crawler.errors import ExtractionError
from src.crawler.extractors.html import parse_listing_page
from src.crawler.http_client import HttpClient
from src.modules.listings.models import Listing

public_log = logger.bind(module="PublicScrape")


def is_public_url(url: str) -> bool:
    """
    Whether url is an absolute http(s) URL.

    Examples:
        >>> is_public_url("https://www.zapimoveis.com.br/venda/")
        True
        >>> is_public_url("/imoveis")
        False
    """
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


async def scrape_public_url(http: HttpClient, url: str) -> list[Listing]:
    """
    Fetch a listing page and extract its listings.

    Args:
        http: Client used for the fetch
        url: Absolute http(s) URL of the page

    Returns:
        Listings found on the page (may be empty)

    Raises:
        ValueError: url is not an absolute http(s) URL
        ExtractionError: the page answered with an error status
        TransientNetworkError: the fetch itself failed
    """
    if not is_public_url(url):
        raise ValueError(f"not an http(s) URL: {url}")

    public_log.info(f"Scraping {url}")
    resp = await http.get(url)
    if not resp.ok:
        raise ExtractionError(f"HTTP {resp.status_code} from {url}")

    listings = parse_listing_page(resp.text, resp.url or url)
    public_log.info(f"{len(listings)} listings from {url}")
    return listings
