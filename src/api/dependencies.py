"""
API Dependencies.

Shared dependencies for API routes (pipeline instance, credentials,
HTTP client for public pages).
"""

from pydantic import BaseModel

from config.settings import get_settings
from src.crawler.http_client import HttpClient
from src.crawler.types import Credentials
from src.jobs import scheduler
from src.jobs.pipeline import Pipeline, configured_credentials

# Global client for one-off public page scrapes
_public_http: HttpClient | None = None


class CredentialsRequest(BaseModel):
    """Optional credential override sent by the caller."""

    email: str | None = None
    password: str | None = None


class ScrapeUrlRequest(BaseModel):
    """Listing page to scrape."""

    url: str | None = None


def get_pipeline() -> Pipeline:
    """Process-wide pipeline instance."""
    return scheduler.get_pipeline()


def get_public_http() -> HttpClient:
    """Get or create the client used for public listing pages."""
    global _public_http
    if _public_http is None:
        dwv = get_settings().dwv
        _public_http = HttpClient(
            base_url=dwv.base_url,
            user_agent=dwv.user_agent,
            timeout=dwv.request_timeout,
        )
    return _public_http


async def close_public_http() -> None:
    """Close the public page client."""
    global _public_http
    if _public_http is not None:
        await _public_http.close()
        _public_http = None


def resolve_credentials(body: CredentialsRequest | None) -> Credentials:
    """
    Credentials from the request body, falling back to configuration.

    Args:
        body: Optional request body

    Returns:
        Credentials (possibly blank; the pipeline rejects those)
    """
    configured = configured_credentials()
    if body is None:
        return configured
    return Credentials(
        email=body.email if body.email else configured.email,
        password=body.password if body.password else configured.password,
    )
