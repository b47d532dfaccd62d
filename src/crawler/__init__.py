"""Crawler modules."""

from src.crawler.errors import (
    AuthenticationError,
    ExtractionError,
    PersistenceError,
    ScraperError,
    TransientNetworkError,
)
from src.crawler.http_client import HttpClient, HttpResponse
from src.crawler.types import (
    AuthMethod,
    AuthResult,
    Credentials,
    ExtractionResult,
    Session,
)

__all__ = [
    # Types
    "AuthMethod",
    "AuthResult",
    "Credentials",
    "ExtractionResult",
    "Session",
    # Errors
    "ScraperError",
    "AuthenticationError",
    "ExtractionError",
    "PersistenceError",
    "TransientNetworkError",
    # HTTP
    "HttpClient",
    "HttpResponse",
]
