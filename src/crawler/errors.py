"""
Scraper error types.

Every failure mode of the pipeline maps to one of these. Strategies and
stages catch them internally; only the orchestrator turns them into a
user-facing error string.
"""


class ScraperError(Exception):
    """Base class for all scraper errors."""


class AuthenticationError(ScraperError):
    """Every authentication strategy failed."""


class ExtractionError(ScraperError):
    """Extraction produced zero listings after all retries."""


class PersistenceError(ScraperError):
    """A read or write against the listing store failed."""


class TransientNetworkError(ScraperError):
    """Timeout, connection reset or similar transport failure."""
