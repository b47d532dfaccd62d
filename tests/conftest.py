"""
Shared pytest fixtures for all tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from config.settings import CrawlerSettings, DwvSettings, PipelineSettings, Settings
from src.crawler.types import Credentials, Session
from src.modules.listings import Listing

# ============================================================
# Settings Fixtures (no delays, no browser)
# ============================================================


@pytest.fixture
def dwv_settings() -> DwvSettings:
    return DwvSettings(
        base_url="https://app.dwvapp.com.br",
        email="",
        password="",
        browser_enabled=False,
        session_backend="memory",
    )


@pytest.fixture
def crawler_settings() -> CrawlerSettings:
    return CrawlerSettings(
        request_retries=1,
        retry_delay=0,
        api_delay=0,
        page_delay=0,
        dashboard_delay=0,
        search_delay=0,
        fallback_threshold=10,
        max_followed_links=3,
    )


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(max_retries=3, retry_delay=0, batch_size=10, batch_delay=0)


@pytest.fixture
def settings(dwv_settings, crawler_settings, pipeline_settings) -> Settings:
    return Settings(dwv=dwv_settings, crawler=crawler_settings, pipeline=pipeline_settings)


# ============================================================
# Domain Fixtures
# ============================================================


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(email="corretor@example.com", password="s3cret")


@pytest.fixture
def valid_session() -> Session:
    return Session(
        cookie_header="dwv_session=xyz; XSRF-TOKEN=tok",
        identifier="dwv_session_test",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=24),
        is_valid=True,
    )


@pytest.fixture
def make_listing():
    """Factory for listings with sensible defaults."""

    def _make(title: str = "Apartamento Batel", location: str = "Batel, Curitiba", **kwargs) -> Listing:
        data = {
            "title": title,
            "price": "R$ 850.000",
            "location": location,
            "listing_url": "https://app.dwvapp.com.br/imoveis/1",
        }
        data.update(kwargs)
        return Listing(**data)

    return _make
