"""
Unit tests for src/crawler/extractors/
"""

import pytest

from src.crawler.errors import ExtractionError
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
from src.crawler.types import ExtractionResult
from tests.fixtures.http import make_response

# Import fixtures
pytest_plugins = ["tests.fixtures.http", "tests.fixtures.pages"]

PAGE_URL = "https://app.dwvapp.com.br/imoveis"


class StubStage(ExtractionStage):
    """Stage returning canned listings without touching the network."""

    def __init__(self, name, listings=None, error=None, session_expired=False):
        self.name = name
        self._listings = listings or []
        self._error = error
        self._session_expired = session_expired
        self.runs = 0

    async def run(self, session):
        self.runs += 1
        if self._error:
            raise self._error
        return ExtractionResult(
            success=bool(self._listings),
            listings=self._listings,
            source=self.name,
            session_expired=self._session_expired,
        )


# ============================================================
# html.py tests
# ============================================================


class TestExtractEmbeddedJson:
    """Tests for extract_embedded_json function."""

    def test_initial_state_assignment(self, embedded_state_html):
        payloads = extract_embedded_json(embedded_state_html)
        assert len(payloads) == 1
        assert len(payloads[0]["imoveis"]["items"]) == 2

    def test_json_script_tag(self):
        html = '<script type="application/json">{"data": [{"titulo": "A"}]}</script>'
        assert extract_embedded_json(html) == [{"data": [{"titulo": "A"}]}]

    def test_invalid_json_is_skipped(self):
        html = '<script type="application/json">{not json</script><script>var x = 1;</script>'
        assert extract_embedded_json(html) == []


class TestFindCardFragments:
    """Tests for find_card_fragments function."""

    def test_each_card_once(self, card_page_html):
        assert len(find_card_fragments(card_page_html)) == 3

    def test_nested_matches_are_not_repeated(self):
        html = (
            '<article class="imovel-item">'
            '<div class="imovel-card"><h3>Casa</h3></div>'
            "</article>"
        )
        fragments = find_card_fragments(html)
        assert len(fragments) == 1
        assert 'class="imovel-card"' in fragments[0]


class TestParseListingPage:
    """Tests for parse_listing_page function."""

    def test_cards(self, card_page_html):
        listings = parse_listing_page(card_page_html, PAGE_URL)

        assert [item.title for item in listings] == ["Apartamento Batel", "Casa Santa Felicidade"]
        first = listings[0]
        assert first.price == "R$ 850.000"
        assert first.location == "Rua Bispo Dom José, Batel, Curitiba"
        assert first.bedrooms == 3
        assert first.bathrooms == 2
        assert first.area_sq_ft == 1292
        assert first.listing_url == "https://app.dwvapp.com.br/imoveis/101"
        assert first.image_url == "https://app.dwvapp.com.br/img/101.jpg"
        assert listings[1].bedrooms == 4

    def test_embedded_state_wins_over_cards(self, embedded_state_html):
        listings = parse_listing_page(embedded_state_html, PAGE_URL)

        assert [item.title for item in listings] == ["Studio Centro", "Cobertura Ecoville"]
        assert listings[0].price == "R$ 320.000"
        assert listings[0].listing_url == "https://app.dwvapp.com.br/imoveis/7"
        assert listings[1].listing_url == PAGE_URL

    def test_page_without_listings(self, dashboard_html):
        assert parse_listing_page(dashboard_html, PAGE_URL) == []


class TestFindListingLinks:
    """Tests for find_listing_links function."""

    def test_same_host_listing_links_only(self, dashboard_with_links_html):
        links = find_listing_links(dashboard_with_links_html, "https://app.dwvapp.com.br/dashboard")
        assert links == [
            "https://app.dwvapp.com.br/imoveis/1",
            "https://app.dwvapp.com.br/imoveis/2",
            "https://app.dwvapp.com.br/empreendimentos/3",
            "https://app.dwvapp.com.br/imoveis/4",
        ]

    def test_fragments_removed_and_unique(self):
        html = '<a href="/imoveis/1#fotos">a</a><a href="/imoveis/1">b</a>'
        assert find_listing_links(html, PAGE_URL) == ["https://app.dwvapp.com.br/imoveis/1"]


# ============================================================
# Stage tests
# ============================================================


class TestFetchWithRetry:
    """Tests for ExtractionStage.fetch_with_retry."""

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, fake_http, crawler_settings, valid_session):
        settings = crawler_settings.model_copy(update={"request_retries": 3})
        fake_http.add("GET", "/imoveis", make_response(500), make_response(200, "ok"))

        resp = await HtmlPageStage(fake_http, settings).fetch_with_retry("/imoveis", valid_session)

        assert resp.status_code == 200
        assert len(fake_http.calls_to("GET", "/imoveis")) == 2

    @pytest.mark.asyncio
    async def test_client_error_is_final(self, fake_http, crawler_settings, valid_session):
        settings = crawler_settings.model_copy(update={"request_retries": 3})

        resp = await HtmlPageStage(fake_http, settings).fetch_with_retry("/imoveis", valid_session)

        assert resp is None
        assert len(fake_http.calls) == 1

    @pytest.mark.asyncio
    async def test_network_errors_exhaust_attempts(
        self, fake_http, crawler_settings, valid_session, network_down
    ):
        settings = crawler_settings.model_copy(update={"request_retries": 3})
        fake_http.add("GET", "/imoveis", network_down)

        resp = await HtmlPageStage(fake_http, settings).fetch_with_retry("/imoveis", valid_session)

        assert resp is None
        assert len(fake_http.calls) == 3

    @pytest.mark.asyncio
    async def test_session_headers_are_sent(self, fake_http, crawler_settings, valid_session):
        fake_http.add("GET", "/imoveis", make_response(200, "ok"))
        await HtmlPageStage(fake_http, crawler_settings).fetch_with_retry("/imoveis", valid_session)
        assert fake_http.calls[0].headers["Cookie"] == valid_session.cookie_header


class TestApiStage:
    """Tests for ApiStage."""

    @pytest.mark.asyncio
    async def test_numeric_price_is_formatted(self, fake_http, crawler_settings, valid_session):
        fake_http.add(
            "GET",
            "/api/imoveis",
            make_response(
                200,
                json_body={"properties": [{"titulo": "Casa Teste", "preco": 500000, "endereco": "Centro"}]},
            ),
        )

        result = await ApiStage(fake_http, crawler_settings).run(valid_session)

        assert result.success is True
        assert result.source == "api"
        assert len(result.listings) == 1
        listing = result.listings[0]
        assert listing.title == "Casa Teste"
        assert listing.price == "R$ 500.000"
        assert listing.location == "Centro"

    @pytest.mark.asyncio
    async def test_overflowing_item_keeps_other_listings(self, fake_http, crawler_settings, valid_session):
        fake_http.add("GET", "/api/imoveis", make_response(200, json_body={"data": [{"titulo": "Boa"}]}))
        fake_http.add(
            "GET",
            "/api/properties",
            make_response(
                200,
                '{"data": [{"titulo": "Grande", "quartos": 1e400, "area": 1e400}]}',
                headers={"Content-Type": "application/json"},
            ),
        )

        result = await ApiStage(fake_http, crawler_settings).run(valid_session)

        assert result.success is True
        assert [listing.title for listing in result.listings] == ["Boa", "Grande"]
        assert result.listings[1].bedrooms is None
        assert result.listings[1].area_sq_ft is None

    @pytest.mark.asyncio
    async def test_all_endpoints_tried(self, fake_http, crawler_settings, valid_session):
        result = await ApiStage(fake_http, crawler_settings).run(valid_session)

        assert result.success is False
        assert len(fake_http.calls) == 10
        assert fake_http.calls[0].headers["X-Requested-With"] == "XMLHttpRequest"

    @pytest.mark.asyncio
    async def test_non_json_body_is_ignored(self, fake_http, crawler_settings, valid_session):
        fake_http.add("GET", "/api/imoveis", make_response(200, "<html>app shell</html>"))
        result = await ApiStage(fake_http, crawler_settings).run(valid_session)
        assert result.listings == []


class TestHtmlPageStage:
    """Tests for HtmlPageStage."""

    @pytest.mark.asyncio
    async def test_collects_from_pages(self, fake_http, crawler_settings, valid_session, card_page_html):
        fake_http.add("GET", "/imoveis", make_response(200, card_page_html))

        result = await HtmlPageStage(fake_http, crawler_settings).run(valid_session)

        assert len(result.listings) == 2
        assert result.source == "pages"
        assert len(fake_http.calls) == 9

    @pytest.mark.asyncio
    async def test_login_page_stops_stage(self, fake_http, crawler_settings, valid_session, logged_out_html):
        fake_http.add("GET", "/imoveis", make_response(200, logged_out_html))

        result = await HtmlPageStage(fake_http, crawler_settings).run(valid_session)

        assert result.session_expired is True
        assert len(fake_http.calls) == 1


class TestDashboardStage:
    """Tests for DashboardStage."""

    @pytest.mark.asyncio
    async def test_follows_at_most_three_links(
        self, fake_http, crawler_settings, valid_session, dashboard_with_links_html, card_page_html
    ):
        fake_http.add("GET", "/dashboard", make_response(200, dashboard_with_links_html))
        fake_http.add("GET", "/imoveis/1", make_response(200, card_page_html))

        stage = DashboardStage(fake_http, crawler_settings, paths=["/dashboard"])
        result = await stage.run(valid_session)

        assert [c.path for c in fake_http.calls] == [
            "/dashboard",
            "/imoveis/1",
            "/imoveis/2",
            "/empreendimentos/3",
        ]
        assert len(result.listings) == 2
        assert result.source == "dashboard"


class TestSearchStage:
    """Tests for SearchStage."""

    @pytest.mark.asyncio
    async def test_queries_with_referer(self, fake_http, crawler_settings, valid_session):
        await SearchStage(fake_http, crawler_settings).run(valid_session)

        assert [c.path for c in fake_http.calls] == [
            "/buscar?q=curitiba",
            "/buscar?q=apartamento",
            "/buscar?q=casa",
            "/buscar?q=disponivel",
            "/buscar?q=venda",
        ]
        assert fake_http.calls[0].headers["Referer"] == "https://app.dwvapp.com.br/imoveis"


# ============================================================
# chain.py tests
# ============================================================


class TestExtractionChain:
    """Tests for ExtractionChain."""

    @pytest.mark.asyncio
    async def test_enough_listings_skip_fallbacks(self, make_listing, valid_session):
        api = StubStage("api", [make_listing(title=f"Imóvel {i}") for i in range(10)])
        pages = StubStage("pages", [make_listing(title="Extra")])

        result = await ExtractionChain([api, pages], fallback_threshold=10).extract(valid_session)

        assert pages.runs == 0
        assert len(result.listings) == 10
        assert result.source == "api"

    @pytest.mark.asyncio
    async def test_fallbacks_run_while_below_threshold(self, make_listing, valid_session):
        api = StubStage("api", [make_listing(title="A")])
        pages = StubStage("pages")
        search = StubStage("search", [make_listing(title="B")])

        result = await ExtractionChain([api, pages, search], fallback_threshold=10).extract(valid_session)

        assert pages.runs == 1 and search.runs == 1
        assert [item.title for item in result.listings] == ["A", "B"]
        assert result.source == "api, search"

    @pytest.mark.asyncio
    async def test_threshold_counts_unique_listings(self, make_listing, valid_session):
        api = StubStage("api", [make_listing(title="Same") for _ in range(10)])
        pages = StubStage("pages", [make_listing(title="Other")])

        await ExtractionChain([api, pages], fallback_threshold=10).extract(valid_session)

        assert pages.runs == 1

    @pytest.mark.asyncio
    async def test_crashing_stage_is_skipped(self, make_listing, valid_session):
        api = StubStage("api", error=RuntimeError("boom"))
        pages = StubStage("pages", [make_listing()])

        result = await ExtractionChain([api, pages]).extract(valid_session)

        assert result.success is True
        assert "api: boom" in result.error

    @pytest.mark.asyncio
    async def test_session_expired_stops_chain(self, valid_session):
        api = StubStage("api")
        pages = StubStage("pages", session_expired=True)
        search = StubStage("search")

        result = await ExtractionChain([api, pages, search]).extract(valid_session)

        assert result.session_expired is True
        assert result.success is False
        assert result.source == "none"
        assert search.runs == 0

    def test_default_stage_order(self, fake_http, crawler_settings):
        chain = build_extraction_chain(fake_http, crawler_settings)
        assert [stage.name for stage in chain._stages] == ["api", "pages", "dashboard", "search"]


class TestScrapePublicUrl:
    """Tests for scrape_public_url function."""

    @pytest.mark.asyncio
    async def test_embedded_state_preferred(self, fake_http, embedded_state_html):
        fake_http.add("GET", "/lancamentos", make_response(200, embedded_state_html))

        listings = await scrape_public_url(fake_http, "https://www.construtora.example/lancamentos")

        assert [item.title for item in listings] == ["Studio Centro", "Cobertura Ecoville"]
        assert listings[0].listing_url == "https://www.construtora.example/imoveis/7"
        assert fake_http.calls[0].headers == {}

    @pytest.mark.asyncio
    async def test_error_status(self, fake_http):
        fake_http.add("GET", "/venda", make_response(503, "Service Unavailable"))

        with pytest.raises(ExtractionError, match="HTTP 503"):
            await scrape_public_url(fake_http, "https://www.construtora.example/venda")

    @pytest.mark.asyncio
    async def test_non_http_url(self, fake_http):
        with pytest.raises(ValueError):
            await scrape_public_url(fake_http, "file:///etc/passwd")
        assert fake_http.calls == []

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.construtora.example/venda", True),
            ("http://imoveis.example", True),
            ("ftp://imoveis.example/lista", False),
            ("/imoveis", False),
            ("", False),
        ],
    )
    def test_is_public_url(self, url, expected):
        assert is_public_url(url) is expected
