"""
Unit tests for src/crawler/auth/
"""

from datetime import datetime, timedelta, timezone

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.crawler.auth.api import ApiLoginStrategy
from src.crawler.auth.base import AuthStrategy
from src.crawler.auth.browser import BrowserLoginStrategy
from src.crawler.auth.cached import CachedSessionStrategy
from src.crawler.auth.chain import AuthChain, build_auth_chain
from src.crawler.auth.form import FormLoginStrategy, alternative_login_strategy
from src.crawler.auth.indicators import (
    classify_login_page,
    extract_csrf_token,
    extract_login_form,
    is_login_page,
    is_successful_redirect,
)
from src.crawler.auth.validator import SessionValidator
from src.crawler.errors import TransientNetworkError
from src.crawler.session_cache import MemorySessionCache, session_key
from src.crawler.types import AuthMethod, AuthResult, Credentials, Session
from tests.fixtures.http import FailingPlaywright, FakePlaywright, make_response, redirect

# Import fixtures
pytest_plugins = ["tests.fixtures.http", "tests.fixtures.pages"]

TTL = 24 * 60 * 60


def _session(cookie: str = "dwv_session=abc") -> Session:
    return Session.create(cookie_header=cookie, identifier="s-1", ttl_seconds=TTL)


class StubStrategy(AuthStrategy):
    """Strategy returning a canned result and counting calls."""

    def __init__(self, method: AuthMethod, result: AuthResult | Exception):
        self.method = method
        self._result = result
        self.calls = 0

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        self.calls += 1
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class StubValidator:
    def __init__(self, valid: bool = True):
        self.valid = valid
        self.checked: list[Session] = []

    async def validate(self, session: Session) -> bool:
        self.checked.append(session)
        return self.valid


# ============================================================
# indicators.py tests
# ============================================================


class TestExtractCsrfToken:
    """Tests for extract_csrf_token function."""

    def test_hidden_token_input(self):
        html = '<input type="hidden" name="_token" value="abc123">'
        assert extract_csrf_token(html) == "abc123"

    def test_csrf_token_field_wins_over_underscore_token(self):
        html = (
            '<input name="_token" value="second">'
            '<input name="csrf_token" value="first">'
        )
        assert extract_csrf_token(html) == "first"

    def test_meta_tag(self):
        html = '<meta name="csrf-token" content="meta-tok">'
        assert extract_csrf_token(html) == "meta-tok"

    def test_laravel_global(self):
        html = '<script>window.Laravel = {"csrfToken":"lara-tok"};</script>'
        assert extract_csrf_token(html) == "lara-tok"

    def test_no_token(self):
        assert extract_csrf_token("<form></form>") is None


class TestExtractLoginForm:
    """Tests for extract_login_form function."""

    def test_action_and_hidden_fields(self, login_page_html):
        form = extract_login_form(login_page_html, "https://app.dwvapp.com.br/login")
        assert form.action_url == "https://app.dwvapp.com.br/login"
        assert form.token == "abc123"
        assert form.hidden_fields == {"_token": "abc123", "redirect_to": "/dashboard"}

    def test_no_form_uses_page_url(self):
        form = extract_login_form("<div>SPA</div>", "https://app.dwvapp.com.br/signin")
        assert form.action_url == "https://app.dwvapp.com.br/signin"
        assert form.hidden_fields == {}


class TestRedirectClassification:
    """Tests for is_successful_redirect function."""

    @pytest.mark.parametrize(
        "location",
        ["/dashboard", "/home", "/imoveis", "/", "https://app.dwvapp.com.br/painel"],
    )
    def test_success_targets(self, location):
        assert is_successful_redirect(location) is True

    @pytest.mark.parametrize(
        "location",
        ["/login", "/login?error=1", "/signin", "/auth/failed", "/dashboard?erro=senha", ""],
    )
    def test_failure_targets(self, location):
        assert is_successful_redirect(location) is False


class TestClassifyLoginPage:
    """Tests for classify_login_page function."""

    def test_success_indicator(self, dashboard_html):
        success, _ = classify_login_page(dashboard_html)
        assert success is True

    def test_error_indicator_beats_success_indicator(self):
        html = '<div class="alert alert-danger">Credenciais inválidas</div><a>Sair</a>'
        success, message = classify_login_page(html)
        assert success is False
        assert message == "Credenciais inválidas"

    def test_no_indicator(self):
        success, _ = classify_login_page("<p>nothing here</p>")
        assert success is False


class TestIsLoginPage:
    """Tests for is_login_page function."""

    def test_password_form(self, logged_out_html):
        assert is_login_page(logged_out_html) is True

    def test_content_page(self, dashboard_html):
        assert is_login_page(dashboard_html) is False


# ============================================================
# validator.py tests
# ============================================================


class TestSessionValidator:
    """Tests for SessionValidator."""

    @pytest.mark.asyncio
    async def test_empty_session_is_invalid_without_network(self, fake_http):
        validator = SessionValidator(fake_http)
        assert await validator.validate(_session(cookie="")) is False
        assert fake_http.calls == []

    @pytest.mark.asyncio
    async def test_first_2xx_probe_wins(self, fake_http):
        fake_http.add("GET", "/dashboard", make_response(200, "ok"))
        validator = SessionValidator(fake_http)

        assert await validator.validate(_session()) is True
        assert [c.path for c in fake_http.calls] == ["/dashboard"]
        assert fake_http.calls[0].headers["Cookie"] == "dwv_session=abc"

    @pytest.mark.asyncio
    async def test_login_redirects_are_invalid(self, fake_http):
        for path in ["/dashboard", "/imoveis", "/api/user", "/profile"]:
            fake_http.add("GET", path, redirect("/login"))
        validator = SessionValidator(fake_http)

        assert await validator.validate(_session()) is False
        assert len(fake_http.calls) == 4

    @pytest.mark.asyncio
    async def test_non_login_redirect_is_valid(self, fake_http):
        fake_http.add("GET", "/dashboard", redirect("/dashboard/home"))
        assert await SessionValidator(fake_http).validate(_session()) is True

    @pytest.mark.asyncio
    async def test_network_error_moves_to_next_probe(self, fake_http, network_down):
        fake_http.add("GET", "/dashboard", network_down)
        fake_http.add("GET", "/imoveis", make_response(200, "ok"))
        assert await SessionValidator(fake_http).validate(_session()) is True


# ============================================================
# Strategy tests
# ============================================================


class TestFormLoginStrategy:
    """Tests for FormLoginStrategy."""

    @pytest.mark.asyncio
    async def test_posts_token_and_credentials(self, fake_http, credentials, login_page_html):
        fake_http.add("GET", "/login", make_response(200, login_page_html, cookies={"XSRF-TOKEN": "x"}))
        fake_http.add("POST", "/login", redirect("/dashboard", cookies={"dwv_session": "abc"}))

        result = await FormLoginStrategy(fake_http, TTL).authenticate(credentials)

        assert result.success is True
        assert result.method_used == "form_login"
        assert result.session.cookie_header == "XSRF-TOKEN=x; dwv_session=abc"

        post = fake_http.calls_to("POST", "/login")[0]
        assert post.data["_token"] == "abc123"
        assert post.data["csrf_token"] == "abc123"
        assert post.data["email"] == credentials.email
        assert post.data["remember"] == "1"
        assert post.headers["Cookie"] == "XSRF-TOKEN=x"

    @pytest.mark.asyncio
    async def test_redirect_back_to_login_fails(self, fake_http, credentials, login_page_html):
        fake_http.add("GET", "/login", make_response(200, login_page_html))
        fake_http.add("POST", "/login", redirect("/login?error=credentials"))

        result = await FormLoginStrategy(fake_http, TTL).authenticate(credentials)
        assert result.success is False

    @pytest.mark.asyncio
    async def test_missing_login_page_fails_primary(self, fake_http, credentials):
        result = await FormLoginStrategy(fake_http, TTL).authenticate(credentials)
        assert result.success is False
        assert fake_http.calls_to("POST") == []

    @pytest.mark.asyncio
    async def test_alternative_paths_post_without_page(self, fake_http, credentials):
        fake_http.add("POST", "/auth", redirect("/painel", cookies={"sid": "1"}))

        result = await alternative_login_strategy(fake_http, TTL).authenticate(credentials)

        assert result.success is True
        assert result.method_used == "alternative_login"
        assert [c.path for c in fake_http.calls_to("POST")] == ["/signin", "/auth"]


class TestApiLoginStrategy:
    """Tests for ApiLoginStrategy."""

    @pytest.mark.asyncio
    async def test_token_in_body_becomes_bearer(self, fake_http, credentials):
        fake_http.add(
            "POST",
            "/api/login",
            make_response(200, json_body={"token": "jwt-1", "user": {"id": 1}}),
        )

        result = await ApiLoginStrategy(fake_http, TTL).authenticate(credentials)

        assert result.success is True
        assert result.session.bearer_token == "jwt-1"
        assert fake_http.calls_to("POST", "/api/auth/login")[0].json_body == {
            "email": credentials.email,
            "password": credentials.password,
            "remember": True,
        }

    @pytest.mark.asyncio
    async def test_explicit_success_false_is_rejected(self, fake_http, credentials):
        fake_http.add(
            "POST",
            "/api/auth/login",
            make_response(200, json_body={"success": False}, cookies={"sid": "1"}),
        )
        result = await ApiLoginStrategy(fake_http, TTL).authenticate(credentials)
        assert result.success is False


class TestBrowserLoginStrategy:
    """Tests for BrowserLoginStrategy."""

    @pytest.mark.asyncio
    async def test_driver_failure_is_a_failed_result(self, credentials):
        FailingPlaywright.starts = 0
        strategy = BrowserLoginStrategy(
            "https://app.dwvapp.com.br",
            TTL,
            playwright_factory=FailingPlaywright,
        )

        result = await strategy.authenticate(credentials)

        assert result.success is False
        assert result.method_used == "browser_login"
        assert FailingPlaywright.starts == 1

    @pytest.mark.asyncio
    async def test_login_builds_cookie_header(self, credentials):
        driver = FakePlaywright(
            cookies=[{"name": "dwv_session", "value": "abc"}, {"name": "XSRF-TOKEN", "value": "tok"}],
        )
        strategy = BrowserLoginStrategy("https://app.dwvapp.com.br", TTL, playwright_factory=driver)

        result = await strategy.authenticate(credentials)

        assert result.success is True
        assert result.method_used == "browser_login"
        assert result.session.cookie_header == "dwv_session=abc; XSRF-TOKEN=tok"
        assert driver.page.visited == ["https://app.dwvapp.com.br/login"]
        assert driver.page.filled == {
            'input[type="email"]': credentials.email,
            'input[type="password"]': credentials.password,
        }
        assert driver.page.clicked == ['button[type="submit"]']
        assert driver.browser.context_options["locale"] == "pt-BR"
        assert driver.cleaned_up is True

    @pytest.mark.asyncio
    async def test_enter_pressed_without_submit_button(self, credentials):
        driver = FakePlaywright(selectors=['input[name="email"]', 'input[name="senha"]'])
        strategy = BrowserLoginStrategy("https://app.dwvapp.com.br", TTL, playwright_factory=driver)

        result = await strategy.authenticate(credentials)

        assert result.success is True
        assert driver.page.clicked == []
        assert driver.page.keyboard.pressed == ["Enter"]
        assert driver.cleaned_up is True

    @pytest.mark.asyncio
    async def test_still_on_login_page(self, credentials):
        driver = FakePlaywright(landing_url="https://app.dwvapp.com.br/login?error=1")
        strategy = BrowserLoginStrategy("https://app.dwvapp.com.br", TTL, playwright_factory=driver)

        result = await strategy.authenticate(credentials)

        assert result.success is False
        assert result.session is None
        assert "Still on" in result.message
        assert driver.cleaned_up is True

    @pytest.mark.asyncio
    async def test_missing_email_field(self, credentials):
        driver = FakePlaywright(selectors=['input[type="password"]'])
        strategy = BrowserLoginStrategy("https://app.dwvapp.com.br", TTL, playwright_factory=driver)

        result = await strategy.authenticate(credentials)

        assert result.success is False
        assert result.message == "Email field not found"
        assert driver.page.filled == {}
        assert driver.cleaned_up is True

    @pytest.mark.asyncio
    async def test_form_never_renders(self, credentials):
        driver = FakePlaywright(form_error=PlaywrightTimeoutError("Timeout 10000ms exceeded"))
        strategy = BrowserLoginStrategy("https://app.dwvapp.com.br", TTL, playwright_factory=driver)

        result = await strategy.authenticate(credentials)

        assert result.success is False
        assert result.message.startswith("Browser login failed")
        assert driver.cleaned_up is True


# ============================================================
# chain.py tests
# ============================================================


class TestAuthChain:
    """Tests for AuthChain."""

    @pytest.mark.asyncio
    async def test_form_login_with_csrf(self, fake_http, credentials, login_page_html, dwv_settings):
        fake_http.add("GET", "/login", make_response(200, login_page_html))
        fake_http.add("POST", "/login", redirect("/dashboard", cookies={"dwv_session": "abc"}))
        fake_http.add("GET", "/dashboard", make_response(200, "<h1>Dashboard</h1>"))

        chain = build_auth_chain(fake_http, MemorySessionCache(), dwv_settings)
        result = await chain.authenticate(credentials)

        assert result.success is True
        assert result.method_used == "form_login"
        assert result.session.is_valid is True
        assert fake_http.calls_to("POST", "/login")[0].data["_token"] == "abc123"

    @pytest.mark.asyncio
    async def test_everything_fails_down_to_browser(self, fake_http, credentials):
        for path in ["/api/auth/login", "/api/login", "/auth/login", "/api/v1/auth/login"]:
            fake_http.add("POST", path, make_response(401, json_body={"message": "Unauthorized"}))

        FailingPlaywright.starts = 0
        cache = MemorySessionCache()
        strategies = [
            CachedSessionStrategy(cache),
            FormLoginStrategy(fake_http, TTL),
            ApiLoginStrategy(fake_http, TTL),
            alternative_login_strategy(fake_http, TTL),
            BrowserLoginStrategy("https://app.dwvapp.com.br", TTL, playwright_factory=FailingPlaywright),
        ]
        chain = AuthChain(cache, SessionValidator(fake_http), strategies, TTL)

        result = await chain.authenticate(credentials)

        assert result.success is False
        assert result.method_used == "all_failed"
        assert FailingPlaywright.starts == 1
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_second_call_uses_cache(self, fake_http, credentials, login_page_html, dwv_settings):
        fake_http.add("GET", "/login", make_response(200, login_page_html))
        fake_http.add("POST", "/login", redirect("/dashboard", cookies={"dwv_session": "abc"}))
        fake_http.add("GET", "/dashboard", make_response(200, "ok"))
        chain = build_auth_chain(fake_http, MemorySessionCache(), dwv_settings)

        first = await chain.authenticate(credentials)
        login_calls = len(fake_http.calls_to("POST")) + len(fake_http.calls_to("GET", "/login"))

        second = await chain.authenticate(credentials)

        assert first.success and second.success
        assert second.method_used == "existing_session"
        assert second.session.identifier == first.session.identifier
        assert len(fake_http.calls_to("POST")) + len(fake_http.calls_to("GET", "/login")) == login_calls

    @pytest.mark.asyncio
    async def test_incomplete_credentials_short_circuit(self, fake_http, dwv_settings):
        chain = build_auth_chain(fake_http, MemorySessionCache(), dwv_settings)

        result = await chain.authenticate(Credentials(email="a@b.com", password="  "))

        assert result.success is False
        assert result.method_used == "invalid_credentials"
        assert fake_http.calls == []

    @pytest.mark.asyncio
    async def test_exception_counts_as_failure(self, credentials):
        boom = StubStrategy(AuthMethod.FORM_LOGIN, RuntimeError("boom"))
        ok = StubStrategy(AuthMethod.API_LOGIN, AuthResult.succeeded(AuthMethod.API_LOGIN, _session()))
        chain = AuthChain(MemorySessionCache(), StubValidator(), [boom, ok], TTL)

        result = await chain.authenticate(credentials)

        assert result.success is True
        assert result.method_used == "api_login"
        assert boom.calls == 1

    @pytest.mark.asyncio
    async def test_invalid_session_moves_to_next_strategy(self, credentials):
        first = StubStrategy(AuthMethod.FORM_LOGIN, AuthResult.succeeded(AuthMethod.FORM_LOGIN, _session()))
        second = StubStrategy(AuthMethod.API_LOGIN, AuthResult.failure(AuthMethod.API_LOGIN, "nope"))
        cache = MemorySessionCache()
        chain = AuthChain(cache, StubValidator(valid=False), [first, second], TTL)

        result = await chain.authenticate(credentials)

        assert result.success is False
        assert second.calls == 1
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_stale_cached_session_is_cleared(self, credentials):
        cache = MemorySessionCache()
        await cache.put(session_key(credentials.email), _session(), TTL)
        chain = AuthChain(cache, StubValidator(valid=False), [CachedSessionStrategy(cache)], TTL)

        result = await chain.authenticate(credentials)

        assert result.success is False
        assert await cache.get(session_key(credentials.email)) is None

    @pytest.mark.asyncio
    async def test_validated_session_is_cached(self, credentials):
        ok = StubStrategy(AuthMethod.API_LOGIN, AuthResult.succeeded(AuthMethod.API_LOGIN, _session()))
        cache = MemorySessionCache()
        chain = AuthChain(cache, StubValidator(), [CachedSessionStrategy(cache), ok], TTL)

        result = await chain.authenticate(credentials)
        cached = await cache.get(session_key(credentials.email))

        assert result.session.is_valid is True
        assert cached is not None
        assert cached.is_valid is True

    @pytest.mark.asyncio
    async def test_network_errors_do_not_escape(self, fake_http, credentials, dwv_settings):
        error = TransientNetworkError("timeout")
        for method, path in [
            ("GET", "/login"),
            ("POST", "/api/auth/login"),
            ("POST", "/api/login"),
            ("POST", "/auth/login"),
            ("POST", "/api/v1/auth/login"),
            ("GET", "/signin"),
            ("GET", "/auth"),
            ("GET", "/user/login"),
        ]:
            fake_http.add(method, path, error)

        chain = build_auth_chain(fake_http, MemorySessionCache(), dwv_settings)
        result = await chain.authenticate(credentials)

        assert result.success is False
        assert result.method_used == "all_failed"


class TestSessionExpiry:
    """Tests for Session helpers."""

    def test_is_expired(self):
        past = Session(identifier="x", expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        assert past.is_expired() is True

    def test_request_headers(self):
        session = Session(
            identifier="x",
            cookie_header="a=1",
            bearer_token="t",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        assert session.request_headers() == {"Cookie": "a=1", "Authorization": "Bearer t"}
