"""
Form login strategy.

Fetches the login page for its CSRF token and cookies, then posts the
credentials the way the browser form would.
"""

from loguru import logger

from src.crawler.auth.base import AuthStrategy, new_session_id
from src.crawler.auth.indicators import (
    CSRF_FIELD_NAMES,
    REDIRECT_STATUSES,
    LoginForm,
    classify_login_page,
    extract_error_message,
    extract_login_form,
    is_successful_redirect,
)
from src.crawler.endpoints import ALTERNATE_LOGIN_PATHS, LOGIN_PATH
from src.crawler.errors import TransientNetworkError
from src.crawler.http_client import HttpClient, build_cookie_header, merge_cookies
from src.crawler.types import AuthMethod, AuthResult, Credentials, Session

auth_log = logger.bind(module="FormLogin")


class FormLoginStrategy(AuthStrategy):
    """
    Login through an HTML form.

    Used twice in the chain: once against /login, once against the
    alternate login paths with a missing login page tolerated.
    """

    def __init__(
        self,
        http: HttpClient,
        ttl_seconds: int,
        login_paths: list[str] | None = None,
        method: AuthMethod = AuthMethod.FORM_LOGIN,
        require_login_page: bool = True,
    ):
        """
        Initialize the strategy.

        Args:
            http: HTTP client bound to the site
            ttl_seconds: Lifetime given to new sessions
            login_paths: Paths tried in order (default: /login)
            method: Name reported in the AuthResult
            require_login_page: Fail when the login page itself is not 2xx
        """
        self._http = http
        self._ttl_seconds = ttl_seconds
        self._login_paths = login_paths or [LOGIN_PATH]
        self.method = method
        self._require_login_page = require_login_page

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        failures: list[str] = []
        for path in self._login_paths:
            try:
                result = await self._login_at(path, credentials)
            except TransientNetworkError as e:
                auth_log.warning(f"{self.method.value} {path}: {e}")
                failures.append(f"{path}: network error")
                continue

            if result.success:
                return result
            auth_log.debug(f"{self.method.value} {path}: {result.message}")
            failures.append(f"{path}: {result.message}")

        return AuthResult.failure(self.method, "; ".join(failures))

    async def _login_at(self, path: str, credentials: Credentials) -> AuthResult:
        page_url = self._http.url_for(path)
        page = await self._http.get(path)

        if page.ok:
            form = extract_login_form(page.text, page.url or page_url)
            page_cookies = page.cookies
        elif self._require_login_page:
            return AuthResult.failure(self.method, f"Login page returned HTTP {page.status_code}")
        else:
            form = LoginForm(action_url=page_url)
            page_cookies = {}

        payload: dict[str, str] = dict(form.hidden_fields)
        if form.token:
            for name in CSRF_FIELD_NAMES:
                payload[name] = form.token
        payload["email"] = credentials.email
        payload["password"] = credentials.password
        payload["remember"] = "1"

        headers = {"Origin": self._http.base_url, "Referer": page_url}
        if page_cookies:
            headers["Cookie"] = build_cookie_header(page_cookies)

        resp = await self._http.post(
            form.action_url,
            data=payload,
            headers=headers,
            allow_redirects=False,
        )
        cookie_header = merge_cookies(build_cookie_header(page_cookies), resp.cookies)

        if resp.status_code in REDIRECT_STATUSES:
            if is_successful_redirect(resp.location):
                return self._success(cookie_header, f"Redirected to {resp.location}")
            return AuthResult.failure(self.method, f"Redirected to {resp.location or '(no location)'}")

        if resp.status_code == 200:
            success, message = classify_login_page(resp.text)
            if success:
                return self._success(cookie_header, message)
            return AuthResult.failure(self.method, message)

        message = extract_error_message(resp.text) or f"HTTP {resp.status_code}"
        return AuthResult.failure(self.method, message)

    def _success(self, cookie_header: str, message: str) -> AuthResult:
        session = Session.create(
            cookie_header=cookie_header,
            identifier=new_session_id(),
            ttl_seconds=self._ttl_seconds,
        )
        return AuthResult.succeeded(self.method, session, message)


def alternative_login_strategy(http: HttpClient, ttl_seconds: int) -> FormLoginStrategy:
    """Form login against the secondary login paths."""
    return FormLoginStrategy(
        http,
        ttl_seconds,
        login_paths=ALTERNATE_LOGIN_PATHS,
        method=AuthMethod.ALTERNATIVE_LOGIN,
        require_login_page=False,
    )
