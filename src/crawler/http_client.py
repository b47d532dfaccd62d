"""
HTTP client using requests.

Blocking requests calls run in a thread pool so the event loop never
waits on the network. Cookies are never persisted on the underlying
requests.Session; callers carry them explicitly through the Cookie header.
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from http.cookiejar import DefaultCookiePolicy
from typing import Any
from urllib.parse import urljoin

import requests
from loguru import logger

from src.crawler.errors import TransientNetworkError
from src.crawler.types import Session

http_log = logger.bind(module="HTTP")


class _NoPersistPolicy(DefaultCookiePolicy):
    """Cookie policy that neither stores nor sends cookies from the jar."""

    def set_ok(self, cookie, request):
        return False

    def return_ok(self, cookie, request):
        return False


@dataclass
class HttpResponse:
    """Plain snapshot of a finished response."""

    status_code: int
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    text: str = ""
    cookies: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    @property
    def location(self) -> str:
        return self.headers.get("location", "")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").lower()

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type

    def json(self) -> Any | None:
        """Parsed body, or None when the body is not JSON."""
        try:
            return json.loads(self.text)
        except ValueError:
            return None


def parse_cookie_header(header: str) -> dict[str, str]:
    """
    Parse a Cookie header into an ordered name/value dict.

    Examples:
        >>> parse_cookie_header("a=1; b=2")
        {'a': '1', 'b': '2'}
    """
    cookies: dict[str, str] = {}
    for part in header.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies[name] = value
    return cookies


def build_cookie_header(cookies: dict[str, str]) -> str:
    """Join cookies as "name=value; name=value"."""
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def merge_cookies(base_header: str, *updates: dict[str, str]) -> str:
    """
    Merge newer cookies over an existing Cookie header.

    Examples:
        >>> merge_cookies("a=1; b=2", {"b": "3", "c": "4"})
        'a=1; b=3; c=4'
    """
    merged = parse_cookie_header(base_header)
    for update in updates:
        merged.update(update)
    return build_cookie_header(merged)


class HttpClient:
    """
    Async facade over a requests.Session.

    All paths are resolved against base_url. Transport failures are raised
    as TransientNetworkError; HTTP error statuses are returned as-is.
    """

    DEFAULT_HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8",
    }

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float = 30.0,
        max_workers: int = 4,
    ):
        """
        Initialize the HTTP client.

        Args:
            base_url: Site root, e.g. https://app.dwvapp.com.br
            user_agent: User-Agent sent with every request
            timeout: Per-request timeout in seconds
            max_workers: Thread pool size for blocking calls
        """
        self.base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout = timeout
        self._max_workers = max_workers
        self._session: requests.Session | None = None
        self._executor: ThreadPoolExecutor | None = None

    async def start(self) -> None:
        """Create the requests session and thread pool."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(self.DEFAULT_HEADERS)
            self._session.headers["User-Agent"] = self._user_agent
            self._session.cookies.set_policy(_NoPersistPolicy())
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers)
            http_log.debug("HttpClient started")

    async def close(self) -> None:
        """Close session and executor."""
        if self._session:
            self._session.close()
            self._session = None
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
        http_log.debug("HttpClient closed")

    def url_for(self, path_or_url: str) -> str:
        """Resolve a site path (or pass through an absolute URL)."""
        return urljoin(self.base_url + "/", path_or_url)

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        cookies: dict[str, str],
        data: dict | None,
        json_body: dict | None,
        allow_redirects: bool,
    ) -> HttpResponse:
        try:
            resp = self._session.request(
                method,
                url,
                headers=headers,
                cookies=cookies or None,
                data=data,
                json=json_body,
                allow_redirects=allow_redirects,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransientNetworkError(f"{method} {url} failed: {e}") from e

        # Cookies set on intermediate redirects are kept too
        cookies: dict[str, str] = {}
        for hop in [*resp.history, resp]:
            cookies.update(hop.cookies.get_dict())

        return HttpResponse(
            status_code=resp.status_code,
            url=resp.url,
            headers={k.lower(): v for k, v in resp.headers.items()},
            text=resp.text,
            cookies=cookies,
        )

    async def request(
        self,
        method: str,
        path_or_url: str,
        *,
        headers: dict[str, str] | None = None,
        data: dict | None = None,
        json_body: dict | None = None,
        allow_redirects: bool = True,
        session: Session | None = None,
    ) -> HttpResponse:
        """
        Send a request without blocking the event loop.

        Args:
            method: HTTP method
            path_or_url: Site path or absolute URL
            headers: Extra headers for this request
            data: Form body
            json_body: JSON body
            allow_redirects: Follow redirects automatically
            session: Session whose cookie/bearer headers are attached

        Returns:
            HttpResponse snapshot

        Raises:
            TransientNetworkError: On timeout or connection failure
        """
        if self._session is None:
            await self.start()

        merged: dict[str, str] = {}
        if session is not None:
            merged.update(session.request_headers())
        if headers:
            merged.update(headers)

        # requests drops a Cookie header on redirects; a cookie jar survives them
        cookies = parse_cookie_header(merged.pop("Cookie", ""))

        url = self.url_for(path_or_url)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            partial(self._send, method, url, merged, cookies, data, json_body, allow_redirects),
        )

    async def get(self, path_or_url: str, **kwargs) -> HttpResponse:
        return await self.request("GET", path_or_url, **kwargs)

    async def post(self, path_or_url: str, **kwargs) -> HttpResponse:
        return await self.request("POST", path_or_url, **kwargs)
