"""
JSON API login strategy.
"""

from loguru import logger

from src.crawler.auth.base import AuthStrategy, new_session_id
from src.crawler.auth.indicators import API_SUCCESS_KEYS, API_TOKEN_PATHS
from src.crawler.endpoints import API_LOGIN_PATHS, LOGIN_PATH
from src.crawler.errors import TransientNetworkError
from src.crawler.http_client import HttpClient, HttpResponse, build_cookie_header
from src.crawler.types import AuthMethod, AuthResult, Credentials, Session
from src.utils.normalizer import get_path

auth_log = logger.bind(module="ApiLogin")


def _find_token(data) -> str | None:
    if not isinstance(data, dict):
        return None
    for path in API_TOKEN_PATHS:
        value = get_path(data, path)
        if isinstance(value, str) and value:
            return value
    return None


def _looks_successful(resp: HttpResponse) -> bool:
    if not resp.ok:
        return False
    data = resp.json()
    if isinstance(data, dict) and data.get("success") is False:
        return False
    body = resp.text.lower()
    return any(key in body for key in API_SUCCESS_KEYS)


class ApiLoginStrategy(AuthStrategy):
    """POST JSON credentials to the known API login endpoints."""

    method = AuthMethod.API_LOGIN

    def __init__(
        self,
        http: HttpClient,
        ttl_seconds: int,
        endpoints: list[str] | None = None,
    ):
        self._http = http
        self._ttl_seconds = ttl_seconds
        self._endpoints = endpoints or API_LOGIN_PATHS

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        payload = {
            "email": credentials.email,
            "password": credentials.password,
            "remember": True,
        }
        headers = {
            "Accept": "application/json",
            "Origin": self._http.base_url,
            "Referer": self._http.url_for(LOGIN_PATH),
        }

        tried: list[str] = []
        for path in self._endpoints:
            try:
                resp = await self._http.post(
                    path, json_body=payload, headers=headers, allow_redirects=False
                )
            except TransientNetworkError as e:
                auth_log.debug(f"{path}: {e}")
                tried.append(f"{path}: network error")
                continue

            if not _looks_successful(resp):
                tried.append(f"{path}: HTTP {resp.status_code}")
                continue

            token = _find_token(resp.json())
            cookie_header = build_cookie_header(resp.cookies)
            if not cookie_header and not token:
                tried.append(f"{path}: no cookies or token")
                continue

            auth_log.info(f"API login accepted at {path}")
            session = Session.create(
                cookie_header=cookie_header,
                identifier=new_session_id(),
                ttl_seconds=self._ttl_seconds,
                bearer_token=token,
            )
            return AuthResult.succeeded(self.method, session, f"API login via {path}")

        return AuthResult.failure(self.method, "; ".join(tried) or "No API endpoints configured")
