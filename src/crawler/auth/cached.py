"""
Cached session strategy.
"""

from src.crawler.auth.base import AuthStrategy
from src.crawler.session_cache import SessionCache, session_key
from src.crawler.types import AuthMethod, AuthResult, Credentials


class CachedSessionStrategy(AuthStrategy):
    """Reuse a session from the cache. Validation is left to the chain."""

    method = AuthMethod.EXISTING_SESSION

    def __init__(self, cache: SessionCache):
        self._cache = cache

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        session = await self._cache.get(session_key(credentials.email))
        if session is None:
            return AuthResult.failure(self.method, "No cached session")
        return AuthResult.succeeded(self.method, session, "Reusing cached session")
