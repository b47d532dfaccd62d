"""
Authentication chain.

Runs the strategies in order and returns the first session that passes
validation. Validated sessions are cached per account.
"""

from loguru import logger

from config.settings import DwvSettings
from src.crawler.auth.api import ApiLoginStrategy
from src.crawler.auth.base import AuthStrategy
from src.crawler.auth.browser import BrowserLoginStrategy
from src.crawler.auth.cached import CachedSessionStrategy
from src.crawler.auth.form import FormLoginStrategy, alternative_login_strategy
from src.crawler.auth.validator import SessionValidator
from src.crawler.http_client import HttpClient
from src.crawler.session_cache import SessionCache, session_key
from src.crawler.types import AuthMethod, AuthResult, Credentials

auth_log = logger.bind(module="Auth")


class AuthChain:
    """
    Ordered authentication fallback chain.

    Workflow:
    1. Reject incomplete credentials without touching the network
    2. Try each strategy; exceptions count as failures
    3. Validate any success; invalid sessions make the chain continue
    4. Cache and return the first validated session
    """

    def __init__(
        self,
        cache: SessionCache,
        validator: SessionValidator,
        strategies: list[AuthStrategy],
        ttl_seconds: int,
    ):
        """
        Initialize the chain.

        Args:
            cache: Session cache shared with the cached-session strategy
            validator: Session validator
            strategies: Strategies in the order they are tried
            ttl_seconds: Cache lifetime of validated sessions
        """
        self._cache = cache
        self._validator = validator
        self._strategies = strategies
        self._ttl_seconds = ttl_seconds

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        """
        Obtain a validated session for the account.

        Args:
            credentials: Account credentials

        Returns:
            AuthResult; never raises
        """
        if not credentials.is_complete():
            return AuthResult.failure(AuthMethod.INVALID_CREDENTIALS, "Email and password are required")

        key = session_key(credentials.email)
        failures: list[str] = []

        for strategy in self._strategies:
            name = strategy.method.value
            try:
                result = await strategy.authenticate(credentials)
            except Exception as e:
                auth_log.error(f"Strategy {name} raised: {e}")
                failures.append(f"{name}: {e}")
                continue

            if not result.success or result.session is None:
                auth_log.debug(f"Strategy {name} failed: {result.message}")
                failures.append(f"{name}: {result.message}")
                continue

            if not await self._is_valid(result):
                auth_log.warning(f"Strategy {name} produced a session that failed validation")
                failures.append(f"{name}: session failed validation")
                if strategy.method == AuthMethod.EXISTING_SESSION:
                    await self._cache.clear(key)
                continue

            session = result.session.model_copy(update={"is_valid": True})
            if strategy.method != AuthMethod.EXISTING_SESSION:
                await self._cache.put(key, session, self._ttl_seconds)

            auth_log.info(f"Authenticated via {name}")
            return AuthResult.succeeded(strategy.method, session, result.message)

        auth_log.error("All authentication strategies failed")
        return AuthResult.failure(
            AuthMethod.ALL_FAILED,
            "all strategies failed: " + " | ".join(failures),
        )

    async def invalidate(self, credentials: Credentials) -> None:
        """Drop the cached session for an account."""
        await self._cache.clear(session_key(credentials.email))

    async def _is_valid(self, result: AuthResult) -> bool:
        try:
            return await self._validator.validate(result.session)
        except Exception as e:
            auth_log.error(f"Validation raised: {e}")
            return False


def build_auth_chain(http: HttpClient, cache: SessionCache, settings: DwvSettings) -> AuthChain:
    """
    Assemble the default chain: cached, form, API, alternate form, browser.

    Args:
        http: HTTP client bound to the site
        cache: Session cache
        settings: Site settings

    Returns:
        AuthChain
    """
    ttl = settings.session_ttl_seconds
    strategies: list[AuthStrategy] = [
        CachedSessionStrategy(cache),
        FormLoginStrategy(http, ttl),
        ApiLoginStrategy(http, ttl),
        alternative_login_strategy(http, ttl),
    ]
    if settings.browser_enabled:
        strategies.append(
            BrowserLoginStrategy(
                base_url=settings.base_url,
                ttl_seconds=ttl,
                headless=settings.browser_headless,
                user_agent=settings.user_agent,
                launch_timeout_ms=settings.browser_launch_timeout_ms,
                navigation_timeout_ms=settings.browser_navigation_timeout_ms,
            )
        )
    return AuthChain(cache, SessionValidator(http), strategies, ttl)
