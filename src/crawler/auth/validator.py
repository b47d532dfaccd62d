"""
Session validator.

Probes authenticated pages to confirm a session is actually logged in.
"""

from loguru import logger

from src.crawler.auth.indicators import is_login_redirect
from src.crawler.endpoints import VALIDATION_PATHS
from src.crawler.errors import TransientNetworkError
from src.crawler.http_client import HttpClient
from src.crawler.types import Session

validator_log = logger.bind(module="Validator")


class SessionValidator:
    """Checks a session against a fixed list of protected paths."""

    def __init__(self, http: HttpClient, probe_paths: list[str] | None = None):
        """
        Initialize the validator.

        Args:
            http: HTTP client bound to the site
            probe_paths: Paths probed in order (default: VALIDATION_PATHS)
        """
        self._http = http
        self._probe_paths = probe_paths or VALIDATION_PATHS

    async def validate(self, session: Session) -> bool:
        """
        Check whether a session is accepted by the site.

        A probe passes on any 2xx, or on a redirect whose target is not a
        login page. The first passing probe ends the check. Never raises.

        Args:
            session: Session to check

        Returns:
            True if any probe passed
        """
        if not session.has_credentials():
            return False

        for path in self._probe_paths:
            try:
                resp = await self._http.get(path, session=session, allow_redirects=False)
            except TransientNetworkError as e:
                validator_log.debug(f"Probe {path} failed: {e}")
                continue

            if resp.ok:
                validator_log.debug(f"Session {session.identifier} valid ({path} -> {resp.status_code})")
                return True

            if resp.is_redirect and resp.location and not is_login_redirect(resp.location):
                validator_log.debug(f"Session {session.identifier} valid ({path} -> {resp.location})")
                return True

        validator_log.info(f"Session {session.identifier} rejected by all probes")
        return False
