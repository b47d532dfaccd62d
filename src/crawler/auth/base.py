"""
Authentication strategy interface.
"""

import secrets
import time
from abc import ABC, abstractmethod

from src.crawler.types import AuthMethod, AuthResult, Credentials


class AuthStrategy(ABC):
    """One way of obtaining a session. Must not raise on login failure."""

    method: AuthMethod

    @abstractmethod
    async def authenticate(self, credentials: Credentials) -> AuthResult:
        """
        Try to log in.

        Args:
            credentials: Account credentials

        Returns:
            AuthResult with an unvalidated session on success
        """


def new_session_id() -> str:
    """Opaque identifier for a freshly created session."""
    return f"dwv_session_{int(time.time() * 1000)}_{secrets.token_hex(6)}"
