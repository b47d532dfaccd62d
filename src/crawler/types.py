"""
Crawler data types.

Credentials, sessions and the result records passed between the
authentication chain, the extraction chain and the pipeline.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.modules.listings.models import Listing


class AuthMethod(str, Enum):
    """Name of the strategy that produced an AuthResult."""

    EXISTING_SESSION = "existing_session"
    FORM_LOGIN = "form_login"
    API_LOGIN = "api_login"
    ALTERNATIVE_LOGIN = "alternative_login"
    BROWSER_LOGIN = "browser_login"
    INVALID_CREDENTIALS = "invalid_credentials"
    ALL_FAILED = "all_failed"


class Credentials(BaseModel):
    """Login credentials. Never logged, never cached."""

    model_config = ConfigDict(frozen=True)

    email: str
    password: str = Field(repr=False)

    def is_complete(self) -> bool:
        """Both fields are non-blank."""
        return bool(self.email.strip()) and bool(self.password.strip())


class Session(BaseModel):
    """Authenticated session, replaced rather than mutated."""

    model_config = ConfigDict(frozen=True)

    cookie_header: str = Field(default="", repr=False)
    identifier: str
    expires_at: datetime
    is_valid: bool = False
    bearer_token: str | None = Field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        cookie_header: str,
        identifier: str,
        ttl_seconds: int,
        bearer_token: str | None = None,
    ) -> "Session":
        """Build an unvalidated session expiring ttl_seconds from now."""
        return cls(
            cookie_header=cookie_header,
            identifier=identifier,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
            bearer_token=bearer_token,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check expiry against UTC now (or the given instant)."""
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def has_credentials(self) -> bool:
        """Whether there is anything to send with a request."""
        return bool(self.cookie_header) or bool(self.bearer_token)

    def request_headers(self) -> dict[str, str]:
        """Headers that carry this session on an outgoing request."""
        headers: dict[str, str] = {}
        if self.cookie_header:
            headers["Cookie"] = self.cookie_header
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        return headers


class AuthResult(BaseModel):
    """Outcome of one authentication attempt."""

    success: bool
    method_used: str
    message: str = ""
    session: Session | None = None

    @classmethod
    def failure(cls, method: AuthMethod | str, message: str) -> "AuthResult":
        """Shortcut for a failed result."""
        return cls(success=False, method_used=_method_name(method), message=message)

    @classmethod
    def succeeded(cls, method: AuthMethod | str, session: Session, message: str = "") -> "AuthResult":
        """Shortcut for a successful result."""
        return cls(
            success=True,
            method_used=_method_name(method),
            session=session,
            message=message or f"Authenticated via {_method_name(method)}",
        )


class ExtractionResult(BaseModel):
    """Listings collected by one stage or by the whole chain."""

    success: bool = False
    listings: list[Listing] = Field(default_factory=list)
    source: str = ""
    message: str | None = None
    error: str | None = None
    session_expired: bool = False


def _method_name(method: AuthMethod | str) -> str:
    return method.value if isinstance(method, AuthMethod) else method
