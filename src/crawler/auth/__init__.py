"""Authentication strategies and chain."""

from src.crawler.auth.api import ApiLoginStrategy
from src.crawler.auth.base import AuthStrategy
from src.crawler.auth.browser import BrowserLoginStrategy
from src.crawler.auth.cached import CachedSessionStrategy
from src.crawler.auth.chain import AuthChain, build_auth_chain
from src.crawler.auth.form import FormLoginStrategy, alternative_login_strategy
from src.crawler.auth.validator import SessionValidator

__all__ = [
    "AuthStrategy",
    "CachedSessionStrategy",
    "FormLoginStrategy",
    "ApiLoginStrategy",
    "BrowserLoginStrategy",
    "alternative_login_strategy",
    "SessionValidator",
    "AuthChain",
    "build_auth_chain",
]
