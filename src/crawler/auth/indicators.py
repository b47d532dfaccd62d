"""
Login page parsing and response classification.

Keyword and pattern tables are ordered; the first match wins.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

# ============================================
# CSRF token patterns (first match wins)
# ============================================

CSRF_PATTERNS = [
    re.compile(r'name="csrf_token"[^>]*value="([^"]+)"', re.IGNORECASE),
    re.compile(r'name="_token"[^>]*value="([^"]+)"', re.IGNORECASE),
    re.compile(r'name="csrf"[^>]*value="([^"]+)"', re.IGNORECASE),
    re.compile(r'<meta[^>]*name="csrf-token"[^>]*content="([^"]+)"', re.IGNORECASE),
    re.compile(r'"csrf_token"\s*:\s*"([^"]+)"'),
    re.compile(r"_token['\"]\s*:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r'window\.Laravel\s*=\s*\{[^}]*"csrfToken"\s*:\s*"([^"]+)"'),
]

# Field names the token is posted under
CSRF_FIELD_NAMES = ("_token", "csrf_token")

# ============================================
# Redirect classification
# ============================================

REDIRECT_STATUSES = (302, 303, 307)
REDIRECT_FAILURE_KEYWORDS = ("login", "signin", "auth", "error", "erro", "fail")
REDIRECT_SUCCESS_KEYWORDS = ("dashboard", "home", "imoveis", "painel", "app", "/")

# Redirect targets that mean "not logged in" when validating a session
VALIDATION_LOGIN_KEYWORDS = ("login", "signin", "entrar")

# ============================================
# Page body classification
# ============================================

SUCCESS_INDICATORS = (
    "dashboard",
    "logout",
    "sair",
    "bem-vindo",
    "welcome",
    "perfil",
    "profile",
    "minha conta",
    "my account",
)

ERROR_INDICATORS = (
    "credenciais inválidas",
    "invalid credentials",
    "senha incorreta",
    "incorrect password",
    "email não encontrado",
    "email not found",
    "login failed",
    "falha no login",
    "erro de autenticação",
    "authentication error",
)

ERROR_MESSAGE_PATTERNS = [
    re.compile(r'<div[^>]*class="[^"]*(?:alert|error)[^"]*"[^>]*>(.*?)</div>', re.IGNORECASE | re.DOTALL),
    re.compile(r'<span[^>]*class="[^"]*error[^"]*"[^>]*>(.*?)</span>', re.IGNORECASE | re.DOTALL),
    re.compile(r'<p[^>]*class="[^"]*(?:alert|error)[^"]*"[^>]*>(.*?)</p>', re.IGNORECASE | re.DOTALL),
]

# Markers of a login form rendered in place of the requested page
LOGIN_PAGE_MARKERS = [
    re.compile(r'<input[^>]*type=["\']password["\']', re.IGNORECASE),
    re.compile(r'<input[^>]*name=["\']password["\']', re.IGNORECASE),
    re.compile(r"fazer login", re.IGNORECASE),
    re.compile(r'<form[^>]*action=["\'][^"\']*login', re.IGNORECASE),
]

# JSON login answers must mention one of these
API_SUCCESS_KEYS = ("token", "user", "success")
API_TOKEN_PATHS = ("token", "access_token", "data.token", "data.access_token")

_TAG_RE = re.compile(r"<[^>]+>")


@dataclass
class LoginForm:
    """What a login page yields for the form POST."""

    action_url: str
    token: str | None = None
    hidden_fields: dict[str, str] = field(default_factory=dict)


def extract_csrf_token(html: str) -> str | None:
    """
    Find the CSRF token in a login page.

    Args:
        html: Login page HTML

    Returns:
        Token value, or None if no pattern matches

    Examples:
        >>> extract_csrf_token('<input type="hidden" name="_token" value="abc123">')
        'abc123'
    """
    for pattern in CSRF_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


def extract_login_form(html: str, page_url: str) -> LoginForm:
    """
    Parse token, hidden inputs and form action from a login page.

    The form holding a password input is preferred; otherwise the first
    form. Without any form the page URL itself is the action.

    Args:
        html: Login page HTML
        page_url: Absolute URL the page was served from

    Returns:
        LoginForm
    """
    soup = BeautifulSoup(html, "html.parser")

    form = None
    password_input = soup.find("input", attrs={"type": "password"})
    if password_input is not None:
        form = password_input.find_parent("form")
    if form is None:
        form = soup.find("form")

    action_url = page_url
    hidden_fields: dict[str, str] = {}
    if form is not None:
        action = (form.get("action") or "").strip()
        if action and not action.startswith(("#", "javascript:")):
            action_url = urljoin(page_url, action)
        for inp in form.find_all("input", attrs={"type": "hidden"}):
            name = inp.get("name")
            if name:
                hidden_fields[name] = inp.get("value", "")

    return LoginForm(
        action_url=action_url,
        token=extract_csrf_token(html),
        hidden_fields=hidden_fields,
    )


def _path_of(location: str) -> str:
    parsed = urlparse(location)
    path = parsed.path or ("/" if parsed.netloc else "")
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return path.lower()


def is_successful_redirect(location: str) -> bool:
    """
    Decide whether a post-login redirect target means success.

    Only the path and query are inspected so the host name never matters.

    Examples:
        >>> is_successful_redirect("/dashboard")
        True
        >>> is_successful_redirect("/login?error=1")
        False
    """
    if not location:
        return False
    path = _path_of(location)
    if any(keyword in path for keyword in REDIRECT_FAILURE_KEYWORDS):
        return False
    return any(keyword in path for keyword in REDIRECT_SUCCESS_KEYWORDS)


def is_login_redirect(location: str) -> bool:
    """Whether a redirect target points back at a login page."""
    path = _path_of(location)
    return any(keyword in path for keyword in VALIDATION_LOGIN_KEYWORDS)


def _strip_tags(fragment: str) -> str:
    return " ".join(_TAG_RE.sub(" ", fragment).split())


def extract_error_message(html: str) -> str | None:
    """Text of the first alert/error element on the page."""
    for pattern in ERROR_MESSAGE_PATTERNS:
        match = pattern.search(html)
        if match:
            text = _strip_tags(match.group(1))
            if text:
                return text
    return None


def classify_login_page(html: str) -> tuple[bool, str]:
    """
    Classify a 200 response to a login POST.

    Args:
        html: Response body

    Returns:
        Tuple of (success, message)
    """
    lowered = html.lower()

    for indicator in ERROR_INDICATORS:
        if indicator in lowered:
            return False, extract_error_message(html) or f"Login rejected ({indicator})"

    for indicator in SUCCESS_INDICATORS:
        if indicator in lowered:
            return True, f"Login page shows '{indicator}'"

    return False, extract_error_message(html) or "No success indicator in response"


def is_login_page(html: str) -> bool:
    """Whether a page body is a login form instead of content."""
    return any(pattern.search(html) for pattern in LOGIN_PAGE_MARKERS)
