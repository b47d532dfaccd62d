"""
Browser login strategy using Playwright.

Last resort for logins that only work with JavaScript running (the DWV
app is a client-rendered SPA).
"""

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from src.crawler.auth.base import AuthStrategy, new_session_id
from src.crawler.auth.indicators import is_login_redirect, is_successful_redirect
from src.crawler.endpoints import LOGIN_PATH
from src.crawler.http_client import build_cookie_header
from src.crawler.types import AuthMethod, AuthResult, Credentials, Session

browser_log = logger.bind(module="Playwright")

EMAIL_SELECTORS = [
    'input[type="email"]',
    'input[name="email"]',
    'input[id*="email" i]',
    'input[placeholder*="mail" i]',
]
PASSWORD_SELECTORS = [
    'input[type="password"]',
    'input[name="password"]',
    'input[name="senha"]',
]
SUBMIT_SELECTORS = [
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Entrar")',
    'button:has-text("Login")',
]

# Time allowed for the SPA to render its login form
FORM_WAIT_MS = 10000


class BrowserLoginStrategy(AuthStrategy):
    """Drive a headless Chromium through the login form."""

    method = AuthMethod.BROWSER_LOGIN

    def __init__(
        self,
        base_url: str,
        ttl_seconds: int,
        headless: bool = True,
        user_agent: str | None = None,
        launch_timeout_ms: int = 30000,
        navigation_timeout_ms: int = 30000,
        playwright_factory=async_playwright,
    ):
        """
        Initialize the strategy.

        Args:
            base_url: Site root
            ttl_seconds: Lifetime given to new sessions
            headless: Run browser in headless mode
            user_agent: Browser User-Agent override
            launch_timeout_ms: Browser launch timeout
            navigation_timeout_ms: Timeout for navigation and waits
            playwright_factory: Callable returning a Playwright context manager
        """
        self._base_url = base_url.rstrip("/")
        self._ttl_seconds = ttl_seconds
        self._headless = headless
        self._user_agent = user_agent
        self._launch_timeout_ms = launch_timeout_ms
        self._navigation_timeout_ms = navigation_timeout_ms
        self._playwright_factory = playwright_factory

    async def authenticate(self, credentials: Credentials) -> AuthResult:
        playwright = browser = context = page = None
        try:
            playwright = await self._playwright_factory().start()
            browser = await playwright.chromium.launch(
                headless=self._headless,
                timeout=self._launch_timeout_ms,
            )
            context = await browser.new_context(user_agent=self._user_agent, locale="pt-BR")
            page = await context.new_page()
            page.set_default_timeout(self._navigation_timeout_ms)

            login_url = f"{self._base_url}{LOGIN_PATH}"
            browser_log.info(f"Opening {login_url}")
            await page.goto(login_url, wait_until="domcontentloaded")
            await page.wait_for_selector(", ".join(EMAIL_SELECTORS), timeout=FORM_WAIT_MS)

            if not await _fill_first(page, EMAIL_SELECTORS, credentials.email):
                return AuthResult.failure(self.method, "Email field not found")
            if not await _fill_first(page, PASSWORD_SELECTORS, credentials.password):
                return AuthResult.failure(self.method, "Password field not found")

            await _submit(page)

            try:
                await page.wait_for_url(lambda url: not is_login_redirect(url))
            except PlaywrightTimeoutError:
                browser_log.debug("URL did not leave the login page before timeout")

            final_url = page.url
            if not is_successful_redirect(final_url):
                return AuthResult.failure(self.method, f"Still on {final_url} after submit")

            cookies = await context.cookies()
            cookie_header = build_cookie_header({c["name"]: c["value"] for c in cookies})
            session = Session.create(
                cookie_header=cookie_header,
                identifier=new_session_id(),
                ttl_seconds=self._ttl_seconds,
            )
            return AuthResult.succeeded(self.method, session, f"Browser landed on {final_url}")

        except Exception as e:
            browser_log.error(f"Browser login failed: {e}")
            return AuthResult.failure(self.method, f"Browser login failed: {e}")

        finally:
            await _close_quietly(page, context, browser, playwright)


async def _fill_first(page: Page, selectors: list[str], value: str) -> bool:
    """Fill the first selector that exists on the page."""
    for selector in selectors:
        element = await page.query_selector(selector)
        if element is not None:
            await element.fill(value)
            return True
    return False


async def _submit(page: Page) -> None:
    """Click the first submit control, or press Enter in the password field."""
    for selector in SUBMIT_SELECTORS:
        element = await page.query_selector(selector)
        if element is not None:
            await element.click()
            return
    await page.keyboard.press("Enter")


async def _close_quietly(page, context, browser, playwright) -> None:
    for resource in (page, context, browser):
        if resource is None:
            continue
        try:
            await resource.close()
        except PlaywrightError as e:
            browser_log.debug(f"Ignoring close error: {e}")
    if playwright is not None:
        try:
            await playwright.stop()
        except PlaywrightError as e:
            browser_log.debug(f"Ignoring stop error: {e}")
