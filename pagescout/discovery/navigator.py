"""Page navigation strategies used by the crawler to extract links."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx
from bs4 import BeautifulSoup

from pagescout.config import RENDERERS

try:
    from playwright.async_api import Browser, Playwright, async_playwright
    from playwright.async_api import Error as PlaywrightError

    HAS_PLAYWRIGHT = True
except ImportError:
    HAS_PLAYWRIGHT = False

logger = logging.getLogger(__name__)

BROWSER_ENGINES = tuple(r for r in RENDERERS if r != "http")

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class NavigationError(Exception):
    """Exception raised when a page cannot be loaded."""

    pass


@dataclass
class NavigationResult:
    """Outcome of loading one page."""

    url: str
    status: int
    links: list[str] = field(default_factory=list)


class Navigator(Protocol):
    """Anything that can load a page and report its outbound links."""

    async def navigate(self, url: str, timeout: float) -> NavigationResult:
        """Load ``url`` and return its raw anchor hrefs.

        Raises:
            NavigationError: If the page cannot be loaded.
        """
        ...


def extract_links(html: str) -> list[str]:
    """Extract raw href values from anchor tags.

    Args:
        html: HTML document.

    Returns:
        href attribute values in document order.
    """
    soup = BeautifulSoup(html, "html.parser")
    return [a["href"] for a in soup.find_all("a", href=True) if a["href"]]


class HttpNavigator:
    """Static HTML fetch plus link extraction, for sites that render server-side."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def __aenter__(self) -> "HttpNavigator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        return None

    async def navigate(self, url: str, timeout: float) -> NavigationResult:
        try:
            response = await self.client.get(
                url,
                headers={"Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"},
                timeout=timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            raise NavigationError(f"Error loading {url}: {e}") from e

        if not response.is_success:
            raise NavigationError(f"Loading {url} returned {response.status_code}")

        final_url = str(response.url)
        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(t in content_type for t in HTML_CONTENT_TYPES):
            logger.debug("Not scanning %s for links (content-type=%s)", url, content_type)
            return NavigationResult(url=final_url, status=response.status_code)

        return NavigationResult(
            url=final_url,
            status=response.status_code,
            links=extract_links(response.text),
        )


class BrowserNavigator:
    """Full browser rendering via Playwright, for JavaScript-driven sites."""

    def __init__(self, browser: str = "chromium", headless: bool = True):
        """Initialize browser navigator.

        Args:
            browser: Playwright engine (chromium, firefox, webkit).
            headless: Run without a visible window.
        """
        if not HAS_PLAYWRIGHT:
            raise ImportError(
                "Playwright not installed. Run: pip install playwright && playwright install chromium"
            )
        if browser not in BROWSER_ENGINES:
            raise ValueError(f"Unknown browser engine: {browser}")

        self.browser_name = browser
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "BrowserNavigator":
        """Async context manager entry."""
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_name)
        self._browser = await launcher.launch(headless=self.headless)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def navigate(self, url: str, timeout: float) -> NavigationResult:
        if not self._browser:
            raise RuntimeError("Browser not initialized. Use 'async with' context.")

        # Each navigation gets its own context, closed on every exit path
        context = await self._browser.new_context()
        try:
            page = await context.new_page()
            response = await page.goto(
                url, timeout=timeout * 1000, wait_until="domcontentloaded"
            )
            links = await page.eval_on_selector_all(
                "a[href]", "els => els.map(a => a.getAttribute('href') || '')"
            )
            return NavigationResult(
                url=page.url,
                status=response.status if response else 0,
                links=[href for href in links if href],
            )
        except PlaywrightError as e:
            raise NavigationError(f"Error loading {url}: {e}") from e
        finally:
            await context.close()


def create_navigator(
    renderer: str,
    client: httpx.AsyncClient,
    headless: bool = True,
) -> HttpNavigator | BrowserNavigator:
    """Pick a page navigation strategy.

    Args:
        renderer: ``http`` for static fetching, or a Playwright engine name.
        client: Shared HTTP client, used by the static strategy.
        headless: Browser headless mode.

    Returns:
        Navigator, to be used as an async context manager.
    """
    if renderer == "http":
        return HttpNavigator(client)
    if renderer in BROWSER_ENGINES:
        return BrowserNavigator(renderer, headless=headless)
    raise ValueError(f"Unknown renderer '{renderer}'. Must be one of: {', '.join(RENDERERS)}")
