# src/scrapers/base_scraper.py

"""Abstract base class for browser-driven product price scrapers."""

import asyncio
import logging
import random
import re
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any

from bs4 import BeautifulSoup
from playwright.async_api import Browser, BrowserContext, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from src.config.settings import Settings
from src.errors import FetchError

# Forces the automation flag false before any page script runs
_STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => false,
});
"""

_SCROLL_SCRIPT = "(y) => window.scrollTo(0, y)"

_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")


class BaseScraper(ABC):
    """Fetch one price per call from a bot-protected product page.

    Every call launches a fresh headless browser with an isolated
    context, so no cookies or storage leak between products. Retry
    policy belongs to the caller.
    """

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"price_tracker.{source_name}"
        )
        self.settings = Settings()
        self._sleep = asyncio.sleep

    # ── Hooks ────────────────────────────────────────────

    @abstractmethod
    def product_url(self, product_id: int | str) -> str:
        """Return the canonical page URL for a catalog id."""
        ...

    @property
    @abstractmethod
    def price_selector(self) -> str:
        """CSS selector of the element carrying the price."""
        ...

    # ── Browser session ──────────────────────────────────

    def _context_options(self) -> dict[str, Any]:
        """Options that make the context resemble an organic desktop browser."""
        return {
            "user_agent": self.settings.USER_AGENT,
            "viewport": dict(self.settings.VIEWPORT),
            "locale": "en-US",
            "extra_http_headers": dict(self.settings.DEFAULT_HEADERS),
        }

    async def _new_context(self, browser: Browser) -> BrowserContext:
        """Create a disposable context with the stealth script installed."""
        context = await browser.new_context(**self._context_options())
        await context.add_init_script(_STEALTH_SCRIPT)
        return context

    async def _humanize(self, page: Page) -> None:
        """Scroll a little, pause, then scroll further."""
        await page.evaluate(_SCROLL_SCRIPT, random.randint(0, 100))
        await self._sleep(self.settings.SCROLL_PAUSE)
        await page.evaluate(_SCROLL_SCRIPT, random.randint(0, 500))

    async def _load_page(self, product_id: int | str) -> str:
        """Navigate to the product page and return the rendered HTML."""
        url = self.product_url(product_id)
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=True,
                args=list(self.settings.BROWSER_ARGS),
            )
            try:
                context = await self._new_context(browser)
                page = await context.new_page()

                await self._sleep(random.uniform(
                    self.settings.FETCH_DELAY_MIN,
                    self.settings.FETCH_DELAY_MAX,
                ))

                resp = await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self.settings.NAVIGATION_TIMEOUT_MS,
                )
                if resp is not None and not resp.ok:
                    raise FetchError(
                        product_id, f"HTTP {resp.status} from {url}",
                    )

                await self._humanize(page)
                html: str = await page.content()
                await context.close()
                return html
            finally:
                await browser.close()

    # ── Public entry point ───────────────────────────────

    async def fetch(self, product_id: int | str) -> Decimal:
        """Load the product page and return its current price.

        Raises ``FetchError`` if the page fails to load, the price
        element is missing, or its text does not parse.
        """
        try:
            html = await self._load_page(product_id)
        except FetchError:
            raise
        except (PlaywrightError, OSError) as exc:
            raise FetchError(
                product_id, f"page load failed: {exc}",
            ) from exc

        price = self.parse_price(html, product_id)
        self.logger.debug(
            "[%s] Product %s priced at %s",
            self.source_name,
            product_id,
            price,
        )
        return price

    def parse_price(self, html: str, product_id: int | str) -> Decimal:
        """Extract the price from a rendered product document."""
        soup = BeautifulSoup(html, "lxml")
        element = soup.select_one(self.price_selector)
        if element is None:
            raise FetchError(
                product_id,
                f"price element {self.price_selector!r} not found",
            )
        price = self.extract_price(element.get_text(" ", strip=True))
        if price is None:
            raise FetchError(
                product_id,
                f"unparsable price text {element.get_text(strip=True)!r}",
            )
        return price

    def extract_price(self, text: str | None) -> Decimal | None:
        """Parse text like 'MRP ₹1,299' into ``Decimal('1299')``.

        Returns None rather than zero when nothing numeric remains.
        """
        if not text:
            return None
        cleaned = text
        for token in self.settings.CURRENCY_TOKENS:
            cleaned = cleaned.replace(token, "")
        cleaned = cleaned.replace(",", "")
        cleaned = "".join(cleaned.split())
        if not _NUMBER_RE.match(cleaned):
            return None
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None
