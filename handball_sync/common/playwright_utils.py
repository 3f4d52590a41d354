from __future__ import annotations

# Async Playwright-Session, geteilt von allen handball.no Scrapern

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional, Protocol, TypeVar

from bs4 import BeautifulSoup
from playwright.async_api import Browser, Page, async_playwright

from .parsing import soup_from_html

T = TypeVar("T")

COOKIE_BANNER_SCRIPT = """() => {
    const wrapper = document.getElementById('cookie-information-template-wrapper');
    if (wrapper) wrapper.remove();
    const backdrop = document.querySelector('.coi-banner__page-overlay');
    if (backdrop) backdrop.remove();
}"""

logger = logging.getLogger("playwright_utils")


class NavigationError(RuntimeError):
    """Seite nicht erreichbar oder Navigation im Timeout"""


@dataclass
class PageSnapshot:
    """Gerenderter Zustand einer Seite, der an Extraktor-Funktionen geht."""

    url: str
    html: str
    text: str = ""
    _soup: Optional[BeautifulSoup] = field(default=None, init=False, repr=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = soup_from_html(self.html)
        return self._soup


class PageSession(Protocol):
    """Minimale Seitenfähigkeiten, von denen die Scraper abhängen.

    Fallback-Ketten der Discovery und Extraktoren sprechen nur mit diesem
    Interface; jeder Headless-Treiber (oder ein Test-Stub) kann Playwright ersetzen.
    """

    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None: ...

    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> bool: ...

    async def evaluate(self, extractor: Callable[[PageSnapshot], T]) -> T: ...

    async def wait(self, ms: int) -> None: ...

    async def dismiss_cookie_banner(self) -> None: ...


class PlaywrightPage:
    """PageSession auf Basis einer Playwright-Page"""

    def __init__(
        self,
        page: Page,
        *,
        navigation_timeout_ms: int = 30000,
        click_timeout_ms: int = 3000,
        click_settle_ms: int = 500,
        cookie_banner_delay_ms: int = 1500,
    ):
        self.page = page
        self.navigation_timeout_ms = navigation_timeout_ms
        self.click_timeout_ms = click_timeout_ms
        self.click_settle_ms = click_settle_ms
        self.cookie_banner_delay_ms = cookie_banner_delay_ms

    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        try:
            await self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=timeout_ms or self.navigation_timeout_ms,
            )
        except Exception as e:
            raise NavigationError(f"Navigation to {url} failed: {e}") from e

    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> bool:
        """Click if the element shows up within the timeout; never raises."""
        try:
            await self.page.click(selector, timeout=timeout_ms or self.click_timeout_ms)
        except Exception:
            return False
        await self.wait(self.click_settle_ms)
        return True

    async def evaluate(self, extractor: Callable[[PageSnapshot], T]) -> T:
        html = await self.page.content()
        try:
            text = await self.page.inner_text("body")
        except Exception:
            text = ""
        return extractor(PageSnapshot(url=self.page.url, html=html, text=text))

    async def run_script(self, script: str) -> Any:
        return await self.page.evaluate(script)

    async def wait(self, ms: int) -> None:
        if ms > 0:
            await self.page.wait_for_timeout(ms)

    async def dismiss_cookie_banner(self) -> None:
        await self.wait(self.cookie_banner_delay_ms)
        with contextlib.suppress(Exception):
            await self.run_script(COOKIE_BANNER_SCRIPT)

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            await self.page.close()


class PageAutomationClient:
    """Besitzt eine Headless-Browser-Session für einen kompletten Lauf.

    Der Browser wird beim ersten page()-Aufruf gestartet und von allen Scrapern
    geteilt; jede logische Seite wird in page() geöffnet und auf jedem Weg
    (auch bei Exceptions) wieder geschlossen.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        navigation_timeout_ms: int = 30000,
        click_timeout_ms: int = 3000,
        click_settle_ms: int = 500,
        cookie_banner_delay_ms: int = 1500,
    ):
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.click_timeout_ms = click_timeout_ms
        self.click_settle_ms = click_settle_ms
        self.cookie_banner_delay_ms = cookie_banner_delay_ms
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings) -> "PageAutomationClient":
        return cls(
            headless=settings.browser_headless,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            click_timeout_ms=settings.click_timeout_ms,
            click_settle_ms=settings.click_settle_ms,
            cookie_banner_delay_ms=settings.cookie_banner_delay_ms,
        )

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()
                try:
                    self._browser = await self._playwright.chromium.launch(headless=self.headless)
                except Exception as e:
                    logger.error(f"Browser launch failed: {e}")
                    await self._playwright.stop()
                    self._playwright = None
                    raise
                logger.debug("Chromium started")
            return self._browser

    @asynccontextmanager
    async def page(self) -> AsyncIterator[PlaywrightPage]:
        """Async context manager yielding a fresh page with guaranteed close."""
        browser = await self._ensure_browser()
        raw = await browser.new_page()
        session = PlaywrightPage(
            raw,
            navigation_timeout_ms=self.navigation_timeout_ms,
            click_timeout_ms=self.click_timeout_ms,
            click_settle_ms=self.click_settle_ms,
            cookie_banner_delay_ms=self.cookie_banner_delay_ms,
        )
        try:
            yield session
        finally:
            await session.close()

    async def close(self) -> None:
        if self._browser is not None:
            with contextlib.suppress(Exception):
                await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            with contextlib.suppress(Exception):
                await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> "PageAutomationClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = [
    "NavigationError",
    "PageSnapshot",
    "PageSession",
    "PlaywrightPage",
    "PageAutomationClient",
    "COOKIE_BANNER_SCRIPT",
]
