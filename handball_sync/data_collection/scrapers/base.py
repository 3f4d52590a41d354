"""
Basisklassen und Hilfsfunktionen für die handball.no Seiten-Scraper.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

from ...common.parsing import absolute_url
from ...common.playwright_utils import NavigationError, PageSession
from ...common.scraper_utils import chunked
from ...core.config import Settings, settings as default_settings
from ...domain.contracts import ScrapeFailure

T = TypeVar("T")
I = TypeVar("I")


class ExtractionError(RuntimeError):
    """Die DOM-Struktur passt zu keiner bekannten Heuristik"""


class PageProvider(Protocol):
    """Alles, was Seiten mit begrenzter Lebensdauer ausgibt (PageAutomationClient oder Test-Double)."""

    def page(self) -> Any: ...


# =============================================================================
# BASE SCRAPER
# =============================================================================


class PageScraper:
    """Basisklasse für alle Scraper, die über eine geteilte Browser-Session laufen"""

    def __init__(self, client: PageProvider, name: str, settings: Optional[Settings] = None):
        self.client = client
        self.name = name
        self.settings = settings or default_settings
        self.logger = logging.getLogger(f"scraper.{name}")

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    def absolute(self, href: Optional[str]) -> str:
        return absolute_url(href, self.base_url)

    @asynccontextmanager
    async def loaded_page(
        self, url: str, settle_ms: int, timeout_ms: Optional[int] = None
    ) -> AsyncIterator[PageSession]:
        """Navigiert, entfernt das Cookie-Overlay und wartet auf das Rendering"""
        async with self.client.page() as page:
            await page.navigate(url, timeout_ms)
            await page.dismiss_cookie_banner()
            await page.wait(settle_ms)
            yield page

    async def guarded(self, label: str, call: Callable[[], Awaitable[T]], default: T) -> T:
        """Run one page scrape; navigation/extraction failures become ``default``."""
        try:
            return await call()
        except (NavigationError, ExtractionError) as e:
            self.logger.warning(f"{label}: {e}")
            return default

    async def run_chunked(
        self,
        kind: str,
        items: Sequence[I],
        size: int,
        work: Callable[[I], Awaitable[T]],
        label: Callable[[I], str] = str,
    ) -> tuple[list[tuple[I, T]], list[ScrapeFailure]]:
        """Bounded batch parallelism.

        Items of one chunk run concurrently; the next chunk starts only after
        the whole chunk finished. A failing item is recorded, never raised.
        """
        done: list[tuple[I, T]] = []
        failures: list[ScrapeFailure] = []
        for chunk in chunked(items, size):
            outcomes = await asyncio.gather(*(work(item) for item in chunk), return_exceptions=True)
            for item, outcome in zip(chunk, outcomes):
                if isinstance(outcome, Exception):
                    self.logger.warning(f"{kind} {label(item)} failed: {outcome}")
                    failures.append(ScrapeFailure(kind=kind, item=label(item), reason=str(outcome)))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    done.append((item, outcome))
        return done, failures
