"""Global pytest fixtures for the test suite.

Centralizes:
 - Project root path insertion (so individual tests don't repeat sys.path hacks)
 - Reusable HTML sample snippets of handball.no pages (team, tournament, match, table)
 - Dummy page/client doubles standing in for the headless browser
 - Settings without render waits
"""

import json
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

# Ensure project root (containing handball_sync/) is on sys.path once
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from handball_sync.common.playwright_utils import NavigationError, PageSnapshot  # noqa: E402
from handball_sync.core.config import Settings  # noqa: E402

BASE = "https://www.handball.no"
MATCH_URL = f"{BASE}/system/kamper/kamp/?matchid=123456789"
TOURNAMENT_URL = f"{BASE}/system/kamper/turnering/?turnid=42"


# -------------------- Browser doubles -------------------- #


class DummyPage:
    """PageSession double; pages/tabs map to html or (html, text)."""

    def __init__(self, pages=None, *, tab_pages=None, failing=()):
        self.pages = pages or {}
        self.tab_pages = tab_pages or {}
        self.failing = set(failing)
        self.url = ""
        self.html = "<html><body></body></html>"
        self.text = ""
        self.calls = []
        self.closed = False

    def _load(self, content):
        if isinstance(content, tuple):
            self.html, self.text = content
        else:
            self.html, self.text = content, ""

    async def navigate(self, url, timeout_ms=None):  # noqa: ARG002
        self.calls.append(("navigate", url))
        if url in self.failing:
            raise NavigationError(f"Navigation to {url} failed: timeout")
        self.url = url
        self._load(self.pages.get(url, "<html><body></body></html>"))

    async def click(self, selector, timeout_ms=None):  # noqa: ARG002
        self.calls.append(("click", selector))
        if selector not in self.tab_pages:
            return False
        self._load(self.tab_pages[selector])
        return True

    async def evaluate(self, extractor):
        return extractor(PageSnapshot(url=self.url, html=self.html, text=self.text))

    async def wait(self, ms):
        self.calls.append(("wait", ms))

    async def dismiss_cookie_banner(self):
        self.calls.append(("cookies", None))


class DummyClient:
    """PageAutomationClient double handing out DummyPages."""

    def __init__(self, pages=None, *, tab_pages=None, failing=()):
        self.pages = pages or {}
        self.tab_pages = tab_pages or {}
        self.failing = failing
        self.opened = []
        self.closed = False

    @asynccontextmanager
    async def page(self):
        page = DummyPage(self.pages, tab_pages=self.tab_pages, failing=self.failing)
        self.opened.append(page)
        try:
            yield page
        finally:
            page.closed = True

    async def close(self):
        self.closed = True


@pytest.fixture
def dummy_client():
    return DummyClient


@pytest.fixture
def dummy_page():
    return DummyPage


@pytest.fixture
def fast_settings(tmp_path):
    """Settings with all waits disabled and data/config below tmp_path."""
    return Settings(
        data_dir=str(tmp_path / "data"),
        config_path=str(tmp_path / "config.json"),
        cookie_banner_delay_ms=0,
        click_settle_ms=0,
        listing_render_wait_ms=0,
        match_render_wait_ms=0,
        table_render_wait_ms=0,
        result_delay_ms=0,
        table_fetch_delay_ms=0,
        http_retries=1,
    )


@pytest.fixture
def teams_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "teams": [
                    {"name": "Fjellhammer G14", "lagid": "111", "seasonId": "2024", "color": "#ff0000"},
                    {"name": "Fjellhammer J14", "lagid": "333", "seasonId": "2024"},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


# -------------------- HTML Fixtures -------------------- #


@pytest.fixture
def team_page_html():
    return (
        """
        <html>
        <body>
            <table>
                <tr><th>Dato</th><th>Kampnr</th><th>Hjemmelag</th><th>Bortelag</th><th>H-B</th><th>Turnering</th></tr>
                <tr>
                    <td>18.01.2025</td>
                    <td>123456789</td>
                    <td><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></td>
                    <td><a href="/system/kamper/lag/?lagid=222">Lørenskog</a></td>
                    <td><a href="/system/kamper/kamp/?matchid=123456789">25-20</a></td>
                    <td><a href="/system/kamper/turnering/?turnid=42">Regionserien G14</a></td>
                </tr>
                <tr>
                    <td>25.01.2025</td>
                    <td>123456790</td>
                    <td><a href="/system/kamper/lag/?lagid=222">Lørenskog</a></td>
                    <td><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></td>
                    <td><a href="/system/kamper/kamp/?matchid=123456790">Kampinfo</a></td>
                    <td><a href="/system/kamper/turnering/?turnid=43">Norgesserien Cup</a></td>
                </tr>
                <tr>
                    <td>18.01.2025</td>
                    <td>123456789</td>
                    <td><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></td>
                    <td><a href="/system/kamper/lag/?lagid=222">Lørenskog</a></td>
                    <td><a href="/system/kamper/kamp/?matchid=999">25-20</a></td>
                    <td><a href="/system/kamper/turnering/?turnid=42">Regionserien G14</a></td>
                </tr>
            </table>
        </body>
        </html>
        """
    )


@pytest.fixture
def tournament_page_html():
    return (
        """
        <html>
        <body>
            <h1>Regionserien G14</h1>
            <table>
                <tr>
                    <td><a href="/system/kamper/kamp/?matchid=123456789">123456789</a></td>
                    <td><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></td>
                    <td><a href="/system/kamper/lag/?lagid=222">Lørenskog</a></td>
                    <td>25 - 20</td>
                </tr>
                <tr>
                    <td><a href="/system/kamper/kamp/?matchid=123456791">123456791</a></td>
                    <td><a href="/system/kamper/lag/?lagid=222">Lørenskog</a></td>
                    <td><a href="/system/kamper/lag/?lagid=444">Rælingen</a></td>
                    <td>18–18</td>
                </tr>
                <tr>
                    <td><a href="/system/kamper/kamp/?matchid=123456792">123456792</a></td>
                    <td><a href="/system/kamper/lag/?lagid=444">Rælingen</a></td>
                    <td><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></td>
                    <td>Ikke spilt</td>
                </tr>
            </table>
        </body>
        </html>
        """
    )


@pytest.fixture
def match_page_html():
    return (
        """
        <html>
        <body>
            <a href="/system/kamper/turnering/?turnid=42">Regionserien G14</a>
            <p>Lørdag 18.01.2025 kl. 14:00, Fjellhammerhallen</p>
            <table width="100%">
                <tr>
                    <th>25</th>
                    <th><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></th>
                    <th>20</th>
                    <th><a href="/system/kamper/lag/?lagid=222">Lørenskog</a></th>
                </tr>
            </table>
            <table class="player-table">
                <tr><th>Nr</th><th>Spiller</th><th>Mål</th><th>7m</th><th>Gult</th><th>2 min</th><th>Rødt</th></tr>
                <tr><td>7</td><td>Ola Nordmann</td><td>6</td><td>2</td><td>1</td><td>1</td><td>0</td></tr>
                <tr><td>9</td><td>Kari Hansen</td><td>3</td><td>0</td><td>0</td><td>2</td><td>0</td></tr>
                <tr><td>A</td><td>Trener Leder</td><td></td><td></td><td></td><td></td><td></td></tr>
                <tr><td></td><td>Total</td><td>9</td><td>2</td><td>1</td><td>3</td><td>0</td></tr>
            </table>
            <table class="player-table">
                <tr><th>Nr</th><th>Spiller</th><th>Mål</th><th>7m</th><th>Gult</th><th>2 min</th><th>Rødt</th></tr>
                <tr><td>7</td><td>Ola Nordmann</td><td>6</td><td>2</td><td>1</td><td>1</td><td>0</td></tr>
                <tr><td>9</td><td>Kari Hansen</td><td>3</td><td>0</td><td>0</td><td>2</td><td>0</td></tr>
            </table>
            <table class="player-table">
                <tr><th>Nr</th><th>Spiller</th><th>Mål</th><th>7m</th><th>Gult</th><th>2 min</th><th>Rødt</th></tr>
                <tr><td>11</td><td>Per Olsen</td><td>8</td><td>3</td><td>0</td><td>1</td><td>1</td></tr>
            </table>
        </body>
        </html>
        """
    )


@pytest.fixture
def league_table_html():
    return (
        """
        <html>
        <head><title>Turnering, Regionserien G14 | handball.no</title></head>
        <body>
            <h1>Regionserien G14</h1>
            <table role="presentation"><tr><td>Lag</td><td>Mål</td></tr></table>
            <table>
                <thead>
                    <tr><th>#</th><th>Lag</th><th>K</th><th>V</th><th>U</th><th>T</th><th>Mål</th><th>P</th></tr>
                </thead>
                <tbody>
                    <tr><td>1</td><td>Fjellhammer</td><td>10</td><td>8</td><td>1</td><td>1</td><td>250-200</td><td>17</td></tr>
                    <tr><td></td><td>Lørenskog (D)</td><td>10</td><td>5</td><td>0</td><td>5</td><td>220 - 230</td><td>10</td></tr>
                    <tr><td>3</td><td>Kort rad</td><td>10</td></tr>
                </tbody>
            </table>
        </body>
        </html>
        """
    )


@pytest.fixture
def result_page_text():
    return "Fjellhammer - Lørenskog\nResultat\n30   (14)   Fjellhammer\n25   (12)   Lørenskog\nTilskuere: 120"
