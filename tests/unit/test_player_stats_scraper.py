"""
Unit tests for the match page (kampoppgjør) extraction and PlayerStatsScraper
"""

import pytest

from handball_sync.common.playwright_utils import PageSnapshot
from handball_sync.common.scraper_utils import generate_player_id
from handball_sync.data_collection.scrapers.base import ExtractionError
from handball_sync.data_collection.scrapers.player_stats_scraper import (
    PlayerStatsScraper,
    RawBoxScore,
    RawMatchPage,
    build_match_player_data,
    extract_match_page,
)
from handball_sync.domain.contracts import PlayedMatch

MATCH_URL = "https://www.handball.no/system/kamper/kamp/?matchid=123456789"


def test_extract_match_page(match_page_html):
    raw = extract_match_page(PageSnapshot(url=MATCH_URL, html=match_page_html))

    assert (raw.home_team_name, raw.home_team_id, raw.home_score) == ("Fjellhammer", "111", 25)
    assert (raw.away_team_name, raw.away_team_id, raw.away_score) == ("Lørenskog", "222", 20)
    assert raw.match_date == "18.01.2025"
    assert raw.tournament == "Regionserien G14"
    # duplicated mobile table is ignored, leader and total rows are skipped
    assert [p.player_name for p in raw.home_stats] == ["Ola Nordmann", "Kari Hansen"]
    assert [p.player_name for p in raw.away_stats] == ["Per Olsen"]
    ola = raw.home_stats[0]
    assert (ola.jersey_number, ola.goals, ola.penalty_goals, ola.yellow_cards, ola.two_minutes, ola.red_cards) == (
        7, 6, 2, 1, 1, 0,
    )


def test_team_fallback_and_stats_table_score():
    html = """
    <html><body>
        <div><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></div>
        <div><a href="/system/kamper/lag/?lagid=111">Fjellhammer</a></div>
        <div><a href="/system/kamper/lag/?lagid=222">Lørenskog</a></div>
        <table class="stats-table"><tbody>
            <tr><td>Fjellhammer</td><td>31</td></tr>
            <tr><td>Lørenskog</td><td>29</td></tr>
        </tbody></table>
    </body></html>
    """
    raw = extract_match_page(PageSnapshot(url=MATCH_URL, html=html, text="01.02.2025 kl. 12:00"))
    assert (raw.home_team_id, raw.away_team_id) == ("111", "222")
    assert (raw.home_score, raw.away_score) == (31, 29)
    assert raw.match_date == "01.02.2025"
    assert raw.home_stats == [] and raw.away_stats == []


def test_build_match_player_data(match_page_html):
    raw = extract_match_page(PageSnapshot(url=MATCH_URL, html=match_page_html))
    data = build_match_player_data(raw, "123456789", MATCH_URL)

    assert data.match_id == "123456789"
    assert data.match_url == MATCH_URL
    assert data.home_team_stats[0].player_id == generate_player_id("Ola Nordmann")
    assert data.away_team_stats[0].red_cards == 1
    dumped = data.to_json_dict()
    assert dumped["homeTeamStats"][0]["penaltyGoals"] == 2
    assert "scrapedAt" in dumped


def test_build_rejects_half_populated_pages():
    only_home = RawMatchPage(home_team_name="Fjellhammer", home_team_id="111")
    with pytest.raises(ExtractionError):
        build_match_player_data(only_home, "1", MATCH_URL)

    no_rosters = RawMatchPage()
    no_rosters.add_team("Fjellhammer", "111", 25)
    no_rosters.add_team("Lørenskog", "222", 20)
    with pytest.raises(ExtractionError):
        build_match_player_data(no_rosters, "1", MATCH_URL)

    no_rosters.away_stats = [RawBoxScore(player_name="Per Olsen", jersey_number=None)]
    assert build_match_player_data(no_rosters, "1", MATCH_URL).home_team_stats == []


@pytest.mark.asyncio
async def test_scrape_match_stats_returns_none_on_navigation_error(dummy_client, fast_settings):
    scraper = PlayerStatsScraper(dummy_client(failing=[MATCH_URL]), fast_settings)
    assert await scraper.scrape_match_stats(MATCH_URL, "123456789") is None


@pytest.mark.asyncio
async def test_scrape_many_sorts_results(dummy_client, fast_settings, match_page_html, monkeypatch):
    other = "https://www.handball.no/system/kamper/kamp/?matchid=2"
    broken = "https://www.handball.no/system/kamper/kamp/?matchid=3"
    client = dummy_client({MATCH_URL: match_page_html, other: "<html><body>Ingen statistikk</body></html>"})
    scraper = PlayerStatsScraper(client, fast_settings)

    original = scraper.scrape_match_stats

    async def flaky(url, match_id):
        if url == broken:
            raise RuntimeError("page crashed")
        return await original(url, match_id)

    monkeypatch.setattr(scraper, "scrape_match_stats", flaky)

    result = await scraper.scrape_many([
        PlayedMatch("123456789", MATCH_URL),
        PlayedMatch("2", other),
        PlayedMatch("3", broken),
    ])

    assert [m.match_id for m in result.results] == ["123456789"]
    assert result.no_stats == ["2"]
    assert [(f.kind, f.item) for f in result.failures] == [("match", "3")]
