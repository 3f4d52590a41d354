import pytest
import requests

from handball_sync.common.playwright_utils import PageSnapshot
from handball_sync.data_collection.scrapers.league_table_scraper import (
    LeagueTableFetcher,
    LeagueTableScraper,
    extract_league_table,
    merge_tables,
    parse_tournament_name,
)
from handball_sync.domain.models import LeagueTable, TableRow

T1 = "https://www.handball.no/system/kamper/turnering/?turnid=42"
T2 = "https://www.handball.no/system/kamper/turnering/?turnid=43"


def test_parse_tournament_name():
    assert parse_tournament_name("Turnering, Regionserien G14 | handball.no") == "Regionserien G14"
    assert parse_tournament_name("  Regionserien   G14 ") == "Regionserien G14"
    assert parse_tournament_name("") is None


def test_extract_league_table(league_table_html):
    table = extract_league_table(PageSnapshot(url=T1, html=league_table_html), T1)

    assert table.tournament_name == "Regionserien G14"
    assert table.tournament_url == T1
    assert len(table.rows) == 2
    first, second = table.rows
    assert (first.position, first.team, first.played, first.won, first.drawn, first.lost) == (
        1, "Fjellhammer", 10, 8, 1, 1,
    )
    assert (first.goals_for, first.goals_against, first.points) == (250, 200, 17)
    # missing position falls back to the row index
    assert second.position == 2
    assert (second.goals_for, second.goals_against) == (220, 230)


def test_extract_league_table_without_rows():
    html = "<html><head><title>Regionserien</title></head><body><table><tr><td>Ingen</td></tr></table></body></html>"
    assert extract_league_table(PageSnapshot(url=T1, html=html), T1) is None


def test_merge_tables():
    old_a = LeagueTable(tournament_name="A", tournament_url=T1, rows=[TableRow(position=1, team="x")])
    old_b = LeagueTable(tournament_name="B", tournament_url=T2, rows=[])
    new_a = LeagueTable(tournament_name="A", tournament_url=T1, rows=[TableRow(position=1, team="y")])
    new_c = LeagueTable(tournament_name="C", tournament_url="t3", rows=[])

    merged = merge_tables([old_a, old_b], [new_c, new_a])

    assert [t.tournament_name for t in merged] == ["A", "B", "C"]
    assert merged[0].rows[0].team == "y"


@pytest.mark.asyncio
async def test_scrape_tables_skips_cups(dummy_client, fast_settings, league_table_html):
    client = dummy_client(tab_pages={"text=Tabell": league_table_html})
    scraper = LeagueTableScraper(client, fast_settings)

    tables, failures = await scraper.scrape_tables({"Regionserien G14": T1, "Norgesserien Cup": T2})

    assert [t.tournament_url for t in tables] == [T1]
    assert failures == []
    assert [arg for call, arg in client.opened[0].calls if call == "navigate"] == [T1]


@pytest.mark.asyncio
async def test_fetcher_refreshes_selected_tables(fast_settings, league_table_html, monkeypatch):
    fetcher = LeagueTableFetcher(fast_settings)

    def fake_fetch_html(url, **kwargs):  # noqa: ARG001
        if url == T2:
            raise requests.HTTPError("HTTP 404")
        return league_table_html

    monkeypatch.setattr(
        "handball_sync.data_collection.scrapers.league_table_scraper.fetch_html", fake_fetch_html
    )

    tables = await fetcher.fetch_tables({T1: "Regionserien G14", T2: "Serie 2"})

    assert [t.tournament_url for t in tables] == [T1]
    assert fetcher.fetch_league_table(T2) is None
