from io import BytesIO

import pandas as pd
import pytest
import requests

from handball_sync.core.config import TeamConfig
from handball_sync.data_collection.collectors.schedule_feed import (
    ScheduleFeedCollector,
    ScheduleFeedError,
    decode_workbook,
    normalize_row,
    to_schedule_entries,
)
from handball_sync.domain.contracts import MatchLink

TEAM = TeamConfig(name="Fjellhammer G14", lagid="111", seasonId="2024")


def _workbook(rows):
    buffer = BytesIO()
    pd.DataFrame(rows).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


FEED_ROWS = [
    {
        "Dato": "2025-01-18 00:00:00", "Tid": "9:30", "Kampnr": "123456789", "Hjemmelag": "Fjellhammer",
        "Bortelag": "Lørenskog", "H-B": "25-20", "Bane": "Fjellhammerhallen", "Tilskuere": "120",
        "Arrangør": "Fjellhammer IL", "Turnering": "Regionserien G14",
    },
    {
        "Dato": "25.01.2025", "Tid": "14:00", "Kampnr": "123456790", "Hjemmelag": "Lørenskog",
        "Bortelag": "Fjellhammer", "H-B": "", "Bane": "", "Tilskuere": "",
        "Arrangør": "", "Turnering": "Norgesserien Cup",
    },
]


def test_decode_workbook_reads_first_sheet_as_strings():
    rows = decode_workbook(_workbook(FEED_ROWS))
    assert len(rows) == 2
    assert rows[0]["Kampnr"] == "123456789"
    assert rows[1]["H-B"] == ""


def test_decode_workbook_rejects_garbage():
    with pytest.raises(ScheduleFeedError):
        decode_workbook(b"<html>Not found</html>")


def test_normalize_row():
    row = normalize_row(decode_workbook(_workbook(FEED_ROWS))[0])
    assert row["Dato"] == "18.01.2025"
    assert row["Tid"] == "09:30"
    assert row["Tilskuere"] == 120
    assert normalize_row({"Tilskuere": ""})["Tilskuere"] is None
    assert normalize_row({"Tilskuere": "ukjent"})["Tilskuere"] == "ukjent"


def test_to_schedule_entries_decorates_urls():
    rows = [normalize_row(r) for r in FEED_ROWS]
    links = {
        "123456789": MatchLink(
            match_id="123456789",
            match_url="https://www.handball.no/system/kamper/kamp/?matchid=123456789",
            home_team_url="https://www.handball.no/system/kamper/lag/?lagid=111",
            away_team_url="https://www.handball.no/system/kamper/lag/?lagid=222",
        )
    }
    tournaments = {"Regionserien G14": "https://www.handball.no/system/kamper/turnering/?turnid=42"}

    entries = to_schedule_entries(TEAM, rows, links, tournaments)

    first, second = entries
    assert first.team == "Fjellhammer G14"
    assert first.match_url.endswith("matchid=123456789")
    assert first.away_team_url.endswith("lagid=222")
    assert first.tournament_url.endswith("turnid=42")
    assert first.attendance == 120
    assert second.match_url == ""
    assert second.tournament_url == ""
    assert second.attendance is None


@pytest.mark.asyncio
async def test_fetch_all_isolates_failing_teams(fast_settings, monkeypatch):
    other = TeamConfig(name="Fjellhammer J14", lagid="333", seasonId="2024")
    collector = ScheduleFeedCollector(fast_settings)
    content = _workbook(FEED_ROWS)

    def fake_download(url):
        if "id=333" in url:
            raise requests.ConnectionError("connection refused")
        return content

    monkeypatch.setattr(collector, "_download", fake_download)

    result = await collector.fetch_all([TEAM, other])

    assert len(result.rows_per_team["111"]) == 2
    assert result.rows_per_team["333"] == []
    assert result.failed_team_ids() == {"333"}
    assert result.failures[0].kind == "feed"


def test_feed_url(fast_settings):
    assert ScheduleFeedCollector(fast_settings).feed_url(TEAM) == (
        "https://www.handball.no/AjaxData/TerminlisteLag?id=111&seasonId=2024"
    )
