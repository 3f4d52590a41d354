from datetime import datetime

import pytest

from handball_sync.domain.contracts import PlayedMatch
from handball_sync.domain.models import ScheduleEntry
from handball_sync.domain.schedule import (
    build_schedule_index,
    combine_played_matches,
    extract_match_id_from_url,
    has_valid_result,
    needs_result_update,
    parse_attendance,
    parse_match_date,
    sort_schedule,
)

NOW = datetime(2025, 1, 15, 12, 0)


@pytest.mark.parametrize("score,url,date,expected", [
    ("-", "u1", "01.01.2025", True),
    ("", "u1", "01.01.2025", True),
    ("-", "", "01.01.2025", False),
    ("-", "u1", "20.01.2025", False),
    ("", "", "20.01.2025", False),
    ("25-20", "u1", "01.01.2025", False),
    ("25-20", "", "20.01.2025", False),
    ("-", "u1", "ikke satt", False),
])
def test_needs_result_update_truth_table(score, url, date, expected):
    entry = ScheduleEntry(match_id="1", score=score, match_url=url, match_date=date)
    assert needs_result_update(entry, NOW) is expected


def test_match_day_counts_until_end_of_day():
    entry = ScheduleEntry(match_id="1", score="-", match_url="u1", match_date="15.01.2025")
    assert needs_result_update(entry, NOW) is False
    assert needs_result_update(entry, datetime(2025, 1, 16, 0, 0)) is True
    assert parse_match_date("15.01.2025") == datetime(2025, 1, 15, 23, 59, 59)


def test_has_valid_result():
    assert has_valid_result("30-25")
    assert not has_valid_result(" - ")
    assert not has_valid_result(None)


def test_combine_played_matches_prefers_discovery():
    discovered = [PlayedMatch("1", "from-tournament")]
    schedule = [
        ScheduleEntry(match_id="1", score="25-20", match_url="from-schedule"),
        ScheduleEntry(match_id="2", score="-", match_url="u2"),
        ScheduleEntry(match_id="3", score="20-20", match_url=""),
        ScheduleEntry(match_id="4", score="19-21", match_url="u4"),
    ]
    combined = combine_played_matches(discovered, schedule)
    assert combined == [PlayedMatch("1", "from-tournament"), PlayedMatch("4", "u4")]


def test_sort_schedule_by_date_then_time():
    entries = [
        ScheduleEntry(match_id="c", match_date="01.02.2025", match_time="10:00"),
        ScheduleEntry(match_id="b", match_date="31.01.2025", match_time="18:00"),
        ScheduleEntry(match_id="a", match_date="31.01.2025", match_time="09:00"),
    ]
    assert [e.match_id for e in sort_schedule(entries)] == ["a", "b", "c"]


def test_parse_attendance():
    assert parse_attendance("120") == 120
    assert parse_attendance(85.0) == 85
    assert parse_attendance("ukjent") == "ukjent"
    assert parse_attendance("  ") is None
    assert parse_attendance(None) is None


def test_schedule_entry_aliases_and_index():
    entry = ScheduleEntry.model_validate({"Lag": "G14", "Kampnr": " 123456789 ", "H-B": None, "Tilskuere": 50})
    assert entry.match_id == "123456789"
    assert entry.score == ""
    dumped = entry.to_json_dict()
    assert dumped["Kampnr"] == "123456789"
    assert dumped["Kamp URL"] == ""
    second = ScheduleEntry(match_id="123456789", team="J14")
    assert build_schedule_index([entry, second])["123456789"].team == "G14"
    assert extract_match_id_from_url("https://www.handball.no/system/kamper/kamp/?matchid=8123456") == "8123456"
    assert extract_match_id_from_url("https://www.handball.no/") is None
