import json
from datetime import datetime, timedelta, timezone

import pytest

from handball_sync.domain.models import (
    CachedMatch,
    LeagueTable,
    MatchCache,
    MatchPlayerData,
    PlayerStatsData,
    ScheduleEntry,
    TableRow,
    UpdateSummary,
)
from handball_sync.storage.file_store import (
    MATCH_INDEX_FILE,
    PLAYER_STATS_FILE,
    SCHEDULE_FILE,
    ArtifactStore,
    PersistenceError,
)
from handball_sync.storage.match_index import MatchIndexStore


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "data")


def test_missing_files_degrade_to_defaults(store):
    assert store.load_schedule() == []
    assert len(store.load_match_index()) == 0
    stats = store.load_player_stats()
    assert stats.match_stats == [] and stats.matches_without_stats == []
    assert store.load_player_aggregates().aggregates == []
    assert store.load_tables() == []
    assert store.load_metadata() is None
    assert store.load_update_summary() is None
    assert store.load_match_cache() is None


def test_corrupt_files_degrade_to_defaults(store):
    store.data_dir.mkdir(parents=True)
    store.path(SCHEDULE_FILE).write_text("[{broken", encoding="utf-8")
    store.path(PLAYER_STATS_FILE).write_text('{"matchStats": "nope"}', encoding="utf-8")
    store.path(MATCH_INDEX_FILE).write_text('{"1": 5}', encoding="utf-8")
    assert store.load_schedule() == []
    assert store.load_player_stats().match_stats == []
    assert len(store.load_match_index()) == 0


def test_schedule_uses_norwegian_field_names(store):
    entry = ScheduleEntry(team="G14", match_id="123456789", score="25-20", match_url="u1", attendance=120)
    path = store.save_schedule([entry])

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw[0]["Lag"] == "G14"
    assert raw[0]["H-B"] == "25-20"
    assert raw[0]["Kamp URL"] == "u1"
    assert raw[0]["Tilskuere"] == 120
    assert store.load_schedule()[0].match_id == "123456789"

    meta = store.save_metadata(teams_count=2, matches_count=1)
    assert store.load_metadata().matches_count == 1
    assert json.loads(store.path("metadata.json").read_text())["teamsCount"] == meta.teams_count == 2


def test_legacy_index_is_migrated_on_load(store):
    store.data_dir.mkdir(parents=True)
    store.path(MATCH_INDEX_FILE).write_text(json.dumps({"1": {"url": "u1", "played": True}}), encoding="utf-8")
    index = store.load_match_index()
    assert index.get("1") == "u1"
    store.save_match_index(index)
    assert json.loads(store.path(MATCH_INDEX_FILE).read_text()) == {"1": "u1"}


def test_player_stats_roundtrip_keeps_camel_case(store):
    data = PlayerStatsData(match_stats=[MatchPlayerData(match_id="1", home_team_name="A")], matches_without_stats=["2"])
    store.save_player_stats(data)
    raw = json.loads(store.path(PLAYER_STATS_FILE).read_text(encoding="utf-8"))
    assert set(raw) == {"players", "matchStats", "matchesWithoutStats", "lastUpdated"}
    loaded = store.load_player_stats()
    assert loaded.matches_without_stats == ["2"]
    assert loaded.match_stats[0].home_team_name == "A"


def test_tables_and_summary(store):
    table = LeagueTable(tournament_name="Serie", tournament_url="t1", rows=[TableRow(position=1, team="A")])
    store.save_tables([table])
    assert store.load_tables()[0].rows[0].team == "A"

    store.save_update_summary(UpdateSummary())
    summary = store.load_update_summary()
    assert summary.no_changes is True
    raw = json.loads(store.path("update-summary.json").read_text())
    assert {"timestamp", "resultsUpdated", "statsUpdated", "noChanges"} <= set(raw)


def test_match_cache_validity_window(store):
    now = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
    cache = MatchCache(matches=[CachedMatch(match_id="1", match_url="u1")], last_updated="2025-01-14T10:00:00.000Z")
    store.save_match_cache(cache)

    assert store.load_match_cache(max_age=timedelta(hours=24), now=now) is None
    assert store.load_match_cache(max_age=timedelta(hours=48), now=now).matches[0].match_id == "1"
    assert store.load_match_cache().matches[0].match_url == "u1"


def test_write_failure_raises_persistence_error(tmp_path):
    blocker = tmp_path / "data"
    blocker.write_text("not a directory", encoding="utf-8")
    store = ArtifactStore(blocker)
    with pytest.raises(PersistenceError):
        store.save_match_index(MatchIndexStore({"1": "u1"}))
    assert isinstance(PersistenceError("x"), OSError)
