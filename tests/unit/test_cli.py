import json
import types

import pytest
from click.testing import CliRunner

from handball_sync.apps import cli as cli_module
from handball_sync.core.config import ConfigurationError
from handball_sync.data_collection.orchestrator import UpdateReport
from handball_sync.domain.contracts import ProgressEvent, ScrapeFailure
from handball_sync.domain.models import MatchUpdateInfo, UpdateSummary


class FakeOrchestrator:
    instances: list = []
    report = UpdateReport()
    error = None

    def __init__(self, settings=None):
        self.settings = settings
        self.options = None
        self.url = None
        self.last_report = None
        FakeOrchestrator.instances.append(self)

    async def _events(self):
        yield ProgressEvent(stage="load", detail="Lag: G14")
        if FakeOrchestrator.error is not None:
            raise FakeOrchestrator.error
        self.last_report = FakeOrchestrator.report

    def stream(self, options):
        self.options = options
        return self._events()

    def stream_single(self, url):
        self.url = url
        return self._events()

    def stream_results(self):
        return self._events()

    def rebuild_aggregates(self):
        return UpdateReport(aggregates_count=3)

    def team_view(self, team_id, tournament=None):
        if team_id == "0":
            return None
        return types.SimpleNamespace(to_dict=lambda: {"teamId": team_id, "tournament": tournament})


@pytest.fixture(autouse=True)
def fake_orchestrator(monkeypatch):
    FakeOrchestrator.instances = []
    FakeOrchestrator.report = UpdateReport()
    FakeOrchestrator.error = None
    monkeypatch.setattr(cli_module, "UpdateOrchestrator", FakeOrchestrator)
    monkeypatch.setattr(cli_module, "configure_logging", lambda **kwargs: None)
    return FakeOrchestrator


def _invoke(*args):
    return CliRunner().invoke(cli_module.cli, list(args))


def test_parse_id_list():
    assert cli_module.parse_id_list(None) == ()
    assert cli_module.parse_id_list(" 1, 2,,3 ") == ("1", "2", "3")


def test_update_passes_options():
    result = _invoke("update", "--force", "--rescrape", "123,456", "--refresh-matches", "--full")
    assert result.exit_code == 0, result.output
    options = FakeOrchestrator.instances[0].options
    assert options.force_stats is True
    assert options.rescrape_ids == ("123", "456")
    assert options.refresh_matches is True
    assert options.mode == "full"
    assert "Oppsummering" in result.output


def test_update_quick_and_full_conflict():
    result = _invoke("update", "--quick", "--full")
    assert result.exit_code == 1
    assert FakeOrchestrator.instances == []


def test_update_invalid_url():
    result = _invoke("update", "--url", "https://www.handball.no/system/kamper/")
    assert result.exit_code == 1
    assert "matchid" in result.output


def test_update_single_url():
    url = "https://www.handball.no/system/kamper/kamp/?matchid=123456789"
    result = _invoke("update", "--url", url)
    assert result.exit_code == 0, result.output
    assert FakeOrchestrator.instances[0].url == url
    assert FakeOrchestrator.instances[0].options is None


def test_update_prints_failures_and_rescrape_hint():
    FakeOrchestrator.report = UpdateReport(
        summary=UpdateSummary(results_updated=[
            MatchUpdateInfo(kampnr="1", hjemmelag="Fjellhammer", bortelag="Lørenskog", resultat="30-25")
        ]),
        failures=[
            ScrapeFailure(kind="feed", item="333", reason="HTTP 503"),
            ScrapeFailure(kind="match", item="100000003", reason="timeout"),
            ScrapeFailure(kind="match", item="100000004", reason="timeout"),
        ],
    )
    result = _invoke("update")
    assert result.exit_code == 0
    assert "Fjellhammer - Lørenskog: 30-25" in result.output
    assert "Feil: 3" in result.output
    assert "--rescrape 100000003,100000004" in result.output


def test_configuration_error_exits_with_1():
    FakeOrchestrator.error = ConfigurationError("Failed to load config file config.json")
    result = _invoke("update")
    assert result.exit_code == 1
    result = _invoke("update-results")
    assert result.exit_code == 1


def test_aggregates_command():
    result = _invoke("aggregates")
    assert result.exit_code == 0
    assert "3 spillere" in result.output


def test_team_stats_command():
    result = _invoke("team-stats", "111", "--tournament", "Regionserien G14")
    assert result.exit_code == 0
    assert json.loads(result.output) == {"teamId": "111", "tournament": "Regionserien G14"}

    missing = _invoke("team-stats", "0")
    assert missing.exit_code == 0
    assert "Ingen kamper funnet" in missing.output
