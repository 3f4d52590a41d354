"""
Zentrale Konfiguration für die Handball Sync Pipeline
Basiert auf Pydantic Settings mit Environment Variable Support
"""

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings


class ConfigurationError(RuntimeError):
    """Team-Konfiguration fehlt oder ist ungültig"""


class Settings(BaseSettings):
    """Application Settings mit Environment Variable Support"""

    # Source site
    base_url: str = "https://www.handball.no"

    # Files
    config_path: str = "config.json"
    data_dir: str = "data"

    # Browser
    browser_headless: bool = True
    navigation_timeout_ms: int = 30000
    click_timeout_ms: int = 3000
    click_settle_ms: int = 500
    cookie_banner_delay_ms: int = 1500
    listing_render_wait_ms: int = 3000
    match_render_wait_ms: int = 2000
    table_render_wait_ms: int = 2000

    # Result backfill
    result_delay_ms: int = 500
    result_timeout_ms: int = 15000

    # Concurrency
    discovery_concurrency: int = 3
    stats_batch_size: int = 10
    stats_concurrency: int = 2

    # Match discovery cache
    match_cache_ttl_hours: int = 24

    # HTTP (schedule feed, league tables)
    http_timeout: float = 30.0
    http_retries: int = 3
    http_backoff: float = 1.5
    table_fetch_delay_ms: int = 500
    user_agent: str = "Mozilla/5.0 (compatible; TerminlisteBot/1.0)"

    # Monitoring
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


class TeamConfig(BaseModel):
    """Eine konfigurierte Mannschaft aus config.json"""

    name: str
    lagid: str
    season_id: str = Field(alias="seasonId")
    color: str = ""

    model_config = {"populate_by_name": True}


class TeamsConfig(BaseModel):
    teams: list[TeamConfig]


def load_teams(config_path: str | Path) -> list[TeamConfig]:
    """Lädt die Mannschafts-Konfiguration; ohne Mannschaften kann die Pipeline nicht laufen."""
    path = Path(config_path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return TeamsConfig.model_validate(payload).teams
    except (OSError, ValueError, ValidationError) as e:
        raise ConfigurationError(f"Failed to load config file {path}: {e}") from e


# Global Settings Instance
settings = Settings()
