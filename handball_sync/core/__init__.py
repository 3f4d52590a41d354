"""
Core Module
Zentrale Konfiguration und Settings
"""

from .config import ConfigurationError, Settings, TeamConfig, load_teams, settings

__all__ = ["settings", "Settings", "TeamConfig", "load_teams", "ConfigurationError"]
