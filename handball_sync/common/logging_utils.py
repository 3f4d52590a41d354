"""Zentrales Logging-Setup für die Sync-Pipeline.

Konfiguriert den Root-Logger für CLI und Update-Jobs an einer Stelle:
- Konsolenzeilen, farbig wenn stderr ein Terminal ist
- JSON-Zeilen mit LOG_FORMAT=json (ein Objekt pro Zeile, für Cron-Mails / CI-Logs)
- Overrides per Environment:
    LOG_LEVEL=INFO|DEBUG|... (Default: INFO oder das übergebene Level)
    LOG_FORMAT=console|json
    LOG_NO_COLOR=1 schaltet Farben ab
    LOG_TIMEZONE=utc|local (Default: local)
    LOG_FILE=path schreibt zusätzlich in diese Datei

Pipeline-Kontext über ``extra=`` (``stage``, ``match_id``, ``team``) wird an
Konsolenzeilen angehängt und landet in JSON als Top-Level-Keys.

Verwendung:
    from handball_sync.common.logging_utils import configure_logging, get_logger
    configure_logging(service="handball_sync")
    log = get_logger("update_orchestrator")
    log.info("Batch lagret", extra={"stage": "stats"})

configure_logging() läuft einmal pro Prozess, außer mit force=True.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

_setup_lock = threading.Lock()
_configured = False

PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# extra= keys shown on console lines, in this order
CONTEXT_KEYS = ("stage", "team", "match_id")

# LogRecord attributes that never end up in the JSON payload
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys() | {"message", "asctime", "taskName"}
)


def _timestamp(record: logging.LogRecord, tz_local: bool) -> datetime:
    ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return ts.astimezone() if tz_local else ts


def _context_suffix(record: logging.LogRecord) -> str:
    parts = [f"{key}={getattr(record, key)}" for key in CONTEXT_KEYS if getattr(record, key, None)]
    return f" ({', '.join(parts)})" if parts else ""


class ColorFormatter(logging.Formatter):
    """Konsolen-Formatter: Farbe nach Level, danach Pipeline-Kontext in Klammern."""

    PALETTE = {
        logging.DEBUG: "\x1b[90m",
        logging.INFO: "\x1b[36m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[1;41m",
    }
    RESET = "\x1b[0m"

    def __init__(self, tz_local: bool, color: bool = True):
        super().__init__()
        self.tz_local = tz_local
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        stamp = _timestamp(record, self.tz_local).strftime(DATE_FORMAT)
        text = f"{stamp} | {record.levelname:<8} | {record.name} | {record.getMessage()}{_context_suffix(record)}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        if not self.color:
            return text
        return f"{self.PALETTE.get(record.levelno, '')}{text}{self.RESET}"


class JsonFormatter(logging.Formatter):
    def __init__(self, tz_local: bool):
        super().__init__()
        self.tz_local = tz_local

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": _timestamp(record, self.tz_local).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith("_") or key in entry:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = repr(value)
            entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _console_formatter(log_format: str, tz_local: bool) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter(tz_local=tz_local)
    color = sys.stderr.isatty() and os.getenv("LOG_NO_COLOR") != "1"
    return ColorFormatter(tz_local=tz_local, color=color)


def configure_logging(
    service: str | None = None, *, level: str | None = None, force: bool = False
) -> None:
    """Configure the root logger.

    Parameters
    ----------
    service: app name, attached as ``service`` to records logged through get_logger()
    level: fallback level when LOG_LEVEL is unset
    force: replace an existing configuration
    """
    global _configured
    with _setup_lock:
        if _configured and not force:
            return

        log_format = os.getenv("LOG_FORMAT", "console").lower()
        tz_local = os.getenv("LOG_TIMEZONE", "local").lower() != "utc"
        level_name = os.getenv("LOG_LEVEL", level or "INFO").upper()

        root = logging.getLogger()
        for existing in list(root.handlers):
            root.removeHandler(existing)

        console = logging.StreamHandler()
        console.setFormatter(_console_formatter(log_format, tz_local))
        root.addHandler(console)

        log_file = os.getenv("LOG_FILE")
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            to_file = logging.FileHandler(log_file, encoding="utf-8")
            if log_format == "json":
                to_file.setFormatter(JsonFormatter(tz_local=tz_local))
            else:
                to_file.setFormatter(logging.Formatter(PLAIN_FORMAT, DATE_FORMAT))
            root.addHandler(to_file)

        level_value = logging.getLevelName(level_name)
        root.setLevel(level_value if isinstance(level_value, int) else logging.INFO)
        # requests retries and the asyncio debug output drown the pipeline lines
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)

        _ServiceLoggerAdapter.BASE_SERVICE = service
        _configured = True


def get_logger(name: str) -> logging.Logger | logging.LoggerAdapter:
    logger = logging.getLogger(name)
    if _ServiceLoggerAdapter.BASE_SERVICE is None:
        return logger
    return _ServiceLoggerAdapter(logger, {"service": _ServiceLoggerAdapter.BASE_SERVICE})


class _ServiceLoggerAdapter(logging.LoggerAdapter):
    BASE_SERVICE: Optional[str] = None

    def process(self, msg: Any, kwargs: Dict[str, Any]):
        kwargs["extra"] = {"service": self.extra["service"], **(kwargs.get("extra") or {})}
        return msg, kwargs


__all__ = [
    "configure_logging",
    "get_logger",
    "ColorFormatter",
    "JsonFormatter",
]
