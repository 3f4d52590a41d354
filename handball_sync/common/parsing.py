import re
from datetime import date, datetime
from urllib.parse import urljoin

from bs4 import BeautifulSoup

# handball.no shows dates as DD.MM.YYYY everywhere
DATE_FORMAT = "%d.%m.%Y"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_CLOCK = re.compile(r"^(\d{1,2})[:.](\d{2})")


def clean_text(s: str | None) -> str | None:
    if s is None:
        return None
    s = re.sub(r"\s+", " ", s.strip())
    return s or None


def parse_leading_int(s: str | None) -> int | None:
    """Integer prefix of a cell text ("12", "3 (1)", "7."), None if there is none."""
    if not s:
        return None
    m = _LEADING_INT.match(s)
    return int(m.group(1)) if m else None


def parse_stat_number(s: str | None) -> int:
    value = parse_leading_int(s)
    return value if value is not None else 0


def parse_norwegian_date(s: str | None) -> date | None:
    if not s:
        return None
    parts = s.strip().split(".")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError:
        return None


def normalize_feed_date(value: str | None) -> str:
    """Bring workbook dates ("2025-01-18 00:00:00", "18.01.2025") to DD.MM.YYYY."""
    text = (value or "").strip()
    m = _ISO_DATE.match(text)
    if m:
        return f"{m.group(3)}.{m.group(2)}.{m.group(1)}"
    return text


def normalize_feed_time(value: str | None) -> str:
    text = (value or "").strip()
    m = _CLOCK.match(text)
    if m:
        return f"{int(m.group(1)):02d}:{m.group(2)}"
    return text


def date_sort_key(s: str | None) -> str:
    """DD.MM.YYYY -> YYYY-MM-DD; anything else is compared as is."""
    if not s:
        return ""
    parts = s.split(".")
    if len(parts) == 3:
        return f"{parts[2]}-{parts[1]}-{parts[0]}"
    return s


def end_of_day(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, 23, 59, 59)


def soup_from_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def absolute_url(href: str | None, base_url: str) -> str:
    if not href:
        return ""
    if href.startswith("http"):
        return href
    return urljoin(base_url.rstrip("/") + "/", href)


def extract_query_id(url: str | None, key: str) -> str | None:
    # Examples: ?lagid=123456, &matchid=8123456, ?turnid=42
    if not url:
        return None
    m = re.search(rf"{re.escape(key)}=(\d+)", url)
    return m.group(1) if m else None
