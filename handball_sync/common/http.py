import logging
import random
import time
from typing import Optional

import requests

logger = logging.getLogger("http")

# Shared defaults
DEFAULT_UAS: list[str] = [
    "Mozilla/5.0 (compatible; TerminlisteBot/1.0)",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
]
ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet,*/*;q=0.8"
RETRY_STATUSES = (429, 502, 503, 504)


def build_headers(user_agent: str, *, accept: str = ACCEPT_HTML) -> dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": accept,
        "Accept-Language": "nb-NO,nb;q=0.9,no;q=0.8,en;q=0.6",
    }


def fetch_bytes(
    url: str,
    *,
    timeout: float,
    retries: int,
    backoff: float,
    user_agent: Optional[str] = None,
    accept: str = ACCEPT_HTML,
    session: Optional[requests.Session] = None,
) -> bytes:
    """GET with retries on timeouts, connection errors and 429/5xx.

    Any other HTTP error status is raised immediately.
    """
    http = session or requests.Session()
    headers = build_headers(user_agent or DEFAULT_UAS[0], accept=accept)
    attempts = max(1, retries)

    for attempt in range(1, attempts + 1):
        try:
            r = http.get(url, timeout=timeout, headers=headers)
            if r.status_code in RETRY_STATUSES:
                raise requests.HTTPError(f"HTTP {r.status_code}", response=r)
            r.raise_for_status()
            return r.content
        except (requests.Timeout, requests.ConnectionError, requests.HTTPError) as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            retryable = not isinstance(e, requests.HTTPError) or status in RETRY_STATUSES
            if attempt >= attempts or not retryable:
                raise
            sleep_s = (backoff ** (attempt - 1)) + random.uniform(0.2, 0.6)
            logger.debug(f"Attempt {attempt} for {url} failed: {e} -> sleep {sleep_s:.2f}s")
            time.sleep(sleep_s)
    raise RuntimeError("unreachable")


def fetch_html(
    url: str,
    *,
    timeout: float,
    retries: int,
    backoff: float,
    user_agent: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> str:
    content = fetch_bytes(
        url,
        timeout=timeout,
        retries=retries,
        backoff=backoff,
        user_agent=user_agent,
        session=session,
    )
    return content.decode("utf-8", errors="replace")
