"""Chart server clients: catalog download and GPS fix intake."""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import requests

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 15  # seconds
_USER_AGENT = "chartview/0.1"

_local = threading.local()


def http_session() -> requests.Session:
    """Per-thread requests session (tile workers each keep their own pool)."""
    session = getattr(_local, "session", None)
    if session is None:
        session = requests.Session()
        session.headers["User-Agent"] = _USER_AGENT
        _local.session = session
    return session


def fetch_with_retry(
    url: str,
    *,
    params: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
    retries: int = 0,
    backoff: float = 1.0,
) -> requests.Response:
    """GET *url*, retrying only on connection errors and timeouts.

    The response is returned whatever its status code; callers decide what
    a non-200 means for them.  The last network error is re-raised once
    the retries are used up.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return http_session().get(url, params=params, timeout=timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            log.warning("Network error on %s (attempt %d/%d): %s",
                        url[:80], attempt, retries + 1, exc)
            if attempt > retries:
                raise
        time.sleep(backoff * attempt)
