"""HTTP session factory for launchwatch.

One ``requests.Session`` is built at startup and shared by the feed and
notifier adapters so connection pooling and retry policy live in one place.
"""

from __future__ import annotations

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def build_session(max_retries: int = 3) -> requests.Session:
    """Return a requests Session with automatic retries and back-off.

    Retries cover rate limiting and gateway errors on GET only; anything
    still failing after that is reported by the adapters as a transient
    failure. POST is never retried so a Bot API send that was accepted but
    answered with a gateway error is not delivered twice.
    """

    session = requests.Session()
    retries = Retry(
        total=max_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        respect_retry_after_header=False,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": USER_AGENT})

    logging.getLogger(__name__).info("HTTP session ready (max_retries=%s)", max_retries)
    return session
