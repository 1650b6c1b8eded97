"""Upstream launch-feed adapter.

Implements the core FeedPort over HTTP. Every failure mode (transport error,
timeout, non-2xx status, bad JSON, unknown envelope) collapses into an empty
``FetchResult`` carrying a TRANSIENT_FETCH failure.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import requests

from core.config import FeedConfig
from core.errors import FailureKind, StageFailure
from core.models import FetchResult

LOGGER = logging.getLogger(__name__)

# Field names the feed has used to wrap its record list, checked in order.
ENVELOPE_FIELDS = ("response", "data", "tokens", "results", "items", "leaderboard")


def unwrap_records(payload: Any) -> Optional[List[Any]]:
    """Return the record list from a feed payload, or None if none is found.

    Handles a bare array, an array one level under any known field, and the
    older ``{"data": {"leaderboard": [...]}}`` layout.
    """

    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None

    for key in ENVELOPE_FIELDS:
        value = payload.get(key)
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            for nested_key in ENVELOPE_FIELDS:
                nested = value.get(nested_key)
                if isinstance(nested, list):
                    return nested
    return None


class HttpFeedFetcher:
    """Fetch raw launch records with a bounded timeout."""

    def __init__(self, config: FeedConfig, session: requests.Session) -> None:
        self._config = config
        self._session = session

    def _failed(self, detail: str) -> FetchResult:
        LOGGER.warning("Feed fetch failed: %s", detail)
        return FetchResult(failure=StageFailure(FailureKind.TRANSIENT_FETCH, detail))

    def fetch(self) -> FetchResult:
        url = self._config.url
        LOGGER.debug("Fetching launch feed from %s", url)
        try:
            response = self._session.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self._config.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout:
            return self._failed(f"timed out after {self._config.timeout_seconds}s")
        except requests.RequestException as exc:
            return self._failed(str(exc))
        except ValueError as exc:
            return self._failed(f"malformed JSON body: {exc}")

        if isinstance(payload, dict) and payload.get("success") is False:
            return self._failed("feed reported success=false")

        records = unwrap_records(payload)
        if records is None:
            keys = sorted(payload) if isinstance(payload, dict) else type(payload).__name__
            return self._failed(f"no record list in response envelope ({keys})")

        LOGGER.info("Fetched %s launch records", len(records))
        return FetchResult(records=records)
