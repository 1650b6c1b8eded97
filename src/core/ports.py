"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the feed, ledger and notification
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from core.models import CanonicalToken, FetchResult, LedgerEntry, LedgerStats


class FeedPort(Protocol):
    """Upstream feed operations required by the core pipeline."""

    def fetch(self) -> FetchResult:
        ...


class LedgerPort(Protocol):
    """Ledger operations required by the core pipeline."""

    def initialize(self) -> None:
        ...

    def exists(self, token: CanonicalToken) -> bool:
        ...

    def record(self, token: CanonicalToken) -> None:
        ...

    def recent(self, limit: int = 10) -> List[LedgerEntry]:
        ...

    def stats(self, now: Optional[datetime] = None) -> LedgerStats:
        ...

    def clear(self) -> None:
        ...


class NotifierPort(Protocol):
    """Notification operations required by the core pipeline."""

    async def notify(self, token: CanonicalToken, caption: str, image: Optional[str] = None) -> bool:
        ...
