"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any feed-, storage- or Telegram-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, List, Optional

from core.errors import StageFailure


class QualificationReason(str, Enum):
    """Why a token is worth a notification. Both may apply at once."""

    BONDING_COMPLETED = "bonding_completed"
    MARKET_CAP_THRESHOLD = "market_cap_threshold"


@dataclass(frozen=True)
class CanonicalToken:
    """Normalized, per-cycle representation of one upstream launch record."""

    id: str
    name: str
    symbol: str
    contract_address: Optional[str]
    creation_timestamp: datetime
    qualification_timestamp: datetime
    qualification_source: str
    bonding_completed: bool = False
    market_cap: Optional[float] = None
    price: Optional[float] = None
    volume_24h: Optional[float] = None
    total_raised: Optional[float] = None
    bonding_duration_hours: Optional[float] = None
    bonding_progress: Optional[float] = None
    qualified_by: FrozenSet[QualificationReason] = frozenset()

    # Presentational fields, carried through for the notifier only.
    description: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None
    creator: Optional[str] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None


@dataclass(frozen=True)
class LedgerEntry:
    """Persisted projection of a reported token used for identity matching."""

    id: str
    name: str
    symbol: str
    contract_address: Optional[str]
    qualification_timestamp: datetime


@dataclass(frozen=True)
class LedgerStats:
    total: int
    qualified_today: int
    qualified_last_seven_days: int


@dataclass(frozen=True)
class FetchResult:
    """Raw records from one feed request, or the reason there are none."""

    records: List[Any] = field(default_factory=list)
    failure: Optional[StageFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class NormalizedBatch:
    tokens: List[CanonicalToken] = field(default_factory=list)
    failures: List[StageFailure] = field(default_factory=list)


@dataclass
class CycleReport:
    """Summary of a single ``run_cycle`` invocation."""

    trigger: str
    coalesced: bool = False
    fetched: int = 0
    normalized: int = 0
    qualified: int = 0
    new: int = 0
    notified: int = 0
    failures: List[StageFailure] = field(default_factory=list)
