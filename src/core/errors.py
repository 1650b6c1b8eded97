"""Error taxonomy shared by the core and adapters.

Stages report failures as ``StageFailure`` values. Exceptions only travel
inside a stage (or at startup) and are translated at the stage boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    TRANSIENT_FETCH = "transient_fetch"
    RECORD_PARSE = "record_parse"
    PERSISTENCE = "persistence"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class StageFailure:
    """A tagged, non-fatal failure reported by one pipeline stage."""

    kind: FailureKind
    detail: str


class LaunchWatchError(Exception):
    """Base class for launchwatch errors."""


class RecordParseError(LaunchWatchError):
    """One raw feed record could not be normalized."""


class PersistenceError(LaunchWatchError):
    """The ledger could not be read from or written to durable storage."""


class ConfigurationError(LaunchWatchError):
    """Required settings are missing or invalid at startup."""
