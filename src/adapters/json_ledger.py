"""JSON file ledger adapter.

Implements the core LedgerPort with a single human-readable JSON document
that is rewritten atomically after every mutation.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional

from core.errors import PersistenceError, RecordParseError
from core.identity import find_match, project
from core.models import CanonicalToken, LedgerEntry, LedgerStats
from core.normalizer import parse_timestamp

LOGGER = logging.getLogger(__name__)


def _entry_to_dict(entry: LedgerEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "name": entry.name,
        "symbol": entry.symbol,
        "contract_address": entry.contract_address,
        "qualification_timestamp": entry.qualification_timestamp.isoformat(),
    }


def _entry_from_dict(raw: Mapping[str, Any]) -> LedgerEntry:
    """Decode one stored entry.

    Accepts the current snake_case layout and the camelCase layout written by
    the earlier bot (``contractAddress`` / ``migrationDate``).
    """

    entry_id = raw.get("id")
    if not isinstance(entry_id, str) or not entry_id:
        raise RecordParseError("entry without id")
    timestamp_raw = raw.get("qualification_timestamp", raw.get("migrationDate"))
    if timestamp_raw is None:
        raise RecordParseError(f"entry {entry_id} without timestamp")
    address = raw.get("contract_address", raw.get("contractAddress"))
    return LedgerEntry(
        id=entry_id,
        name=str(raw.get("name") or ""),
        symbol=str(raw.get("symbol") or ""),
        contract_address=str(address) if address else None,
        qualification_timestamp=parse_timestamp(timestamp_raw, "qualification_timestamp"),
    )


def _sort_key(entry: LedgerEntry) -> datetime:
    return entry.qualification_timestamp


class JsonLedgerStore:
    """Durable ledger of reported tokens that satisfies the LedgerPort contract.

    The store exclusively owns its entries; callers only ever receive the
    immutable ``LedgerEntry`` values.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._entries: List[LedgerEntry] = []
        self._last_updated = datetime.now(timezone.utc)

    @property
    def path(self) -> str:
        return self._path

    @property
    def last_updated(self) -> datetime:
        return self._last_updated

    def __len__(self) -> int:
        return len(self._entries)

    def initialize(self) -> None:
        """Load the ledger file, starting fresh if it is missing or corrupt.

        Only a failure to write the fresh snapshot escapes, as
        ``PersistenceError``; a bad file on disk never does.
        """

        directory = os.path.dirname(self._path)
        if directory:
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as exc:
                raise PersistenceError(f"Cannot create ledger directory {directory}: {exc}") from exc

        try:
            self._load()
        except PersistenceError as exc:
            LOGGER.info("Starting with an empty ledger (%s)", exc)
            self._entries = []
            self._flush()
            return
        LOGGER.info("Loaded %s ledger entries from %s", len(self._entries), self._path)

    def _load(self) -> None:
        if not os.path.exists(self._path):
            raise PersistenceError(f"{self._path} does not exist")
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"{self._path} is unreadable: {exc}") from exc

        if not isinstance(document, dict):
            raise PersistenceError(f"{self._path} does not hold a JSON object")
        raw_entries = document.get("entries", document.get("migrations"))
        if not isinstance(raw_entries, list):
            raise PersistenceError(f"{self._path} has no entry list")

        entries: List[LedgerEntry] = []
        for index, raw in enumerate(raw_entries):
            if not isinstance(raw, dict):
                LOGGER.warning("Skipping ledger entry %s: not an object", index)
                continue
            try:
                entries.append(_entry_from_dict(raw))
            except (RecordParseError, OverflowError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping ledger entry %s: %s", index, exc)

        entries.sort(key=_sort_key, reverse=True)
        self._entries = entries
        updated_raw = document.get("last_updated", document.get("lastUpdated"))
        if updated_raw is not None:
            with contextlib.suppress(RecordParseError):
                self._last_updated = parse_timestamp(updated_raw, "last_updated")

    def _flush(self) -> None:
        """Write the full state to a temp file and swap it in place."""

        self._last_updated = datetime.now(timezone.utc)
        document = {
            "entries": [_entry_to_dict(entry) for entry in self._entries],
            "last_updated": self._last_updated.isoformat(),
        }
        temp_path = f"{self._path}.tmp"
        try:
            with open(temp_path, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
                handle.write("\n")
            os.replace(temp_path, self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                os.remove(temp_path)
            raise PersistenceError(f"Failed to write {self._path}: {exc}") from exc

    def exists(self, token: CanonicalToken) -> bool:
        """Return True when the token matches any recorded entry."""

        hit = find_match(token, self._entries)
        if hit is None:
            return False
        tier, entry = hit
        LOGGER.debug("Token %s already recorded by %s (entry %s)", token.symbol, tier.value, entry.id)
        return True

    def record(self, token: CanonicalToken) -> None:
        """Upsert the token's projection by id and flush before returning."""

        self._entries = [entry for entry in self._entries if entry.id != token.id]
        self._entries.append(project(token))
        self._entries.sort(key=_sort_key, reverse=True)
        self._flush()
        LOGGER.debug("Recorded %s (%s)", token.name, token.symbol)

    def recent(self, limit: int = 10) -> List[LedgerEntry]:
        """Return the most recently qualified entries, newest first."""

        if limit <= 0:
            return []
        return list(self._entries[:limit])

    def stats(self, now: Optional[datetime] = None) -> LedgerStats:
        """Count entries against UTC day boundaries of ``now``."""

        now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today_start - timedelta(days=7)
        return LedgerStats(
            total=len(self._entries),
            qualified_today=sum(1 for e in self._entries if e.qualification_timestamp >= today_start),
            qualified_last_seven_days=sum(
                1 for e in self._entries if e.qualification_timestamp >= week_start
            ),
        )

    def clear(self) -> None:
        """Drop every entry and flush the empty state."""

        self._entries = []
        self._flush()
        LOGGER.info("Ledger cleared")

    def close(self) -> None:
        try:
            self._flush()
        except PersistenceError as exc:
            LOGGER.error("Final ledger flush failed: %s", exc)
