"""Record normalization (core domain).

Upstream launch records come in loosely-typed, shifting shapes. Each field of
the canonical token is resolved by an ordered tuple of candidate paths into
the raw mapping; the first candidate that is present wins.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence

from core.config import ASSUMED_SUPPLY
from core.errors import FailureKind, RecordParseError, StageFailure
from core.models import CanonicalToken, NormalizedBatch

LOGGER = logging.getLogger(__name__)

ADDRESS_FIELDS = ("tokenAddress", "contractAddress", "address", "mint")

# Priority order matters: explicit bonding completion first, record creation
# last. "now" is used when none of these is present.
QUALIFICATION_TIMESTAMP_FIELDS = (
    "bondingCurve.completedAt",
    "migratedAt",
    "launchedAt",
    "bondingCompletedAt",
    "completedAt",
    "createdAt",
)

BONDING_SIGNAL_FIELDS = (
    "bondingCurve.completed",
    "bondingCurve.completedAt",
    "migrated",
    "migratedAt",
    "bondingCompletedAt",
    "completedAt",
)

TOTAL_RAISED_FIELDS = ("totalRaised", "bondingCurve.totalRaised")

DEFAULT_NAME = "Unknown Token"
DEFAULT_SYMBOL = "UNKNOWN"
TOKEN_PAGE_URL = "https://bags.fm/token/{address}"

# Epoch values above this are milliseconds rather than seconds.
_EPOCH_MILLIS_CUTOFF = 10**12


def _lookup(raw: Mapping[str, Any], path: str) -> Any:
    """Return the value at a dotted path, or None when any hop is missing."""

    current: Any = raw
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _first_present(raw: Mapping[str, Any], paths: Sequence[str]) -> tuple[Optional[str], Any]:
    for path in paths:
        value = _lookup(raw, path)
        if _is_present(value):
            return path, value
    return None, None


def parse_timestamp(value: Any, field_name: str) -> datetime:
    """Parse an ISO-8601 string or epoch number into an aware UTC datetime."""

    if isinstance(value, bool):
        raise RecordParseError(f"{field_name}: boolean is not a timestamp")
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if isinstance(value, (int, float)):
        try:
            if not math.isfinite(value):
                raise RecordParseError(f"{field_name}: non-finite timestamp {value!r}")
            seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_CUTOFF else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise RecordParseError(f"{field_name}: out of range timestamp {value!r}") from exc
    if not isinstance(value, str):
        raise RecordParseError(f"{field_name}: unsupported timestamp type {type(value).__name__}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise RecordParseError(f"{field_name}: unparsable timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_number(value: Any, field_name: str) -> Optional[float]:
    """Parse an optional numeric field; blank values are treated as absent."""

    if not _is_present(value):
        return None
    if isinstance(value, bool):
        raise RecordParseError(f"{field_name}: boolean is not a number")
    try:
        number = float(value)
    except (OverflowError, TypeError, ValueError) as exc:
        raise RecordParseError(f"{field_name}: not a number {value!r}") from exc
    if not math.isfinite(number):
        raise RecordParseError(f"{field_name}: non-finite number {value!r}")
    return number


def _optional_text(raw: Mapping[str, Any], path: str) -> Optional[str]:
    value = _lookup(raw, path)
    if not _is_present(value):
        return None
    return str(value).strip()


def _has_bonding_signal(raw: Mapping[str, Any]) -> bool:
    for path in BONDING_SIGNAL_FIELDS:
        value = _lookup(raw, path)
        if isinstance(value, str):
            if value.strip():
                return True
        elif value:
            return True
    return False


def synthesize_id(symbol: str, name: str) -> str:
    """Build a deterministic id for records without an address."""

    return re.sub(r"[^a-zA-Z0-9]", "", f"token-{symbol}-{name}")


def normalize(raw: Any, now: Optional[datetime] = None) -> CanonicalToken:
    """Map one raw feed record to a ``CanonicalToken``.

    Raises ``RecordParseError`` when the record is not a mapping or a present
    field cannot be decoded. Missing identity is never an error: the id falls
    back to one synthesized from symbol and name.
    """

    if not isinstance(raw, Mapping):
        raise RecordParseError(f"record is not an object: {type(raw).__name__}")

    now = now or datetime.now(timezone.utc)

    name = _optional_text(raw, "name") or DEFAULT_NAME
    symbol = _optional_text(raw, "symbol") or DEFAULT_SYMBOL

    _, address_value = _first_present(raw, ADDRESS_FIELDS)
    contract_address = str(address_value).strip() if address_value is not None else None
    token_id = contract_address or synthesize_id(symbol, name)

    created_raw = _lookup(raw, "createdAt")
    creation_timestamp = (
        parse_timestamp(created_raw, "createdAt") if _is_present(created_raw) else now
    )

    source, qualification_raw = _first_present(raw, QUALIFICATION_TIMESTAMP_FIELDS)
    if source is None:
        source = "now"
        qualification_timestamp = now
    else:
        qualification_timestamp = parse_timestamp(qualification_raw, source)

    price = parse_number(_lookup(raw, "price"), "price")
    market_cap = parse_number(_lookup(raw, "marketCap"), "marketCap")
    if not market_cap and price is not None:
        market_cap = price * ASSUMED_SUPPLY
        if not math.isfinite(market_cap):
            raise RecordParseError(f"price: derived market cap overflows for {price!r}")

    raised_path, raised_value = _first_present(raw, TOTAL_RAISED_FIELDS)
    total_raised = parse_number(raised_value, raised_path) if raised_path else None

    bonding_duration_hours = None
    elapsed = (qualification_timestamp - creation_timestamp).total_seconds()
    if elapsed > 0:
        bonding_duration_hours = elapsed / 3600

    LOGGER.debug(
        "Token %s: using %s for qualification timestamp %s",
        symbol,
        source,
        qualification_timestamp.isoformat(),
    )

    url = _optional_text(raw, "url")
    if contract_address:
        url = TOKEN_PAGE_URL.format(address=contract_address)

    return CanonicalToken(
        id=token_id,
        name=name,
        symbol=symbol,
        contract_address=contract_address,
        creation_timestamp=creation_timestamp,
        qualification_timestamp=qualification_timestamp,
        qualification_source=source,
        bonding_completed=_has_bonding_signal(raw),
        market_cap=market_cap,
        price=price,
        volume_24h=parse_number(_lookup(raw, "volume24h"), "volume24h"),
        total_raised=total_raised,
        bonding_duration_hours=bonding_duration_hours,
        bonding_progress=parse_number(_lookup(raw, "bondingCurve.progress"), "bondingCurve.progress"),
        description=_optional_text(raw, "description"),
        image=_optional_text(raw, "image"),
        url=url,
        creator=_optional_text(raw, "creator"),
        website=_optional_text(raw, "website"),
        twitter=_optional_text(raw, "twitter"),
        telegram=_optional_text(raw, "telegram"),
    )


def _describe(raw: Any) -> str:
    if isinstance(raw, Mapping):
        return str(raw.get("symbol") or raw.get("tokenAddress") or "<unnamed>")
    return f"<{type(raw).__name__}>"


def normalize_batch(records: Iterable[Any], now: Optional[datetime] = None) -> NormalizedBatch:
    """Normalize every record independently, dropping the ones that fail."""

    now = now or datetime.now(timezone.utc)
    batch = NormalizedBatch()
    for index, raw in enumerate(records):
        try:
            batch.tokens.append(normalize(raw, now=now))
        except (RecordParseError, OverflowError, TypeError, ValueError) as exc:
            LOGGER.warning("Dropping record %s (%s): %s", index, _describe(raw), exc)
            batch.failures.append(StageFailure(FailureKind.RECORD_PARSE, f"record {index}: {exc}"))
    return batch
