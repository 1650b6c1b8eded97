"""Identity resolution helpers (core domain).

A token is the same as a ledger entry when, in order of strength:
1) both carry a contract address and the addresses match case-insensitively
2) symbol and name both match case-insensitively
3) the ids are equal (covers synthesized ids)
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Tuple

from core.models import CanonicalToken, LedgerEntry


class IdentityMatch(str, Enum):
    CONTRACT_ADDRESS = "contract_address"
    SYMBOL_AND_NAME = "symbol_and_name"
    ID = "id"


def _fold(value: Optional[str]) -> str:
    return (value or "").casefold()


def _address_match(token: CanonicalToken, entry: LedgerEntry) -> bool:
    if not token.contract_address or not entry.contract_address:
        return False
    return _fold(token.contract_address) == _fold(entry.contract_address)


def _symbol_name_match(token: CanonicalToken, entry: LedgerEntry) -> bool:
    return _fold(token.symbol) == _fold(entry.symbol) and _fold(token.name) == _fold(entry.name)


def _id_match(token: CanonicalToken, entry: LedgerEntry) -> bool:
    return token.id == entry.id


_TIERS = (
    (IdentityMatch.CONTRACT_ADDRESS, _address_match),
    (IdentityMatch.SYMBOL_AND_NAME, _symbol_name_match),
    (IdentityMatch.ID, _id_match),
)


def find_match(
    token: CanonicalToken,
    entries: Iterable[LedgerEntry],
) -> Optional[Tuple[IdentityMatch, LedgerEntry]]:
    """Scan the ledger tier by tier, stopping at the first hit."""

    entries = list(entries)
    for tier, predicate in _TIERS:
        for entry in entries:
            if predicate(token, entry):
                return tier, entry
    return None


def project(token: CanonicalToken) -> LedgerEntry:
    """Return the minimal ledger projection of a canonical token."""

    return LedgerEntry(
        id=token.id,
        name=token.name,
        symbol=token.symbol,
        contract_address=token.contract_address,
        qualification_timestamp=token.qualification_timestamp,
    )
