"""Qualification filter (core domain)."""

from __future__ import annotations

import dataclasses
import logging
from typing import FrozenSet, Iterable, List, Tuple

from core.config import DEFAULT_MARKET_CAP_THRESHOLD
from core.models import CanonicalToken, QualificationReason

LOGGER = logging.getLogger(__name__)


def qualifies(
    token: CanonicalToken,
    threshold: float = DEFAULT_MARKET_CAP_THRESHOLD,
) -> Tuple[bool, FrozenSet[QualificationReason]]:
    """Return whether the token is reportable and every reason that applies.

    Matching logic:
    - A bonding-completion signal in the source record qualifies.
    - A market cap at or above the threshold qualifies.
    - Both reasons are reported when both hold.
    """

    reasons = set()
    if token.bonding_completed:
        reasons.add(QualificationReason.BONDING_COMPLETED)
    if token.market_cap is not None and token.market_cap >= threshold:
        reasons.add(QualificationReason.MARKET_CAP_THRESHOLD)
    return bool(reasons), frozenset(reasons)


def apply_qualification(
    tokens: Iterable[CanonicalToken],
    threshold: float = DEFAULT_MARKET_CAP_THRESHOLD,
) -> List[CanonicalToken]:
    """Keep qualifying tokens in input order, tagged with ``qualified_by``."""

    qualified: List[CanonicalToken] = []
    for token in tokens:
        ok, reasons = qualifies(token, threshold)
        if not ok:
            LOGGER.debug(
                "Skipping %s: bonding not completed and market cap %s below %s",
                token.symbol,
                "unknown" if token.market_cap is None else f"{token.market_cap:,.0f}",
                f"{threshold:,.0f}",
            )
            continue
        LOGGER.debug(
            "Including %s: %s",
            token.symbol,
            ", ".join(sorted(reason.value for reason in reasons)),
        )
        qualified.append(dataclasses.replace(token, qualified_by=reasons))
    return qualified
