from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from core.models import CanonicalToken, QualificationReason
from core.qualification import apply_qualification, qualifies

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _token(
    *,
    symbol: str = "TKN",
    market_cap: Optional[float] = None,
    bonding_completed: bool = False,
) -> CanonicalToken:
    return CanonicalToken(
        id=f"id-{symbol}",
        name=f"{symbol} token",
        symbol=symbol,
        contract_address=None,
        creation_timestamp=NOW,
        qualification_timestamp=NOW,
        qualification_source="now",
        bonding_completed=bonding_completed,
        market_cap=market_cap,
    )


def test_market_cap_equal_to_threshold_qualifies() -> None:
    ok, reasons = qualifies(_token(market_cap=100_000), threshold=100_000)
    assert ok
    assert reasons == {QualificationReason.MARKET_CAP_THRESHOLD}


def test_one_cent_below_threshold_does_not_qualify() -> None:
    ok, reasons = qualifies(_token(market_cap=99_999.99), threshold=100_000)
    assert not ok
    assert reasons == frozenset()


def test_bonding_signal_qualifies_below_threshold() -> None:
    ok, reasons = qualifies(_token(market_cap=99_999.99, bonding_completed=True), threshold=100_000)
    assert ok
    assert reasons == {QualificationReason.BONDING_COMPLETED}


def test_both_reasons_are_kept() -> None:
    ok, reasons = qualifies(_token(market_cap=250_000, bonding_completed=True), threshold=100_000)
    assert ok
    assert reasons == {
        QualificationReason.BONDING_COMPLETED,
        QualificationReason.MARKET_CAP_THRESHOLD,
    }


def test_unknown_market_cap_without_bonding_is_dropped() -> None:
    ok, _ = qualifies(_token(market_cap=None))
    assert not ok


def test_apply_qualification_keeps_order_and_tags() -> None:
    tokens = [
        _token(symbol="A", market_cap=200_000),
        _token(symbol="B", market_cap=10),
        _token(symbol="C", bonding_completed=True),
    ]
    qualified = apply_qualification(tokens, threshold=100_000)
    assert [token.symbol for token in qualified] == ["A", "C"]
    assert qualified[0].qualified_by == {QualificationReason.MARKET_CAP_THRESHOLD}
    assert qualified[1].qualified_by == {QualificationReason.BONDING_COMPLETED}
