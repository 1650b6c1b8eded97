from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import FailureKind, RecordParseError
from core.models import QualificationReason
from core.normalizer import normalize, normalize_batch, parse_number, parse_timestamp
from core.qualification import qualifies

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_market_cap_derived_from_price() -> None:
    token = normalize({"tokenAddress": "Abc1", "symbol": "PEP", "name": "Pepe", "price": 0.0001}, now=NOW)
    assert token.market_cap == pytest.approx(100_000)
    assert token.price == 0.0001


def test_derived_market_cap_at_threshold_qualifies() -> None:
    token = normalize({"tokenAddress": "Abc1", "symbol": "PEP", "name": "Pepe", "price": 0.0001}, now=NOW)
    qualified, reasons = qualifies(token, 100_000)
    assert qualified
    assert reasons == frozenset({QualificationReason.MARKET_CAP_THRESHOLD})


def test_explicit_market_cap_wins_over_price() -> None:
    token = normalize({"marketCap": 5_000, "price": 0.0001}, now=NOW)
    assert token.market_cap == 5_000


def test_market_cap_absent_without_price() -> None:
    token = normalize({"symbol": "X"}, now=NOW)
    assert token.market_cap is None


def test_bonding_duration_in_hours() -> None:
    token = normalize(
        {"createdAt": "2024-01-01T00:00:00Z", "launchedAt": "2024-01-01T02:00:00Z"},
        now=NOW,
    )
    assert token.bonding_duration_hours == pytest.approx(2.0)


@pytest.mark.parametrize("offset_hours", [0, -3])
def test_bonding_duration_absent_when_not_positive(offset_hours: int) -> None:
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    launched = created + timedelta(hours=offset_hours)
    token = normalize({"createdAt": created.isoformat(), "launchedAt": launched.isoformat()}, now=NOW)
    assert token.bonding_duration_hours is None


def test_launch_timestamp_beats_creation_timestamp() -> None:
    token = normalize(
        {"createdAt": "2024-01-01T00:00:00Z", "launchedAt": "2024-01-03T00:00:00Z"},
        now=NOW,
    )
    assert token.qualification_timestamp == datetime(2024, 1, 3, tzinfo=timezone.utc)
    assert token.qualification_source == "launchedAt"
    assert token.creation_timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_bonding_completion_timestamp_has_top_priority() -> None:
    token = normalize(
        {
            "createdAt": "2024-01-01T00:00:00Z",
            "launchedAt": "2024-01-02T00:00:00Z",
            "migratedAt": "2024-01-03T00:00:00Z",
            "completedAt": "2024-01-05T00:00:00Z",
            "bondingCurve": {"completedAt": "2024-01-04T00:00:00Z"},
        },
        now=NOW,
    )
    assert token.qualification_source == "bondingCurve.completedAt"
    assert token.qualification_timestamp == datetime(2024, 1, 4, tzinfo=timezone.utc)


def test_migration_timestamp_beats_launch_timestamp() -> None:
    token = normalize(
        {"launchedAt": "2024-01-02T00:00:00Z", "migratedAt": "2024-01-03T00:00:00Z"},
        now=NOW,
    )
    assert token.qualification_source == "migratedAt"


def test_alternate_completion_fields_rank_below_launch() -> None:
    token = normalize(
        {"bondingCompletedAt": "2024-01-02T00:00:00Z", "completedAt": "2024-01-03T00:00:00Z"},
        now=NOW,
    )
    assert token.qualification_source == "bondingCompletedAt"


def test_timestamps_default_to_now() -> None:
    token = normalize({"symbol": "X"}, now=NOW)
    assert token.creation_timestamp == NOW
    assert token.qualification_timestamp == NOW
    assert token.qualification_source == "now"
    assert token.bonding_duration_hours is None


def test_synthesized_id_when_address_missing() -> None:
    token = normalize({"symbol": "PEP", "name": "Pepe Coin"}, now=NOW)
    assert token.id == "tokenPEPPepeCoin"
    assert token.contract_address is None
    assert token.url is None


def test_placeholders_for_missing_name_and_symbol() -> None:
    token = normalize({}, now=NOW)
    assert token.name == "Unknown Token"
    assert token.symbol == "UNKNOWN"
    assert token.id == "tokenUNKNOWNUnknownToken"


def test_address_becomes_id_and_url() -> None:
    token = normalize({"tokenAddress": " AbC123 ", "symbol": "X", "name": "Y"}, now=NOW)
    assert token.id == "AbC123"
    assert token.contract_address == "AbC123"
    assert token.url == "https://bags.fm/token/AbC123"


@pytest.mark.parametrize(
    "raw",
    [
        {"bondingCurve": {"completed": True}},
        {"migrated": True},
        {"migratedAt": "2024-01-01T00:00:00Z"},
        {"bondingCompletedAt": "2024-01-01T00:00:00Z"},
        {"completedAt": "2024-01-01T00:00:00Z"},
    ],
)
def test_bonding_signal_detected(raw: dict) -> None:
    assert normalize(raw, now=NOW).bonding_completed is True


def test_no_bonding_signal() -> None:
    token = normalize({"launchedAt": "2024-01-01T00:00:00Z", "bondingCurve": {"completed": False}}, now=NOW)
    assert token.bonding_completed is False


def test_total_raised_falls_back_to_bonding_curve() -> None:
    token = normalize({"bondingCurve": {"totalRaised": "85.5", "progress": 1}}, now=NOW)
    assert token.total_raised == 85.5
    assert token.bonding_progress == 1.0


def test_epoch_milliseconds_and_seconds() -> None:
    expected = datetime(2024, 1, 1, tzinfo=timezone.utc)
    seconds = int(expected.timestamp())
    assert parse_timestamp(seconds, "t") == expected
    assert parse_timestamp(seconds * 1000, "t") == expected
    assert parse_timestamp(str(seconds), "t") == expected


def test_naive_iso_timestamp_is_utc() -> None:
    assert parse_timestamp("2024-01-01T00:00:00", "t") == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_malformed_fields_raise() -> None:
    with pytest.raises(RecordParseError):
        normalize({"createdAt": "yesterday-ish"}, now=NOW)
    with pytest.raises(RecordParseError):
        normalize({"price": "cheap"}, now=NOW)
    with pytest.raises(RecordParseError):
        normalize(["not", "a", "record"], now=NOW)


def test_batch_drops_only_malformed_records() -> None:
    records = [
        {"tokenAddress": "A1", "symbol": "A"},
        "garbage",
        {"tokenAddress": "B2", "symbol": "B", "launchedAt": "not a date"},
        {"tokenAddress": "C3", "symbol": "C"},
    ]
    batch = normalize_batch(records, now=NOW)
    assert [token.id for token in batch.tokens] == ["A1", "C3"]
    assert len(batch.failures) == 2
    assert {failure.kind for failure in batch.failures} == {FailureKind.RECORD_PARSE}


@pytest.mark.parametrize("value", [10**400, -(10**400), float("inf")])
def test_out_of_range_epoch_raises_parse_error(value) -> None:
    with pytest.raises(RecordParseError):
        parse_timestamp(value, "launchedAt")


def test_huge_number_raises_parse_error() -> None:
    with pytest.raises(RecordParseError):
        parse_number(10**400, "price")
    with pytest.raises(RecordParseError):
        normalize({"price": 1e300}, now=NOW)


def test_huge_values_do_not_abort_batch() -> None:
    records = [
        {"tokenAddress": "Bad", "price": 10**400},
        {"tokenAddress": "Late", "launchedAt": 10**400},
        {"tokenAddress": "Good", "marketCap": 500_000},
    ]
    batch = normalize_batch(records, now=NOW)
    assert [token.id for token in batch.tokens] == ["Good"]
    assert [failure.kind for failure in batch.failures] == [FailureKind.RECORD_PARSE] * 2
