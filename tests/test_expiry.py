from datetime import date, datetime, timedelta, timezone

import pytest

from insuretrack.services.expiry import (
    ExpiryStatus,
    classify,
    days_until_expiry,
    parse_expiry_date,
    summarize,
    utc_now_iso,
)

AS_OF = datetime(2025, 1, 5, tzinfo=timezone.utc)


def test_date_only_is_midnight_utc():
    parsed = parse_expiry_date("2025-01-10")
    assert parsed == datetime(2025, 1, 10, tzinfo=timezone.utc)


def test_zulu_and_naive_timestamps_are_utc():
    assert parse_expiry_date("2025-01-10T12:30:00Z") == datetime(
        2025, 1, 10, 12, 30, tzinfo=timezone.utc
    )
    assert parse_expiry_date("2025-01-10T12:30:00") == datetime(
        2025, 1, 10, 12, 30, tzinfo=timezone.utc
    )


def test_offset_timestamps_are_converted():
    parsed = parse_expiry_date("2025-01-10T05:30:00+05:30")
    assert parsed == datetime(2025, 1, 10, 0, 0, tzinfo=timezone.utc)


def test_date_objects_are_accepted():
    assert parse_expiry_date(date(2025, 1, 10)) == datetime(2025, 1, 10, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["", "   ", "not-a-date", "2025-13-45", None, 20250110])
def test_unparsable_dates_raise(value):
    with pytest.raises(ValueError):
        parse_expiry_date(value)


def test_expiry_inside_window_is_expiring():
    assert classify("2025-01-10", AS_OF, 7) is ExpiryStatus.EXPIRING


def test_window_edge_is_inclusive():
    edge = AS_OF + timedelta(days=7)
    assert classify(edge, AS_OF, 7) is ExpiryStatus.EXPIRING
    assert classify(edge + timedelta(seconds=1), AS_OF, 7) is ExpiryStatus.ACTIVE


def test_expiry_at_or_before_now_is_expired():
    assert classify(AS_OF, AS_OF, 7) is ExpiryStatus.EXPIRED
    assert classify("2025-01-01", AS_OF, 7) is ExpiryStatus.EXPIRED


def test_far_expiry_is_active():
    assert classify("2025-03-01", AS_OF, 7) is ExpiryStatus.ACTIVE


def test_non_positive_window_is_rejected():
    with pytest.raises(ValueError):
        classify("2025-01-10", AS_OF, 0)


def test_days_until_expiry_rounds_up():
    assert days_until_expiry("2025-01-10", AS_OF) == 5
    assert days_until_expiry("2025-01-10", AS_OF + timedelta(hours=1)) == 5
    assert days_until_expiry("2025-01-01", AS_OF) == -4


def test_summarize_counts_each_status():
    entries = [
        {"id": "1", "expiryDate": "2025-01-10"},
        {"id": "2", "expiryDate": "2025-01-01"},
        {"id": "3", "expiryDate": "2025-03-01"},
        {"id": "4", "expiryDate": "2025-01-06"},
        {"id": "5", "expiryDate": "garbage"},
        {"id": "6"},
    ]
    counts = summarize(entries, AS_OF, 7)
    assert counts == {
        "active": 1,
        "expiring": 2,
        "expired": 1,
        "invalid": 2,
        "total": 6,
    }


def test_timestamp_format():
    stamp = utc_now_iso()
    assert stamp.endswith("Z")
    assert len(stamp) == len("2025-01-05T08:00:00.000Z")
