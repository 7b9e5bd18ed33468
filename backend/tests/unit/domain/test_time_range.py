from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from studysphere.domain.time_range import TimeRange

T0 = datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)


def _range(start_offset_min: int, end_offset_min: int) -> TimeRange:
    return TimeRange(T0 + timedelta(minutes=start_offset_min), T0 + timedelta(minutes=end_offset_min))


def test_overlapping_ranges_overlap_both_ways() -> None:
    a = _range(0, 60)
    b = _range(30, 90)
    assert a.overlaps(b)
    assert b.overlaps(a)


def test_touching_ranges_do_not_overlap() -> None:
    assert not _range(0, 60).overlaps(_range(60, 120))
    assert not _range(60, 120).overlaps(_range(0, 60))


def test_contained_range_overlaps() -> None:
    assert _range(0, 120).overlaps(_range(30, 60))


def test_start_must_precede_end() -> None:
    with pytest.raises(ValueError):
        TimeRange(T0, T0)
    with pytest.raises(ValueError):
        TimeRange(T0, T0 - timedelta(minutes=1))


def test_naive_datetimes_are_taken_as_utc() -> None:
    naive = TimeRange(datetime(2030, 1, 1, 10, 0), datetime(2030, 1, 1, 11, 0))
    assert naive.start == T0
    assert naive.overlaps(_range(30, 90))


def test_other_timezones_normalize_to_utc() -> None:
    ist = timezone(timedelta(hours=5, minutes=30))
    shifted = TimeRange(datetime(2030, 1, 1, 15, 30, tzinfo=ist), datetime(2030, 1, 1, 16, 30, tzinfo=ist))
    assert shifted.start == T0
    assert shifted.start.tzinfo == timezone.utc


def test_contains_is_half_open() -> None:
    r = _range(0, 60)
    assert r.contains(T0)
    assert not r.contains(T0 + timedelta(minutes=60))


def test_duration_hours_is_exact_decimal() -> None:
    assert _range(0, 90).duration_hours == Decimal("1.5")
    assert _range(0, 20).duration_hours == Decimal(1200) / Decimal(3600)
