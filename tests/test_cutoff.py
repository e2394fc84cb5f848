from datetime import datetime, timezone

import pytest

from ops_archiver.archival.cutoff import compute_cutoff, subtract_months


def test_one_month_back():
    now = datetime(2024, 6, 15, 12, 30, tzinfo=timezone.utc)
    assert compute_cutoff(1, now=now) == datetime(2024, 5, 15, 12, 30, tzinfo=timezone.utc)


def test_zero_months_archives_everything_up_to_now():
    now = datetime(2024, 6, 15, tzinfo=timezone.utc)
    assert compute_cutoff(0, now=now) == now


def test_crosses_year_boundary():
    now = datetime(2024, 2, 10, tzinfo=timezone.utc)
    assert compute_cutoff(3, now=now) == datetime(2023, 11, 10, tzinfo=timezone.utc)
    assert compute_cutoff(14, now=now) == datetime(2022, 12, 10, tzinfo=timezone.utc)


def test_day_is_clamped_to_shorter_month():
    assert subtract_months(datetime(2024, 3, 31), 1) == datetime(2024, 2, 29)
    assert subtract_months(datetime(2023, 3, 31), 1) == datetime(2023, 2, 28)
    assert subtract_months(datetime(2024, 7, 31), 1) == datetime(2024, 6, 30)


def test_default_is_one_month_before_current_utc_time():
    before = datetime.now(timezone.utc)
    cutoff = compute_cutoff()
    assert cutoff.tzinfo is not None
    assert cutoff < before
    assert subtract_months(before, 1) <= cutoff


@pytest.mark.parametrize("months", [-1, 1.5, "1", True])
def test_invalid_months_rejected(months):
    with pytest.raises(ValueError):
        compute_cutoff(months)
