"""Unit tests for the pure booking rules."""
from datetime import date, datetime, time, timedelta, timezone

import pytest

from wildenergy.core.ledger_rules import (
    ABSENT,
    ATTENDED,
    CANCELLED,
    GYM_TIMEZONE,
    REGISTERED,
    course_bounds,
    derive_status,
    ensure_aware,
    find_overlap,
    has_started,
    is_within_cancellation_window,
    order_balances,
)

START = datetime(2026, 3, 12, 18, 0, tzinfo=timezone.utc)


class TestCancellationWindow:
    def test_exactly_at_cutoff_is_within_window(self):
        assert is_within_cancellation_window(START, START - timedelta(hours=24)) is True

    def test_one_second_before_cutoff_is_outside_window(self):
        now = START - timedelta(hours=24, seconds=1)
        assert is_within_cancellation_window(START, now) is False

    def test_two_hours_before_start_is_within_window(self):
        assert is_within_cancellation_window(START, START - timedelta(hours=2)) is True

    def test_naive_now_is_treated_as_utc(self):
        naive = (START - timedelta(hours=48)).replace(tzinfo=None)
        assert is_within_cancellation_window(START, naive) is False


class TestCourseTiming:
    def test_bounds_are_local_wall_clock(self):
        start_at, end_at = course_bounds(date(2026, 3, 12), time(18, 0), time(19, 0))
        assert start_at.tzinfo == GYM_TIMEZONE
        assert end_at - start_at == timedelta(hours=1)

    def test_course_ending_after_midnight_rolls_over(self):
        start_at, end_at = course_bounds(date(2026, 3, 12), time(23, 30), time(0, 30))
        assert end_at.date() == date(2026, 3, 13)
        assert end_at - start_at == timedelta(hours=1)

    def test_has_started_at_start_instant(self):
        assert has_started(START, START) is True
        assert has_started(START, START - timedelta(seconds=1)) is False

    def test_ensure_aware_keeps_aware_values(self):
        assert ensure_aware(START) is START


class TestDeriveStatus:
    END = START + timedelta(hours=1)

    def test_cancelled_wins_over_everything(self):
        assert derive_status(CANCELLED, True, self.END, self.END + timedelta(days=1)) == CANCELLED

    def test_checkin_means_attended(self):
        assert derive_status(REGISTERED, True, self.END, START) == ATTENDED

    def test_ended_without_checkin_is_absent(self):
        assert derive_status(REGISTERED, False, self.END, self.END) == ABSENT

    def test_stale_attended_cache_without_checkin_follows_checkin_row(self):
        assert derive_status(ATTENDED, False, self.END, START) == REGISTERED

    def test_upcoming_registration_stays_registered(self):
        assert derive_status(REGISTERED, False, self.END, START - timedelta(days=1)) == REGISTERED


class TestOverlap:
    def test_touching_ranges_do_not_overlap(self):
        target = (START, START + timedelta(hours=1))
        booked = [(7, (START + timedelta(hours=1), START + timedelta(hours=2)))]
        assert find_overlap(target, booked) is None

    def test_returns_first_overlapping_course(self):
        target = (START, START + timedelta(hours=1))
        booked = [
            (3, (START - timedelta(hours=3), START - timedelta(hours=2))),
            (5, (START + timedelta(minutes=30), START + timedelta(hours=2))),
        ]
        assert find_overlap(target, booked) == 5


class TestOrderBalances:
    def test_soonest_expiring_first_then_lowest_id(self):
        candidates = [
            (4, date(2026, 6, 1), 3),
            (2, date(2026, 4, 1), 1),
            (1, date(2026, 6, 1), 5),
        ]
        assert order_balances(candidates) == [2, 1, 4]

    @pytest.mark.parametrize("remaining", [0, -1])
    def test_empty_balances_are_skipped(self, remaining):
        candidates = [(1, date(2026, 4, 1), remaining), (2, date(2026, 5, 1), 2)]
        assert order_balances(candidates) == [2]
