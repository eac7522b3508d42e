"""
Tests for single-slot re-validation.
"""

from datetime import time

import pendulum
import pytest

from bookable.domain.availability import resolve_day
from bookable.domain.exceptions import InvalidInput
from bookable.domain.models import BusyInterval, BusySource, DayHours, Weekday
from bookable.domain.validator import SlotRejection, explain, validate

from conftest import make_schedule, local

LUNCH_BOOKING = BusyInterval(
    start=local(2026, 10, 20, 12, 0),
    end=local(2026, 10, 20, 13, 0),
    source=BusySource.LEDGER,
)


class TestValidate:
    """Tests for validate and explain."""

    def test_free_slot_is_valid(self, schedule, tuesday_morning):
        assert validate(local(2026, 10, 20, 9, 0), 60, schedule, [], tuesday_morning)

    def test_slot_ending_at_closing_is_valid(self, schedule, tuesday_morning):
        assert validate(local(2026, 10, 20, 17, 0), 60, schedule, [], tuesday_morning)

    def test_slot_starting_now_is_in_the_past(self, schedule):
        now = local(2026, 10, 20, 10, 0)

        assert explain(now, 60, schedule, [], now) is SlotRejection.IN_PAST

    def test_past_is_checked_before_anything_else(self, schedule):
        """A past slot on a closed day reports the past, not the closure."""
        closed_sunday = local(2026, 10, 18, 10, 0)

        assert explain(closed_sunday, 60, schedule, [], local(2026, 10, 20, 8, 0)) is SlotRejection.IN_PAST

    def test_beyond_booking_window(self, tuesday_morning):
        schedule = make_schedule(booking_window_days=7)

        assert explain(local(2026, 10, 27, 10, 0), 60, schedule, [], tuesday_morning) is (
            SlotRejection.OUTSIDE_BOOKING_WINDOW
        )

    def test_closed_day(self, schedule, tuesday_morning):
        assert explain(local(2026, 10, 26, 10, 0), 60, schedule, [], tuesday_morning) is SlotRejection.CLOSED

    @pytest.mark.parametrize(
        "hour, minute",
        [(8, 30), (17, 30), (18, 0)],
    )
    def test_outside_business_hours(self, schedule, tuesday_morning, hour, minute):
        start = local(2026, 10, 20, hour, minute)

        assert explain(start, 60, schedule, [], tuesday_morning) is SlotRejection.OUTSIDE_BUSINESS_HOURS

    def test_conflict_uses_buffered_candidate(self, schedule, tuesday_morning):
        assert explain(local(2026, 10, 20, 13, 0), 60, schedule, [LUNCH_BOOKING], tuesday_morning) is (
            SlotRejection.CONFLICT
        )
        assert validate(local(2026, 10, 20, 13, 15), 60, schedule, [LUNCH_BOOKING], tuesday_morning)

    def test_off_grid_start_within_hours_is_accepted(self, schedule, tuesday_morning):
        assert validate(local(2026, 10, 20, 9, 10), 60, schedule, [], tuesday_morning)

    def test_candidate_in_another_timezone_is_localised(self, schedule, tuesday_morning):
        """14:00 UTC is 10:00 in New York."""
        start = pendulum.datetime(2026, 10, 20, 14, 0, tz="UTC")

        assert validate(start, 60, schedule, [], tuesday_morning)

    def test_agrees_with_resolver(self, schedule, tuesday, tuesday_morning):
        commitments = [LUNCH_BOOKING]

        for slot in resolve_day(tuesday, 60, schedule, commitments, tuesday_morning):
            assert validate(slot.start, 60, schedule, commitments, tuesday_morning) == slot.available

    def test_naive_candidate_is_rejected(self, schedule, tuesday_morning):
        with pytest.raises(InvalidInput, match="candidate_start"):
            validate(local(2026, 10, 20, 10, 0).naive(), 60, schedule, [], tuesday_morning)

    def test_non_positive_duration_is_rejected(self, schedule, tuesday_morning):
        with pytest.raises(InvalidInput):
            validate(local(2026, 10, 20, 10, 0), 0, schedule, [], tuesday_morning)


class TestFallBackNight:
    """2026-11-01 in New York: 01:00-02:00 happens twice."""

    @staticmethod
    def _night_shift():
        return make_schedule(
            hours={Weekday.SUNDAY: DayHours(open=time(0, 0), close=time(6, 0))},
            buffer_minutes=0,
            slot_interval_minutes=60,
        )

    @staticmethod
    def _saturday_noon():
        return local(2026, 10, 31, 12, 0)

    def test_slot_in_the_first_one_oclock_hour_is_valid(self):
        start = pendulum.datetime(2026, 11, 1, 5, 0, tz="UTC")  # 01:00 EDT

        assert explain(start, 60, self._night_shift(), [], self._saturday_noon()) is None

    def test_commitment_in_the_other_reading_does_not_conflict(self):
        second_hour = BusyInterval(
            start=local(2026, 11, 1, 1, 0, fold=1),
            end=local(2026, 11, 1, 2, 0),
            source=BusySource.CALENDAR,
        )
        first_reading = local(2026, 11, 1, 1, 0, fold=0)
        second_reading = local(2026, 11, 1, 1, 0, fold=1)

        assert validate(first_reading, 60, self._night_shift(), [second_hour], self._saturday_noon())
        assert explain(second_reading, 60, self._night_shift(), [second_hour], self._saturday_noon()) is (
            SlotRejection.CONFLICT
        )

    def test_agrees_with_resolver(self):
        schedule = self._night_shift()
        first_hour = BusyInterval(
            start=local(2026, 11, 1, 1, 0, fold=0),
            end=local(2026, 11, 1, 1, 0, fold=1),
            source=BusySource.LEDGER,
        )
        now = self._saturday_noon()

        slots = resolve_day(pendulum.date(2026, 11, 1), 60, schedule, [first_hour], now)

        assert [slot.available for slot in slots] == [True, False, True, True, True, True, True]
        for slot in slots:
            assert validate(slot.start, 60, schedule, [first_hour], now) == slot.available
