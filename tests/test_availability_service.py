"""
Tests for the AvailabilityService orchestration layer.
"""

import asyncio
from typing import List

import pendulum
import pytest

from bookable.domain.exceptions import InvalidInput, SourceUnavailable
from bookable.domain.models import BusyInterval, BusySource
from bookable.domain.validator import SlotRejection
from bookable.services.availability_service import AvailabilityService

from conftest import local


class StubCalendarSource:
    """Minimal stub matching CalendarSource."""

    def __init__(self, intervals: List[BusyInterval] = None, error: Exception = None):
        self.intervals = list(intervals or [])
        self.error = error
        self.calls = []

    async def fetch_busy_calendar_intervals(self, start, end):
        self.calls.append((start, end))
        if self.error:
            raise self.error
        return list(self.intervals)


class StubLedgerSource:
    """Minimal stub matching LedgerSource; bookings can be added between calls."""

    def __init__(self, intervals: List[BusyInterval] = None, error: Exception = None):
        self.intervals = list(intervals or [])
        self.error = error
        self.calls = []
        self.margins = []

    async def fetch_busy_ledger_intervals(self, day, margin_minutes=0):
        self.calls.append(day)
        self.margins.append(margin_minutes)
        if self.error:
            raise self.error
        return list(self.intervals)


def ledger_booking(start, end, cancelled=False) -> BusyInterval:
    return BusyInterval(start=start, end=end, source=BusySource.LEDGER, cancelled=cancelled)


def _build_service(schedule, calendar=None, ledger=None, now=None) -> AvailabilityService:
    now = now or local(2026, 10, 20, 8, 0)
    return AvailabilityService(
        calendar_source=calendar or StubCalendarSource(),
        ledger_source=ledger or StubLedgerSource(),
        config=schedule,
        clock=lambda: now,
    )


class TestGetSlotsForDate:

    def test_end_to_end_open_day(self, schedule, tuesday):
        """Tue 09:00-18:00, 60 minute service, no commitments, now 08:00."""
        slots = asyncio.run(_build_service(schedule).get_slots_for_date(tuesday, 60))

        assert len(slots) == 17
        assert slots[0].display_label == "9:00 AM"
        assert slots[-1].display_label == "5:00 PM"
        assert all(slot.available for slot in slots)

    def test_merges_calendar_and_ledger(self, schedule, tuesday):
        calendar = StubCalendarSource([
            BusyInterval(start=local(2026, 10, 20, 9, 0), end=local(2026, 10, 20, 10, 0), source=BusySource.CALENDAR),
        ])
        ledger = StubLedgerSource([ledger_booking(local(2026, 10, 20, 12, 0), local(2026, 10, 20, 13, 0))])

        slots = asyncio.run(_build_service(schedule, calendar, ledger).get_slots_for_date(tuesday, 60))
        taken = [slot.start.format("HH:mm") for slot in slots if not slot.available]

        assert taken == ["09:00", "09:30", "10:00", "11:00", "11:30", "12:00", "12:30", "13:00"]

    def test_fetch_window_covers_the_local_day_plus_buffer(self, schedule, tuesday):
        calendar = StubCalendarSource()
        ledger = StubLedgerSource()

        asyncio.run(_build_service(schedule, calendar, ledger).get_slots_for_date(tuesday, 60))

        assert calendar.calls == [(local(2026, 10, 19, 23, 45), local(2026, 10, 21, 0, 15))]
        assert ledger.calls == [tuesday]
        assert ledger.margins == [15]

    def test_closed_day_does_not_fetch(self, schedule):
        calendar = StubCalendarSource()

        slots = asyncio.run(_build_service(schedule, calendar).get_slots_for_date(pendulum.date(2026, 10, 25), 60))

        assert slots == []
        assert calendar.calls == []

    @pytest.mark.parametrize("failing", ["calendar", "ledger"])
    def test_source_failure_propagates(self, schedule, tuesday, failing):
        error = SourceUnavailable(f"{failing} down")
        calendar = StubCalendarSource(error=error if failing == "calendar" else None)
        ledger = StubLedgerSource(error=error if failing == "ledger" else None)

        with pytest.raises(SourceUnavailable, match=f"{failing} down"):
            asyncio.run(_build_service(schedule, calendar, ledger).get_slots_for_date(tuesday, 60))

    def test_invalid_duration_is_rejected_before_fetching(self, schedule, tuesday):
        calendar = StubCalendarSource()

        with pytest.raises(InvalidInput):
            asyncio.run(_build_service(schedule, calendar).get_slots_for_date(tuesday, 0))
        assert calendar.calls == []

    def test_repeated_calls_are_identical(self, schedule, tuesday):
        ledger = StubLedgerSource([ledger_booking(local(2026, 10, 20, 12, 0), local(2026, 10, 20, 13, 0))])
        service = _build_service(schedule, ledger=ledger)

        first = asyncio.run(service.get_slots_for_date(tuesday, 60))
        second = asyncio.run(service.get_slots_for_date(tuesday, 60))

        assert first == second


class TestIsSlotStillAvailable:

    def test_new_booking_after_browsing_is_detected(self, schedule, tuesday):
        """A slot shown as free must be re-checked against fresh ledger data."""
        ledger = StubLedgerSource()
        service = _build_service(schedule, ledger=ledger)

        slots = asyncio.run(service.get_slots_for_date(tuesday, 60))
        chosen = next(slot for slot in slots if slot.start == local(2026, 10, 20, 14, 0))
        assert chosen.available

        ledger.intervals.append(ledger_booking(local(2026, 10, 20, 14, 30), local(2026, 10, 20, 15, 30)))

        assert asyncio.run(service.is_slot_still_available(chosen.start, 60)) is False
        assert len(ledger.calls) == 2

    def test_free_slot(self, schedule):
        service = _build_service(schedule)

        assert asyncio.run(service.is_slot_still_available(local(2026, 10, 20, 14, 0), 60)) is True

    def test_explain_reports_rejection(self, schedule):
        service = _build_service(schedule, now=local(2026, 10, 20, 15, 0))

        assert asyncio.run(service.explain_slot(local(2026, 10, 20, 14, 0), 60)) is SlotRejection.IN_PAST

    def test_fetches_for_the_business_local_date(self, schedule):
        """00:30 UTC on the 21st is 20:30 on the 20th in New York."""
        ledger = StubLedgerSource()
        service = _build_service(schedule, ledger=ledger)

        asyncio.run(service.is_slot_still_available(pendulum.datetime(2026, 10, 21, 0, 30, tz="UTC"), 60))

        assert ledger.calls == [pendulum.date(2026, 10, 20)]

    def test_source_failure_is_not_treated_as_free(self, schedule):
        service = _build_service(schedule, calendar=StubCalendarSource(error=SourceUnavailable("timeout")))

        with pytest.raises(SourceUnavailable):
            asyncio.run(service.is_slot_still_available(local(2026, 10, 20, 14, 0), 60))


def test_get_open_dates_uses_the_clock(schedule):
    service = _build_service(schedule, now=pendulum.datetime(2026, 10, 20, 3, 30, tz="UTC"))

    dates = asyncio.run(service.get_open_dates(60))

    # Monday 19th is "today" in New York and closed
    assert dates[0] == pendulum.date(2026, 10, 20)
    # 60 days from a Monday: 8 weeks plus Mon-Thu, minus 17 closed Sundays and Mondays
    assert len(dates) == 43
