"""
Availability resolution: candidate slots + existing commitments + the clock.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from datetime import date, datetime
from typing import Iterable, List, Tuple

from pendulum import Date, DateTime

from .inputs import require_date, require_duration, require_instant
from .models import BusyInterval, EvaluatedSlot, ScheduleConfig, TimeRange, as_utc
from .slot_generator import SlotGenerator


def business_today(config: ScheduleConfig, now: DateTime) -> Date:
    """Business-local calendar date of the instant ``now``."""
    return now.in_timezone(config.timezone).date()


def booking_window(config: ScheduleConfig, now: datetime) -> Tuple[Date, Date]:
    """
    Get the bookable date range as (first_date, end_date_exclusive).

    "Today" is always derived by converting the caller's instant to the
    business timezone; there is no second notion of the current day.
    """
    today = business_today(config, require_instant(now, "now"))
    return today, today.add(days=config.booking_window_days)


def active_intervals(busy_intervals: Iterable[BusyInterval]) -> List[BusyInterval]:
    """Drop cancelled commitments before any comparison."""
    return [interval for interval in busy_intervals if not interval.cancelled]


def conflicts_with(
    candidate: TimeRange,
    busy_intervals: Iterable[BusyInterval],
    buffer_minutes: int,
) -> bool:
    """
    Check whether a candidate clashes with any non-cancelled commitment.

    Only the candidate is widened by the buffer; busy intervals are compared
    with their raw bounds. Touching endpoints do not conflict.
    """
    buffered = candidate.expand(buffer_minutes)
    return any(busy.blocks(buffered) for busy in active_intervals(busy_intervals))


def resolve_day(
    day: date,
    duration_minutes: int,
    config: ScheduleConfig,
    busy_intervals: Iterable[BusyInterval],
    now: datetime,
) -> List[EvaluatedSlot]:
    """
    Evaluate every candidate slot of ``day`` against commitments and the clock.

    Args:
        day: Business-local calendar date
        duration_minutes: Service duration in minutes
        config: Resolved schedule configuration
        busy_intervals: Calendar and ledger commitments for that day
        now: Current instant (timezone-aware)

    Returns:
        EvaluatedSlot objects in chronological order
    """
    day = require_date(day)
    duration_minutes = require_duration(duration_minutes)
    now = require_instant(now, "now")

    candidates = SlotGenerator(config).generate(day, duration_minutes)
    if not candidates:
        return []

    first_date, end_date = booking_window(config, now)
    in_window = first_date <= day < end_date
    commitments = active_intervals(busy_intervals)

    evaluated: List[EvaluatedSlot] = []
    for candidate in candidates:
        if not in_window or as_utc(candidate.start) <= now:
            available = False
        else:
            available = not conflicts_with(
                candidate.time_range,
                commitments,
                config.buffer_minutes,
            )
        evaluated.append(EvaluatedSlot.from_candidate(candidate, available))

    return evaluated


def resolve_open_dates(
    duration_minutes: int,
    config: ScheduleConfig,
    now: datetime,
) -> List[Date]:
    """
    List the dates in the booking window on which the business is open.

    This is a coarse filter: a date whose slots are all taken is still listed.
    """
    require_duration(duration_minutes)
    first_date, _ = booking_window(config, now)

    dates: List[Date] = []
    for offset in range(config.booking_window_days):
        current = first_date.add(days=offset)
        if config.hours.is_open_on(current):
            dates.append(current)

    return dates
