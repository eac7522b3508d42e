"""
Commit-time re-validation of a single candidate slot.

The check is recomputed from the schedule and freshly fetched commitments;
it never looks at previously evaluated slot lists.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from .availability import booking_window, conflicts_with
from .inputs import require_duration, require_instant
from .models import BusyInterval, ScheduleConfig, TimeRange
from .slot_generator import business_day_bounds


class SlotRejection(str, Enum):
    """First check a candidate failed, in evaluation order."""
    IN_PAST = "in_past"
    OUTSIDE_BOOKING_WINDOW = "outside_booking_window"
    CLOSED = "closed"
    OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
    CONFLICT = "conflict"


def explain(
    candidate_start: datetime,
    duration_minutes: int,
    config: ScheduleConfig,
    busy_intervals: Iterable[BusyInterval],
    now: datetime,
) -> Optional[SlotRejection]:
    """
    Return why a candidate cannot be booked, or None if it can.

    Checks short-circuit in this order: past, booking window, closed day,
    business hours, commitments.
    """
    start = require_instant(candidate_start, "candidate_start")
    duration_minutes = require_duration(duration_minutes)
    now = require_instant(now, "now")

    if start <= now:
        return SlotRejection.IN_PAST

    day = start.in_timezone(config.timezone).date()

    first_date, end_date = booking_window(config, now)
    if not first_date <= day < end_date:
        return SlotRejection.OUTSIDE_BOOKING_WINDOW

    bounds = business_day_bounds(day, config)
    if bounds is None:
        return SlotRejection.CLOSED

    candidate = TimeRange(start=start, end=start.add(minutes=duration_minutes))
    if not bounds.contains(candidate):
        return SlotRejection.OUTSIDE_BUSINESS_HOURS

    if conflicts_with(candidate, busy_intervals, config.buffer_minutes):
        return SlotRejection.CONFLICT

    return None


def validate(
    candidate_start: datetime,
    duration_minutes: int,
    config: ScheduleConfig,
    busy_intervals: Iterable[BusyInterval],
    now: datetime,
) -> bool:
    """Check whether the candidate slot is still bookable."""
    return explain(candidate_start, duration_minutes, config, busy_intervals, now) is None
