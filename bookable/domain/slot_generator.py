"""
Candidate slot generation for a single business day.

Pure domain logic: no calendar data, no clock, no I/O.
"""

from datetime import date, time
from typing import List

import pendulum
from pendulum import DateTime

from .exceptions import InvalidInput
from .inputs import require_date, require_duration
from .models import CandidateSlot, ScheduleConfig, TimeRange, local_label


def localize(day: date, wall_clock: time, timezone: str) -> DateTime:
    """
    Convert a business-local wall-clock reading on ``day`` to an instant.

    The offset is resolved for that calendar date, so DST transitions are
    honoured. Non-existent local times (inside a spring-forward gap) are
    shifted forward by the gap; ambiguous ones resolve to the later reading.
    """
    try:
        return pendulum.datetime(
            day.year,
            day.month,
            day.day,
            wall_clock.hour,
            wall_clock.minute,
            tz=timezone,
        )
    except (OverflowError, ValueError) as exc:
        raise InvalidInput(f"Cannot localise {day} {wall_clock:%H:%M} to {timezone}: {exc}") from exc


def business_day_bounds(day: date, config: ScheduleConfig) -> TimeRange | None:
    """
    Get the opening and closing instants for ``day``.
    Returns None if the business is closed on that weekday.
    """
    hours = config.hours.for_date(day)
    if hours is None:
        return None

    return TimeRange(
        start=localize(day, hours.open, config.timezone),
        end=localize(day, hours.close, config.timezone),
    )


class SlotGenerator:
    """
    Produces the ordered candidate slots for one day.

    Algorithm:
    1. Look up the weekday's opening hours (closed day -> no slots)
    2. Localise opening and closing time for that exact date
    3. Walk forward from opening in steps of the slot interval
    4. Emit a slot while start + duration still ends by closing time
    """

    def __init__(self, config: ScheduleConfig):
        self.config = config

    def generate(self, day: date, duration_minutes: int) -> List[CandidateSlot]:
        """
        Generate candidate slots for a date and service duration.

        Args:
            day: Calendar date in business-local terms
            duration_minutes: Service duration in minutes

        Returns:
            Chronologically ordered CandidateSlot objects; empty on closed days

        Raises:
            InvalidInput: If the duration or date cannot be used
        """
        day = require_date(day)
        duration_minutes = require_duration(duration_minutes)

        bounds = business_day_bounds(day, self.config)
        if bounds is None:
            return []

        slots: List[CandidateSlot] = []

        # Walk in UTC so each step is exactly slot_interval_minutes of elapsed time
        current = bounds.start.in_timezone("UTC")
        closing = bounds.end.in_timezone("UTC")

        while True:
            slot_end = current.add(minutes=duration_minutes)

            # Slots never run past closing, not even by a minute
            if slot_end > closing:
                break

            start_local = current.in_timezone(self.config.timezone)
            slots.append(
                CandidateSlot(
                    time_range=TimeRange(
                        start=start_local,
                        end=slot_end.in_timezone(self.config.timezone),
                    ),
                    display_label=local_label(start_local, self.config.timezone),
                )
            )

            current = current.add(minutes=self.config.slot_interval_minutes)

        return slots
