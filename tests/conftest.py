"""
Shared fixtures: a Tuesday-to-Saturday salon in New York.
"""

from datetime import time

import pendulum
import pytest

from bookable.domain.models import BusinessHours, DayHours, ScheduleConfig, Weekday

TZ = "America/New_York"


def make_schedule(hours=None, **overrides) -> ScheduleConfig:
    """Build a schedule; weekdays missing from ``hours`` are closed."""
    if hours is None:
        hours = {
            Weekday.TUESDAY: DayHours(open=time(9, 0), close=time(18, 0)),
            Weekday.WEDNESDAY: DayHours(open=time(9, 0), close=time(18, 0)),
            Weekday.THURSDAY: DayHours(open=time(9, 0), close=time(19, 0)),
            Weekday.FRIDAY: DayHours(open=time(9, 0), close=time(19, 0)),
            Weekday.SATURDAY: DayHours(open=time(10, 0), close=time(17, 0)),
        }
    settings = {
        "timezone": TZ,
        "buffer_minutes": 15,
        "slot_interval_minutes": 30,
        "booking_window_days": 60,
    }
    settings.update(overrides)
    return ScheduleConfig(
        hours=BusinessHours.from_mapping({day: hours.get(day) for day in Weekday}),
        **settings,
    )


def local(*args, **kwargs) -> pendulum.DateTime:
    """Business-local instant, e.g. ``local(2026, 10, 20, 9, 0)``."""
    return pendulum.datetime(*args, tz=TZ, **kwargs)


@pytest.fixture
def schedule() -> ScheduleConfig:
    return make_schedule()


@pytest.fixture
def tuesday() -> pendulum.Date:
    return pendulum.date(2026, 10, 20)


@pytest.fixture
def tuesday_morning() -> pendulum.DateTime:
    """08:00 on the Tuesday, before opening."""
    return local(2026, 10, 20, 8, 0)
