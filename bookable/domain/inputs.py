"""
Argument checks shared by the public core functions.

Every check raises ``InvalidInput`` before any computation happens.
"""

from datetime import date, datetime

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInput


def require_duration(duration_minutes: int) -> int:
    """Ensure the service duration is a positive number of minutes."""
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise InvalidInput(f"Duration must be an integer number of minutes, got {duration_minutes!r}")
    if duration_minutes <= 0:
        raise InvalidInput(f"Duration must be greater than zero, got {duration_minutes}")
    return duration_minutes


def require_date(value: date) -> Date:
    """Ensure ``value`` is a calendar date (not a datetime) and return it as a pendulum Date."""
    if isinstance(value, datetime) or not isinstance(value, date):
        raise InvalidInput(f"Expected a calendar date, got {value!r}")
    return pendulum.date(value.year, value.month, value.day)


def require_instant(value: datetime, name: str = "instant") -> DateTime:
    """
    Ensure ``value`` is a timezone-aware datetime.

    Naive datetimes cannot be localised to the business timezone and are
    rejected. The result is the same instant in UTC.
    """
    if not isinstance(value, datetime):
        raise InvalidInput(f"{name} must be a datetime, got {value!r}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidInput(f"{name} must be timezone-aware, got naive {value.isoformat()}")
    # astimezone honours fold; rebuilding from wall-clock fields would not
    return pendulum.instance(value.astimezone(pendulum.UTC)).in_timezone("UTC")
