"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import booking_window, conflicts_with, resolve_day, resolve_open_dates
from .exceptions import (
    AuthenticationError,
    BookableError,
    ConfigError,
    InvalidInput,
    SourceUnavailable,
)
from .models import (
    BusinessHours,
    BusyInterval,
    BusySource,
    CandidateSlot,
    DayHours,
    EvaluatedSlot,
    ScheduleConfig,
    TimeRange,
    Weekday,
)
from .slot_generator import SlotGenerator
from .validator import SlotRejection, explain, validate

__all__ = [
    "AuthenticationError",
    "BookableError",
    "BusinessHours",
    "BusyInterval",
    "BusySource",
    "CandidateSlot",
    "ConfigError",
    "DayHours",
    "EvaluatedSlot",
    "InvalidInput",
    "ScheduleConfig",
    "SlotGenerator",
    "SlotRejection",
    "SourceUnavailable",
    "TimeRange",
    "Weekday",
    "booking_window",
    "conflicts_with",
    "explain",
    "resolve_day",
    "resolve_open_dates",
    "validate",
]
