"""
Domain models for business hours, candidate slots and busy intervals.
"""

from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime, time
from enum import Enum, IntEnum
from typing import Dict, Iterator, Mapping, Optional, Tuple

import pendulum
from pendulum import DateTime


def as_utc(instant: datetime) -> datetime:
    """
    The same instant expressed in UTC.

    Datetimes sharing a tzinfo compare by wall clock and ignore ``fold``, so
    two readings of 01:30 on a fall-back night would look equal. All
    ordering of instants goes through UTC.
    """
    return instant.astimezone(pendulum.UTC)


class Weekday(IntEnum):
    """Day of week, numbered like ``date.weekday()`` (Monday is 0)."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def from_name(cls, name: str) -> "Weekday":
        """Look up a weekday by its English name, case-insensitively."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown weekday: '{name}'") from None


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range [start, end).

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if as_utc(self.start) >= as_utc(self.end):
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the elapsed duration in minutes."""
        return int((as_utc(self.end) - as_utc(self.start)).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ends do not overlap."""
        return as_utc(self.start) < as_utc(other.end) and as_utc(self.end) > as_utc(other.start)

    def expand(self, minutes: int) -> "TimeRange":
        """Widen the range by ``minutes`` on both ends."""
        if minutes == 0:
            return self
        return TimeRange(
            start=self.start.subtract(minutes=minutes),
            end=self.end.add(minutes=minutes),
        )

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies entirely within this range."""
        return as_utc(self.start) <= as_utc(other.start) and as_utc(other.end) <= as_utc(self.end)

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class DayHours:
    """
    Opening window of a business day in local wall-clock time.

    Invariant: open must be before close.
    """
    open: time
    close: time

    def __post_init__(self):
        if self.open >= self.close:
            raise ValueError(
                f"Opening time {self.open:%H:%M} must be before closing time {self.close:%H:%M}"
            )

    def __str__(self) -> str:
        return f"{self.open:%H:%M}-{self.close:%H:%M}"


@dataclass(frozen=True)
class BusinessHours:
    """
    Opening hours for the seven weekdays, indexed by ``Weekday``.

    A ``None`` entry means the business is closed on that day.
    """
    days: Tuple[Optional[DayHours], ...]

    def __post_init__(self):
        if len(self.days) != len(Weekday):
            raise ValueError(f"Business hours need exactly 7 days, got {len(self.days)}")

    @classmethod
    def from_mapping(cls, hours: Mapping[Weekday, Optional[DayHours]]) -> "BusinessHours":
        """Build from a mapping that must name every weekday."""
        missing = [day.name.lower() for day in Weekday if day not in hours]
        if missing:
            raise ValueError(f"Business hours missing for: {', '.join(missing)}")
        return cls(days=tuple(hours[day] for day in Weekday))

    def for_weekday(self, day: Weekday) -> Optional[DayHours]:
        return self.days[day]

    def for_date(self, day: Date) -> Optional[DayHours]:
        return self.days[day.weekday()]

    def is_open_on(self, day: Date) -> bool:
        return self.for_date(day) is not None

    def items(self) -> Iterator[Tuple[Weekday, Optional[DayHours]]]:
        for day in Weekday:
            yield day, self.days[day]


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Resolved scheduling configuration passed explicitly into every core call.
    """
    hours: BusinessHours
    timezone: str
    buffer_minutes: int = 15
    slot_interval_minutes: int = 30
    booking_window_days: int = 60

    def __post_init__(self):
        if self.buffer_minutes < 0:
            raise ValueError(f"buffer_minutes must not be negative, got {self.buffer_minutes}")
        if self.slot_interval_minutes <= 0:
            raise ValueError(
                f"slot_interval_minutes must be greater than zero, got {self.slot_interval_minutes}"
            )
        if self.booking_window_days <= 0:
            raise ValueError(
                f"booking_window_days must be greater than zero, got {self.booking_window_days}"
            )


@dataclass(frozen=True)
class CandidateSlot:
    """
    A bookable start time before conflict filtering.
    """
    time_range: TimeRange
    display_label: str

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end


@dataclass(frozen=True)
class EvaluatedSlot:
    """
    A candidate slot together with its availability verdict.
    """
    time_range: TimeRange
    display_label: str
    available: bool

    @classmethod
    def from_candidate(cls, candidate: CandidateSlot, available: bool) -> "EvaluatedSlot":
        return cls(
            time_range=candidate.time_range,
            display_label=candidate.display_label,
            available=available,
        )

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def to_dict(self) -> Dict[str, object]:
        """
        Serialize the slot for API consumers.

        Instants are rendered as ISO 8601 strings in UTC.
        """
        return {
            "startTime": self.start.in_timezone("UTC").to_iso8601_string(),
            "endTime": self.end.in_timezone("UTC").to_iso8601_string(),
            "displayTime": self.display_label,
            "available": self.available,
        }


class BusySource(str, Enum):
    """Where a commitment came from."""
    CALENDAR = "calendar"
    LEDGER = "ledger"


@dataclass(frozen=True)
class BusyInterval:
    """
    An existing commitment that blocks new appointments.

    Zero-length intervals are allowed; they block any candidate whose
    buffered range strictly contains the instant.
    """
    start: DateTime
    end: DateTime
    source: BusySource
    cancelled: bool = False
    reference: str = ""

    def __post_init__(self):
        if as_utc(self.end) < as_utc(self.start):
            raise ValueError(f"Busy interval end {self.end} is before its start {self.start}")

    def blocks(self, window: TimeRange) -> bool:
        """Check if this commitment intersects ``window`` (half-open on both sides)."""
        return as_utc(window.start) < as_utc(self.end) and as_utc(window.end) > as_utc(self.start)


def local_label(instant: DateTime, timezone: str) -> str:
    """Format an instant as business-local wall-clock time, e.g. ``9:00 AM``."""
    return pendulum.instance(instant).in_timezone(timezone).format("h:mm A")
