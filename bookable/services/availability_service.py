"""
Application service exposing slot availability to callers.

The service fetches commitments from the calendar feed and the booking
ledger, then delegates every decision to the pure domain functions. Both
sources are injected via protocols so each can be replaced in tests.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, List, Protocol

import pendulum
from pendulum import Date, DateTime

from ..domain.availability import resolve_day, resolve_open_dates
from ..domain.exceptions import InvalidInput
from ..domain.inputs import require_date, require_duration, require_instant
from ..domain.models import BusyInterval, EvaluatedSlot, ScheduleConfig
from ..domain.validator import SlotRejection, explain

logger = logging.getLogger(__name__)


class CalendarSource(Protocol):
    """Calendar feed behaviour needed by the service."""

    async def fetch_busy_calendar_intervals(
        self,
        start: DateTime,
        end: DateTime,
    ) -> List[BusyInterval]:
        """Return busy intervals overlapping [start, end)."""


class LedgerSource(Protocol):
    """Booking ledger behaviour needed by the service."""

    async def fetch_busy_ledger_intervals(self, day: date, margin_minutes: int = 0) -> List[BusyInterval]:
        """Return bookings touching the business-local ``day`` widened by ``margin_minutes``."""


def utc_now() -> DateTime:
    return pendulum.now("UTC")


class AvailabilityService:
    """
    Orchestrates commitment retrieval and availability resolution.

    The service keeps no state between calls: every call reads the clock
    once and fetches fresh commitments.
    """

    def __init__(
        self,
        calendar_source: CalendarSource,
        ledger_source: LedgerSource,
        config: ScheduleConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._calendar_source = calendar_source
        self._ledger_source = ledger_source
        self._config = config
        self._clock = clock

    @property
    def config(self) -> ScheduleConfig:
        return self._config

    def _now(self) -> DateTime:
        return require_instant(self._clock(), "clock()")

    async def fetch_busy_intervals(self, day: date) -> List[BusyInterval]:
        """
        Fetch calendar and ledger commitments for a business-local day.

        Both reads run concurrently and must both succeed; a failing source
        raises instead of being treated as "no conflicts".
        """
        day = require_date(day)
        buffer = self._config.buffer_minutes

        try:
            day_start = pendulum.datetime(day.year, day.month, day.day, tz=self._config.timezone)
            window_start = day_start.subtract(minutes=buffer)
            window_end = day_start.add(days=1).add(minutes=buffer)
        except (OverflowError, ValueError) as exc:
            raise InvalidInput(f"Date {day} is outside the supported range") from exc

        calendar_intervals, ledger_intervals = await asyncio.gather(
            self._calendar_source.fetch_busy_calendar_intervals(window_start, window_end),
            self._ledger_source.fetch_busy_ledger_intervals(day, margin_minutes=buffer),
        )

        logger.debug(
            "Fetched %d calendar and %d ledger commitments for %s",
            len(calendar_intervals),
            len(ledger_intervals),
            day,
        )
        return [*calendar_intervals, *ledger_intervals]

    async def get_slots_for_date(self, day: date, duration_minutes: int) -> List[EvaluatedSlot]:
        """Evaluate every slot of ``day`` against fresh commitments."""
        day = require_date(day)
        require_duration(duration_minutes)

        # Closed days need no commitments
        if not self._config.hours.is_open_on(day):
            return []

        busy = await self.fetch_busy_intervals(day)
        return resolve_day(day, duration_minutes, self._config, busy, self._now())

    async def get_open_dates(self, duration_minutes: int) -> List[Date]:
        """List the open dates within the booking window."""
        return resolve_open_dates(duration_minutes, self._config, self._now())

    async def explain_slot(self, candidate_start: datetime, duration_minutes: int) -> SlotRejection | None:
        """
        Re-check one slot against freshly fetched commitments.

        Returns:
            The first failed check, or None when the slot can be booked
        """
        start = require_instant(candidate_start, "candidate_start")
        require_duration(duration_minutes)

        day = start.in_timezone(self._config.timezone).date()
        busy = await self.fetch_busy_intervals(day)

        rejection = explain(start, duration_minutes, self._config, busy, self._now())
        if rejection is not None:
            logger.info("Slot %s rejected: %s", start.to_iso8601_string(), rejection.value)
        return rejection

    async def is_slot_still_available(self, candidate_start: datetime, duration_minutes: int) -> bool:
        """Authoritative pre-commit check for a single slot."""
        return await self.explain_slot(candidate_start, duration_minutes) is None
