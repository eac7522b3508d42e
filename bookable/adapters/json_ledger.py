"""
Reservation ledger stored as a JSON file.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List

import pendulum

from ..domain.exceptions import SourceUnavailable
from ..domain.models import BusyInterval, BusySource, TimeRange

logger = logging.getLogger(__name__)

# Bookings in these states no longer hold their slot
RELEASED_STATUSES = frozenset({"cancelled", "failed"})


class JsonLedgerSource:
    """
    Reads booking records from a JSON list.

    Record format:
    {
        "id": "bk_123",
        "appointment_datetime": "2026-10-20T14:00:00Z",
        "duration_minutes": 60,
        "status": "confirmed"
    }
    """

    def __init__(self, path: Path, timezone: str):
        """
        Initialize the ledger source.

        Args:
            path: JSON file holding the booking records
            timezone: Business IANA timezone; dates are business-local days
        """
        self.path = path
        self.timezone = timezone

    def _load_records(self) -> List[Dict[str, Any]]:
        # No ledger file yet means no bookings yet
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceUnavailable(f"Could not read booking ledger {self.path}: {e}") from e

        if not isinstance(records, list):
            raise SourceUnavailable(f"Booking ledger {self.path} must contain a list of bookings")
        return records

    def _to_interval(self, record: Dict[str, Any]) -> BusyInterval:
        start = pendulum.parse(record["appointment_datetime"], tz=self.timezone)
        duration = int(record["duration_minutes"])
        if duration <= 0:
            raise ValueError(f"duration_minutes must be positive, got {duration}")

        return BusyInterval(
            start=start,
            end=start.add(minutes=duration),
            source=BusySource.LEDGER,
            cancelled=str(record.get("status", "")).lower() in RELEASED_STATUSES,
            reference=str(record.get("id", "")),
        )

    async def fetch_busy_ledger_intervals(self, day: date, margin_minutes: int = 0) -> List[BusyInterval]:
        """
        Get bookings whose appointment touches the business-local ``day``.

        ``margin_minutes`` widens the day on both sides so bookings that end
        shortly before midnight still count against an early buffered slot.

        Raises:
            SourceUnavailable: If the ledger or one of its records is malformed
        """
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        window = TimeRange(
            start=day_start.subtract(minutes=margin_minutes),
            end=day_start.add(days=1).add(minutes=margin_minutes),
        )

        busy: List[BusyInterval] = []
        for index, record in enumerate(self._load_records()):
            try:
                interval = self._to_interval(record)
            except (KeyError, TypeError, ValueError) as e:
                raise SourceUnavailable(f"Invalid booking #{index} in {self.path}: {e}") from e

            if interval.blocks(window):
                busy.append(interval)

        logger.debug("Loaded %d ledger bookings for %s", len(busy), day)
        return busy
