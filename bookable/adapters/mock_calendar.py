"""
File-backed calendar feed for running without Microsoft Graph.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import SourceUnavailable
from ..domain.models import BusyInterval, BusySource, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarSource:
    """
    Calendar feed that reads events from a JSON file.

    Each event is a mapping with ``start`` and ``end`` (ISO 8601; values
    without an offset are read in the business timezone) and an optional
    ``status`` of ``"cancelled"``.
    """

    def __init__(self, timezone: str, data_file: Optional[Path] = None):
        """
        Initialize the mock calendar.

        Args:
            timezone: Business IANA timezone for offset-less timestamps
            data_file: Optional JSON file, defaults to the bundled sample data
        """
        self.timezone = timezone
        self.data_file = data_file or DEFAULT_DATA_FILE

    def _load_events(self) -> List[Dict[str, Any]]:
        if not self.data_file.exists():
            return []

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                events = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceUnavailable(f"Could not read calendar data {self.data_file}: {e}") from e

        if not isinstance(events, list):
            raise SourceUnavailable(f"Calendar data {self.data_file} must contain a list of events")
        return events

    async def fetch_busy_calendar_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        """
        Load events from the data file that overlap [start, end).

        Raises:
            SourceUnavailable: If the file or one of its events is malformed
        """
        window = TimeRange(start=start, end=end)
        busy: List[BusyInterval] = []

        for index, event in enumerate(self._load_events()):
            try:
                event_start = pendulum.parse(event["start"], tz=self.timezone)
                event_end = pendulum.parse(event["end"], tz=self.timezone)
                interval = BusyInterval(
                    start=event_start,
                    end=event_end,
                    source=BusySource.CALENDAR,
                    cancelled=str(event.get("status", "")).lower() == "cancelled",
                    reference=str(event.get("id", index)),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise SourceUnavailable(f"Invalid calendar event #{index} in {self.data_file}: {e}") from e

            if interval.blocks(window):
                busy.append(interval)

        logger.debug("Loaded %d mock calendar events for %s - %s", len(busy), start, end)
        return busy
