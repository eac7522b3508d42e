"""
Microsoft Graph API calendar feed for busy intervals.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import SourceUnavailable
from ..domain.models import BusyInterval, BusySource

logger = logging.getLogger(__name__)


class GraphCalendarSource:
    """
    Calendar feed backed by Microsoft Graph.

    Uses the /calendarView endpoint, which expands recurring series into
    single occurrences inside the requested window.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
    SELECT_FIELDS = "id,subject,start,end,isAllDay,isCancelled,showAs"
    PAGE_SIZE = 100

    def __init__(
        self,
        access_token: str,
        timezone: str,
        calendar_user: str = "me",
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        """
        Initialize the Graph calendar source.

        Args:
            access_token: Valid Microsoft Graph access token
            timezone: Business IANA timezone, used for all-day events
            calendar_user: "me" or the user principal name owning the calendar
            session: Optional requests session (injected in tests)
            timeout: Per-request timeout in seconds
        """
        self.timezone = timezone
        self.calendar_user = calendar_user
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    @property
    def calendar_view_url(self) -> str:
        if self.calendar_user == "me":
            return f"{self.GRAPH_API_ENDPOINT}/me/calendarView"
        return f"{self.GRAPH_API_ENDPOINT}/users/{self.calendar_user}/calendarView"

    async def fetch_busy_calendar_intervals(
        self,
        start: DateTime,
        end: DateTime,
    ) -> List[BusyInterval]:
        """Fetch busy intervals in [start, end) without blocking the event loop."""
        return await asyncio.to_thread(self.get_busy_intervals, start, end)

    def get_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        """
        Get calendar events overlapping the window as busy intervals.

        Args:
            start: Start of the time window
            end: End of the time window

        Returns:
            List of BusyInterval objects (cancelled events flagged, not dropped)

        Raises:
            SourceUnavailable: If the API call fails or returns unusable data
        """
        params: Optional[Dict[str, Any]] = {
            "startDateTime": start.in_timezone("UTC").to_iso8601_string(),
            "endDateTime": end.in_timezone("UTC").to_iso8601_string(),
            "$select": self.SELECT_FIELDS,
            "$orderby": "start/dateTime",
            "$top": self.PAGE_SIZE,
        }
        url: Optional[str] = self.calendar_view_url
        events: List[Dict[str, Any]] = []

        while url:
            try:
                response = self.session.get(
                    url,
                    headers=self.headers,
                    params=params,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                raise SourceUnavailable(f"Failed to fetch calendar events from Microsoft Graph: {e}") from e
            except ValueError as e:
                raise SourceUnavailable(f"Microsoft Graph returned invalid JSON: {e}") from e

            events.extend(data.get("value", []))

            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        logger.debug("Fetched %d calendar events between %s and %s", len(events), start, end)
        return self._parse_events(events)

    def _parse_events(self, events: List[Dict[str, Any]]) -> List[BusyInterval]:
        """
        Parse calendarView events into busy intervals.

        Event format:
        {
            "id": "AAMk...",
            "isAllDay": false,
            "isCancelled": false,
            "showAs": "busy",
            "start": {"dateTime": "2026-10-20T13:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2026-10-20T14:00:00.0000000", "timeZone": "UTC"}
        }
        """
        busy: List[BusyInterval] = []

        for event in events:
            # Free time on the calendar does not block bookings
            if str(event.get("showAs", "busy")).lower() == "free":
                continue

            try:
                if event.get("isAllDay"):
                    start = self._parse_all_day(event["start"]["dateTime"])
                    end = self._parse_all_day(event["end"]["dateTime"])
                else:
                    start = self._parse_datetime(event["start"]["dateTime"], event["start"].get("timeZone", "UTC"))
                    end = self._parse_datetime(event["end"]["dateTime"], event["end"].get("timeZone", "UTC"))

                busy.append(
                    BusyInterval(
                        start=start,
                        end=end,
                        source=BusySource.CALENDAR,
                        cancelled=bool(event.get("isCancelled", False)),
                        reference=event.get("id", ""),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise SourceUnavailable(
                    f"Could not parse calendar event {event.get('id', '<unknown>')}: {e}"
                ) from e

        return busy

    def _parse_datetime(self, datetime_str: str, timezone: str) -> DateTime:
        """
        Parse a Graph dateTime string to a pendulum DateTime.

        Graph sends seven fractional digits; Python keeps six.
        """
        base, _, fraction = datetime_str.partition(".")
        if fraction:
            datetime_str = f"{base}.{fraction[:6]}"

        dt = pendulum.parse(datetime_str, tz=timezone)

        if isinstance(dt, DateTime):
            return dt

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def _parse_all_day(self, datetime_str: str) -> DateTime:
        """All-day events cover whole business-local days."""
        day = pendulum.parse(datetime_str[:10]).date()
        return pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
