import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta

import requests

from eventcrew.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"
TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)?$", re.IGNORECASE)


def parse_event_start(event_date, event_time=None):
    """Combine a date and a loose time string ("6pm", "18:00") into a datetime.

    Untimed events start at 9am.
    """
    start = time(9, 0)
    match = TIME_RE.match((event_time or "").strip())
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        period = (match.group(3) or "").lower()
        if period == "pm" and hours < 12:
            hours += 12
        elif period == "am" and hours == 12:
            hours = 0
        if hours < 24 and minutes < 60:
            start = time(hours, minutes)
    return datetime.combine(event_date, start)


class CalendarClient(ABC):
    @abstractmethod
    def create_event(self, summary, description, start):
        """Create an event and return its opaque identifier."""

    @abstractmethod
    def update_event(self, event_id, summary, description):
        ...


class GoogleCalendarClient(CalendarClient):
    event_length = timedelta(hours=4)

    def __init__(self, credentials, calendar_id="primary", timezone="Pacific/Auckland", timeout=15):
        self.credentials = credentials
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.timeout = timeout

    def _url(self, event_id=None):
        url = EVENTS_URL.format(calendar_id=self.calendar_id)
        return f"{url}/{event_id}" if event_id else url

    def create_event(self, summary, description, start):
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": (start + self.event_length).isoformat(), "timeZone": self.timezone},
        }
        try:
            response = requests.post(
                self._url(), headers=self.credentials.headers(), json=body, timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()["id"]
        except (requests.exceptions.RequestException, ValueError, KeyError) as exc:
            raise UpstreamUnavailable("Calendar event could not be created.") from exc

    def update_event(self, event_id, summary, description):
        try:
            response = requests.patch(
                self._url(event_id),
                headers=self.credentials.headers(),
                json={"summary": summary, "description": description},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise UpstreamUnavailable("Calendar event could not be updated.") from exc


class UnconfiguredCalendar(CalendarClient):
    def create_event(self, summary, description, start):
        raise UpstreamUnavailable("Calendar is not configured.")

    def update_event(self, event_id, summary, description):
        raise UpstreamUnavailable("Calendar is not configured.")
