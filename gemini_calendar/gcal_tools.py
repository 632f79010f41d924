# gemini_calendar/gcal_tools.py
"""
Google Calendar backend used by the tool layer.

Rules:
- Read and write a single calendar (the primary one unless configured otherwise)
- Never delete or patch events
- Every API failure surfaces as CalendarBackendError so the caller can turn
  it into a tool error instead of crashing the chat
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List

import httplib2
import google_auth_httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from gemini_calendar.errors import CalendarBackendError
from gemini_calendar.timefmt import parse_rfc3339, to_rfc3339

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarEvent:
    """
    The subset of a Google Calendar event the model gets to see.

    start/end are RFC3339 strings for timed events and YYYY-MM-DD for all-day events.
    """
    id: str
    summary: str
    description: str
    start: str
    end: str

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "CalendarEvent":
        start = item.get("start", {})
        end = item.get("end", {})
        return cls(
            id=item.get("id", ""),
            summary=item.get("summary", ""),
            description=item.get("description", ""),
            start=start.get("dateTime") or start.get("date", ""),
            end=end.get("dateTime") or end.get("date", ""),
        )

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


def _start_key(event: CalendarEvent, tz) -> datetime:
    # All-day events only carry a date; treat them as starting at midnight in the comparison timezone.
    if "T" in event.start:
        return parse_rfc3339(event.start)
    return datetime.fromisoformat(event.start).replace(tzinfo=tz)


def build_calendar_service(credentials, timeout: float = 30.0):
    """
    Return a Google Calendar API client whose HTTP calls time out after `timeout` seconds.
    """
    http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("calendar", "v3", http=http, cache_discovery=False)


class CalendarBackend:
    """
    Thin wrapper over the discovery client's events() resource.

    `service` is whatever build_calendar_service returned, or any object
    with the same events().list/insert(...).execute() shape.
    """

    def __init__(
        self,
        service,
        calendar_id: str = "primary",
        timezone: str = "Asia/Tokyo",
        num_retries: int = 2,
    ) -> None:
        self.service = service
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.num_retries = num_retries

    def list_upcoming_events(self, after: datetime, max_results: int) -> List[CalendarEvent]:
        """
        Events starting at or after `after`, earliest first, at most `max_results`.

        Recurring events are expanded into individual instances so each
        occurrence counts against the limit.
        """
        if max_results < 0:
            raise ValueError("max_results must be >= 0")
        if max_results == 0:
            # The API rejects maxResults=0.
            return []

        tz = after.tzinfo
        upcoming: List[CalendarEvent] = []
        dropped = 0
        page_token = None

        # timeMin filters on END time, so events already in progress come back
        # too and use up page slots. Keep paging until enough real upcoming
        # events are collected.
        while len(upcoming) < max_results:
            try:
                resp = (
                    self.service.events()
                    .list(
                        calendarId=self.calendar_id,
                        timeMin=to_rfc3339(after),
                        maxResults=max_results,
                        singleEvents=True,       # Expand recurring events into individual instances
                        orderBy="startTime",     # Requires singleEvents=True
                        pageToken=page_token,
                    )
                    .execute(num_retries=self.num_retries)
                )
            except HttpError as e:
                raise CalendarBackendError(f"failed to retrieve events: {e}") from e
            except (OSError, httplib2.HttpLib2Error) as e:
                raise CalendarBackendError(f"failed to retrieve events: {e}") from e

            for item in resp.get("items", []):
                ev = CalendarEvent.from_api(item)
                if _start_key(ev, tz) >= after:
                    upcoming.append(ev)
                else:
                    dropped += 1

            page_token = resp.get("nextPageToken")
            if not page_token:
                break

        if dropped:
            logger.debug("Dropped %d in-progress events", dropped)
        upcoming.sort(key=lambda ev: _start_key(ev, tz))
        return upcoming[:max_results]

    def insert_event(self, summary: str, description: str, start: str, end: str) -> str:
        """
        Insert one event and return its htmlLink.

        start/end are RFC3339 strings; the configured timezone is attached so
        Google renders the event in the user's zone.
        """
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start, "timeZone": self.timezone},
            "end": {"dateTime": end, "timeZone": self.timezone},
        }
        try:
            created = (
                self.service.events()
                .insert(calendarId=self.calendar_id, body=body)
                .execute(num_retries=self.num_retries)
            )
        except HttpError as e:
            raise CalendarBackendError(f"failed to create event: {e}") from e
        except (OSError, httplib2.HttpLib2Error) as e:
            raise CalendarBackendError(f"failed to create event: {e}") from e

        logger.info("Created event %s", created.get("id"))
        return created.get("htmlLink", "")
