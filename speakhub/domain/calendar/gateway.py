"""
Google Calendar Gateway
Creates session events with a Google Meet link and removes them on cancellation
"""
import logging
import random
import string
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx

from ...config import GOOGLE_HTTP_TIMEOUT_SECONDS
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
MEET_BASE_URL = "https://meet.google.com"


class CalendarRequestError(RuntimeError):
    """Google Calendar API returned a non-success response"""

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Google Calendar API request failed ({status_code}): {message}")


@dataclass
class CalendarEventSpec:
    summary: str
    description: str
    start: datetime  # naive UTC
    end: datetime  # naive UTC
    attendees: list[str] = field(default_factory=list)
    calendar_id: str = "primary"


@dataclass
class CalendarEventResult:
    success: bool
    meeting_link: str
    event_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None  # provider status when Google refused the request

    @property
    def unauthorized(self) -> bool:
        """Google rejected the access token itself"""
        return not self.success and self.status_code == 401


def generate_meet_link(rng: Optional[random.Random] = None) -> str:
    """Locally synthesised Meet-style link, e.g. https://meet.google.com/abc-def-ghi"""
    rng = rng or random.Random()
    groups = ["".join(rng.choice(string.ascii_lowercase) for _ in range(3)) for _ in range(3)]
    return f"{MEET_BASE_URL}/{'-'.join(groups)}"


def build_event_description(
    speaker_name: str,
    learner_name: str,
    topics: list[str],
    icebreaker: Optional[str],
) -> str:
    lines = ["Session Details:", f"- Speaker: {speaker_name}", f"- Learner: {learner_name}"]
    if topics:
        lines.append(f"- Topics: {', '.join(topics)}")
    if icebreaker:
        lines.append(f"- Icebreaker: {icebreaker}")
    lines.extend(["", "Join the meeting using the link below."])
    return "\n".join(lines)


def extract_meet_link(event: dict) -> Optional[str]:
    conference = event.get("conferenceData") or {}
    for entry_point in conference.get("entryPoints") or []:
        if entry_point.get("entryPointType", "video") == "video" and entry_point.get("uri"):
            return entry_point["uri"]
    return event.get("hangoutLink")


class GoogleCalendarGateway:
    """Calendar operations for one request. Never raises to the caller."""

    def __init__(
        self,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = GOOGLE_HTTP_TIMEOUT_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        self.retry_policy = retry_policy or RetryPolicy()
        self._transport = transport
        self._timeout = timeout
        self._rng = rng or random.Random()

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _event_body(self, spec: CalendarEventSpec) -> dict:
        return {
            "summary": spec.summary,
            "description": spec.description,
            "start": {"dateTime": spec.start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": spec.end.isoformat(), "timeZone": "UTC"},
            "attendees": [{"email": email} for email in spec.attendees if email],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},  # 1 day before
                    {"method": "popup", "minutes": 15},
                ],
            },
            "conferenceData": {
                "createRequest": {
                    "requestId": f"session-{uuid.uuid4().hex}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }

    async def _insert_event(self, access_token: str, spec: CalendarEventSpec) -> dict:
        async with self._http_client() as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{spec.calendar_id}/events",
                params={"conferenceDataVersion": 1, "sendUpdates": "all"},
                headers={"Authorization": f"Bearer {access_token}"},
                json=self._event_body(spec),
            )

        if response.status_code not in (200, 201):
            raise CalendarRequestError(status_code=response.status_code, message=response.text[:200])
        return response.json()

    async def create_event(self, access_token: str, spec: CalendarEventSpec) -> CalendarEventResult:
        """
        Create the event with an auto-generated Meet link.
        On any failure a fallback link is returned with success=False so booking can go ahead.
        """
        try:
            event = await self.retry_policy.run(
                lambda: self._insert_event(access_token, spec), description="Google Calendar event insert"
            )
        except Exception as e:
            logger.warning(f"Calendar event creation failed, using fallback Meet link: {e}")
            return CalendarEventResult(
                success=False,
                meeting_link=generate_meet_link(self._rng),
                error=str(e),
                status_code=getattr(e, "status_code", None),
            )

        event_id = event.get("id")
        meeting_link = extract_meet_link(event) or generate_meet_link(self._rng)
        logger.info(f"Google Calendar event created: {event_id}")
        return CalendarEventResult(success=True, meeting_link=meeting_link, event_id=event_id)

    async def _remove_event(self, access_token: str, event_id: str, calendar_id: str) -> None:
        async with self._http_client() as client:
            response = await client.delete(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{event_id}",
                params={"sendUpdates": "all"},
                headers={"Authorization": f"Bearer {access_token}"},
            )

        # 404/410: already gone
        if response.status_code not in (200, 204, 404, 410):
            raise CalendarRequestError(status_code=response.status_code, message=response.text[:200])

    async def delete_event(self, access_token: str, event_id: str, calendar_id: str = "primary") -> bool:
        """Remove an event. Returns False instead of raising when Google refuses."""
        try:
            await self.retry_policy.run(
                lambda: self._remove_event(access_token, event_id, calendar_id),
                description="Google Calendar event delete",
            )
        except Exception as e:
            logger.warning(f"Failed to delete Google Calendar event {event_id}: {e}")
            return False

        logger.info(f"Google Calendar event deleted: {event_id}")
        return True
