"""Session domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from ...models import TutoringSession, User


class BookSessionRequest(BaseModel):
    """
    Booking request body. Fields are optional at the schema level so the
    scheduler can report missing ones with a single typed error.
    """

    model_config = ConfigDict(extra="ignore")

    speakerId: Optional[Union[int, str]] = None
    title: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM
    topics: Optional[list[Optional[str]]] = None

    @field_validator("title", "date", "time")
    @classmethod
    def strip_strings(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class CancelSessionRequest(BaseModel):
    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v):
        if v is not None:
            v = v.strip()
            return v or None
        return v


class PartySummary(BaseModel):
    id: int
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None


class SessionResponse(BaseModel):
    """Schema for session response"""

    id: int
    title: str
    speakerId: int
    learnerId: int
    speaker: Optional[PartySummary] = None
    learner: Optional[PartySummary] = None
    date: str
    time: str
    duration: int
    status: str
    topics: list[str]
    icebreaker: Optional[str] = None
    meetingLink: Optional[str] = None
    cancellationReason: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    cancelledBy: Optional[int] = None
    createdAt: Optional[datetime] = None


class CalendarOutcome(BaseModel):
    created: bool
    meetLink: str
    eventId: Optional[str] = None
    error: Optional[str] = None


class EmailOutcome(BaseModel):
    sent: int = 0
    failed: int = 0


class BookingData(BaseModel):
    session: SessionResponse
    calendar: CalendarOutcome
    emails: EmailOutcome


class BookingResponse(BaseModel):
    success: bool = True
    message: str = "Session booked successfully"
    data: BookingData


class CancellationResponse(BaseModel):
    success: bool = True
    message: str = "Session cancelled successfully"
    session: SessionResponse
    calendarEventRemoved: bool = False


class DashboardResponse(BaseModel):
    upcomingSessions: list[SessionResponse]
    pastSessions: list[SessionResponse]
    profile: dict


def party_summary(user: Optional[User]) -> Optional[PartySummary]:
    if user is None:
        return None
    return PartySummary(id=user.id, firstName=user.first_name, lastName=user.last_name, email=user.email)


def session_to_response(session: TutoringSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        title=session.title,
        speakerId=session.speaker_id,
        learnerId=session.learner_id,
        speaker=party_summary(session.speaker),
        learner=party_summary(session.learner),
        date=session.date.isoformat(),
        time=session.time,
        duration=session.duration,
        status=session.status,
        topics=list(session.topics or []),
        icebreaker=session.icebreaker,
        meetingLink=session.meeting_link,
        cancellationReason=session.cancellation_reason,
        cancelledAt=session.cancelled_at,
        cancelledBy=session.cancelled_by,
        createdAt=session.created_at,
    )
