"""Session router - booking, dashboards and cancellation endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import get_current_learner, get_current_speaker
from ...config import BOOKING_RATE_LIMIT, BOOKING_RATE_WINDOW_SECONDS
from ...database import get_db
from ...email_service import send_session_booked_emails
from ...models import User
from ...rate_limiter import create_rate_limiter
from .scheduler import BookingScheduler
from .schemas import (
    BookingData,
    BookingResponse,
    BookSessionRequest,
    CalendarOutcome,
    CancellationResponse,
    CancelSessionRequest,
    DashboardResponse,
    EmailOutcome,
    SessionResponse,
    session_to_response,
)
from .service import SessionService

logger = logging.getLogger(__name__)

learner_router = APIRouter(prefix="/learner", tags=["Learner Sessions"])
speaker_router = APIRouter(prefix="/speaker", tags=["Speaker Sessions"])

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=BOOKING_RATE_WINDOW_SECONDS, key_prefix="booking"
)


def get_booking_scheduler(db: Session = Depends(get_db)) -> BookingScheduler:
    """Dependency injection for BookingScheduler"""
    return BookingScheduler(db, notifier=send_session_booked_emails)


def get_session_service(db: Session = Depends(get_db)) -> SessionService:
    """Dependency injection for SessionService"""
    return SessionService(db)


def _profile(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "bio": user.bio,
        "interests": list(user.interests or []),
    }


def _dashboard(service: SessionService, user: User, role_column: str) -> DashboardResponse:
    data = service.get_dashboard(user, role_column)
    return DashboardResponse(
        upcomingSessions=[session_to_response(s) for s in data["upcoming"]],
        pastSessions=[session_to_response(s) for s in data["past"]],
        profile={**_profile(user), "stats": data["stats"]},
    )


# ============================================================================
# LEARNER
# ============================================================================


@learner_router.post("/sessions", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@learner_router.post(
    "/book-session",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def book_session(
    data: BookSessionRequest,
    current_user: User = Depends(get_current_learner),
    scheduler: BookingScheduler = Depends(get_booking_scheduler),
    _: None = Depends(booking_rate_limit),
):
    """Book a 30-minute session with a speaker"""
    result = await scheduler.book(current_user.id, data)
    return BookingResponse(
        data=BookingData(
            session=session_to_response(result.session),
            calendar=CalendarOutcome(
                created=result.calendar.success,
                meetLink=result.calendar.meeting_link,
                eventId=result.calendar.event_id,
                error=result.calendar.error,
            ),
            emails=EmailOutcome(**result.emails),
        )
    )


@learner_router.get("/dashboard", response_model=DashboardResponse)
async def learner_dashboard(
    current_user: User = Depends(get_current_learner),
    service: SessionService = Depends(get_session_service),
):
    return _dashboard(service, current_user, "learner_id")


@learner_router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_learner_session(
    session_id: int,
    current_user: User = Depends(get_current_learner),
    service: SessionService = Depends(get_session_service),
):
    return session_to_response(service.get_session_for_party(session_id, current_user.id))


@learner_router.put("/sessions/{session_id}/cancel", response_model=CancellationResponse)
async def cancel_learner_session(
    session_id: int,
    data: Optional[CancelSessionRequest] = None,
    current_user: User = Depends(get_current_learner),
    service: SessionService = Depends(get_session_service),
):
    session, removed = await service.cancel_session(
        session_id, current_user.id, "learner_id", data.reason if data else None
    )
    return CancellationResponse(session=session_to_response(session), calendarEventRemoved=removed)


# ============================================================================
# SPEAKER
# ============================================================================


@speaker_router.get("/dashboard", response_model=DashboardResponse)
async def speaker_dashboard(
    current_user: User = Depends(get_current_speaker),
    service: SessionService = Depends(get_session_service),
):
    return _dashboard(service, current_user, "speaker_id")


@speaker_router.put("/sessions/{session_id}/cancel", response_model=CancellationResponse)
async def cancel_speaker_session(
    session_id: int,
    data: Optional[CancelSessionRequest] = None,
    current_user: User = Depends(get_current_speaker),
    service: SessionService = Depends(get_session_service),
):
    session, removed = await service.cancel_session(
        session_id, current_user.id, "speaker_id", data.reason if data else None
    )
    return CancellationResponse(session=session_to_response(session), calendarEventRemoved=removed)
