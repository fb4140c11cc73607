"""
Booking scheduler - turns a booking request into a persisted session.

Gates run strictly in order and fail fast. Nothing is written before the
calendar event is created except token bookkeeping: a refresh, which is
safe to repeat, or disconnecting a speaker whose refresh token Google rejected.
"""

import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import MAX_TOPICS, SESSION_DURATION_MINUTES
from ...models import SESSION_SCHEDULED, TutoringSession, User
from ...shared.validators import combine_date_time, parse_iso_date, parse_time_to_minutes, utcnow
from ..calendar.gateway import (
    CalendarEventResult,
    CalendarEventSpec,
    GoogleCalendarGateway,
    build_event_description,
)
from ..calendar.oauth import (
    GoogleOAuthClient,
    NotConnectedError,
    OAuthTokenManager,
    TokenError,
    TokenInvalidError,
)
from ..calendar.token_store import TokenStore
from ..speakers.repository import SpeakerRepository
from . import errors
from .availability import is_available, weekday_name, window_for
from .conflicts import find_conflict
from .icebreakers import pick_icebreaker
from .repository import SessionRepository
from .schemas import BookSessionRequest

logger = logging.getLogger(__name__)

Notifier = Callable[[TutoringSession, User, User], Awaitable[dict]]


@dataclass
class ValidatedBooking:
    speaker_ref: str
    title: str
    date: date
    time: str
    start: datetime
    topics: list[str]


@dataclass
class BookingResult:
    session: TutoringSession
    calendar: CalendarEventResult
    emails: dict = field(default_factory=lambda: {"sent": 0, "failed": 0})


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_request(request: BookSessionRequest, now: datetime) -> ValidatedBooking:
    """Field-level checks on the request. Touches no storage."""
    missing = [
        name
        for name, value in (
            ("speakerId", request.speakerId),
            ("title", request.title),
            ("date", request.date),
            ("time", request.time),
        )
        if _is_blank(value)
    ]
    if missing:
        raise errors.missing_fields(missing)

    try:
        parse_time_to_minutes(request.time)
    except ValueError as e:
        raise errors.invalid_time(str(e)) from e

    try:
        session_date = parse_iso_date(request.date)
    except ValueError as e:
        raise errors.invalid_date(str(e)) from e

    start = combine_date_time(session_date, request.time)
    if start <= now:
        raise errors.in_the_past()

    topics = [t.strip() for t in (request.topics or []) if isinstance(t, str) and t.strip()]
    if len(topics) > MAX_TOPICS:
        raise errors.too_many_topics(MAX_TOPICS, len(topics))

    return ValidatedBooking(
        speaker_ref=str(request.speakerId).strip(),
        title=request.title,
        date=session_date,
        time=request.time,
        start=start,
        topics=topics,
    )


def _parse_speaker_id(speaker_ref: str) -> Optional[int]:
    try:
        return int(speaker_ref)
    except ValueError:
        return None


class BookingScheduler:
    """Business logic for booking a session with a speaker"""

    def __init__(
        self,
        db: Session,
        *,
        token_store: Optional[TokenStore] = None,
        token_manager: Optional[OAuthTokenManager] = None,
        gateway: Optional[GoogleCalendarGateway] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.token_store = token_store or TokenStore(db)
        self.token_manager = token_manager or OAuthTokenManager(
            self.token_store, GoogleOAuthClient(), clock=clock
        )
        self.gateway = gateway or GoogleCalendarGateway(rng=rng)
        self.notifier = notifier
        self.clock = clock
        self.rng = rng

    async def book(self, learner_id: int, request: BookSessionRequest) -> BookingResult:
        booking = validate_request(request, self.clock())

        speaker_id = _parse_speaker_id(booking.speaker_ref)
        speaker = SpeakerRepository.get_active_speaker(self.db, speaker_id) if speaker_id else None
        if not speaker:
            raise errors.speaker_unavailable()

        credential = self.token_store.get(speaker.id)
        if not credential.connected:
            raise errors.calendar_not_connected()

        learner = SpeakerRepository.get_user(self.db, learner_id)
        if not learner:
            raise errors.learner_not_found()

        if not is_available(speaker.availability, booking.start, SESSION_DURATION_MINUTES):
            day = weekday_name(booking.start)
            raise errors.outside_availability(day, window_for(speaker.availability, day))

        existing = SessionRepository.get_scheduled_for_speaker_on_date(self.db, speaker.id, booking.date)
        conflict = find_conflict(existing, booking.time, SESSION_DURATION_MINUTES)
        if conflict:
            raise errors.slot_taken(conflict.time)

        access_token = await self._acquire_token(credential)

        icebreaker = pick_icebreaker(self.rng)
        event_spec = CalendarEventSpec(
            summary=f"SpeakHub Session: {booking.title}",
            description=build_event_description(
                speaker.full_name, learner.full_name, booking.topics, icebreaker
            ),
            start=booking.start,
            end=booking.start + timedelta(minutes=SESSION_DURATION_MINUTES),
            attendees=[speaker.email, learner.email],
        )
        calendar = await self.gateway.create_event(access_token, event_spec)
        if calendar.unauthorized:
            # Stored token looked valid but Google refused it: refresh once and retry
            fresh_token = await self._refresh_rejected_token(credential)
            if fresh_token:
                access_token = fresh_token
                calendar = await self.gateway.create_event(access_token, event_spec)
        if not calendar.success:
            logger.warning(
                f"Booking with speaker {speaker.id} continues with fallback meeting link: {calendar.error}"
            )

        session = await self._persist(booking, speaker, learner, icebreaker, calendar, access_token)
        logger.info(
            f"Session {session.id} booked: speaker {speaker.id}, learner {learner.id}, "
            f"{session.date} {session.time}, calendar_created={calendar.success}"
        )

        emails = await self._notify(session, speaker, learner)
        return BookingResult(session=session, calendar=calendar, emails=emails)

    async def _acquire_token(self, credential) -> str:
        try:
            return await self.token_manager.obtain_valid_token(credential)
        except NotConnectedError as e:
            raise errors.calendar_not_connected() from e
        except TokenInvalidError as e:
            # Refresh token is dead; the speaker must go through consent again
            self.token_store.disconnect(credential.speaker_id)
            raise errors.calendar_auth_failure(reconnect_required=True) from e
        except TokenError as e:
            logger.error(f"Calendar token unavailable for speaker {credential.speaker_id}: {e}")
            raise errors.calendar_auth_failure(reconnect_required=False) from e

    async def _refresh_rejected_token(self, credential) -> Optional[str]:
        """Forced refresh after a 401 from Calendar. None means keep the fallback link."""
        try:
            return await self.token_manager.obtain_valid_token(credential, force_refresh=True)
        except TokenInvalidError:
            self.token_store.disconnect(credential.speaker_id)
            logger.warning(f"Speaker {credential.speaker_id} calendar disconnected after token rejection")
            return None
        except TokenError as e:
            logger.warning(f"Token refresh after Calendar 401 failed for speaker {credential.speaker_id}: {e}")
            return None

    async def _persist(
        self,
        booking: ValidatedBooking,
        speaker: User,
        learner: User,
        icebreaker: str,
        calendar: CalendarEventResult,
        access_token: str,
    ) -> TutoringSession:
        """Insert the session under the speaker lock, re-checking for a booking that won the race"""
        try:
            SessionRepository.lock_speaker(self.db, speaker.id)
            existing = SessionRepository.get_scheduled_for_speaker_on_date(self.db, speaker.id, booking.date)
            conflict = find_conflict(existing, booking.time, SESSION_DURATION_MINUTES)
            if conflict:
                raise errors.slot_taken(conflict.time)

            return SessionRepository.create_session(
                self.db,
                title=booking.title,
                speaker_id=speaker.id,
                learner_id=learner.id,
                date=booking.date,
                time=booking.time,
                duration=SESSION_DURATION_MINUTES,
                status=SESSION_SCHEDULED,
                topics=booking.topics,
                icebreaker=icebreaker,
                meeting_link=calendar.meeting_link,
                calendar_event_id=calendar.event_id,
            )
        except errors.StateConflictError:
            self.db.rollback()
            await self._discard_event(access_token, calendar)
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent booking for speaker {speaker.id} at {booking.date} {booking.time}")
            await self._discard_event(access_token, calendar)
            raise errors.slot_taken(booking.time) from e

    async def _discard_event(self, access_token: str, calendar: CalendarEventResult) -> None:
        if calendar.success and calendar.event_id:
            await self.gateway.delete_event(access_token, calendar.event_id)

    async def _notify(self, session: TutoringSession, speaker: User, learner: User) -> dict:
        if not self.notifier:
            return {"sent": 0, "failed": 0}
        try:
            return await self.notifier(session, speaker, learner)
        except Exception as e:
            logger.warning(f"Confirmation emails for session {session.id} failed: {e}")
            return {"sent": 0, "failed": 2}
