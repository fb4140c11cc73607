"""Tests for the minimum-notice cancellation policy and SessionService cancellation."""

from __future__ import annotations

import random
from datetime import date, timedelta

import pytest

from speakhub.domain.calendar.gateway import GoogleCalendarGateway
from speakhub.domain.calendar.oauth import GoogleOAuthClient, OAuthTokenManager
from speakhub.domain.calendar.token_store import TokenStore
from speakhub.domain.sessions import errors
from speakhub.domain.sessions.cancellation import CancellationPolicy
from speakhub.domain.sessions.service import SessionService
from speakhub.models import TutoringSession

from .conftest import MONDAY, NOW

pytestmark = pytest.mark.unit


@pytest.fixture
def book(db, speaker, learner):
    def _book(day: date = MONDAY, time: str = "10:00", **overrides) -> TutoringSession:
        fields = {
            "title": "Small talk",
            "speaker_id": speaker.id,
            "learner_id": learner.id,
            "date": day,
            "time": time,
            "duration": 30,
            "status": "scheduled",
            "topics": [],
            "meeting_link": "https://meet.google.com/abc-def-ghi",
        }
        fields.update(overrides)
        session = TutoringSession(**fields)
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    return _book


@pytest.fixture
def policy(clock):
    return CancellationPolicy(min_notice_hours=24, clock=clock)


@pytest.fixture
def service(db, clock, google, retry_policy):
    store = TokenStore(db)
    oauth = GoogleOAuthClient(
        "cid", "secret", "http://localhost/cb", retry_policy=retry_policy, transport=google.transport, clock=clock
    )
    return SessionService(
        db,
        token_store=store,
        token_manager=OAuthTokenManager(store, oauth, clock=clock),
        gateway=GoogleCalendarGateway(retry_policy=retry_policy, transport=google.transport, rng=random.Random(1)),
        policy=CancellationPolicy(min_notice_hours=24, clock=clock),
        clock=clock,
        delete_remote_on_cancel=True,
    )


# ---------------------------------------------------------------------------
# CancellationPolicy
# ---------------------------------------------------------------------------


class TestCancellationPolicy:
    def test_cancel_with_enough_notice(self, policy, book, learner, clock):
        session = book(day=MONDAY + timedelta(days=2))
        policy.cancel(session, learner.id, "Feeling unwell")

        assert session.status == "cancelled"
        assert session.cancellation_reason == "Feeling unwell"
        assert session.cancelled_at == clock()
        assert session.cancelled_by == learner.id

    def test_speaker_may_cancel(self, policy, book, speaker):
        session = book(day=MONDAY + timedelta(days=2))
        policy.cancel(session, speaker.id)
        assert session.cancelled_by == speaker.id
        assert session.cancellation_reason is None

    def test_scenario_twenty_hours_is_too_late(self, policy, book, learner):
        # NOW is Sunday 12:00, so Monday 08:00 is 20 hours away
        session = book(time="08:00")
        with pytest.raises(errors.StateConflictError) as exc_info:
            policy.cancel(session, learner.id)

        assert exc_info.value.code == "too_late_to_cancel"
        assert exc_info.value.detail["hoursUntilSession"] == 20.0
        assert exc_info.value.detail["minimumNoticeHours"] == 24
        assert session.status == "scheduled"

    def test_remaining_hours_are_rounded(self, policy, book, learner):
        session = book(time="09:20")
        with pytest.raises(errors.StateConflictError) as exc_info:
            policy.cancel(session, learner.id)
        assert exc_info.value.detail["hoursUntilSession"] == 21.3

    def test_exactly_twenty_four_hours_is_allowed(self, policy, book, learner):
        session = book(time="12:00")
        policy.cancel(session, learner.id)
        assert session.status == "cancelled"

    def test_already_started(self, policy, book, learner, clock):
        session = book(day=NOW.date(), time="11:45")
        with pytest.raises(errors.StateConflictError) as exc_info:
            policy.cancel(session, learner.id)
        assert exc_info.value.code == "already_started"

    def test_start_instant_counts_as_started(self, policy, book, learner):
        session = book(day=NOW.date(), time="12:00")
        with pytest.raises(errors.StateConflictError) as exc_info:
            policy.cancel(session, learner.id)
        assert exc_info.value.code == "already_started"

    def test_stranger_cannot_cancel(self, policy, book, make_user):
        session = book(day=MONDAY + timedelta(days=2))
        with pytest.raises(errors.StateConflictError) as exc_info:
            policy.cancel(session, make_user().id)
        assert exc_info.value.code == "not_cancellable"

    @pytest.mark.parametrize("status", ["cancelled", "completed"])
    def test_only_scheduled_sessions(self, policy, book, learner, status):
        session = book(day=MONDAY + timedelta(days=2), status=status)
        with pytest.raises(errors.StateConflictError) as exc_info:
            policy.cancel(session, learner.id)
        assert exc_info.value.code == "not_cancellable"
        assert exc_info.value.detail["status"] == status


# ---------------------------------------------------------------------------
# SessionService.cancel_session
# ---------------------------------------------------------------------------


class TestCancelSession:
    async def test_removes_remote_event(self, db, service, book, learner, speaker, connect_calendar, google):
        connect_calendar(speaker)
        session = book(day=MONDAY + timedelta(days=2), calendar_event_id="evt-123")

        cancelled, removed = await service.cancel_session(session.id, learner.id, "learner_id", "Busy")

        assert cancelled.status == "cancelled"
        assert removed is True
        assert google.count("DELETE", "/events/evt-123") == 1
        assert db.get(TutoringSession, session.id).status == "cancelled"

    async def test_remote_failure_keeps_local_cancellation(
        self, db, service, book, learner, speaker, connect_calendar, google
    ):
        connect_calendar(speaker)
        google.delete_response = (403, {"error": "forbidden"})
        session = book(day=MONDAY + timedelta(days=2), calendar_event_id="evt-123")

        cancelled, removed = await service.cancel_session(session.id, learner.id, "learner_id")

        assert removed is False
        assert db.get(TutoringSession, session.id).status == "cancelled"

    async def test_disconnected_speaker_skips_remote_delete(self, service, book, learner, google):
        session = book(day=MONDAY + timedelta(days=2), calendar_event_id="evt-123")
        cancelled, removed = await service.cancel_session(session.id, learner.id, "learner_id")
        assert cancelled.status == "cancelled"
        assert removed is False
        assert google.requests == []

    async def test_session_without_event(self, service, book, speaker, google):
        session = book(day=MONDAY + timedelta(days=2))
        _, removed = await service.cancel_session(session.id, speaker.id, "speaker_id")
        assert removed is False
        assert google.requests == []

    async def test_learner_route_cannot_cancel_as_speaker(self, service, book, speaker):
        session = book(day=MONDAY + timedelta(days=2))
        with pytest.raises(errors.StateConflictError):
            await service.cancel_session(session.id, speaker.id, "learner_id")

    async def test_unknown_session(self, service, learner):
        with pytest.raises(errors.NotFoundError) as exc_info:
            await service.cancel_session(12345, learner.id, "learner_id")
        assert exc_info.value.code == "session_not_found"

    async def test_too_late_is_not_committed(self, db, service, book, learner):
        session = book(time="08:00")
        with pytest.raises(errors.StateConflictError):
            await service.cancel_session(session.id, learner.id, "learner_id")
        db.expire_all()
        assert db.get(TutoringSession, session.id).status == "scheduled"
