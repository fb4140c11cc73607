"""HTTP-level tests for the booking, availability and calendar connection endpoints."""

from __future__ import annotations

import random
from datetime import date, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from speakhub.auth import create_jwt_token
from speakhub.database import get_db
from speakhub.domain.calendar.gateway import GoogleCalendarGateway
from speakhub.domain.calendar.oauth import GoogleOAuthClient, OAuthTokenManager
from speakhub.domain.calendar.router import get_oauth_client
from speakhub.domain.calendar.token_store import TokenStore
from speakhub.domain.sessions.router import get_booking_scheduler, get_session_service
from speakhub.domain.sessions.scheduler import BookingScheduler
from speakhub.domain.sessions.service import SessionService
from speakhub.main import app
from speakhub.models import TutoringSession
from speakhub.shared.validators import utcnow

pytestmark = pytest.mark.unit


def upcoming_monday(weeks_ahead: int = 1) -> date:
    today = utcnow().date()
    return today + timedelta(days=7 - today.weekday()) + timedelta(weeks=weeks_ahead)


def auth(user) -> dict:
    token = create_jwt_token({"sub": str(user.id)}, timedelta(hours=1))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, google, retry_policy):
    def override_get_db():
        yield db

    def oauth_client():
        return GoogleOAuthClient(
            "cid", "secret", "http://localhost/cb", retry_policy=retry_policy, transport=google.transport
        )

    def gateway():
        return GoogleCalendarGateway(retry_policy=retry_policy, transport=google.transport, rng=random.Random(2))

    def scheduler():
        store = TokenStore(db)
        return BookingScheduler(
            db, token_store=store, token_manager=OAuthTokenManager(store, oauth_client()), gateway=gateway()
        )

    def service():
        store = TokenStore(db)
        return SessionService(
            db, token_store=store, token_manager=OAuthTokenManager(store, oauth_client()), gateway=gateway()
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oauth_client] = oauth_client
    app.dependency_overrides[get_booking_scheduler] = scheduler
    app.dependency_overrides[get_session_service] = service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def connected_speaker(speaker, connect_calendar):
    connect_calendar(speaker)
    return speaker


def booking_body(speaker, day: date, time: str = "10:00", **overrides) -> dict:
    body = {"speakerId": speaker.id, "title": "Small talk", "date": day.isoformat(), "time": time, "topics": ["travel"]}
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


class TestBookSession:
    def test_book_session(self, client, connected_speaker, learner):
        day = upcoming_monday()
        response = client.post("/learner/sessions", json=booking_body(connected_speaker, day), headers=auth(learner))

        assert response.status_code == 201
        payload = response.json()
        assert payload["success"] is True
        session = payload["data"]["session"]
        assert session["time"] == "10:00"
        assert session["date"] == day.isoformat()
        assert session["status"] == "scheduled"
        assert session["speaker"]["firstName"] == "Sam"
        assert payload["data"]["calendar"]["created"] is True
        assert payload["data"]["calendar"]["meetLink"] == "https://meet.google.com/abc-defg-hij"

    def test_legacy_path(self, client, connected_speaker, learner):
        response = client.post(
            "/learner/book-session", json=booking_body(connected_speaker, upcoming_monday()), headers=auth(learner)
        )
        assert response.status_code == 201

    def test_calendar_failure_reported_but_booked(self, client, connected_speaker, learner, google):
        google.event_response = (403, {"error": "forbidden"})
        response = client.post(
            "/learner/sessions", json=booking_body(connected_speaker, upcoming_monday()), headers=auth(learner)
        )
        assert response.status_code == 201
        assert response.json()["data"]["calendar"]["created"] is False

    def test_missing_fields(self, client, learner):
        response = client.post("/learner/sessions", json={"title": "x"}, headers=auth(learner))
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "missing_fields"

    def test_malformed_body(self, client, learner, connected_speaker):
        body = booking_body(connected_speaker, upcoming_monday(), topics="travel")
        response = client.post("/learner/sessions", json=body, headers=auth(learner))
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "validation_error"

    def test_slot_taken(self, client, connected_speaker, learner):
        day = upcoming_monday()
        client.post("/learner/sessions", json=booking_body(connected_speaker, day), headers=auth(learner))
        response = client.post(
            "/learner/sessions", json=booking_body(connected_speaker, day, time="10:15"), headers=auth(learner)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == {
            "code": "slot_taken",
            "message": "This time slot overlaps an existing session at 10:00",
            "conflictingTime": "10:00",
        }

    def test_calendar_not_connected(self, client, speaker, learner):
        response = client.post("/learner/sessions", json=booking_body(speaker, upcoming_monday()), headers=auth(learner))
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "calendar_not_connected"

    def test_unknown_speaker(self, client, learner):
        body = {"speakerId": 4242, "title": "x", "date": upcoming_monday().isoformat(), "time": "10:00"}
        response = client.post("/learner/sessions", json=body, headers=auth(learner))
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "speaker_unavailable"

    def test_revoked_calendar_is_503(self, client, speaker, learner, connect_calendar, google):
        connect_calendar(speaker, expires_at=utcnow())
        google.token_response = (400, {"error": "invalid_grant"})
        response = client.post("/learner/sessions", json=booking_body(speaker, upcoming_monday()), headers=auth(learner))
        assert response.status_code == 503
        assert response.json()["detail"]["reconnectRequired"] is True

    def test_requires_authentication(self, client, connected_speaker):
        response = client.post("/learner/sessions", json=booking_body(connected_speaker, upcoming_monday()))
        assert response.status_code == 401

    def test_speakers_cannot_book(self, client, connected_speaker):
        response = client.post(
            "/learner/sessions", json=booking_body(connected_speaker, upcoming_monday()), headers=auth(connected_speaker)
        )
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Reading and cancelling
# ---------------------------------------------------------------------------


class TestSessionsLifecycle:
    def _book(self, client, speaker, learner, day=None, time="10:00") -> dict:
        response = client.post(
            "/learner/sessions", json=booking_body(speaker, day or upcoming_monday(), time), headers=auth(learner)
        )
        assert response.status_code == 201
        return response.json()["data"]["session"]

    def test_dashboards(self, client, connected_speaker, learner):
        session = self._book(client, connected_speaker, learner)

        learner_view = client.get("/learner/dashboard", headers=auth(learner)).json()
        assert [s["id"] for s in learner_view["upcomingSessions"]] == [session["id"]]
        assert learner_view["profile"]["stats"]["scheduled"] == 1

        speaker_view = client.get("/speaker/dashboard", headers=auth(connected_speaker)).json()
        assert [s["id"] for s in speaker_view["upcomingSessions"]] == [session["id"]]
        assert speaker_view["pastSessions"] == []

    def test_get_session(self, client, connected_speaker, learner, make_user):
        session = self._book(client, connected_speaker, learner)
        assert client.get(f"/learner/sessions/{session['id']}", headers=auth(learner)).status_code == 200
        stranger = make_user()
        response = client.get(f"/learner/sessions/{session['id']}", headers=auth(stranger))
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "session_not_found"

    def test_learner_cancels(self, client, db, connected_speaker, learner, google):
        session = self._book(client, connected_speaker, learner)

        response = client.put(
            f"/learner/sessions/{session['id']}/cancel", json={"reason": " Conflict at work "}, headers=auth(learner)
        )

        assert response.status_code == 200
        payload = response.json()
        assert payload["session"]["status"] == "cancelled"
        assert payload["session"]["cancellationReason"] == "Conflict at work"
        assert payload["session"]["cancelledBy"] == learner.id
        assert payload["calendarEventRemoved"] is True
        assert google.count("DELETE", "/events/evt-123") == 1

    def test_speaker_cancels_without_body(self, client, connected_speaker, learner):
        session = self._book(client, connected_speaker, learner)
        response = client.put(f"/speaker/sessions/{session['id']}/cancel", headers=auth(connected_speaker))
        assert response.status_code == 200
        assert response.json()["session"]["cancelledBy"] == connected_speaker.id

    def test_too_late_to_cancel(self, client, db, connected_speaker, learner):
        soon = utcnow() + timedelta(hours=20)
        session = TutoringSession(
            title="Soon",
            speaker_id=connected_speaker.id,
            learner_id=learner.id,
            date=soon.date(),
            time=soon.strftime("%H:%M"),
            duration=30,
            status="scheduled",
            topics=[],
        )
        db.add(session)
        db.commit()

        response = client.put(f"/learner/sessions/{session.id}/cancel", json={}, headers=auth(learner))

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "too_late_to_cancel"
        assert 19.9 <= detail["hoursUntilSession"] <= 20.0


# ---------------------------------------------------------------------------
# Availability and profiles
# ---------------------------------------------------------------------------


class TestAvailability:
    def test_replace_and_read(self, client, speaker):
        body = {
            "availability": [
                {"day": "Tuesday", "startTime": "08:00", "endTime": "12:00"},
                {"day": "friday", "startTime": "13:00", "endTime": "18:30", "isAvailable": False},
            ]
        }
        response = client.put("/speaker/availability", json=body, headers=auth(speaker))
        assert response.status_code == 200
        assert [e["day"] for e in response.json()] == ["tuesday", "friday"]

        current = client.get("/speaker/availability", headers=auth(speaker)).json()
        assert {(e["day"], e["startTime"], e["endTime"], e["isAvailable"]) for e in current} == {
            ("tuesday", "08:00", "12:00", True),
            ("friday", "13:00", "18:30", False),
        }

    @pytest.mark.parametrize(
        "entry",
        [
            {"day": "funday", "startTime": "08:00", "endTime": "12:00"},
            {"day": "monday", "startTime": "8:00", "endTime": "12:00"},
            {"day": "monday", "startTime": "12:00", "endTime": "12:00"},
        ],
    )
    def test_rejects_bad_entries(self, client, speaker, entry):
        response = client.put("/speaker/availability", json={"availability": [entry]}, headers=auth(speaker))
        assert response.status_code == 400

    def test_learners_cannot_edit_availability(self, client, learner):
        response = client.put("/speaker/availability", json={"availability": []}, headers=auth(learner))
        assert response.status_code == 403

    def test_public_profile(self, client, connected_speaker):
        response = client.get(f"/speakers/{connected_speaker.id}")
        assert response.status_code == 200
        profile = response.json()
        assert profile["calendarConnected"] is True
        assert profile["availability"][0]["day"] == "monday"

    def test_profile_of_non_speaker(self, client, learner):
        assert client.get(f"/speakers/{learner.id}").status_code == 404


# ---------------------------------------------------------------------------
# Calendar connection
# ---------------------------------------------------------------------------


class TestCalendarConnection:
    def _state(self, client, speaker) -> str:
        response = client.get("/speaker/calendar/auth-url", headers=auth(speaker))
        assert response.status_code == 200
        query = parse_qs(urlparse(response.json()["authUrl"]).query)
        assert query["access_type"] == ["offline"]
        return query["state"][0]

    def test_connect_flow(self, client, db, speaker, google):
        state = self._state(client, speaker)
        google.token_response = (200, {"access_token": "a1", "refresh_token": "r1", "expires_in": 3600})

        response = client.get(
            "/speaker/calendar/callback", params={"code": "c0de", "state": state}, follow_redirects=False
        )

        assert response.status_code == 302
        assert "calendar=connected" in response.headers["location"]
        stored = TokenStore(db).get(speaker.id)
        assert stored.connected and stored.refresh_token == "r1"

        status = client.get("/speaker/calendar/status", headers=auth(speaker)).json()
        assert status["connected"] is True

    def test_forged_state(self, client, db, speaker):
        response = client.get(
            "/speaker/calendar/callback", params={"code": "c0de", "state": "not-a-jwt"}, follow_redirects=False
        )
        assert response.status_code == 302
        assert "calendar=error" in response.headers["location"]
        assert TokenStore(db).get(speaker.id).connected is False

    def test_consent_denied(self, client):
        response = client.get("/speaker/calendar/callback", params={"error": "access_denied"}, follow_redirects=False)
        assert "reason=access_denied" in response.headers["location"]

    def test_rejected_code(self, client, db, speaker, google):
        state = self._state(client, speaker)
        google.token_response = (400, {"error": "invalid_grant"})
        response = client.get(
            "/speaker/calendar/callback", params={"code": "bad", "state": state}, follow_redirects=False
        )
        assert "calendar=error" in response.headers["location"]
        assert TokenStore(db).get(speaker.id).connected is False

    def test_disconnect(self, client, db, connected_speaker, google):
        response = client.post("/speaker/calendar/disconnect", headers=auth(connected_speaker))

        assert response.status_code == 200
        assert response.json()["revoked"] is True
        assert google.count("POST", "/revoke") == 1
        assert TokenStore(db).get(connected_speaker.id).connected is False

    def test_learner_cannot_connect(self, client, learner):
        assert client.get("/speaker/calendar/auth-url", headers=auth(learner)).status_code == 403


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
