"""Shared fixtures: in-memory database, users, a fake Google backend and an API client."""

from __future__ import annotations

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-speakhub")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")

from datetime import date, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from speakhub import models, models_google_calendar  # noqa: E402, F401
from speakhub.database import Base  # noqa: E402
from speakhub.domain.calendar.retry import RetryPolicy  # noqa: E402
from speakhub.domain.calendar.token_store import TokenGrant, TokenStore  # noqa: E402
from speakhub.models import ROLE_LEARNER, ROLE_SPEAKER, AvailabilityEntry, User  # noqa: E402

# Sunday 2030-01-06 12:00 UTC; the following Monday is 2030-01-07
NOW = datetime(2030, 1, 6, 12, 0)
MONDAY = date(2030, 1, 7)


class FixedClock:
    """Callable clock the tests can move forward"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    """Stands in for asyncio.sleep inside RetryPolicy and records requested delays"""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeGoogle:
    """
    httpx.MockTransport backend for the OAuth token endpoint and the Calendar API.

    Each response attribute is either ``(status, body)`` or an exception to raise.
    A ``str`` body is sent as raw text, anything else as JSON. Calendar calls made
    with a bearer token in ``rejected_access_tokens`` get a 401.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_response: Any = (200, {"access_token": "refreshed-access", "expires_in": 3600})
        self.event_response: Any = (
            200,
            {
                "id": "evt-123",
                "hangoutLink": "https://meet.google.com/hng-link-abc",
                "conferenceData": {
                    "entryPoints": [
                        {"entryPointType": "video", "uri": "https://meet.google.com/abc-defg-hij"}
                    ]
                },
            },
        )
        self.delete_response: Any = (204, None)
        self.revoke_response: Any = (200, None)
        self.rejected_access_tokens: set[str] = set()

    @staticmethod
    def _respond(spec: Any) -> httpx.Response:
        if isinstance(spec, Exception):
            raise spec
        status, body = spec
        if body is None:
            return httpx.Response(status)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "oauth2.googleapis.com":
            if request.url.path == "/token":
                return self._respond(self.token_response)
            if request.url.path == "/revoke":
                return self._respond(self.revoke_response)
        if request.url.host == "www.googleapis.com" and "/events" in request.url.path:
            bearer = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if bearer in self.rejected_access_tokens:
                return httpx.Response(401, json={"error": {"code": 401, "message": "Invalid Credentials"}})
            if request.method == "POST":
                return self._respond(self.event_response)
            if request.method == "DELETE":
                return self._respond(self.delete_response)
        return httpx.Response(404, json={"error": "not_found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str, path_fragment: str) -> int:
        return sum(1 for r in self.requests if r.method == method and path_fragment in r.url.path)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role: str = ROLE_LEARNER, **overrides: Any) -> User:
        counter["n"] += 1
        fields = {
            "email": f"user{counter['n']}@example.com",
            "first_name": f"User{counter['n']}",
            "last_name": "Test",
            "role": role,
            "is_active": True,
        }
        fields.update(overrides)
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def speaker(db, make_user) -> User:
    """Speaker available Monday 09:00-17:00"""
    user = make_user(ROLE_SPEAKER, first_name="Sam", last_name="Speaker", email="sam@example.com")
    db.add(
        AvailabilityEntry(
            speaker_id=user.id, day="monday", start_time="09:00", end_time="17:00", is_available=True
        )
    )
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def learner(make_user) -> User:
    return make_user(ROLE_LEARNER, first_name="Lee", last_name="Learner", email="lee@example.com")


@pytest.fixture
def connect_calendar(db):
    def _connect(user: User, expires_at: datetime | None = NOW + timedelta(hours=1)) -> None:
        TokenStore(db).save_connection(
            user.id,
            TokenGrant(
                access_token="stored-access",
                refresh_token="stored-refresh",
                expires_at=expires_at,
            ),
        )

    return _connect


# ---------------------------------------------------------------------------
# Google and time
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(sleep) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=1.0, jitter=0, sleep=sleep)


@pytest.fixture
def google() -> FakeGoogle:
    return FakeGoogle()
