"""Session repository - Database operations for booked sessions"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import (
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_SCHEDULED,
    TutoringSession,
    User,
)


class SessionRepository:
    """Repository for tutoring session database operations"""

    @staticmethod
    def get_session(db: Session, session_id: int) -> Optional[TutoringSession]:
        return (
            db.query(TutoringSession)
            .options(joinedload(TutoringSession.speaker), joinedload(TutoringSession.learner))
            .filter(TutoringSession.id == session_id)
            .first()
        )

    @staticmethod
    def get_session_for_party(db: Session, session_id: int, user_id: int) -> Optional[TutoringSession]:
        """A session visible to ``user_id`` as either its speaker or its learner"""
        return (
            db.query(TutoringSession)
            .options(joinedload(TutoringSession.speaker), joinedload(TutoringSession.learner))
            .filter(
                TutoringSession.id == session_id,
                or_(TutoringSession.speaker_id == user_id, TutoringSession.learner_id == user_id),
            )
            .first()
        )

    @staticmethod
    def get_scheduled_for_speaker_on_date(
        db: Session, speaker_id: int, session_date: date
    ) -> list[TutoringSession]:
        return (
            db.query(TutoringSession)
            .filter(
                TutoringSession.speaker_id == speaker_id,
                TutoringSession.date == session_date,
                TutoringSession.status == SESSION_SCHEDULED,
            )
            .all()
        )

    @staticmethod
    def lock_speaker(db: Session, speaker_id: int) -> Optional[User]:
        """Row-lock the speaker so concurrent bookings for them serialize (no-op on SQLite)"""
        return db.query(User).filter(User.id == speaker_id).with_for_update().first()

    @staticmethod
    def create_session(db: Session, **session_data) -> TutoringSession:
        session = TutoringSession(**session_data)
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def get_upcoming(db: Session, user_id: int, role_column: str, today: date) -> list[TutoringSession]:
        column = getattr(TutoringSession, role_column)
        return (
            db.query(TutoringSession)
            .options(joinedload(TutoringSession.speaker), joinedload(TutoringSession.learner))
            .filter(
                column == user_id,
                TutoringSession.status == SESSION_SCHEDULED,
                TutoringSession.date >= today,
            )
            .order_by(TutoringSession.date.asc(), TutoringSession.time.asc())
            .all()
        )

    @staticmethod
    def get_past(db: Session, user_id: int, role_column: str) -> list[TutoringSession]:
        column = getattr(TutoringSession, role_column)
        return (
            db.query(TutoringSession)
            .options(joinedload(TutoringSession.speaker), joinedload(TutoringSession.learner))
            .filter(
                column == user_id,
                TutoringSession.status.in_([SESSION_COMPLETED, SESSION_CANCELLED]),
            )
            .order_by(TutoringSession.date.desc(), TutoringSession.time.desc())
            .all()
        )

    @staticmethod
    def count_by_status(db: Session, user_id: int, role_column: str) -> dict:
        column = getattr(TutoringSession, role_column)
        rows = db.query(TutoringSession.status).filter(column == user_id).all()
        counts = {SESSION_SCHEDULED: 0, SESSION_COMPLETED: 0, SESSION_CANCELLED: 0}
        for (status,) in rows:
            counts[status] = counts.get(status, 0) + 1
        return {"total": len(rows), **counts}

    @staticmethod
    def get_scheduled_before(db: Session, cutoff_date: date) -> list[TutoringSession]:
        """Scheduled sessions on or before ``cutoff_date`` (candidates for completion)"""
        return (
            db.query(TutoringSession)
            .filter(
                TutoringSession.status == SESSION_SCHEDULED,
                TutoringSession.date <= cutoff_date,
            )
            .all()
        )

    @staticmethod
    def mark_completed(db: Session, sessions: list[TutoringSession], completed_at: datetime) -> int:
        for session in sessions:
            session.status = SESSION_COMPLETED
            session.completed_at = completed_at
        db.commit()
        return len(sessions)
