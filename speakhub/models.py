from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

ROLE_LEARNER = "learner"
ROLE_SPEAKER = "speaker"

SESSION_SCHEDULED = "scheduled"
SESSION_COMPLETED = "completed"
SESSION_CANCELLED = "cancelled"

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(120), nullable=True)
    last_name = Column(String(120), nullable=True)
    role = Column(String(20), default=ROLE_LEARNER, nullable=False)  # learner, speaker, admin, moderator
    is_active = Column(Boolean, default=True, nullable=False)
    bio = Column(Text, nullable=True)
    interests = Column(JSON, default=list, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    availability = relationship(
        "AvailabilityEntry", back_populates="speaker", cascade="all, delete-orphan"
    )
    calendar_credential = relationship(
        "GoogleCalendarCredential", back_populates="user", uselist=False
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip()


class AvailabilityEntry(Base):
    """Recurring weekly window in which a speaker accepts bookings"""

    __tablename__ = "availability_entries"

    id = Column(Integer, primary_key=True, index=True)
    speaker_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day = Column(String(10), nullable=False)  # monday .. sunday
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    is_available = Column(Boolean, default=True, nullable=False)

    speaker = relationship("User", back_populates="availability")


class TutoringSession(Base):
    """A booked 30-minute video session between a learner and a speaker"""

    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_speaker_date", "speaker_id", "date"),
        Index("ix_sessions_learner_date", "learner_id", "date"),
        # Last line of defence against two requests booking the same start slot
        Index(
            "uq_sessions_speaker_scheduled_slot",
            "speaker_id",
            "date",
            "time",
            unique=True,
            postgresql_where=text("status = 'scheduled'"),
            sqlite_where=text("status = 'scheduled'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    speaker_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    learner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM, UTC wall clock
    duration = Column(Integer, default=30, nullable=False)
    status = Column(String(20), default=SESSION_SCHEDULED, nullable=False)
    topics = Column(JSON, default=list, nullable=False)
    icebreaker = Column(Text, nullable=True)
    meeting_link = Column(String(500), nullable=True)
    calendar_event_id = Column(String(255), nullable=True)  # Google Calendar event ID

    # Cancellation details
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    speaker = relationship("User", foreign_keys=[speaker_id])
    learner = relationship("User", foreign_keys=[learner_id])
