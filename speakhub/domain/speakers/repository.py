"""Speaker repository - user lookups and availability storage"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import ROLE_SPEAKER, AvailabilityEntry, User


class SpeakerRepository:
    """Repository for speaker/learner lookups"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_active_speaker(db: Session, speaker_id: int) -> Optional[User]:
        """A user who is a speaker and is active, with availability loaded"""
        return (
            db.query(User)
            .options(joinedload(User.availability))
            .filter(User.id == speaker_id, User.role == ROLE_SPEAKER, User.is_active.is_(True))
            .first()
        )

    @staticmethod
    def get_availability(db: Session, speaker_id: int) -> list[AvailabilityEntry]:
        return (
            db.query(AvailabilityEntry)
            .filter(AvailabilityEntry.speaker_id == speaker_id)
            .order_by(AvailabilityEntry.id.asc())
            .all()
        )

    @staticmethod
    def replace_availability(db: Session, speaker_id: int, entries: list[dict]) -> list[AvailabilityEntry]:
        """Replace the speaker's whole weekly schedule"""
        db.query(AvailabilityEntry).filter(AvailabilityEntry.speaker_id == speaker_id).delete(
            synchronize_session=False
        )
        created = [AvailabilityEntry(speaker_id=speaker_id, **entry) for entry in entries]
        db.add_all(created)
        db.commit()
        for entry in created:
            db.refresh(entry)
        return created
