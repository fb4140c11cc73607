"""Time-driven scheduled -> completed transition"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ...shared.validators import combine_date_time
from .repository import SessionRepository

logger = logging.getLogger(__name__)


def complete_past_sessions(db: Session, now: datetime) -> int:
    """Mark every scheduled session that has ended by ``now`` as completed"""
    candidates = SessionRepository.get_scheduled_before(db, now.date())
    finished = [
        s
        for s in candidates
        if combine_date_time(s.date, s.time) + timedelta(minutes=s.duration) <= now
    ]
    if not finished:
        return 0

    count = SessionRepository.mark_completed(db, finished, now)
    logger.info(f"Marked {count} sessions as completed")
    return count
