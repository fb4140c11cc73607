"""Minimum-notice cancellation rules for booked sessions"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from ...config import MIN_CANCEL_NOTICE_HOURS
from ...models import SESSION_CANCELLED, SESSION_SCHEDULED, TutoringSession
from ...shared.validators import combine_date_time, utcnow
from . import errors

logger = logging.getLogger(__name__)


class CancellationPolicy:
    def __init__(
        self,
        min_notice_hours: int = MIN_CANCEL_NOTICE_HOURS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.min_notice_hours = min_notice_hours
        self.clock = clock

    def hours_until(self, session: TutoringSession, now: Optional[datetime] = None) -> float:
        start = combine_date_time(session.date, session.time)
        return (start - (now or self.clock())).total_seconds() / 3600

    def cancel(
        self, session: TutoringSession, acting_party_id: int, reason: Optional[str] = None
    ) -> TutoringSession:
        """
        Apply a cancellation to ``session`` in memory. The caller commits.

        Raises:
            StateConflictError: not_cancellable, already_started or too_late_to_cancel
        """
        if acting_party_id not in (session.speaker_id, session.learner_id):
            raise errors.not_cancellable()
        if session.status != SESSION_SCHEDULED:
            raise errors.not_cancellable(session.status)

        now = self.clock()
        hours = self.hours_until(session, now)
        if hours <= 0:
            raise errors.already_started()
        if hours < self.min_notice_hours:
            raise errors.too_late_to_cancel(round(hours, 1), self.min_notice_hours)

        session.status = SESSION_CANCELLED
        session.cancellation_reason = reason
        session.cancelled_at = now
        session.cancelled_by = acting_party_id

        logger.info(f"Session {session.id} cancelled by user {acting_party_id} ({hours:.1f}h notice)")
        return session
