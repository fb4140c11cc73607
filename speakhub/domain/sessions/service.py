"""Session service - dashboards, session lookup and cancellation"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CALENDAR_DELETE_ON_CANCEL
from ...models import TutoringSession, User
from ...shared.validators import utcnow
from ..calendar.gateway import GoogleCalendarGateway
from ..calendar.oauth import GoogleOAuthClient, OAuthTokenManager, TokenError, TokenInvalidError
from ..calendar.token_store import TokenStore
from . import errors
from .cancellation import CancellationPolicy
from .repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionService:
    """Business logic for reading and cancelling booked sessions"""

    def __init__(
        self,
        db: Session,
        *,
        token_store: Optional[TokenStore] = None,
        token_manager: Optional[OAuthTokenManager] = None,
        gateway: Optional[GoogleCalendarGateway] = None,
        policy: Optional[CancellationPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
        delete_remote_on_cancel: bool = CALENDAR_DELETE_ON_CANCEL,
    ):
        self.db = db
        self.clock = clock
        self.token_store = token_store or TokenStore(db)
        self.token_manager = token_manager or OAuthTokenManager(
            self.token_store, GoogleOAuthClient(), clock=clock
        )
        self.gateway = gateway or GoogleCalendarGateway()
        self.policy = policy or CancellationPolicy(clock=clock)
        self.delete_remote_on_cancel = delete_remote_on_cancel

    def get_session_for_party(self, session_id: int, user_id: int) -> TutoringSession:
        session = SessionRepository.get_session_for_party(self.db, session_id, user_id)
        if not session:
            raise errors.session_not_found()
        return session

    def get_dashboard(self, user: User, role_column: str) -> dict:
        """Upcoming and past sessions plus counts, from the point of view of one party"""
        today = self.clock().date()
        return {
            "upcoming": SessionRepository.get_upcoming(self.db, user.id, role_column, today),
            "past": SessionRepository.get_past(self.db, user.id, role_column),
            "stats": SessionRepository.count_by_status(self.db, user.id, role_column),
        }

    async def cancel_session(
        self, session_id: int, acting_user_id: int, role_column: str, reason: Optional[str] = None
    ) -> tuple[TutoringSession, bool]:
        """
        Cancel a session on behalf of its speaker or learner.

        The local cancellation is committed first; removing the remote calendar
        event afterwards is best-effort.

        Returns:
            The cancelled session and whether the remote calendar event was removed
        """
        session = SessionRepository.get_session(self.db, session_id)
        if not session:
            raise errors.session_not_found()
        if getattr(session, role_column) != acting_user_id:
            raise errors.not_cancellable(session.status)

        self.policy.cancel(session, acting_user_id, reason)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(session)

        removed = False
        if self.delete_remote_on_cancel and session.calendar_event_id:
            removed = await self._remove_calendar_event(session)
        return session, removed

    async def _remove_calendar_event(self, session: TutoringSession) -> bool:
        credential = self.token_store.get(session.speaker_id)
        try:
            access_token = await self.token_manager.obtain_valid_token(credential)
        except TokenInvalidError:
            self.token_store.disconnect(session.speaker_id)
            logger.warning(
                f"Calendar event for cancelled session {session.id} left in place: speaker must reconnect"
            )
            return False
        except TokenError as e:
            logger.warning(f"Calendar event for cancelled session {session.id} left in place: {e}")
            return False

        return await self.gateway.delete_event(access_token, session.calendar_event_id)
