"""Encrypted persistence of each speaker's Google Calendar OAuth tokens"""

import base64
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from ...config import SECRET_KEY
from ...models_google_calendar import GoogleCalendarCredential

logger = logging.getLogger(__name__)


# Generate encryption key from SECRET_KEY for OAuth tokens
def get_fernet_key() -> bytes:
    key = hashlib.sha256(SECRET_KEY.encode()).digest()
    return base64.urlsafe_b64encode(key)


cipher_suite = Fernet(get_fernet_key())


@dataclass
class SpeakerCredential:
    """Decrypted view of a speaker's calendar credential"""

    speaker_id: int
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[datetime]
    connected: bool

    def __repr__(self) -> str:
        return (
            f"SpeakerCredential(speaker_id={self.speaker_id}, connected={self.connected}, "
            f"expires_at={self.expires_at}, tokens=[REDACTED])"
        )


@dataclass
class TokenGrant:
    """Tokens returned by Google's token endpoint"""

    access_token: str
    expires_at: Optional[datetime]
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None

    def __repr__(self) -> str:
        return f"TokenGrant(expires_at={self.expires_at}, scope={self.scope!r}, tokens=[REDACTED])"


def encrypt_token(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return cipher_suite.encrypt(value.encode()).decode()


def decrypt_token(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return cipher_suite.decrypt(value.encode()).decode()
    except InvalidToken:
        # Key rotated or corrupted row: the speaker has to reconnect
        logger.error("Stored Google Calendar token could not be decrypted")
        return None


class TokenStore:
    """Read/write access to speaker credentials, keyed by speaker id"""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, speaker_id: int) -> Optional[GoogleCalendarCredential]:
        return (
            self.db.query(GoogleCalendarCredential)
            .filter(GoogleCalendarCredential.user_id == speaker_id)
            .first()
        )

    def get(self, speaker_id: int) -> SpeakerCredential:
        """Load the credential; a speaker who never connected gets an empty, disconnected value"""
        row = self._get_row(speaker_id)
        if not row:
            return SpeakerCredential(speaker_id, None, None, None, False)

        return SpeakerCredential(
            speaker_id=speaker_id,
            access_token=decrypt_token(row.access_token),
            refresh_token=decrypt_token(row.refresh_token),
            expires_at=row.expires_at,
            connected=bool(row.connected),
        )

    def save_connection(self, speaker_id: int, grant: TokenGrant) -> GoogleCalendarCredential:
        """Store tokens from the OAuth callback and mark the calendar connected"""
        row = self._get_row(speaker_id)
        if not row:
            row = GoogleCalendarCredential(user_id=speaker_id)
            self.db.add(row)

        # Google only issues a refresh token on first consent; keep the previous one otherwise
        refresh_token = grant.refresh_token or decrypt_token(row.refresh_token)
        if not refresh_token:
            raise ValueError("Google did not return a refresh token")

        row.access_token = encrypt_token(grant.access_token)
        row.refresh_token = encrypt_token(refresh_token)
        row.expires_at = grant.expires_at
        row.token_type = grant.token_type
        row.scope = grant.scope
        row.connected = True
        self.db.commit()
        self.db.refresh(row)

        logger.info(f"Google Calendar connected for speaker {speaker_id}")
        return row

    def save_refreshed(self, speaker_id: int, grant: TokenGrant) -> None:
        """Write back a refreshed access token. Concurrent refreshes are last-write-wins."""
        row = self._get_row(speaker_id)
        if not row:
            logger.warning(f"Refreshed token for speaker {speaker_id} has no credential row to update")
            return

        row.access_token = encrypt_token(grant.access_token)
        row.expires_at = grant.expires_at
        if grant.refresh_token:
            row.refresh_token = encrypt_token(grant.refresh_token)
        self.db.commit()

    def disconnect(self, speaker_id: int) -> bool:
        """Null every token field and mark disconnected. Returns False if nothing was stored."""
        row = self._get_row(speaker_id)
        if not row:
            return False

        row.access_token = None
        row.refresh_token = None
        row.expires_at = None
        row.token_type = None
        row.scope = None
        row.connected = False
        self.db.commit()

        logger.info(f"Google Calendar disconnected for speaker {speaker_id}")
        return True
