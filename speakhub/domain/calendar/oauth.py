"""
Google OAuth client and token lifecycle for speaker calendars.

The client is constructed per request with explicit credentials and returns
tokens as values; persisting them is the caller's job (TokenStore).
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx

from ...config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_HTTP_TIMEOUT_SECONDS,
    GOOGLE_REDIRECT_URI,
    TOKEN_REFRESH_BUFFER_MINUTES,
)
from ...shared.validators import utcnow
from .retry import RetryExhaustedError, RetryPolicy
from .token_store import SpeakerCredential, TokenGrant, TokenStore

logger = logging.getLogger(__name__)

# Google OAuth URLs
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

# Token endpoint answers meaning the refresh token itself is no good
TERMINAL_REFRESH_STATUS_CODES = {400, 401}


class TokenError(RuntimeError):
    """Base error for calendar token acquisition"""


class NotConnectedError(TokenError):
    """Speaker has no usable calendar connection"""


class TokenInvalidError(TokenError):
    """Google rejected the refresh token (revoked or expired); the speaker must reconnect"""


class TokenRefreshUnavailableError(TokenError):
    """Google could not be reached after every retry"""


class OAuthRequestError(RuntimeError):
    """Non-success response from Google's token endpoint"""

    def __init__(self, *, status_code: int, error: str, description: str = "") -> None:
        self.status_code = status_code
        self.error = error
        self.description = description
        super().__init__(f"Google OAuth request failed ({status_code}): {error} {description}".strip())


class MalformedTokenResponseError(RuntimeError):
    """Google answered 200 but the body is not a usable token payload"""


def build_auth_url(state: str, client_id: Optional[str] = None, redirect_uri: Optional[str] = None) -> str:
    """Consent URL requesting offline access so Google issues a refresh token"""
    params = {
        "client_id": client_id or GOOGLE_CLIENT_ID,
        "redirect_uri": redirect_uri or GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
        "access_type": "offline",
        "prompt": "consent",  # Force consent to get refresh token
        "include_granted_scopes": "true",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


class GoogleOAuthClient:
    """Stateless wrapper over Google's token endpoint"""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = GOOGLE_HTTP_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client_id = client_id or GOOGLE_CLIENT_ID
        self.client_secret = client_secret or GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or GOOGLE_REDIRECT_URI
        self.retry_policy = retry_policy or RetryPolicy()
        self._transport = transport
        self._timeout = timeout
        self._clock = clock

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _post_token(self, data: dict) -> dict:
        async with self._http_client() as client:
            response = await client.post(GOOGLE_TOKEN_URL, data=data)

        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise OAuthRequestError(
                status_code=response.status_code,
                error=body.get("error", "unknown_error"),
                description=body.get("error_description", ""),
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedTokenResponseError("Google token endpoint returned a non-JSON body") from e
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise MalformedTokenResponseError("Google token endpoint response has no access_token")
        return payload

    def _to_grant(self, payload: dict) -> TokenGrant:
        expires_in = payload.get("expires_in")
        try:
            expires_at = self._clock() + timedelta(seconds=int(expires_in)) if expires_in else None
        except (TypeError, ValueError) as e:
            raise MalformedTokenResponseError(f"Unusable expires_in from Google: {expires_in!r}") from e
        return TokenGrant(
            access_token=payload["access_token"],
            expires_at=expires_at,
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
        )

    async def get_tokens_from_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for an access/refresh token pair"""
        payload = await self.retry_policy.run(
            lambda: self._post_token(
                {
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                }
            ),
            description="Google token exchange",
        )
        return self._to_grant(payload)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Trade a refresh token for a new access token"""
        payload = await self.retry_policy.run(
            lambda: self._post_token(
                {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                }
            ),
            description="Google token refresh",
        )
        return self._to_grant(payload)

    async def revoke(self, token: str) -> bool:
        async with self._http_client() as client:
            response = await client.post(GOOGLE_REVOKE_URL, params={"token": token})
        return response.status_code == 200


class OAuthTokenManager:
    """Hands out a non-expired access token, refreshing through Google when needed"""

    def __init__(
        self,
        token_store: TokenStore,
        oauth_client: GoogleOAuthClient,
        *,
        clock: Callable[[], datetime] = utcnow,
        refresh_buffer: timedelta = timedelta(minutes=TOKEN_REFRESH_BUFFER_MINUTES),
    ):
        self.token_store = token_store
        self.oauth_client = oauth_client
        self.clock = clock
        self.refresh_buffer = refresh_buffer

    def needs_refresh(self, credential: SpeakerCredential) -> bool:
        if credential.expires_at is None:
            return True
        return self.clock() >= credential.expires_at - self.refresh_buffer

    async def obtain_valid_token(self, credential: SpeakerCredential, *, force_refresh: bool = False) -> str:
        """
        Return an access token for the speaker's calendar.

        The stored token is refreshed when it is within the buffer of expiring,
        when its expiry is unknown, or when ``force_refresh`` is set because
        Google already rejected it.
        """
        if not credential.connected or not credential.access_token or not credential.refresh_token:
            raise NotConnectedError(f"Speaker {credential.speaker_id} has not connected Google Calendar")

        if not force_refresh and not self.needs_refresh(credential):
            return credential.access_token

        logger.info(f"Refreshing Google Calendar token for speaker {credential.speaker_id}")
        try:
            grant = await self.oauth_client.refresh(credential.refresh_token)
        except RetryExhaustedError as e:
            raise TokenRefreshUnavailableError(
                f"Google token endpoint unavailable after {e.attempts} attempts"
            ) from e
        except MalformedTokenResponseError as e:
            logger.warning(f"Unusable token response for speaker {credential.speaker_id}: {e}")
            raise TokenRefreshUnavailableError(str(e)) from e
        except OAuthRequestError as e:
            if e.error == "invalid_grant" or e.status_code in TERMINAL_REFRESH_STATUS_CODES:
                logger.warning(
                    f"Google rejected refresh token for speaker {credential.speaker_id}: {e.error}"
                )
                raise TokenInvalidError(f"Refresh token rejected: {e.error}") from e
            raise TokenRefreshUnavailableError(f"Google token refresh failed: {e}") from e
        except httpx.HTTPError as e:
            raise TokenRefreshUnavailableError(f"Google token refresh failed: {e}") from e

        self.token_store.save_refreshed(credential.speaker_id, grant)

        # Keep the in-memory value current for later calls in this request
        credential.access_token = grant.access_token
        credential.expires_at = grant.expires_at
        if grant.refresh_token:
            credential.refresh_token = grant.refresh_token

        logger.info(f"Google Calendar token refreshed for speaker {credential.speaker_id}")
        return grant.access_token
