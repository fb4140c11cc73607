"""
Google Calendar Integration Routes
Handles the speaker's OAuth connection lifecycle
"""

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ...auth import create_jwt_token, get_current_speaker, verify_jwt_token
from ...config import FRONTEND_URL, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from ...database import get_db
from ...models import User
from .oauth import GoogleOAuthClient, build_auth_url
from .retry import RetryExhaustedError
from .schemas import AuthUrlResponse, CalendarStatusResponse, DisconnectResponse
from .token_store import TokenStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/speaker/calendar", tags=["Google Calendar"])

STATE_PURPOSE = "calendar_connect"
STATE_TTL = timedelta(minutes=10)


def get_oauth_client() -> GoogleOAuthClient:
    """Dependency injection for the Google OAuth client (one per request)"""
    return GoogleOAuthClient()


def _frontend_redirect(outcome: str, reason: Optional[str] = None) -> RedirectResponse:
    params = {"calendar": outcome}
    if reason:
        params["reason"] = reason
    return RedirectResponse(url=f"{FRONTEND_URL}/speaker/dashboard?{urlencode(params)}", status_code=302)


@router.get("/auth-url", response_model=AuthUrlResponse)
async def get_auth_url(current_user: User = Depends(get_current_speaker)):
    """Consent URL; the signed state binds the callback to this speaker"""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    state = create_jwt_token({"sub": str(current_user.id), "purpose": STATE_PURPOSE}, STATE_TTL)
    logger.info(f"Google Calendar OAuth initiated for speaker {current_user.id}")
    return AuthUrlResponse(authUrl=build_auth_url(state))


@router.get("/callback")
async def oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """Google redirects here after consent; we store the tokens and bounce to the frontend"""
    if error:
        logger.warning(f"Google Calendar consent declined: {error}")
        return _frontend_redirect("error", error)

    payload = verify_jwt_token(state) if state else None
    if not payload or payload.get("purpose") != STATE_PURPOSE or not code:
        logger.warning("Google Calendar callback with missing code or invalid state")
        return _frontend_redirect("error", "invalid_state")

    speaker_id = int(payload["sub"])
    try:
        grant = await oauth_client.get_tokens_from_code(code)
        TokenStore(db).save_connection(speaker_id, grant)
    except (RetryExhaustedError, httpx.HTTPError) as e:
        logger.error(f"❌ Google token exchange unavailable for speaker {speaker_id}: {e}")
        return _frontend_redirect("error", "unavailable")
    except (RuntimeError, ValueError) as e:
        logger.error(f"❌ Google Calendar connection failed for speaker {speaker_id}: {e}")
        return _frontend_redirect("error", "token_exchange_failed")

    logger.info(f"✅ Google Calendar connected for speaker {speaker_id}")
    return _frontend_redirect("connected")


@router.get("/status", response_model=CalendarStatusResponse)
async def get_status(current_user: User = Depends(get_current_speaker), db: Session = Depends(get_db)):
    credential = TokenStore(db).get(current_user.id)
    return CalendarStatusResponse(connected=credential.connected, expiresAt=credential.expires_at)


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect(
    current_user: User = Depends(get_current_speaker),
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """Revoke at Google (best-effort) and forget the stored tokens"""
    store = TokenStore(db)
    credential = store.get(current_user.id)

    revoked = False
    token = credential.refresh_token or credential.access_token
    if token:
        try:
            revoked = await oauth_client.revoke(token)
        except httpx.HTTPError as e:
            logger.warning(f"Token revocation failed for speaker {current_user.id}: {e}")

    store.disconnect(current_user.id)
    return DisconnectResponse(revoked=revoked)
