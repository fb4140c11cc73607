"""Calendar connection schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AuthUrlResponse(BaseModel):
    authUrl: str


class CalendarStatusResponse(BaseModel):
    connected: bool
    expiresAt: Optional[datetime] = None


class DisconnectResponse(BaseModel):
    success: bool = True
    message: str = "Google Calendar disconnected"
    revoked: bool = False
