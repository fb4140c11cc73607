"""Speaker router - weekly availability and public profiles"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_speaker
from ...database import get_db
from ...models import User
from ..calendar.token_store import TokenStore
from ..sessions import errors
from .repository import SpeakerRepository
from .schemas import (
    AvailabilityEntryResponse,
    AvailabilityUpdate,
    SpeakerProfileResponse,
    availability_to_response,
    speaker_to_profile,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Speakers"])


@router.get("/speaker/availability", response_model=list[AvailabilityEntryResponse])
async def get_availability(
    current_user: User = Depends(get_current_speaker),
    db: Session = Depends(get_db),
):
    return [availability_to_response(e) for e in SpeakerRepository.get_availability(db, current_user.id)]


@router.put("/speaker/availability", response_model=list[AvailabilityEntryResponse])
async def update_availability(
    data: AvailabilityUpdate,
    current_user: User = Depends(get_current_speaker),
    db: Session = Depends(get_db),
):
    """Replace the whole weekly schedule"""
    entries = [
        {
            "day": e.day,
            "start_time": e.startTime,
            "end_time": e.endTime,
            "is_available": e.isAvailable,
        }
        for e in data.availability
    ]
    saved = SpeakerRepository.replace_availability(db, current_user.id, entries)
    logger.info(f"Speaker {current_user.id} updated availability ({len(saved)} entries)")
    return [availability_to_response(e) for e in saved]


@router.get("/speakers/{speaker_id}", response_model=SpeakerProfileResponse)
async def get_speaker_profile(speaker_id: int, db: Session = Depends(get_db)):
    speaker = SpeakerRepository.get_active_speaker(db, speaker_id)
    if not speaker:
        raise errors.speaker_unavailable()
    credential = TokenStore(db).get(speaker.id)
    return speaker_to_profile(speaker, credential.connected)
