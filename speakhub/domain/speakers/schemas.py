"""Speaker domain schemas - availability and public profile"""

from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...models import WEEKDAYS, AvailabilityEntry, User
from ...shared.validators import parse_time_to_minutes, validate_time


class AvailabilityEntryIn(BaseModel):
    day: str
    startTime: str
    endTime: str
    isAvailable: bool = True

    @field_validator("day")
    @classmethod
    def validate_day(cls, v):
        day = v.strip().lower()
        if day not in WEEKDAYS:
            raise ValueError(f"Day must be one of: {', '.join(WEEKDAYS)}")
        return day

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_hhmm(cls, v):
        return validate_time(v)

    @model_validator(mode="after")
    def check_window(self):
        if parse_time_to_minutes(self.startTime) >= parse_time_to_minutes(self.endTime):
            raise ValueError("startTime must be before endTime")
        return self


class AvailabilityUpdate(BaseModel):
    availability: list[AvailabilityEntryIn]


class AvailabilityEntryResponse(BaseModel):
    id: int
    day: str
    startTime: str
    endTime: str
    isAvailable: bool


class SpeakerProfileResponse(BaseModel):
    id: int
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    bio: Optional[str] = None
    interests: list[str] = []
    calendarConnected: bool = False
    availability: list[AvailabilityEntryResponse] = []


def availability_to_response(entry: AvailabilityEntry) -> AvailabilityEntryResponse:
    return AvailabilityEntryResponse(
        id=entry.id,
        day=entry.day,
        startTime=entry.start_time,
        endTime=entry.end_time,
        isAvailable=entry.is_available,
    )


def speaker_to_profile(speaker: User, calendar_connected: bool) -> SpeakerProfileResponse:
    return SpeakerProfileResponse(
        id=speaker.id,
        firstName=speaker.first_name,
        lastName=speaker.last_name,
        bio=speaker.bio,
        interests=list(speaker.interests or []),
        calendarConnected=calendar_connected,
        availability=[availability_to_response(e) for e in speaker.availability],
    )
