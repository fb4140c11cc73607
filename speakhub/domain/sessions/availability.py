"""Weekly availability check for speakers"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional, Protocol

from ...models import WEEKDAYS
from ...shared.validators import parse_time_to_minutes

logger = logging.getLogger(__name__)


class AvailabilityLike(Protocol):
    day: str
    start_time: str
    end_time: str
    is_available: bool


def weekday_name(moment: datetime) -> str:
    return WEEKDAYS[moment.weekday()]


def _entries_for(entries: Iterable[AvailabilityLike], day: str) -> list[AvailabilityLike]:
    return [e for e in entries if (e.day or "").lower() == day and e.is_available]


def window_for(entries: Iterable[AvailabilityLike], day: str) -> Optional[tuple[str, str]]:
    """The speaker's open window on ``day``, or None if they take no bookings that day"""
    matching = _entries_for(entries, day)
    if not matching:
        return None
    return matching[0].start_time, matching[0].end_time


def is_available(
    entries: Iterable[AvailabilityLike], candidate: datetime, duration_minutes: int
) -> bool:
    """
    True iff [candidate, candidate + duration) lies inside an open window for that weekday.

    Times are compared as wall-clock strings; no timezone conversion happens.
    """
    day = weekday_name(candidate)
    candidate_start = candidate.hour * 60 + candidate.minute
    candidate_end = candidate_start + duration_minutes

    for entry in _entries_for(entries, day):
        try:
            start_minutes = parse_time_to_minutes(entry.start_time)
            end_minutes = parse_time_to_minutes(entry.end_time)
        except ValueError:
            logger.warning(f"Skipping malformed availability entry for {day}: {entry.start_time}-{entry.end_time}")
            continue

        if candidate_start >= start_minutes and candidate_end <= end_minutes:
            return True

    return False
