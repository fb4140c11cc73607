"""Overlap detection between a candidate slot and a speaker's booked sessions"""

from collections.abc import Iterable
from typing import Optional

from ...models import SESSION_SCHEDULED, TutoringSession
from ...shared.validators import parse_time_to_minutes


def overlaps(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    """Half-open interval intersection: touching endpoints do not overlap"""
    return start_a < start_b + duration_b and start_a + duration_a > start_b


def find_conflict(
    existing_sessions: Iterable[TutoringSession], candidate_time: str, duration_minutes: int
) -> Optional[TutoringSession]:
    """First scheduled session overlapping the candidate slot; callers pass one speaker's sessions for one date"""
    candidate_start = parse_time_to_minutes(candidate_time)

    for session in existing_sessions:
        if session.status != SESSION_SCHEDULED:
            continue
        existing_start = parse_time_to_minutes(session.time)
        if overlaps(candidate_start, duration_minutes, existing_start, session.duration or duration_minutes):
            return session

    return None


def has_conflict(
    existing_sessions: Iterable[TutoringSession], candidate_time: str, duration_minutes: int
) -> bool:
    return find_conflict(existing_sessions, candidate_time, duration_minutes) is not None
