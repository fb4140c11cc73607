"""Typed booking and cancellation errors, rendered by FastAPI as {"detail": {...}}"""

from typing import Any, Optional

from fastapi import HTTPException


class BookingError(HTTPException):
    """Base class: carries a machine-readable code plus structured detail"""

    status_code_default = 400

    def __init__(self, code: str, message: str, status_code: Optional[int] = None, **extra: Any):
        self.code = code
        self.message = message
        self.extra = extra
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail={"code": code, "message": message, **extra},
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class BookingValidationError(BookingError):
    """Malformed input, always user-correctable"""

    status_code_default = 400


class NotFoundError(BookingError):
    status_code_default = 404


class StateConflictError(BookingError):
    """Request is well-formed but conflicts with current state"""

    status_code_default = 400


class DependencyError(BookingError):
    """The speaker's calendar integration cannot be used"""

    status_code_default = 503


# ---------------------------------------------------------------------------
# Concrete errors
# ---------------------------------------------------------------------------


def missing_fields(fields: list[str]) -> BookingValidationError:
    return BookingValidationError(
        "missing_fields", "Speaker, title, date, and time are required", fields=fields
    )


def invalid_time(reason: str) -> BookingValidationError:
    return BookingValidationError("invalid_time", reason, field="time")


def invalid_date(reason: str) -> BookingValidationError:
    return BookingValidationError("invalid_date", reason, field="date")


def in_the_past() -> BookingValidationError:
    return BookingValidationError("in_the_past", "Session must be scheduled in the future")


def too_many_topics(limit: int, received: int) -> BookingValidationError:
    return BookingValidationError(
        "too_many_topics", f"Maximum {limit} topics allowed", limit=limit, received=received
    )


def speaker_unavailable() -> NotFoundError:
    return NotFoundError("speaker_unavailable", "Speaker not found or not available")


def learner_not_found() -> NotFoundError:
    return NotFoundError("learner_not_found", "Learner not found")


def session_not_found() -> NotFoundError:
    return NotFoundError("session_not_found", "Session not found")


def calendar_not_connected() -> DependencyError:
    return DependencyError(
        "calendar_not_connected",
        "This speaker has not connected their Google Calendar. Please ask them to connect it first.",
        status_code=400,
    )


def calendar_auth_failure(reconnect_required: bool) -> DependencyError:
    message = (
        "The speaker's Google Calendar connection has expired. Please ask them to reconnect it."
        if reconnect_required
        else "Google Calendar is temporarily unavailable. Please try again shortly."
    )
    return DependencyError("calendar_auth_failure", message, reconnectRequired=reconnect_required)


def outside_availability(day: str, window: Optional[tuple[str, str]]) -> StateConflictError:
    if window:
        message = f"Speaker is only available on {day.capitalize()} from {window[0]} to {window[1]}"
        allowed = {"startTime": window[0], "endTime": window[1]}
    else:
        message = f"Speaker is not available on {day.capitalize()}"
        allowed = None
    return StateConflictError("outside_availability", message, day=day, allowedWindow=allowed)


def slot_taken(conflicting_time: str) -> StateConflictError:
    return StateConflictError(
        "slot_taken",
        f"This time slot overlaps an existing session at {conflicting_time}",
        conflictingTime=conflicting_time,
    )


def not_cancellable(status: Optional[str] = None) -> StateConflictError:
    return StateConflictError(
        "not_cancellable", "Only your own scheduled sessions can be cancelled", status=status
    )


def already_started() -> StateConflictError:
    return StateConflictError("already_started", "This session has already started")


def too_late_to_cancel(hours_until_session: float, minimum_hours: int) -> StateConflictError:
    return StateConflictError(
        "too_late_to_cancel",
        f"Sessions must be cancelled at least {minimum_hours} hours in advance. "
        f"This session starts in {hours_until_session} hours.",
        hoursUntilSession=hours_until_session,
        minimumNoticeHours=minimum_hours,
    )
