from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

MESSAGES = {
    "EventNotFound": "Event not found.",
    "ParticipationNotFound": "User is not registered for this event.",
    "AlreadyRegistered": "User is already registered for this event.",
    "EventFull": "Event is full.",
    "EventEnded": "Event has already ended.",
    "CapacityTooLow": "Capacity cannot be lower than the number of registered participants.",
    "InvalidCapacity": "Capacity must be a positive number.",
    "InvalidSchedule": "End time must be after start time.",
    "NotHostOrAdmin": "Only the event host or an admin can do this.",
    "NotOrganizer": "Only organizers and admins can create events.",
    "EventBusy": "Event is busy, please try again.",
}


class RegistrationError(Exception):
    """Expected failure surfaced to the caller as-is."""

    status_code = 400
    default_code = "RegistrationError"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None):
        self.code = code or self.default_code
        self.message = message or MESSAGES.get(self.code, self.code)
        super().__init__(self.message)


class NotFoundError(RegistrationError):
    status_code = 404
    default_code = "EventNotFound"


class ConflictError(RegistrationError):
    status_code = 409
    default_code = "AlreadyRegistered"


class ValidationError(RegistrationError):
    status_code = 422
    default_code = "InvalidSchedule"


class AuthorizationError(RegistrationError):
    status_code = 403
    default_code = "NotHostOrAdmin"


class EventBusyError(RegistrationError):
    """The per-event lock could not be acquired in time."""

    status_code = 503
    default_code = "EventBusy"


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )
