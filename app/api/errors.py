from fastapi import HTTPException, status

from app.services.errors import (
    AmbiguousServiceError,
    AppointmentNotFoundError,
    AssistantUnavailableError,
    BookingError,
    ConfigurationMissingError,
    InsufficientNoticeError,
    InvalidTransitionError,
    OutsideBusinessHoursError,
    PastSlotError,
    PersistenceError,
    ServiceNotFoundError,
    SlotConflictError,
)

_STATUS_BY_ERROR: list[tuple[type[BookingError], int]] = [
    (AppointmentNotFoundError, status.HTTP_404_NOT_FOUND),
    (ServiceNotFoundError, status.HTTP_404_NOT_FOUND),
    (SlotConflictError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (AmbiguousServiceError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (OutsideBusinessHoursError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InsufficientNoticeError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PastSlotError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConfigurationMissingError, status.HTTP_400_BAD_REQUEST),
    (AssistantUnavailableError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def to_http_exception(exc: BookingError) -> HTTPException:
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for cls, mapped in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            code = mapped
            break
    return HTTPException(status_code=code, detail={"code": exc.code, "message": exc.message})
