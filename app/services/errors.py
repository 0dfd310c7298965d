"""Typed failures raised by the booking services.

Routes translate these to HTTP responses; the chat pipeline folds the
recoverable ones into its result so the assistant reply is still delivered.
"""


class BookingError(Exception):
    code = "booking_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationMissingError(BookingError):
    code = "configuration_missing"


class AssistantUnavailableError(BookingError):
    code = "assistant_unavailable"


class ServiceNotFoundError(BookingError):
    code = "service_not_found"


class AmbiguousServiceError(BookingError):
    code = "ambiguous_service"

    def __init__(self, message: str, candidates: list[str]) -> None:
        super().__init__(message)
        self.candidates = candidates


class SlotConflictError(BookingError):
    code = "slot_conflict"


class OutsideBusinessHoursError(BookingError):
    code = "outside_business_hours"


class PastSlotError(BookingError):
    code = "slot_in_past"


class InsufficientNoticeError(BookingError):
    code = "insufficient_notice"


class AppointmentNotFoundError(BookingError):
    code = "appointment_not_found"


class InvalidTransitionError(BookingError):
    code = "invalid_transition"


class PersistenceError(BookingError):
    code = "persistence_failure"


# Degrade to "assistant replied, no booking happened"
RECOVERABLE_BOOKING_ERRORS = (
    ServiceNotFoundError,
    AmbiguousServiceError,
    SlotConflictError,
    OutsideBusinessHoursError,
    PastSlotError,
    InsufficientNoticeError,
)
