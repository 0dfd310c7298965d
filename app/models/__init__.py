from app.models.business import BusinessHours, BusinessProfile, Service, ServicePublic
from app.models.appointment import (
    Appointment,
    AppointmentLog,
    AppointmentLogPublic,
    AppointmentPublic,
    AppointmentSource,
    AppointmentStatus,
    LogAction,
    PaymentMethod,
)

__all__ = [
    "BusinessHours",
    "BusinessProfile",
    "Service",
    "ServicePublic",
    "Appointment",
    "AppointmentLog",
    "AppointmentLogPublic",
    "AppointmentPublic",
    "AppointmentSource",
    "AppointmentStatus",
    "LogAction",
    "PaymentMethod",
]
