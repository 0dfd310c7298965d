from datetime import date, time

from pydantic import BaseModel, EmailStr, Field

from app.models.appointment import AppointmentStatus, PaymentMethod


class SlotInfo(BaseModel):
    time: str  # HH:MM
    available: bool


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    duration_minutes: int | None = None
    slots: list[SlotInfo]


class BookAppointmentRequest(BaseModel):
    service_id: int
    client_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: EmailStr | None = None
    slot_date: date
    slot_time: time
    notes: str | None = None
    status: AppointmentStatus = AppointmentStatus.CONFIRMED


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus
    detail: str | None = None


class RescheduleRequest(BaseModel):
    slot_date: date
    slot_time: time


class PaymentUpdateRequest(BaseModel):
    paid: bool | None = None
    payment_method: PaymentMethod | None = None
    notes: str | None = None
