from pydantic import BaseModel, Field

from app.models.appointment import AppointmentPublic


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


class BookingErrorInfo(BaseModel):
    code: str
    message: str
    candidates: list[str] | None = None


class ChatResponse(BaseModel):
    assistant_reply: str
    booking_created: AppointmentPublic | None = None
    booking_error: BookingErrorInfo | None = None
