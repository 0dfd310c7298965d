from datetime import time

from pydantic import BaseModel


class BusinessProfilePublic(BaseModel):
    owner_id: int
    name: str
    address: str
    phone: str
    email: str | None = None
    whatsapp: str | None = None
    min_notice_minutes: int
    interval_minutes: int


class BusinessHoursPublic(BaseModel):
    weekday: int
    weekday_name: str
    open_time: time
    close_time: time
    break_start: time | None = None
    break_end: time | None = None
    is_active: bool
