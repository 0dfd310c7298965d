from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class ServiceCountOut(BaseModel):
    name: str
    count: int
    revenue: Decimal


class DayCountOut(BaseModel):
    slot_date: date
    count: int
    revenue: Decimal


class SummaryResponse(BaseModel):
    days: int
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int
    revenue: Decimal
    average_ticket: Decimal
    top_services: list[ServiceCountOut]
    by_day: list[DayCountOut]
