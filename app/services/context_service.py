"""Business briefing handed to the assistant as its system prompt.

Loading and rendering are split: `load_business_snapshot` reads the store
once per request, `build_system_prompt` is a pure function of the snapshot
so the same inputs always yield the same text.
"""
import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.business import WEEKDAY_NAMES
from app.services.catalog_service import (
    get_business_profile,
    list_active_services,
    list_booked_slots,
    list_business_hours,
)
from app.services.errors import ConfigurationMissingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    price: Decimal
    duration_minutes: int


@dataclass(frozen=True)
class HoursInfo:
    weekday: int
    open_time: time
    close_time: time
    break_start: time | None = None
    break_end: time | None = None


@dataclass(frozen=True)
class BusinessSnapshot:
    owner_id: int
    name: str
    address: str
    phone: str
    email: str | None
    whatsapp: str | None
    min_notice_minutes: int
    interval_minutes: int
    today: date
    services: tuple[ServiceInfo, ...] = ()
    hours: tuple[HoursInfo, ...] = ()
    booked_slots: tuple[tuple[date, time], ...] = ()


async def load_business_snapshot(
    session: AsyncSession, owner_id: int, today: date, max_booked_slots: int | None = None
) -> BusinessSnapshot:
    profile = await get_business_profile(session, owner_id)
    if profile is None:
        logger.warning("No business profile for owner_id=%s; refusing to brief the assistant", owner_id)
        raise ConfigurationMissingError("Business profile is not configured for this account")
    services = await list_active_services(session, owner_id)
    hours = await list_business_hours(session, owner_id, active_only=True)
    limit = max_booked_slots if max_booked_slots is not None else settings.briefing_max_booked_slots
    booked = await list_booked_slots(session, owner_id, today, limit=limit)
    return BusinessSnapshot(
        owner_id=owner_id,
        name=profile.name,
        address=profile.address,
        phone=profile.phone,
        email=profile.email,
        whatsapp=profile.whatsapp,
        min_notice_minutes=profile.min_notice_minutes,
        interval_minutes=profile.interval_minutes,
        today=today,
        services=tuple(
            ServiceInfo(id=s.id, name=s.name, price=s.price, duration_minutes=s.duration_minutes)
            for s in services
        ),
        hours=tuple(
            HoursInfo(
                weekday=h.weekday,
                open_time=h.open_time,
                close_time=h.close_time,
                break_start=h.break_start,
                break_end=h.break_end,
            )
            for h in hours
        ),
        booked_slots=tuple(booked),
    )


def _hhmm(t: time) -> str:
    return t.strftime("%H:%M")


def _format_hours(h: HoursInfo) -> str:
    line = f"- {WEEKDAY_NAMES[h.weekday]}: {_hhmm(h.open_time)} to {_hhmm(h.close_time)}"
    if h.break_start and h.break_end:
        line += f" (closed {_hhmm(h.break_start)}-{_hhmm(h.break_end)})"
    return line


BOOKING_FORMAT = """{
  "action": "book",
  "data": {
    "client": "Client name",
    "phone": "555-0100",
    "service": "Service name",
    "date": "YYYY-MM-DD",
    "time": "HH:MM"
  }
}"""


def build_system_prompt(snapshot: BusinessSnapshot) -> str:
    services = "\n".join(
        f"- {s.name}: {s.price:.2f} ({s.duration_minutes} min)" for s in snapshot.services
    ) or "- (no services available)"
    hours = "\n".join(_format_hours(h) for h in sorted(snapshot.hours, key=lambda h: h.weekday))
    booked = "\n".join(
        f"- {d.isoformat()} at {_hhmm(t)}" for d, t in snapshot.booked_slots
    ) or "- (none)"
    contact = [f"- Name: {snapshot.name}", f"- Address: {snapshot.address}", f"- Phone: {snapshot.phone}"]
    if snapshot.whatsapp:
        contact.append(f"- WhatsApp: {snapshot.whatsapp}")
    if snapshot.email:
        contact.append(f"- Email: {snapshot.email}")

    return f"""You are the virtual assistant of {snapshot.name}.
Today is {WEEKDAY_NAMES[snapshot.today.weekday()]}, {snapshot.today.isoformat()}.

BUSINESS DETAILS:
{chr(10).join(contact)}

AVAILABLE SERVICES:
{services}

OPENING HOURS:
{hours or "- (not configured)"}

BOOKING RULES:
- Interval between appointments: {snapshot.interval_minutes} minutes
- Minimum notice: {snapshot.min_notice_minutes} minutes
- Never book a time that is already taken

ALREADY BOOKED (upcoming):
{booked}

INSTRUCTIONS:
1. Be polite and professional.
2. To book, collect: name, phone, desired service, date and time.
3. Check availability before confirming; if the time is taken, suggest alternatives.
4. Confirm all details with the customer before finishing.
5. When the customer has confirmed, include exactly one booking block in this JSON format:
{BOOKING_FORMAT}
"""
