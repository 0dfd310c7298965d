import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.appointment import Appointment, AppointmentStatus
from app.models.business import BusinessHours, Service
from app.services.catalog_service import get_business_profile, list_active_services, list_business_hours
from app.services.errors import (
    AmbiguousServiceError,
    InsufficientNoticeError,
    OutsideBusinessHoursError,
    PastSlotError,
    ServiceNotFoundError,
    SlotConflictError,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceMatch:
    """Outcome of resolving a free-text service name: unique, none or ambiguous."""

    candidates: list[Service] = field(default_factory=list)

    @property
    def service(self) -> Service | None:
        return self.candidates[0] if len(self.candidates) == 1 else None

    @property
    def is_ambiguous(self) -> bool:
        return len(self.candidates) > 1


@dataclass(frozen=True)
class BookingDraft:
    owner_id: int
    service_id: int
    service_name: str
    price: Decimal
    duration_minutes: int
    client_name: str
    phone: str
    slot_date: date
    slot_time: time
    email: str | None = None


async def match_services(session: AsyncSession, owner_id: int, name: str) -> ServiceMatch:
    """Case-insensitive partial match over active services; an exact name among several wins."""
    needle = name.strip().lower()
    if not needle:
        return ServiceMatch()
    result = await session.execute(
        select(Service)
        .where(
            Service.owner_id == owner_id,
            Service.is_active == True,  # noqa: E712
            func.lower(Service.name).contains(needle, autoescape=True),
        )
        .order_by(Service.name, Service.id)
    )
    candidates = list(result.scalars().all())
    exact = [s for s in candidates if s.name.strip().lower() == needle]
    if len(exact) == 1:
        return ServiceMatch([exact[0]])
    return ServiceMatch(candidates)


def _slot_window(slot_date: date, slot_time: time, duration_minutes: int) -> tuple[datetime, datetime]:
    start = datetime.combine(slot_date, slot_time)
    return start, start + timedelta(minutes=duration_minutes)


def check_business_rules(
    hours: list[BusinessHours],
    slot_date: date,
    slot_time: time,
    duration_minutes: int,
    min_notice_minutes: int = 0,
    now: datetime | None = None,
) -> None:
    """Raise when the slot is outside configured opening hours, already past or too soon.

    No hours configured means no hours restriction. The past and notice
    rules apply only when `now` is given.
    """
    start, end = _slot_window(slot_date, slot_time, duration_minutes)
    if hours:
        day = next((h for h in hours if h.weekday == slot_date.weekday() and h.is_active), None)
        if day is None:
            raise OutsideBusinessHoursError(f"Closed on {slot_date.strftime('%A')}s")
        if end.date() != start.date() or not day.contains(start.time(), end.time()):
            raise OutsideBusinessHoursError(
                f"{slot_time.strftime('%H:%M')} ({duration_minutes} min) is outside opening hours"
            )
    if now is None:
        return
    if start < now:
        raise PastSlotError(f"{slot_date.isoformat()} at {slot_time.strftime('%H:%M')} has already passed")
    if start < now + timedelta(minutes=min_notice_minutes):
        raise InsufficientNoticeError(
            f"Bookings need at least {min_notice_minutes} minutes notice"
        )


@dataclass(frozen=True)
class BookedWindow:
    appointment: Appointment
    start: datetime
    end: datetime


async def load_day_windows(
    session: AsyncSession, owner_id: int, slot_date: date, exclude_id: int | None = None
) -> list[BookedWindow]:
    """Live appointments on the day with their [start, end) from the service duration."""
    q = (
        select(Appointment, Service.duration_minutes)
        .join(Service, Service.id == Appointment.service_id)
        .where(
            Appointment.owner_id == owner_id,
            Appointment.slot_date == slot_date,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        .order_by(Appointment.slot_time)
    )
    if exclude_id is not None:
        q = q.where(Appointment.id != exclude_id)
    result = await session.execute(q)
    windows = []
    for appointment, duration in result.all():
        start, end = _slot_window(appointment.slot_date, appointment.slot_time, duration)
        windows.append(BookedWindow(appointment, start, end))
    return windows


def blocking_appointments(
    windows: list[BookedWindow],
    slot_date: date,
    slot_time: time,
    duration_minutes: int,
    overlap: bool,
    gap_minutes: int = 0,
) -> list[Appointment]:
    """Same start always blocks; with overlap, so does any interval within `gap_minutes` of the slot."""
    start, end = _slot_window(slot_date, slot_time, duration_minutes)
    gap = timedelta(minutes=gap_minutes)
    blocking = []
    for w in windows:
        if w.appointment.slot_time == slot_time:
            blocking.append(w.appointment)
        elif overlap and w.start < end + gap and start < w.end + gap:
            blocking.append(w.appointment)
    return blocking


async def interval_minutes_for(session: AsyncSession, owner_id: int) -> int:
    profile = await get_business_profile(session, owner_id)
    return profile.interval_minutes if profile else 0


async def find_conflicts(
    session: AsyncSession,
    owner_id: int,
    slot_date: date,
    slot_time: time,
    duration_minutes: int,
    exclude_id: int | None = None,
    overlap: bool | None = None,
) -> list[Appointment]:
    """Live appointments that block the slot: same start, or (with overlap) any interval
    intersecting it once padded by the business's interval between appointments."""
    overlap = settings.booking_overlap_check if overlap is None else overlap
    gap = await interval_minutes_for(session, owner_id) if overlap else 0
    windows = await load_day_windows(session, owner_id, slot_date, exclude_id)
    return blocking_appointments(windows, slot_date, slot_time, duration_minutes, overlap, gap)


async def ensure_slot_free(
    session: AsyncSession,
    owner_id: int,
    slot_date: date,
    slot_time: time,
    duration_minutes: int,
    exclude_id: int | None = None,
) -> None:
    conflicts = await find_conflicts(session, owner_id, slot_date, slot_time, duration_minutes, exclude_id)
    if conflicts:
        logger.info(
            "Slot conflict owner_id=%s %s %s with appointment(s) %s",
            owner_id, slot_date, slot_time, [c.id for c in conflicts],
        )
        raise SlotConflictError(
            f"{slot_date.isoformat()} at {slot_time.strftime('%H:%M')} is already booked"
        )


async def resolve_service(session: AsyncSession, owner_id: int, name: str) -> Service:
    match = await match_services(session, owner_id, name)
    if match.is_ambiguous:
        names = [s.name for s in match.candidates]
        raise AmbiguousServiceError(f"'{name}' matches several services: {', '.join(names)}", names)
    if match.service is None:
        raise ServiceNotFoundError(f"No active service matches '{name}'")
    return match.service


async def resolve_draft(
    session: AsyncSession,
    owner_id: int,
    service: Service,
    client_name: str,
    phone: str,
    slot_date: date,
    slot_time: time,
    email: str | None = None,
    min_notice_minutes: int = 0,
    now: datetime | None = None,
) -> BookingDraft:
    """Apply opening hours, notice and conflict rules for an already resolved service."""
    hours = await list_business_hours(session, owner_id, active_only=True)
    check_business_rules(hours, slot_date, slot_time, service.duration_minutes, min_notice_minutes, now)
    await ensure_slot_free(session, owner_id, slot_date, slot_time, service.duration_minutes)
    return BookingDraft(
        owner_id=owner_id,
        service_id=service.id,
        service_name=service.name,
        price=service.price,
        duration_minutes=service.duration_minutes,
        client_name=client_name,
        phone=phone,
        email=email,
        slot_date=slot_date,
        slot_time=slot_time,
    )


async def resolve_booking(
    session: AsyncSession,
    owner_id: int,
    intent,
    min_notice_minutes: int = 0,
    now: datetime | None = None,
) -> BookingDraft:
    """Turn an extracted intent into a draft ready to commit, or raise a typed BookingError."""
    data = intent.data
    service = await resolve_service(session, owner_id, data.service)
    return await resolve_draft(
        session,
        owner_id,
        service,
        client_name=data.client,
        phone=data.phone,
        slot_date=data.slot_date,
        slot_time=data.slot_time,
        min_notice_minutes=min_notice_minutes,
        now=now,
    )


def _slot_times_for_day(day: BusinessHours, d: date, duration_minutes: int) -> list[time]:
    """Slot starts through the day's opening hours that fit the duration and skip the break."""
    slots: list[time] = []
    current = datetime.combine(d, day.open_time)
    close = datetime.combine(d, day.close_time)
    step = timedelta(minutes=settings.slot_step_minutes)
    length = timedelta(minutes=duration_minutes)
    while current + length <= close:
        if day.contains(current.time(), (current + length).time()):
            slots.append(current.time())
        current += step
    return slots


async def get_available_slots_for_date(
    session: AsyncSession, owner_id: int, d: date, duration_minutes: int | None = None
) -> list[tuple[time, bool]]:
    """Returns list of (slot_time, available) for the owner's opening hours on d."""
    hours = await list_business_hours(session, owner_id, active_only=True)
    day = next((h for h in hours if h.weekday == d.weekday()), None)
    if day is None:
        return []
    if duration_minutes is None:
        services = await list_active_services(session, owner_id)
        duration_minutes = min((s.duration_minutes for s in services), default=settings.slot_step_minutes)
    overlap = settings.booking_overlap_check
    gap = await interval_minutes_for(session, owner_id) if overlap else 0
    windows = await load_day_windows(session, owner_id, d)
    return [
        (t, not blocking_appointments(windows, d, t, duration_minutes, overlap, gap))
        for t in _slot_times_for_day(day, d, duration_minutes)
    ]
