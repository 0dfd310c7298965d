from datetime import UTC, date, datetime, time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentStatus
from app.models.business import (
    BusinessHours,
    BusinessHoursCreate,
    BusinessProfile,
    BusinessProfileUpdate,
    Service,
    ServiceCreate,
)


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


async def get_business_profile(session: AsyncSession, owner_id: int) -> BusinessProfile | None:
    result = await session.execute(select(BusinessProfile).where(BusinessProfile.owner_id == owner_id))
    return result.scalar_one_or_none()


async def upsert_business_profile(
    session: AsyncSession, owner_id: int, data: BusinessProfileUpdate
) -> BusinessProfile:
    profile = await get_business_profile(session, owner_id)
    if profile is None:
        profile = BusinessProfile(owner_id=owner_id, **data.model_dump())
    else:
        for key, value in data.model_dump().items():
            setattr(profile, key, value)
        profile.updated_at = _utc_naive_now()
    session.add(profile)
    await session.flush()
    await session.refresh(profile)
    return profile


async def list_active_services(session: AsyncSession, owner_id: int) -> list[Service]:
    result = await session.execute(
        select(Service)
        .where(Service.owner_id == owner_id, Service.is_active == True)  # noqa: E712
        .order_by(Service.name, Service.id)
    )
    return list(result.scalars().all())


async def get_service(session: AsyncSession, owner_id: int, service_id: int) -> Service | None:
    result = await session.execute(
        select(Service).where(Service.id == service_id, Service.owner_id == owner_id)
    )
    return result.scalar_one_or_none()


async def create_service(session: AsyncSession, owner_id: int, data: ServiceCreate) -> Service:
    service = Service(owner_id=owner_id, **data.model_dump())
    session.add(service)
    await session.flush()
    await session.refresh(service)
    return service


async def deactivate_service(session: AsyncSession, owner_id: int, service_id: int) -> bool:
    """Hide a service from booking. Past appointments keep their reference and price."""
    service = await get_service(session, owner_id, service_id)
    if not service:
        return False
    service.is_active = False
    service.updated_at = _utc_naive_now()
    session.add(service)
    await session.flush()
    return True


async def list_business_hours(
    session: AsyncSession, owner_id: int, active_only: bool = False
) -> list[BusinessHours]:
    q = select(BusinessHours).where(BusinessHours.owner_id == owner_id).order_by(BusinessHours.weekday)
    if active_only:
        q = q.where(BusinessHours.is_active == True)  # noqa: E712
    result = await session.execute(q)
    return list(result.scalars().all())


async def upsert_business_hours(
    session: AsyncSession, owner_id: int, entries: list[BusinessHoursCreate]
) -> list[BusinessHours]:
    existing = {h.weekday: h for h in await list_business_hours(session, owner_id)}
    for entry in entries:
        row = existing.get(entry.weekday)
        if row is None:
            row = BusinessHours(owner_id=owner_id, **entry.model_dump())
            existing[entry.weekday] = row
        else:
            for key, value in entry.model_dump().items():
                setattr(row, key, value)
            row.updated_at = _utc_naive_now()
        session.add(row)
    await session.flush()
    return await list_business_hours(session, owner_id)


async def list_booked_slots(
    session: AsyncSession, owner_id: int, from_date: date, limit: int | None = None
) -> list[tuple[date, time]]:
    """Live (non-cancelled) appointment slots from `from_date` on, oldest first. No client data."""
    q = (
        select(Appointment.slot_date, Appointment.slot_time)
        .where(
            Appointment.owner_id == owner_id,
            Appointment.slot_date >= from_date,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        .order_by(Appointment.slot_date, Appointment.slot_time)
    )
    if limit is not None:
        q = q.limit(limit)
    result = await session.execute(q)
    return [(row[0], row[1]) for row in result.all()]
