from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentStatus
from app.models.business import Service


@dataclass
class ServiceCount:
    name: str
    count: int
    revenue: Decimal


@dataclass
class DayCount:
    slot_date: date
    count: int
    revenue: Decimal


@dataclass
class Summary:
    days: int
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0
    revenue: Decimal = Decimal("0.00")
    average_ticket: Decimal = Decimal("0.00")
    top_services: list[ServiceCount] = field(default_factory=list)
    by_day: list[DayCount] = field(default_factory=list)


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


async def get_summary(session: AsyncSession, owner_id: int, days: int = 30) -> Summary:
    """Counts by status, paid revenue, average ticket, top five services and a per-day
    breakdown (newest slot date first) for appointments created in the last `days` days."""
    cutoff = datetime.now(UTC).replace(tzinfo=None) - timedelta(days=days)
    scope = (Appointment.owner_id == owner_id, Appointment.created_at >= cutoff)

    def _count(status: AppointmentStatus):
        return func.count(case((Appointment.status == status, 1)))

    row = (
        await session.execute(
            select(
                func.count(Appointment.id),
                _count(AppointmentStatus.PENDING),
                _count(AppointmentStatus.CONFIRMED),
                _count(AppointmentStatus.COMPLETED),
                _count(AppointmentStatus.CANCELLED),
                func.sum(case((Appointment.paid == True, Appointment.price), else_=0)),  # noqa: E712
                func.avg(Appointment.price),
            ).where(*scope)
        )
    ).one()

    top = await session.execute(
        select(Service.name, func.count(Appointment.id), func.sum(Appointment.price))
        .join(Service, Service.id == Appointment.service_id)
        .where(*scope)
        .group_by(Service.id, Service.name)
        .order_by(func.count(Appointment.id).desc(), Service.name)
        .limit(5)
    )
    per_day = await session.execute(
        select(Appointment.slot_date, func.count(Appointment.id), func.sum(Appointment.price))
        .where(*scope)
        .group_by(Appointment.slot_date)
        .order_by(Appointment.slot_date.desc())
    )
    return Summary(
        days=days,
        total=row[0] or 0,
        pending=row[1] or 0,
        confirmed=row[2] or 0,
        completed=row[3] or 0,
        cancelled=row[4] or 0,
        revenue=_money(row[5]),
        average_ticket=_money(row[6]),
        top_services=[ServiceCount(name=name, count=count, revenue=_money(rev)) for name, count, rev in top.all()],
        by_day=[DayCount(slot_date=d, count=count, revenue=_money(rev)) for d, count, rev in per_day.all()],
    )
