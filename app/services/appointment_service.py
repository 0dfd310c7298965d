import logging
from datetime import UTC, date, datetime, time

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import (
    LIVE_SLOT_INDEX,
    Appointment,
    AppointmentLog,
    AppointmentSource,
    AppointmentStatus,
    LogAction,
    PaymentMethod,
)
from app.models.business import Service
from app.services.catalog_service import get_business_profile, get_service, list_business_hours
from app.services.errors import (
    AppointmentNotFoundError,
    InvalidTransitionError,
    PersistenceError,
    ServiceNotFoundError,
    SlotConflictError,
)
from app.services.slot_service import BookingDraft, check_business_rules, ensure_slot_free, resolve_draft

logger = logging.getLogger(__name__)

# pending -> confirmed -> completed; cancelled from pending or confirmed
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

_TRANSITION_ACTIONS = {
    AppointmentStatus.CONFIRMED: LogAction.CONFIRMED,
    AppointmentStatus.COMPLETED: LogAction.COMPLETED,
    AppointmentStatus.CANCELLED: LogAction.CANCELLED,
}


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _creation_log(appointment: Appointment, source: AppointmentSource) -> AppointmentLog:
    via = "assistant chat" if source == AppointmentSource.ASSISTANT else "staff"
    return AppointmentLog(
        appointment_id=appointment.id,
        action=LogAction.CREATED,
        detail=f"Appointment created via {via} for {appointment.client_name}",
    )


def _is_live_slot_violation(exc: IntegrityError) -> bool:
    # PostgreSQL names the index; SQLite lists its columns
    message = str(exc.orig)
    return LIVE_SLOT_INDEX in message or (
        "UNIQUE constraint failed: appointments.owner_id, appointments.slot_date, appointments.slot_time" in message
    )


async def lock_schedule_day(session: AsyncSession, owner_id: int, day: date) -> None:
    """Serialise bookings for one owner and date until the current transaction ends."""
    conn = await session.connection()
    if conn.dialect.name == "postgresql":
        await session.execute(
            text("SELECT pg_advisory_xact_lock(:owner_id, :day)"),
            {"owner_id": owner_id, "day": day.toordinal()},
        )
    else:
        # SQLite has no row locks; a no-op write takes the database write lock
        await session.execute(text("UPDATE appointments SET owner_id = owner_id WHERE 0 = 1"))


async def _claim_slot(
    session: AsyncSession,
    owner_id: int,
    slot_date: date,
    slot_time: time,
    duration_minutes: int,
    exclude_id: int | None = None,
) -> None:
    """Take the day lock and re-check conflicts under it; rolls back on any failure."""
    try:
        await lock_schedule_day(session, owner_id, slot_date)
        await ensure_slot_free(session, owner_id, slot_date, slot_time, duration_minutes, exclude_id=exclude_id)
    except SlotConflictError:
        await session.rollback()
        raise
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("Could not lock schedule owner_id=%s %s", owner_id, slot_date)
        raise PersistenceError("Schedule is busy, try again") from e


async def _commit_or_raise(session: AsyncSession, what: str) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("%s: commit failed", what)
        raise PersistenceError(f"{what} could not be saved") from e


async def commit_booking(
    session: AsyncSession,
    draft: BookingDraft,
    source: AppointmentSource,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    notes: str | None = None,
) -> Appointment:
    """Insert the appointment and its 'created' log in one transaction.

    A violation of the live-slot unique index means another request took the
    slot between the availability check and this insert; it surfaces as
    SlotConflictError. Any other failure rolls back both rows.

    Overlapping bookings with different start times are not covered by the
    index; the day lock taken before the insert serialises them and the
    conflict check is repeated under it.
    """
    await _claim_slot(
        session, draft.owner_id, draft.slot_date, draft.slot_time, draft.duration_minutes
    )
    appointment = Appointment(
        owner_id=draft.owner_id,
        client_name=draft.client_name,
        phone=draft.phone,
        email=draft.email,
        service_id=draft.service_id,
        slot_date=draft.slot_date,
        slot_time=draft.slot_time,
        price=draft.price,
        notes=notes,
        status=status,
        source=source,
    )
    session.add(appointment)
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        if not _is_live_slot_violation(e):
            logger.exception("Appointment insert violated a constraint")
            raise PersistenceError("Appointment could not be saved") from e
        logger.info(
            "Live slot taken concurrently owner_id=%s %s %s", draft.owner_id, draft.slot_date, draft.slot_time
        )
        raise SlotConflictError(
            f"{draft.slot_date.isoformat()} at {draft.slot_time.strftime('%H:%M')} is already booked"
        ) from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("Appointment insert failed")
        raise PersistenceError("Appointment could not be saved") from e

    try:
        session.add(_creation_log(appointment, source))
        await session.flush()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("Appointment log insert failed; booking rolled back")
        raise PersistenceError("Appointment could not be saved") from e

    await _commit_or_raise(session, "Appointment")
    logger.info(
        "Booked appointment id=%s owner_id=%s %s %s service=%s source=%s",
        appointment.id, draft.owner_id, draft.slot_date, draft.slot_time, draft.service_name, source.value,
    )
    return appointment


async def get_appointment(session: AsyncSession, owner_id: int, appointment_id: int) -> Appointment:
    result = await session.execute(
        select(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.owner_id == owner_id,
        )
    )
    appointment = result.scalar_one_or_none()
    if not appointment:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
    return appointment


async def transition_appointment(
    session: AsyncSession,
    owner_id: int,
    appointment_id: int,
    target: AppointmentStatus,
    detail: str | None = None,
) -> Appointment:
    appointment = await get_appointment(session, owner_id, appointment_id)
    current = appointment.status
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot move appointment from {current.value} to {target.value}")
    appointment.status = target
    appointment.updated_at = _utc_naive_now()
    session.add(appointment)
    session.add(
        AppointmentLog(
            appointment_id=appointment.id,
            action=_TRANSITION_ACTIONS[target],
            detail=detail or f"Status changed from {current.value} to {target.value}",
        )
    )
    await _commit_or_raise(session, "Status change")
    return appointment


async def cancel_appointment(
    session: AsyncSession, owner_id: int, appointment_id: int, reason: str | None = None
) -> Appointment:
    """Cancellation is a status change; the row and its history stay."""
    return await transition_appointment(
        session, owner_id, appointment_id, AppointmentStatus.CANCELLED, detail=reason or "Appointment cancelled"
    )


async def reschedule_appointment(
    session: AsyncSession,
    owner_id: int,
    appointment_id: int,
    new_date: date,
    new_time: time,
    now: datetime | None = None,
) -> Appointment:
    appointment = await get_appointment(session, owner_id, appointment_id)
    if appointment.status not in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED):
        raise InvalidTransitionError(f"Cannot reschedule a {appointment.status.value} appointment")
    service = await session.get(Service, appointment.service_id)
    duration = service.duration_minutes if service else 0
    profile = await get_business_profile(session, owner_id)
    hours = await list_business_hours(session, owner_id, active_only=True)
    check_business_rules(
        hours, new_date, new_time, duration, profile.min_notice_minutes if profile else 0, now
    )
    await _claim_slot(session, owner_id, new_date, new_time, duration, exclude_id=appointment.id)

    old = f"{appointment.slot_date.isoformat()} {appointment.slot_time.strftime('%H:%M')}"
    appointment.slot_date = new_date
    appointment.slot_time = new_time
    appointment.updated_at = _utc_naive_now()
    session.add(appointment)
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        if not _is_live_slot_violation(e):
            logger.exception("Reschedule violated a constraint")
            raise PersistenceError("Reschedule could not be saved") from e
        raise SlotConflictError(f"{new_date.isoformat()} at {new_time.strftime('%H:%M')} is already booked") from e
    session.add(
        AppointmentLog(
            appointment_id=appointment.id,
            action=LogAction.RESCHEDULED,
            detail=f"Moved from {old} to {new_date.isoformat()} {new_time.strftime('%H:%M')}",
        )
    )
    await _commit_or_raise(session, "Reschedule")
    return appointment


async def update_payment(
    session: AsyncSession,
    owner_id: int,
    appointment_id: int,
    paid: bool | None = None,
    payment_method: PaymentMethod | None = None,
    notes: str | None = None,
) -> Appointment:
    appointment = await get_appointment(session, owner_id, appointment_id)
    changes = []
    if paid is not None:
        appointment.paid = paid
        changes.append(f"paid={paid}")
    if payment_method is not None:
        appointment.payment_method = payment_method
        changes.append(f"payment_method={payment_method.value}")
    if notes is not None:
        appointment.notes = notes
        changes.append("notes")
    if not changes:
        return appointment
    appointment.updated_at = _utc_naive_now()
    session.add(appointment)
    session.add(
        AppointmentLog(
            appointment_id=appointment.id,
            action=LogAction.UPDATED,
            detail=f"Updated {', '.join(changes)}",
        )
    )
    await _commit_or_raise(session, "Payment update")
    return appointment


async def book_manually(
    session: AsyncSession,
    owner_id: int,
    service_id: int,
    client_name: str,
    phone: str,
    slot_date: date,
    slot_time: time,
    email: str | None = None,
    notes: str | None = None,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
) -> Appointment:
    """Staff-created booking; same hours and conflict rules as the chat path, no notice rule."""
    service = await get_service(session, owner_id, service_id)
    if not service or not service.is_active:
        raise ServiceNotFoundError(f"Service {service_id} not found")
    if status not in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED):
        raise InvalidTransitionError(f"New appointments cannot start as {status.value}")
    draft = await resolve_draft(
        session, owner_id, service, client_name, phone, slot_date, slot_time, email=email
    )
    return await commit_booking(session, draft, AppointmentSource.STAFF, status=status, notes=notes)


async def list_appointments(
    session: AsyncSession,
    owner_id: int,
    on_date: date | None = None,
    status: AppointmentStatus | None = None,
) -> list[tuple[Appointment, str | None]]:
    q = (
        select(Appointment, Service.name)
        .outerjoin(Service, Service.id == Appointment.service_id)
        .where(Appointment.owner_id == owner_id)
        .order_by(Appointment.slot_date, Appointment.slot_time)
    )
    if on_date:
        q = q.where(Appointment.slot_date == on_date)
    if status:
        q = q.where(Appointment.status == status)
    result = await session.execute(q)
    return [(row[0], row[1]) for row in result.all()]


async def get_appointment_logs(
    session: AsyncSession, owner_id: int, appointment_id: int
) -> list[AppointmentLog]:
    await get_appointment(session, owner_id, appointment_id)
    result = await session.execute(
        select(AppointmentLog)
        .where(AppointmentLog.appointment_id == appointment_id)
        .order_by(AppointmentLog.created_at, AppointmentLog.id)
    )
    return list(result.scalars().all())
