import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_owner_id, get_session
from app.api.errors import to_http_exception
from app.api.schemas.appointment import (
    BookAppointmentRequest,
    PaymentUpdateRequest,
    RescheduleRequest,
    StatusChangeRequest,
)
from app.models.appointment import (
    Appointment,
    AppointmentLogPublic,
    AppointmentPublic,
    AppointmentStatus,
)
from app.services.appointment_service import (
    book_manually,
    cancel_appointment,
    get_appointment_logs,
    list_appointments,
    reschedule_appointment,
    transition_appointment,
    update_payment,
)
from app.services.errors import BookingError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def to_public(a: Appointment, service_name: str | None = None) -> AppointmentPublic:
    return AppointmentPublic(
        id=int(a.id),
        owner_id=a.owner_id,
        client_name=a.client_name,
        phone=a.phone,
        email=a.email,
        service_id=a.service_id,
        service_name=service_name,
        slot_date=a.slot_date,
        slot_time=a.slot_time,
        price=a.price,
        paid=a.paid,
        payment_method=a.payment_method,
        notes=a.notes,
        status=a.status,
        source=a.source,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


@router.get("", response_model=list[AppointmentPublic])
async def list_owner_appointments(
    on_date: date | None = Query(None, alias="date"),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> list[AppointmentPublic]:
    try:
        rows = await list_appointments(session, owner_id, on_date=on_date, status=status_filter)
        return [to_public(a, name) for a, name in rows]
    except Exception as e:
        logger.exception("List appointments failed: %s", e)
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {e}") from e


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> AppointmentPublic:
    """Staff booking made directly from the back office."""
    try:
        appointment = await book_manually(
            session,
            owner_id,
            service_id=body.service_id,
            client_name=body.client_name,
            phone=body.phone,
            slot_date=body.slot_date,
            slot_time=body.slot_time,
            email=body.email,
            notes=body.notes,
            status=body.status,
        )
    except BookingError as e:
        raise to_http_exception(e) from e
    return to_public(appointment)


@router.post("/{appointment_id}/status", response_model=AppointmentPublic)
async def change_status(
    appointment_id: int,
    body: StatusChangeRequest,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> AppointmentPublic:
    try:
        appointment = await transition_appointment(session, owner_id, appointment_id, body.status, body.detail)
    except BookingError as e:
        raise to_http_exception(e) from e
    return to_public(appointment)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentPublic)
async def reschedule(
    appointment_id: int,
    body: RescheduleRequest,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> AppointmentPublic:
    try:
        appointment = await reschedule_appointment(session, owner_id, appointment_id, body.slot_date, body.slot_time)
    except BookingError as e:
        raise to_http_exception(e) from e
    return to_public(appointment)


@router.patch("/{appointment_id}/payment", response_model=AppointmentPublic)
async def payment(
    appointment_id: int,
    body: PaymentUpdateRequest,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> AppointmentPublic:
    try:
        appointment = await update_payment(
            session, owner_id, appointment_id,
            paid=body.paid, payment_method=body.payment_method, notes=body.notes,
        )
    except BookingError as e:
        raise to_http_exception(e) from e
    return to_public(appointment)


@router.delete("/{appointment_id}", response_model=AppointmentPublic)
async def cancel(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> AppointmentPublic:
    """Cancel (never delete); the slot becomes bookable again."""
    try:
        appointment = await cancel_appointment(session, owner_id, appointment_id)
    except BookingError as e:
        raise to_http_exception(e) from e
    return to_public(appointment)


@router.get("/{appointment_id}/logs", response_model=list[AppointmentLogPublic])
async def logs(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> list[AppointmentLogPublic]:
    try:
        rows = await get_appointment_logs(session, owner_id, appointment_id)
    except BookingError as e:
        raise to_http_exception(e) from e
    return [
        AppointmentLogPublic(
            id=int(r.id), appointment_id=r.appointment_id, action=r.action, detail=r.detail, created_at=r.created_at
        )
        for r in rows
    ]
