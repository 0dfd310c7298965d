from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_owner_id, get_session
from app.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from app.services.catalog_service import get_service
from app.services.slot_service import get_available_slots_for_date

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: date = Query(..., alias="date"),
    service_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> AvailableSlotsResponse:
    """Slot starts within opening hours for the given date, each marked available or taken."""
    duration = None
    if service_id is not None:
        service = await get_service(session, owner_id, service_id)
        if not service:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
        duration = service.duration_minutes
    slots = await get_available_slots_for_date(session, owner_id, date_param, duration)
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        duration_minutes=duration,
        slots=[SlotInfo(time=t.strftime("%H:%M"), available=avail) for t, avail in slots],
    )
