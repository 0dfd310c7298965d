from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_owner_id, get_session
from app.api.schemas.reports import SummaryResponse
from app.services.report_service import get_summary

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=SummaryResponse)
async def summary(
    days: int = Query(30, ge=1, le=366),
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> SummaryResponse:
    return SummaryResponse.model_validate(asdict(await get_summary(session, owner_id, days)))
