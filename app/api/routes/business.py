from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_owner_id, get_session
from app.api.schemas.business import BusinessHoursPublic, BusinessProfilePublic
from app.models.business import (
    BusinessHours,
    BusinessHoursCreate,
    BusinessProfile,
    BusinessProfileUpdate,
    ServiceCreate,
    ServicePublic,
)
from app.services.catalog_service import (
    create_service,
    deactivate_service,
    get_business_profile,
    list_active_services,
    list_business_hours,
    upsert_business_hours,
    upsert_business_profile,
)

router = APIRouter(prefix="/business", tags=["business"])


def _profile_public(p: BusinessProfile) -> BusinessProfilePublic:
    return BusinessProfilePublic.model_validate(p, from_attributes=True)


def _hours_public(h: BusinessHours) -> BusinessHoursPublic:
    return BusinessHoursPublic.model_validate(h, from_attributes=True)


@router.get("/profile", response_model=BusinessProfilePublic)
async def read_profile(
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> BusinessProfilePublic:
    profile = await get_business_profile(session, owner_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business profile not configured")
    return _profile_public(profile)


@router.put("/profile", response_model=BusinessProfilePublic)
async def save_profile(
    body: BusinessProfileUpdate,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> BusinessProfilePublic:
    profile = await upsert_business_profile(session, owner_id, body)
    return _profile_public(profile)


@router.get("/hours", response_model=list[BusinessHoursPublic])
async def read_hours(
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> list[BusinessHoursPublic]:
    return [_hours_public(h) for h in await list_business_hours(session, owner_id)]


@router.put("/hours", response_model=list[BusinessHoursPublic])
async def save_hours(
    body: list[BusinessHoursCreate],
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> list[BusinessHoursPublic]:
    rows = await upsert_business_hours(session, owner_id, body)
    return [_hours_public(h) for h in rows]


@router.get("/services", response_model=list[ServicePublic])
async def read_services(
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> list[ServicePublic]:
    services = await list_active_services(session, owner_id)
    return [ServicePublic.model_validate(s, from_attributes=True) for s in services]


@router.post("/services", response_model=ServicePublic, status_code=status.HTTP_201_CREATED)
async def add_service(
    body: ServiceCreate,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> ServicePublic:
    service = await create_service(session, owner_id, body)
    return ServicePublic.model_validate(service, from_attributes=True)


@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_service(
    service_id: int,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
) -> None:
    ok = await deactivate_service(session, owner_id, service_id)
    if not ok:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service not found",
        )
