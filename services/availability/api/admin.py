from typing import Any, Dict

from fastapi import APIRouter, Depends

from services.availability.schemas import SuccessResponse
from services.availability.services.availability_service import (
    AvailabilityService,
    get_availability_service,
)

router = APIRouter()


@router.post("/admin/regenerate", response_model=SuccessResponse)
async def regenerate_all(
    service: AvailabilityService = Depends(get_availability_service),
) -> SuccessResponse:
    """Regenerate slots for every active profile (for external cron triggers)."""
    summary = await service.regenerate_all_active_profiles()
    return SuccessResponse(data=summary, message="Slots regenerated")


@router.get("/health")
async def system_health(
    service: AvailabilityService = Depends(get_availability_service),
) -> Dict[str, Any]:
    return await service.get_system_health()
