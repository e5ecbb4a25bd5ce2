from fastapi import APIRouter, Depends

from services.availability.models.query import AvailabilityQuery, BulkAvailabilityRequest
from services.availability.schemas import AvailabilityResponse, BulkAvailabilityResponse
from services.availability.services.availability_service import (
    AvailabilityService,
    get_availability_service,
)

router = APIRouter()


@router.post("/query", response_model=AvailabilityResponse)
async def query_availability(
    query: AvailabilityQuery,
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    return AvailabilityResponse(data=await service.get_availability(query))


@router.post("/bulk-query", response_model=BulkAvailabilityResponse)
async def bulk_query_availability(
    body: BulkAvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> BulkAvailabilityResponse:
    return BulkAvailabilityResponse(data=await service.get_bulk_availability(body))
