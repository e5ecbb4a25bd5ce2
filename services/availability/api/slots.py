from fastapi import APIRouter, Depends

from services.availability.schemas import BookSlotRequest, ReleaseSlotRequest, SlotResponse
from services.availability.services.availability_service import (
    AvailabilityService,
    get_availability_service,
)

router = APIRouter()


@router.post("/{slot_id}/book", response_model=SlotResponse)
async def book_slot(
    slot_id: str,
    body: BookSlotRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> SlotResponse:
    slot = await service.book_slot(slot_id, body.booking_id, body.meeting_type)
    return SlotResponse(data=slot, message="Slot booked")


@router.post("/{slot_id}/release", response_model=SlotResponse)
async def release_slot(
    slot_id: str,
    body: ReleaseSlotRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> SlotResponse:
    slot = await service.release_slot(slot_id, body.booking_id)
    return SlotResponse(data=slot, message="Slot released")
