"""
Per-slot capacity accounting.

``reserve_capacity`` and ``release_capacity`` are the only code paths that
change a slot's bookings outside regeneration. They run inside the slot
store's ``mutate`` so the check and the update cannot interleave.
"""

from typing import Optional

from services.availability.models.slot import AvailabilitySlot, SlotStatus
from services.availability.services.stores import SlotStore
from services.common.http_errors import (
    CapacityExceededError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)


def reserve_capacity(
    slot: AvailabilitySlot, booking_id: str, meeting_type: Optional[str] = None
) -> AvailabilitySlot:
    """
    Add ``booking_id`` to the slot.

    Raises:
        CapacityExceededError: The slot is booked or has no spare capacity
        SlotUnavailableError: The slot is blocked or tentative
        ValidationError: The slot does not accept ``meeting_type``
    """
    if slot.status == SlotStatus.BOOKED:
        raise CapacityExceededError(slot.id, slot.max_bookings)
    if slot.status != SlotStatus.AVAILABLE:
        raise SlotUnavailableError(slot.id, slot.status.value)
    if not slot.has_capacity:
        raise CapacityExceededError(slot.id, slot.max_bookings)
    if not slot.accepts_meeting_type(meeting_type):
        raise ValidationError(
            f"Slot {slot.id} does not accept meeting type {meeting_type}",
            field="meeting_type",
            value=meeting_type,
            details={"slot_id": slot.id, "meeting_types": slot.meeting_types},
        )

    slot.booking_ids.append(booking_id)
    slot.current_bookings += 1
    slot.refresh_status()
    return slot


def release_capacity(slot: AvailabilitySlot, booking_id: str) -> AvailabilitySlot:
    """
    Remove ``booking_id`` from the slot.

    Raises:
        NotFoundError: The booking is not held by this slot
    """
    if booking_id not in slot.booking_ids:
        raise NotFoundError("Booking", booking_id, details={"slot_id": slot.id})

    slot.booking_ids.remove(booking_id)
    slot.current_bookings = max(0, slot.current_bookings - 1)
    if slot.status == SlotStatus.BOOKED and slot.has_capacity:
        slot.status = SlotStatus.AVAILABLE
    return slot


class SlotBookingService:
    def __init__(self, slots: SlotStore) -> None:
        self.slots = slots

    def book(
        self, slot_id: str, booking_id: str, meeting_type: Optional[str] = None
    ) -> AvailabilitySlot:
        slot = self.slots.mutate(
            slot_id, lambda s: reserve_capacity(s, booking_id, meeting_type)
        )
        logger.info(
            "Slot booked",
            slot_id=slot_id,
            booking_id=booking_id,
            current_bookings=slot.current_bookings,
            max_bookings=slot.max_bookings,
        )
        return slot

    def release(self, slot_id: str, booking_id: str) -> AvailabilitySlot:
        slot = self.slots.mutate(slot_id, lambda s: release_capacity(s, booking_id))
        logger.info(
            "Slot released",
            slot_id=slot_id,
            booking_id=booking_id,
            current_bookings=slot.current_bookings,
        )
        return slot
