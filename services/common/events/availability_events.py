"""
Availability event models published by the availability service.

Consumers (notifications, booking workflows, analytics) subscribe to these
through the EventBus; the availability engine never calls them directly.
"""

from datetime import date, datetime
from typing import ClassVar, List, Optional

from pydantic import Field

from services.common.events.base_events import BaseEvent, EventMetadata

AVAILABILITY_SOURCE_SERVICE = "availability-service"


def _availability_metadata() -> EventMetadata:
    return EventMetadata(source_service=AVAILABILITY_SOURCE_SERVICE)


class AvailabilityEvent(BaseEvent):
    """Base class for events emitted by the availability engine."""

    metadata: EventMetadata = Field(
        default_factory=_availability_metadata, description="Event metadata"
    )


class ProfileEvent(AvailabilityEvent):
    profile_id: str = Field(..., description="Availability profile ID")
    tenant_id: str = Field(..., description="Tenant owning the profile")
    user_id: str = Field(..., description="User owning the profile")


class ProfileCreatedEvent(ProfileEvent):
    event_type: ClassVar[str] = "profileCreated"


class ProfileUpdatedEvent(ProfileEvent):
    event_type: ClassVar[str] = "profileUpdated"

    updated_fields: List[str] = Field(
        default_factory=list, description="Top-level profile fields that changed"
    )
    slots_regenerated: bool = Field(
        default=False, description="Whether the update triggered slot regeneration"
    )


class ProfileDeletedEvent(ProfileEvent):
    event_type: ClassVar[str] = "profileDeleted"

    slots_removed: int = Field(default=0, description="Number of slots deleted")


class SlotEvent(AvailabilityEvent):
    slot_id: str = Field(..., description="Slot ID")
    booking_id: str = Field(..., description="Booking that changed the slot")
    user_id: str = Field(..., description="User owning the slot")
    profile_id: str = Field(..., description="Profile the slot was generated from")
    start_date_time: datetime = Field(..., description="Slot start")
    end_date_time: datetime = Field(..., description="Slot end")
    status: str = Field(..., description="Slot status after the change")
    current_bookings: int = Field(..., description="Bookings held after the change")
    max_bookings: int = Field(..., description="Slot capacity")


class SlotBookedEvent(SlotEvent):
    event_type: ClassVar[str] = "slotBooked"

    meeting_type: Optional[str] = Field(None, description="Requested meeting type")


class SlotReleasedEvent(SlotEvent):
    event_type: ClassVar[str] = "slotReleased"


class SlotsRegeneratedEvent(ProfileEvent):
    event_type: ClassVar[str] = "slotsRegenerated"

    slot_count: int = Field(..., description="Future slots after regeneration")
    window_start: date = Field(..., description="First local day of the window")
    window_end: date = Field(..., description="Local day after the window (exclusive)")
