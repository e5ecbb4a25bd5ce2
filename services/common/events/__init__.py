"""
Event schemas and dispatch shared across the scheduling services.

Pydantic models keep event payloads typed and consistent; the EventBus
delivers them to in-process subscribers.
"""

from services.common.events.availability_events import (
    AvailabilityEvent,
    ProfileCreatedEvent,
    ProfileDeletedEvent,
    ProfileUpdatedEvent,
    SlotBookedEvent,
    SlotReleasedEvent,
    SlotsRegeneratedEvent,
)
from services.common.events.base_events import BaseEvent, EventMetadata
from services.common.events.event_bus import ALL_EVENTS, EventBus

__all__ = [
    # Base events
    "BaseEvent",
    "EventMetadata",
    # Dispatch
    "ALL_EVENTS",
    "EventBus",
    # Availability events
    "AvailabilityEvent",
    "ProfileCreatedEvent",
    "ProfileUpdatedEvent",
    "ProfileDeletedEvent",
    "SlotBookedEvent",
    "SlotReleasedEvent",
    "SlotsRegeneratedEvent",
]
