"""
Availability service request and response schemas.
"""

from services.availability.schemas.availability_requests import (
    AvailabilityResponse,
    BookSlotRequest,
    BulkAvailabilityResponse,
    CreateDefaultProfileRequest,
    CreateProfileRequest,
    ProfileResponse,
    ProfilesListResponse,
    ReleaseSlotRequest,
    SlotResponse,
    SlotsListResponse,
    SuccessResponse,
    UpdateProfileRequest,
)

__all__ = [
    "AvailabilityResponse",
    "BookSlotRequest",
    "BulkAvailabilityResponse",
    "CreateDefaultProfileRequest",
    "CreateProfileRequest",
    "ProfileResponse",
    "ProfilesListResponse",
    "ReleaseSlotRequest",
    "SlotResponse",
    "SlotsListResponse",
    "SuccessResponse",
    "UpdateProfileRequest",
]
