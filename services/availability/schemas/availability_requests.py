from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from services.availability.models.profile import (
    AvailabilityProfile,
    AvailabilityRules,
    ProfilePreferences,
    ProfileStatus,
    WorkingHours,
)
from services.availability.models.query import AvailabilityResult
from services.availability.models.slot import AvailabilitySlot


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# Request Models
class CreateProfileRequest(BaseModel):
    user_id: Optional[str] = Field(
        None, description="Profile owner; defaults to the X-User-Id header"
    )
    name: str = Field("Availability", min_length=1, max_length=255)
    description: Optional[str] = None
    time_zone: Optional[str] = Field(None, description="IANA time zone name")
    is_default: bool = False
    working_hours: Dict[str, WorkingHours] = Field(default_factory=dict)
    availability: AvailabilityRules = Field(default_factory=AvailabilityRules)
    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)
    status: ProfileStatus = ProfileStatus.ACTIVE


class CreateDefaultProfileRequest(BaseModel):
    user_id: Optional[str] = Field(
        None, description="Profile owner; defaults to the X-User-Id header"
    )
    customizations: Dict[str, Any] = Field(
        default_factory=dict, description="Top-level profile fields overriding the template"
    )


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    time_zone: Optional[str] = None
    is_default: Optional[bool] = None
    working_hours: Optional[Dict[str, WorkingHours]] = None
    availability: Optional[AvailabilityRules] = None
    preferences: Optional[ProfilePreferences] = None
    status: Optional[ProfileStatus] = None


class BookSlotRequest(BaseModel):
    booking_id: str = Field(..., min_length=1)
    meeting_type: Optional[str] = None


class ReleaseSlotRequest(BaseModel):
    booking_id: str = Field(..., min_length=1)


# Response Models
class ProfileResponse(BaseModel):
    data: AvailabilityProfile
    message: str = "OK"
    timestamp: str = Field(default_factory=_now_iso)


class ProfilesListResponse(BaseModel):
    data: List[AvailabilityProfile]
    total: int


class SlotResponse(BaseModel):
    data: AvailabilitySlot
    message: str
    timestamp: str = Field(default_factory=_now_iso)


class SlotsListResponse(BaseModel):
    data: List[AvailabilitySlot]
    total: int


class AvailabilityResponse(BaseModel):
    data: List[AvailabilityResult]


class BulkAvailabilityResponse(BaseModel):
    data: List[List[AvailabilityResult]]


class SuccessResponse(BaseModel):
    data: Dict[str, Any]
    message: str
    timestamp: str = Field(default_factory=_now_iso)
