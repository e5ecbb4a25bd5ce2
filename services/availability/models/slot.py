from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from services.availability.models.profile import BufferTime
from services.availability.models.time_utils import ensure_utc


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"
    TENTATIVE = "tentative"


class SlotType(str, Enum):
    REGULAR = "regular"
    EXCEPTION = "exception"
    OVERRIDE = "override"


class SourceType(str, Enum):
    PATTERN = "pattern"
    EXCEPTION = "exception"
    OVERRIDE = "override"
    MANUAL = "manual"


class SlotMetadata(BaseModel):
    source_type: SourceType
    source_id: Optional[str] = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AvailabilitySlot(BaseModel):
    """
    A discrete bookable interval derived from a profile.

    ``current_bookings`` is only ever changed by booking/release or by a
    regeneration that carries bookings over; see ``reserve_capacity`` and
    ``release_capacity`` in the booking service.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    profile_id: str
    start_date_time: datetime
    end_date_time: datetime
    status: SlotStatus = SlotStatus.AVAILABLE
    slot_type: SlotType = SlotType.REGULAR
    max_bookings: int = Field(1, ge=1)
    current_bookings: int = Field(0, ge=0)
    booking_ids: List[str] = Field(default_factory=list)
    meeting_types: List[str] = Field(default_factory=list)
    buffer_time: BufferTime = Field(default_factory=BufferTime)
    time_zone: str = "UTC"
    cost: Optional[float] = None
    metadata: SlotMetadata

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def normalize_datetime(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_range(self) -> "AvailabilitySlot":
        if self.end_date_time <= self.start_date_time:
            raise ValueError("Slot end_date_time must be after start_date_time")
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.end_date_time - self.start_date_time).total_seconds() // 60)

    @property
    def has_capacity(self) -> bool:
        return self.current_bookings < self.max_bookings

    def accepts_meeting_type(self, meeting_type: Optional[str]) -> bool:
        """An empty meeting_types list accepts every type."""
        if not meeting_type or not self.meeting_types:
            return True
        return meeting_type in self.meeting_types

    def refresh_status(self) -> None:
        """Recompute booked/available from capacity; blocked and tentative are sticky."""
        if self.status in (SlotStatus.BLOCKED, SlotStatus.TENTATIVE):
            return
        self.status = SlotStatus.AVAILABLE if self.has_capacity else SlotStatus.BOOKED
