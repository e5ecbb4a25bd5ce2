from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from services.availability.models.time_utils import (
    ensure_utc,
    load_zone,
    parse_time_of_day,
    weekday_index,
)


class ProfileStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"


class BreakType(str, Enum):
    LUNCH = "lunch"
    BREAK = "break"
    BUFFER = "buffer"
    CUSTOM = "custom"


class PatternType(str, Enum):
    RECURRING = "recurring"
    ONE_TIME = "one_time"
    BLACKOUT = "blackout"


class PatternFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ExceptionType(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    LIMITED = "limited"


class RecurrencePattern(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class OverrideType(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    BUSY = "busy"
    TENTATIVE = "tentative"


def _check_time(value: str) -> str:
    parse_time_of_day(value)
    return value


class BufferTime(BaseModel):
    before: int = Field(0, ge=0, description="Minutes of padding before")
    after: int = Field(0, ge=0, description="Minutes of padding after")


class BreakPeriod(BaseModel):
    start: str = Field(..., description="Start time in HH:MM format")
    end: str = Field(..., description="End time in HH:MM format")
    title: str = Field(default="Break")
    type: BreakType = Field(default=BreakType.BREAK)

    _validate_times = field_validator("start", "end")(_check_time)

    @model_validator(mode="after")
    def validate_range(self) -> "BreakPeriod":
        if parse_time_of_day(self.start) >= parse_time_of_day(self.end):
            raise ValueError("Break end must be after break start")
        return self


class WorkingHours(BaseModel):
    enabled: bool = Field(True, description="Whether this weekday is a working day")
    start: str = Field("09:00", description="Start time in HH:MM format")
    end: str = Field("17:00", description="End time in HH:MM format")
    breaks: List[BreakPeriod] = Field(default_factory=list)

    _validate_times = field_validator("start", "end")(_check_time)


class AvailabilityPattern(BaseModel):
    """A recurring rule: days of week plus a time-of-day range and validity window."""

    type: PatternType = Field(PatternType.RECURRING)
    start_date: Optional[date] = Field(None, description="First day the pattern applies")
    end_date: Optional[date] = Field(None, description="Last day the pattern applies")
    start_time: str = Field(..., description="Start time in HH:MM format")
    end_time: str = Field(..., description="End time in HH:MM format")
    days_of_week: List[int] = Field(..., description="Weekdays, 0 = Sunday")
    frequency: PatternFrequency = Field(PatternFrequency.WEEKLY)
    title: str = Field(default="Availability")
    description: Optional[str] = None
    max_bookings: Optional[int] = Field(None, ge=1)
    min_advance_booking: Optional[int] = Field(None, ge=0, description="Hours")
    max_advance_booking: Optional[int] = Field(None, ge=0, description="Days")
    buffer_time: Optional[BufferTime] = None
    meeting_types: List[str] = Field(default_factory=list)

    _validate_times = field_validator("start_time", "end_time")(_check_time)

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError("days_of_week entries must be between 0 (Sunday) and 6")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityPattern":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("Pattern end_date must not be before start_date")
        return self

    def applies_on(self, day: date) -> bool:
        if weekday_index(day) not in self.days_of_week:
            return False
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True


class ExceptionRecurrence(BaseModel):
    pattern: RecurrencePattern
    until: Optional[date] = None


class AvailabilityException(BaseModel):
    """A single-day change of availability, optionally repeating."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    date: date
    type: ExceptionType
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    max_bookings: Optional[int] = Field(None, ge=1)
    reason: Optional[str] = None
    title: str = Field(default="Exception")
    recurring: Optional[ExceptionRecurrence] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_optional_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_time_of_day(v)
        return v

    @property
    def is_time_bounded(self) -> bool:
        return bool(self.start_time and self.end_time)

    def occurrences(self, start: date, end: date) -> List[date]:
        """Dates in ``[start, end)`` on which this exception applies."""
        if not self.recurring:
            return [self.date] if start <= self.date < end else []

        until = self.recurring.until
        dates = []
        index = 0
        while True:
            period, occurrence = self._nth_occurrence(index)
            if period >= end or (until and period > until):
                break
            if occurrence and start <= occurrence < end:
                if not (until and occurrence > until):
                    dates.append(occurrence)
            index += 1
        return dates

    def _nth_occurrence(self, index: int) -> Tuple[date, Optional[date]]:
        """
        Return ``(period_start, occurrence)`` for the index-th repetition.

        ``occurrence`` is None when the day does not exist in that period
        (Feb 30, or Feb 29 outside leap years); such repetitions are skipped.
        """
        pattern = self.recurring.pattern if self.recurring else None
        if pattern == RecurrencePattern.WEEKLY:
            current = self.date + timedelta(weeks=index)
            return current, current
        if pattern == RecurrencePattern.MONTHLY:
            months = self.date.month - 1 + index
            year, month = self.date.year + months // 12, months % 12 + 1
        else:
            year, month = self.date.year + index, self.date.month
        period = date(year, month, 1)
        try:
            return period, period.replace(day=self.date.day)
        except ValueError:
            return period, None


class AvailabilityOverride(BaseModel):
    """An absolute datetime block or addition that bypasses patterns and exceptions."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    start_date_time: datetime
    end_date_time: datetime
    type: OverrideType
    title: str = Field(default="Override")
    description: Optional[str] = None
    max_bookings: Optional[int] = Field(None, ge=1)
    booking_ids: List[str] = Field(default_factory=list)

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def normalize_datetime(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_range(self) -> "AvailabilityOverride":
        if self.end_date_time <= self.start_date_time:
            raise ValueError("Override end_date_time must be after start_date_time")
        return self


class AvailabilityRules(BaseModel):
    patterns: List[AvailabilityPattern] = Field(default_factory=list)
    exceptions: List[AvailabilityException] = Field(default_factory=list)
    overrides: List[AvailabilityOverride] = Field(default_factory=list)


class DurationRange(BaseModel):
    min: int = Field(15, ge=1)
    max: int = Field(120, ge=1)
    default: int = Field(30, ge=1)


class PreferredTimes(BaseModel):
    start: str
    end: str

    _validate_times = field_validator("start", "end")(_check_time)


class MeetingTypePreference(BaseModel):
    type: str
    duration: DurationRange = Field(default_factory=DurationRange)
    buffer_time: BufferTime = Field(default_factory=BufferTime)
    max_per_day: int = Field(8, ge=1)
    allow_back_to_back: bool = True
    preferred_times: Optional[PreferredTimes] = None


class NotificationSettings(BaseModel):
    new_booking_request: bool = True
    booking_confirmation: bool = True
    booking_cancellation: bool = True
    daily_summary: bool = False
    weekly_report: bool = False
    channels: List[str] = Field(default_factory=lambda: ["email"])
    lead_time: int = Field(15, ge=0, description="Minutes before the meeting")


class BookingSettings(BaseModel):
    auto_accept: bool = False
    require_approval: bool = True
    allow_rescheduling: bool = True
    allow_cancellation: bool = True
    minimum_notice: int = Field(24, ge=0, description="Hours")
    maximum_advance_booking: int = Field(60, ge=0, description="Days")
    buffer_between_meetings: int = Field(15, ge=0, description="Minutes")


class ProfilePreferences(BaseModel):
    meeting_types: List[MeetingTypePreference] = Field(default_factory=list)
    notification_settings: NotificationSettings = Field(
        default_factory=NotificationSettings
    )
    booking_settings: BookingSettings = Field(default_factory=BookingSettings)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityProfile(BaseModel):
    """A user's availability definition; slots are derived from it."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str
    user_id: str
    name: str = "Availability"
    description: Optional[str] = None
    time_zone: str = "UTC"
    is_default: bool = False
    working_hours: Dict[str, WorkingHours] = Field(default_factory=dict)
    availability: AvailabilityRules = Field(default_factory=AvailabilityRules)
    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)
    status: ProfileStatus = ProfileStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: str) -> str:
        load_zone(v)
        return v

    @field_validator("working_hours")
    @classmethod
    def validate_weekday_keys(cls, v: Dict[str, WorkingHours]) -> Dict[str, WorkingHours]:
        for key in v:
            if key not in {"0", "1", "2", "3", "4", "5", "6"}:
                raise ValueError(f"working_hours keys must be '0'..'6', got {key!r}")
        return v

    def working_hours_for(self, day: date) -> Optional[WorkingHours]:
        return self.working_hours.get(str(weekday_index(day)))
