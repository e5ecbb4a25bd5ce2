"""
Expansion of availability profiles into concrete slots.

Generation is a pure function of (profile, now, previous slots): patterns are
expanded first, then exceptions are applied, then overrides. The stages run
strictly in that order so overrides win over exceptions, which win over the
base patterns.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from services.availability.models.profile import (
    AvailabilityException,
    AvailabilityOverride,
    AvailabilityPattern,
    AvailabilityProfile,
    BufferTime,
    ExceptionType,
    OverrideType,
    PatternType,
)
from services.availability.models.slot import (
    AvailabilitySlot,
    SlotMetadata,
    SlotStatus,
    SlotType,
    SourceType,
)
from services.availability.models.time_utils import (
    datetimes_overlap,
    existing_local_datetime,
    iter_days,
    iter_increments,
    load_zone,
    local_datetime,
    minutes_of_day,
    parse_time_of_day,
    ranges_overlap,
)
from services.availability.settings import Settings
from services.common.http_errors import ValidationError
from services.common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class GenerationResult:
    slots: List[AvailabilitySlot]
    window_start: date
    window_end: date
    carried_over: int = 0
    dropped_booking_ids: List[str] = field(default_factory=list)


class _DayBuckets:
    """Candidate slots grouped by local calendar day."""

    def __init__(self, allow_overlap: bool) -> None:
        self.allow_overlap = allow_overlap
        self.days: Dict[date, List[AvailabilitySlot]] = {}

    def place(self, day: date, slot: AvailabilitySlot, force: bool = False) -> bool:
        bucket = self.days.setdefault(day, [])
        if not force and not self.allow_overlap:
            for existing in bucket:
                if datetimes_overlap(
                    slot.start_date_time,
                    slot.end_date_time,
                    existing.start_date_time,
                    existing.end_date_time,
                ):
                    return False
        bucket.append(slot)
        return True

    def remove_overlapping(self, start: datetime, end: datetime) -> int:
        removed = 0
        for day, bucket in self.days.items():
            kept = [
                s
                for s in bucket
                if not datetimes_overlap(s.start_date_time, s.end_date_time, start, end)
            ]
            removed += len(bucket) - len(kept)
            self.days[day] = kept
        return removed

    def all_slots(self) -> List[AvailabilitySlot]:
        slots = [slot for bucket in self.days.values() for slot in bucket]
        return sorted(slots, key=lambda s: (s.start_date_time, s.end_date_time))


class SlotGenerator:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def default_buffer(self) -> BufferTime:
        minutes = self.settings.default_buffer_minutes
        return BufferTime(before=minutes, after=minutes)

    def window(self, profile: AvailabilityProfile, now: datetime) -> Tuple[date, date]:
        """Local days ``[today, today + window)`` in the profile's time zone."""
        today = now.astimezone(load_zone(profile.time_zone)).date()
        return today, today + timedelta(days=self.settings.slot_generation_window_days)

    def generate(
        self,
        profile: AvailabilityProfile,
        now: datetime,
        previous: Optional[List[AvailabilitySlot]] = None,
    ) -> GenerationResult:
        """
        Build the future slot set for ``profile``.

        Args:
            profile: Profile to expand
            now: Current time (aware); slots starting before it are discarded
            previous: The profile's current future slots. Slots with the same
                start and end keep their id and bookings.

        Raises:
            ValidationError: If a time string in the profile cannot be parsed
        """
        zone = load_zone(profile.time_zone)
        window_start, window_end = self.window(profile, now)
        buckets = _DayBuckets(self.settings.allow_overlapping_slots)

        try:
            for pattern in profile.availability.patterns:
                if pattern.type == PatternType.BLACKOUT:
                    continue
                self._expand_pattern(profile, pattern, zone, buckets, window_start, window_end)

            for exception in profile.availability.exceptions:
                for day in exception.occurrences(window_start, window_end):
                    self._apply_exception(profile, exception, day, zone, buckets)
        except ValueError as e:
            raise ValidationError(str(e), details={"profile_id": profile.id}) from e

        window_start_at = local_datetime(window_start, 0, zone)
        window_end_at = local_datetime(window_end, 0, zone)
        for override in profile.availability.overrides:
            if datetimes_overlap(
                override.start_date_time,
                override.end_date_time,
                window_start_at,
                window_end_at,
            ):
                self._apply_override(profile, override, zone, buckets)

        slots = [s for s in buckets.all_slots() if s.start_date_time >= now]
        result = GenerationResult(slots=slots, window_start=window_start, window_end=window_end)
        if previous:
            self._carry_over(result, previous)

        logger.debug(
            "Generated slots",
            profile_id=profile.id,
            slot_count=len(slots),
            window_start=window_start.isoformat(),
            window_end=window_end.isoformat(),
            carried_over=result.carried_over,
        )
        return result

    def _slot_bounds(
        self, day: date, slot_start: int, zone: ZoneInfo
    ) -> Optional[Tuple[datetime, datetime]]:
        """
        UTC start and end of a slot beginning at ``slot_start`` local minutes.

        Returns None when that wall-clock time is skipped by a DST transition.
        The end is measured in elapsed time so every slot lasts exactly
        ``slot_duration_minutes``.
        """
        start = existing_local_datetime(day, slot_start, zone)
        if start is None:
            return None
        return start, start + timedelta(minutes=self.settings.slot_duration_minutes)

    def _new_slot(
        self,
        profile: AvailabilityProfile,
        start: datetime,
        end: datetime,
        *,
        slot_type: SlotType,
        source_type: SourceType,
        source_id: Optional[str],
        max_bookings: int = 1,
        buffer_time: Optional[BufferTime] = None,
        meeting_types: Optional[List[str]] = None,
        status: SlotStatus = SlotStatus.AVAILABLE,
    ) -> AvailabilitySlot:
        return AvailabilitySlot(
            user_id=profile.user_id,
            profile_id=profile.id,
            start_date_time=start,
            end_date_time=end,
            status=status,
            slot_type=slot_type,
            max_bookings=max_bookings,
            buffer_time=(buffer_time or self.default_buffer).model_copy(),
            meeting_types=list(meeting_types or []),
            time_zone=profile.time_zone,
            metadata=SlotMetadata(source_type=source_type, source_id=source_id),
        )

    def _expand_pattern(
        self,
        profile: AvailabilityProfile,
        pattern: AvailabilityPattern,
        zone: ZoneInfo,
        buckets: _DayBuckets,
        window_start: date,
        window_end: date,
    ) -> None:
        pattern_start = parse_time_of_day(pattern.start_time)
        pattern_end = parse_time_of_day(pattern.end_time)
        source_id = f"{pattern.type.value}_{pattern.frequency.value}"

        for day in iter_days(window_start, window_end):
            if not pattern.applies_on(day):
                continue
            hours = profile.working_hours_for(day)
            if hours is None or not hours.enabled:
                continue

            start = max(pattern_start, parse_time_of_day(hours.start))
            end = min(pattern_end, parse_time_of_day(hours.end))
            if start >= end:
                continue

            breaks = [
                (parse_time_of_day(b.start), parse_time_of_day(b.end)) for b in hours.breaks
            ]
            for slot_start, slot_end in iter_increments(
                start, end, self.settings.slot_duration_minutes
            ):
                if any(ranges_overlap(slot_start, slot_end, bs, be) for bs, be in breaks):
                    continue
                bounds = self._slot_bounds(day, slot_start, zone)
                if bounds is None:
                    continue
                slot = self._new_slot(
                    profile,
                    *bounds,
                    slot_type=SlotType.REGULAR,
                    source_type=SourceType.PATTERN,
                    source_id=source_id,
                    max_bookings=pattern.max_bookings or 1,
                    buffer_time=pattern.buffer_time,
                    meeting_types=pattern.meeting_types,
                )
                buckets.place(day, slot)

    def _apply_exception(
        self,
        profile: AvailabilityProfile,
        exception: AvailabilityException,
        day: date,
        zone: ZoneInfo,
        buckets: _DayBuckets,
    ) -> None:
        bounds = None
        if exception.is_time_bounded:
            bounds = (
                parse_time_of_day(exception.start_time),
                parse_time_of_day(exception.end_time),
            )

        if exception.type == ExceptionType.AVAILABLE:
            if bounds is None:
                return
            for slot_start, _ in iter_increments(
                bounds[0], bounds[1], self.settings.slot_duration_minutes
            ):
                slot_bounds = self._slot_bounds(day, slot_start, zone)
                if slot_bounds is None:
                    continue
                slot = self._new_slot(
                    profile,
                    *slot_bounds,
                    slot_type=SlotType.EXCEPTION,
                    source_type=SourceType.EXCEPTION,
                    source_id=exception.id,
                    max_bookings=exception.max_bookings or 1,
                )
                buckets.place(day, slot)
            return

        for slot in buckets.days.get(day, []):
            if bounds is not None:
                slot_start = minutes_of_day(slot.start_date_time, zone)
                slot_end = slot_start + slot.duration_minutes
                if not ranges_overlap(slot_start, slot_end, bounds[0], bounds[1]):
                    continue
            if exception.type == ExceptionType.UNAVAILABLE:
                slot.status = SlotStatus.BLOCKED
            else:
                slot.max_bookings = min(slot.max_bookings, exception.max_bookings or 1)

    def _apply_override(
        self,
        profile: AvailabilityProfile,
        override: AvailabilityOverride,
        zone: ZoneInfo,
        buckets: _DayBuckets,
    ) -> None:
        buckets.remove_overlapping(override.start_date_time, override.end_date_time)
        if override.type not in (OverrideType.AVAILABLE, OverrideType.TENTATIVE):
            return

        booking_ids = list(override.booking_ids)
        slot = self._new_slot(
            profile,
            override.start_date_time,
            override.end_date_time,
            slot_type=SlotType.OVERRIDE,
            source_type=SourceType.OVERRIDE,
            source_id=override.id,
            max_bookings=max(override.max_bookings or 1, len(booking_ids)),
            status=(
                SlotStatus.TENTATIVE
                if override.type == OverrideType.TENTATIVE
                else SlotStatus.AVAILABLE
            ),
        )
        slot.booking_ids = booking_ids
        slot.current_bookings = len(booking_ids)
        slot.refresh_status()
        day = override.start_date_time.astimezone(zone).date()
        buckets.place(day, slot, force=True)

    def _carry_over(
        self, result: GenerationResult, previous: List[AvailabilitySlot]
    ) -> None:
        by_range = {(s.start_date_time, s.end_date_time): s for s in previous}
        for slot in result.slots:
            old = by_range.pop((slot.start_date_time, slot.end_date_time), None)
            if old is None:
                continue
            slot.id = old.id
            slot.booking_ids = slot.booking_ids + [
                b for b in old.booking_ids if b not in slot.booking_ids
            ]
            slot.current_bookings = len(slot.booking_ids)
            slot.max_bookings = max(slot.max_bookings, slot.current_bookings)
            slot.refresh_status()
            result.carried_over += 1

        for old in by_range.values():
            result.dropped_booking_ids.extend(old.booking_ids)
