"""
Availability query engine.

Answers "when are these users free" from the stored slots: per-user slot
selection and filtering, an optional optimization pass (ordering, grouping
of consecutive slots, recommendations) and bulk multi-query execution.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import uuid4

from services.availability.models.query import (
    TIME_OF_DAY_HOURS,
    AvailabilityQuery,
    AvailabilityResult,
    BulkAvailabilityRequest,
    Conflict,
    ConflictType,
    Recommendation,
    RecommendationType,
)
from services.availability.models.slot import AvailabilitySlot, SlotStatus, SourceType
from services.availability.models.time_utils import load_zone, weekday_index
from services.availability.services.query_cache import QueryCache
from services.availability.services.stores import ProfileStore, SlotStore
from services.availability.settings import Settings
from services.common.logging_config import get_logger
from services.common.telemetry import add_span_attributes, get_tracer

logger = get_logger(__name__)
tracer = get_tracer(__name__)


def merge_slots(slots: List[AvailabilitySlot]) -> AvailabilitySlot:
    """Collapse a run of consecutive slots into one synthetic slot."""
    first = slots[0]
    merged = first.model_copy(deep=True)
    merged.id = str(uuid4())
    merged.end_date_time = max(s.end_date_time for s in slots)
    merged.max_bookings = sum(s.max_bookings for s in slots)
    merged.current_bookings = sum(s.current_bookings for s in slots)
    merged.booking_ids = [b for s in slots for b in s.booking_ids]
    merged.metadata.source_type = SourceType.MANUAL
    merged.metadata.source_id = f"merged_{len(slots)}_slots"
    return merged


def group_consecutive_slots(slots: List[AvailabilitySlot]) -> List[AvailabilitySlot]:
    """
    Merge chronologically adjacent slots.

    Two slots belong to the same group when the gap between them is at most
    the earlier slot's trailing buffer plus the later slot's leading buffer.
    """
    if len(slots) <= 1:
        return list(slots)

    ordered = sorted(slots, key=lambda s: s.start_date_time)
    grouped: List[AvailabilitySlot] = []
    current = [ordered[0]]
    for slot in ordered[1:]:
        last = current[-1]
        gap = slot.start_date_time - last.end_date_time
        max_gap = timedelta(minutes=last.buffer_time.after + slot.buffer_time.before)
        if gap <= max_gap:
            current.append(slot)
            continue
        grouped.append(merge_slots(current) if len(current) > 1 else current[0])
        current = [slot]
    grouped.append(merge_slots(current) if len(current) > 1 else current[0])
    return grouped


def build_recommendations(
    result: AvailabilityResult, query: AvailabilityQuery
) -> List[Recommendation]:
    recommendations = []
    if result.total_available_slots < 3 and result.next_available:
        recommendations.append(
            Recommendation(
                type=RecommendationType.ALTERNATIVE_TIME,
                suggestion=(
                    f"Consider booking after {result.next_available.date().isoformat()}"
                ),
                confidence=0.8,
            )
        )
    if result.total_available_slots == 0 and query.duration > 30:
        shorter = max(15, query.duration - 15)
        recommendations.append(
            Recommendation(
                type=RecommendationType.ALTERNATIVE_DURATION,
                suggestion=f"Try booking a shorter meeting ({shorter} minutes)",
                confidence=0.7,
            )
        )
    return recommendations


class AvailabilityQueryEngine:
    def __init__(
        self,
        settings: Settings,
        profiles: ProfileStore,
        slots: SlotStore,
        cache: QueryCache,
        clock: Callable[[], datetime],
    ) -> None:
        self.settings = settings
        self.profiles = profiles
        self.slots = slots
        self.cache = cache
        self._clock = clock

    async def query(self, query: AvailabilityQuery) -> List[AvailabilityResult]:
        cached = self.cache.get(query)
        if cached is not None:
            return cached

        with tracer.start_as_current_span("availability.query") as span:
            span.set_attribute("availability.user_count", len(query.user_ids))
            now = self._clock()
            results = [self._query_user(user_id, query, now) for user_id in query.user_ids]
            if self.settings.optimization_enabled:
                results = self.optimize(results, query)
            add_span_attributes(
                **{"availability.total_slots": sum(r.total_available_slots for r in results)}
            )

        self.cache.set(query, results)
        logger.debug(
            "Availability query answered",
            user_count=len(query.user_ids),
            total_slots=sum(r.total_available_slots for r in results),
        )
        return results

    async def bulk_query(
        self, request: BulkAvailabilityRequest
    ) -> List[List[AvailabilityResult]]:
        responses = await asyncio.gather(*(self.query(q) for q in request.queries))

        output = []
        for results in responses:
            if request.optimization.load_balancing:
                results = self.apply_load_balancing(results)
            if request.optimization.preferred_users:
                preferred = request.optimization.preferred_users
                results = sorted(results, key=lambda r: r.user_id not in preferred)
            limit = request.constraints.max_results_per_query
            if limit > 0:
                for result in results:
                    result.slots = result.slots[:limit]
            output.append(results)
        return output

    @staticmethod
    def apply_load_balancing(results: List[AvailabilityResult]) -> List[AvailabilityResult]:
        """Keep users with availability, least-booked first."""
        available = [r for r in results if r.total_available_slots > 0]
        return sorted(
            available, key=lambda r: sum(s.current_bookings for s in r.slots)
        )

    def optimize(
        self, results: List[AvailabilityResult], query: AvailabilityQuery
    ) -> List[AvailabilityResult]:
        results = sorted(results, key=lambda r: r.total_available_slots, reverse=True)
        group = bool(query.preferences and query.preferences.group_consecutive)
        for result in results:
            if group:
                result.slots = group_consecutive_slots(result.slots)
            result.recommendations = build_recommendations(result, query)
        return results

    def _query_user(
        self, user_id: str, query: AvailabilityQuery, now: datetime
    ) -> AvailabilityResult:
        result = AvailabilityResult(
            user_id=user_id, user_name=f"User {user_id}", total_available_slots=0
        )
        profile_ids = {p.id for p in self.profiles.list_active_for_user(user_id)}
        if not profile_ids:
            return result

        in_range = [
            s
            for s in self.slots.list_for_user(user_id, query.start_date, query.end_date)
            if s.profile_id in profile_ids and s.end_date_time <= query.end_date
        ]

        earliest = now + timedelta(hours=self.settings.min_advance_booking_hours)
        latest = now + timedelta(days=self.settings.max_advance_booking_days)
        candidates = [
            s
            for s in in_range
            if s.status == SlotStatus.AVAILABLE
            and earliest <= s.start_date_time <= latest
            and self._matches(s, query)
        ]

        if query.include_unavailable:
            result.conflicts = [
                Conflict(
                    start_date_time=s.start_date_time,
                    end_date_time=s.end_date_time,
                    reason=f"Slot is {s.status.value}",
                    type=ConflictType(s.status.value),
                )
                for s in in_range
                if s.status != SlotStatus.AVAILABLE
            ]

        later = [
            s
            for s in self.slots.list_for_user(user_id, query.end_date)
            if s.profile_id in profile_ids
            and s.status == SlotStatus.AVAILABLE
            and s.start_date_time > query.end_date
            and earliest <= s.start_date_time <= latest
        ]
        result.next_available = later[0].start_date_time if later else None

        max_results: Optional[int] = None
        if query.preferences:
            max_results = query.preferences.max_results
        limit = min(len(candidates), max_results or self.settings.max_slots_per_query)
        result.total_available_slots = len(candidates)
        result.slots = candidates[:limit]
        return result

    @staticmethod
    def _matches(slot: AvailabilitySlot, query: AvailabilityQuery) -> bool:
        if slot.duration_minutes < query.duration:
            return False
        if not slot.accepts_meeting_type(query.meeting_type):
            return False

        prefs = query.preferences
        if prefs is None or (prefs.time_of_day is None and prefs.days_of_week is None):
            return True

        local = slot.start_date_time.astimezone(load_zone(query.time_zone or slot.time_zone))
        if prefs.time_of_day is not None:
            start_hour, end_hour = TIME_OF_DAY_HOURS[prefs.time_of_day]
            if not start_hour <= local.hour < end_hour:
                return False
        if prefs.days_of_week is not None:
            if weekday_index(local.date()) not in prefs.days_of_week:
                return False
        return True
