from datetime import timedelta

import pytest

from services.availability.models.query import (
    AvailabilityQuery,
    BulkAvailabilityRequest,
    ConflictType,
    RecommendationType,
)
from services.availability.models.slot import SlotStatus, SourceType
from services.availability.services.availability_query import group_consecutive_slots
from services.availability.tests.availability_test_base import (
    MONDAY,
    USER_ID,
    BaseAvailabilityTest,
    business_pattern,
    on_day,
    profile_data,
)

TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)


def monday_query(**overrides) -> AvailabilityQuery:
    data = {
        "user_ids": [USER_ID],
        "start_date": MONDAY.isoformat(),
        "end_date": TUESDAY.isoformat(),
        "duration": 30,
    }
    data.update(overrides)
    return AvailabilityQuery.model_validate(data)


class AvailabilityQueryTestCase(BaseAvailabilityTest):
    async def create_profile(self, **overrides):
        return await self.service.create_profile(profile_data(**overrides))

    async def first_slot_on_monday(self, profile_id):
        slots = await self.service.get_slots(profile_id)
        return next(s for s in slots if s.start_date_time == on_day(MONDAY, 9))


class TestQuerySelection(AvailabilityQueryTestCase):
    @pytest.mark.asyncio
    async def test_returns_available_slots_in_range(self):
        await self.create_profile()

        [result] = await self.service.get_availability(monday_query())

        assert result.user_id == USER_ID
        assert result.user_name == f"User {USER_ID}"
        assert result.total_available_slots == 14
        assert len(result.slots) == 14
        assert result.slots[0].start_date_time == on_day(MONDAY, 9)
        assert result.conflicts == []

    @pytest.mark.asyncio
    async def test_slots_must_end_inside_range(self):
        await self.create_profile()

        [result] = await self.service.get_availability(
            monday_query(end_date=on_day(MONDAY, 9, 45).isoformat())
        )

        assert [s.start_date_time for s in result.slots] == [on_day(MONDAY, 9)]

    @pytest.mark.asyncio
    async def test_duration_longer_than_slots_finds_nothing(self):
        await self.create_profile()

        [result] = await self.service.get_availability(monday_query(duration=60))

        assert result.total_available_slots == 0
        assert result.slots == []
        assert result.next_available == on_day(TUESDAY, 9)

        recommendations = {r.type: r for r in result.recommendations}
        assert recommendations[RecommendationType.ALTERNATIVE_TIME].suggestion == (
            "Consider booking after 2025-06-03"
        )
        assert recommendations[RecommendationType.ALTERNATIVE_TIME].confidence == 0.8
        duration = recommendations[RecommendationType.ALTERNATIVE_DURATION]
        assert duration.suggestion == "Try booking a shorter meeting (45 minutes)"
        assert duration.confidence == 0.7

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_slots(self):
        await self.create_profile()

        [result] = await self.service.get_availability(monday_query(user_ids=["nobody"]))

        assert result.total_available_slots == 0
        assert result.next_available is None
        assert result.recommendations == []

    @pytest.mark.asyncio
    async def test_inactive_profiles_are_ignored(self):
        profile = await self.create_profile()
        await self.service.update_profile(profile.id, {"status": "inactive"})

        [result] = await self.service.get_availability(monday_query())

        assert result.total_available_slots == 0

    @pytest.mark.asyncio
    async def test_meeting_type_filter(self):
        await self.create_profile(
            availability={"patterns": [business_pattern(meeting_types=["review"])]}
        )

        [review] = await self.service.get_availability(monday_query(meeting_type="review"))
        [other] = await self.service.get_availability(monday_query(meeting_type="interview"))

        assert review.total_available_slots == 14
        assert other.total_available_slots == 0

    @pytest.mark.asyncio
    async def test_min_advance_booking_hides_imminent_slots(self):
        await self.create_profile()
        self.clock.now = on_day(MONDAY, 9)

        [result] = await self.service.get_availability(monday_query())

        # Two hours of notice: nothing before 11:00
        assert result.slots[0].start_date_time == on_day(MONDAY, 11)
        assert result.total_available_slots == 10

    @pytest.mark.asyncio
    async def test_next_available_respects_min_advance_booking(self):
        await self.create_profile()
        self.clock.now = on_day(MONDAY, 8)

        [result] = await self.service.get_availability(
            monday_query(end_date=on_day(MONDAY, 9).isoformat())
        )

        # 09:30 is inside the two-hour notice period; 10:00 is the first bookable slot
        assert result.total_available_slots == 0
        assert result.next_available == on_day(MONDAY, 10)
        [alternative] = [
            r for r in result.recommendations if r.type == RecommendationType.ALTERNATIVE_TIME
        ]
        assert alternative.suggestion == "Consider booking after 2025-06-02"

    @pytest.mark.asyncio
    async def test_next_available_respects_max_advance_booking(self):
        await self.create_profile()
        self.settings.max_advance_booking_days = 2

        [result] = await self.service.get_availability(monday_query())

        # Tuesday opens after the two-day booking horizon
        assert result.total_available_slots == 14
        assert result.next_available is None

    @pytest.mark.asyncio
    async def test_booked_slots_are_not_offered(self):
        profile = await self.create_profile()
        slot = await self.first_slot_on_monday(profile.id)
        await self.service.book_slot(slot.id, "booking-1")

        [result] = await self.service.get_availability(monday_query())

        assert result.total_available_slots == 13
        assert slot.id not in [s.id for s in result.slots]

    @pytest.mark.asyncio
    async def test_unavailable_slots_reported_as_conflicts(self):
        await self.create_profile(
            availability={
                "patterns": [business_pattern()],
                "exceptions": [
                    {
                        "date": "2025-06-02",
                        "type": "unavailable",
                        "start_time": "10:00",
                        "end_time": "11:00",
                    }
                ],
            }
        )

        [hidden] = await self.service.get_availability(monday_query())
        [shown] = await self.service.get_availability(monday_query(include_unavailable=True))

        assert hidden.conflicts == []
        assert shown.total_available_slots == 12
        assert [c.start_date_time for c in shown.conflicts] == [
            on_day(MONDAY, 10),
            on_day(MONDAY, 10, 30),
        ]
        assert {c.type for c in shown.conflicts} == {ConflictType.BLOCKED}
        assert shown.conflicts[0].reason == "Slot is blocked"

    @pytest.mark.asyncio
    async def test_results_sorted_by_availability(self):
        await self.create_profile()
        await self.service.create_profile(
            profile_data(
                user_id="user-2",
                availability={"patterns": [business_pattern(days_of_week=[1])]},
            )
        )

        results = await self.service.get_availability(
            monday_query(user_ids=["user-2", USER_ID], end_date=WEDNESDAY.isoformat())
        )

        assert [r.user_id for r in results] == [USER_ID, "user-2"]
        assert [r.total_available_slots for r in results] == [28, 14]


class TestQueryPreferences(AvailabilityQueryTestCase):
    @pytest.mark.asyncio
    async def test_time_of_day(self):
        await self.create_profile()

        [result] = await self.service.get_availability(
            monday_query(preferences={"time_of_day": "morning"})
        )

        assert result.total_available_slots == 6
        assert all(s.start_date_time.hour < 12 for s in result.slots)

    @pytest.mark.asyncio
    async def test_time_of_day_uses_query_time_zone(self):
        await self.create_profile()

        # 09:00 UTC is 05:00 in New York; morning starts at 06:00 local
        [result] = await self.service.get_availability(
            monday_query(time_zone="America/New_York", preferences={"time_of_day": "morning"})
        )

        assert result.slots[0].start_date_time == on_day(MONDAY, 10)

    @pytest.mark.asyncio
    async def test_days_of_week(self):
        await self.create_profile()

        [result] = await self.service.get_availability(
            monday_query(end_date=WEDNESDAY.isoformat(), preferences={"days_of_week": [2]})
        )

        assert result.total_available_slots == 14
        assert {s.start_date_time.date() for s in result.slots} == {TUESDAY.date()}

    @pytest.mark.asyncio
    async def test_max_results(self):
        await self.create_profile()

        [result] = await self.service.get_availability(
            monday_query(preferences={"max_results": 5})
        )

        assert result.total_available_slots == 14
        assert len(result.slots) == 5

    @pytest.mark.asyncio
    async def test_group_consecutive(self):
        await self.create_profile()

        [result] = await self.service.get_availability(
            monday_query(preferences={"group_consecutive": True})
        )

        assert result.total_available_slots == 14
        assert len(result.slots) == 2
        morning, afternoon = result.slots
        assert morning.start_date_time == on_day(MONDAY, 9)
        assert morning.end_date_time == on_day(MONDAY, 12)
        assert morning.max_bookings == 6
        assert morning.metadata.source_type == SourceType.MANUAL
        assert morning.metadata.source_id == "merged_6_slots"
        assert afternoon.end_date_time == on_day(MONDAY, 17)
        assert afternoon.metadata.source_id == "merged_8_slots"


class TestGroupConsecutiveSlots(AvailabilityQueryTestCase):
    @pytest.mark.asyncio
    async def test_gap_within_buffers_is_merged(self):
        profile = await self.create_profile(
            availability={
                "patterns": [business_pattern(buffer_time={"before": 0, "after": 0})]
            }
        )
        slots = [
            s
            for s in await self.service.get_slots(profile.id)
            if s.start_date_time.date() == MONDAY.date()
        ]

        # Lunch leaves a one hour gap and there is no buffer to absorb it
        grouped = group_consecutive_slots(slots)
        assert len(grouped) == 2
        assert sum(s.max_bookings for s in grouped) == 14

        single = group_consecutive_slots(slots[:1])
        assert single[0].id == slots[0].id


class TestQueryCache(AvailabilityQueryTestCase):
    @pytest.mark.asyncio
    async def test_results_are_served_from_cache_until_ttl(self):
        profile = await self.create_profile()
        [first] = await self.service.get_availability(monday_query())

        slot = await self.first_slot_on_monday(profile.id)
        await self.service.book_slot(slot.id, "booking-1")

        [cached] = await self.service.get_availability(monday_query())
        assert cached.total_available_slots == first.total_available_slots == 14
        assert self.service.cache.hits == 1

        self.clock.advance(minutes=16)
        [fresh] = await self.service.get_availability(monday_query())
        assert fresh.total_available_slots == 13

    @pytest.mark.asyncio
    async def test_cached_results_are_copies(self):
        await self.create_profile()
        [first] = await self.service.get_availability(monday_query())
        first.slots.clear()

        [again] = await self.service.get_availability(monday_query())

        assert len(again.slots) == 14

    @pytest.mark.asyncio
    async def test_different_parameters_miss(self):
        await self.create_profile()
        await self.service.get_availability(monday_query())
        await self.service.get_availability(monday_query(meeting_type="review"))

        assert self.service.cache.hits == 0
        assert len(self.service.cache) == 2

    @pytest.mark.asyncio
    async def test_nightly_regeneration_purges_expired_entries(self):
        await self.create_profile()
        await self.service.get_availability(monday_query())
        self.clock.advance(minutes=16)
        await self.service.get_availability(monday_query(duration=15))

        await self.service.regenerate_all_active_profiles()

        assert len(self.service.cache) == 1


class TestQueryCacheDisabled(AvailabilityQueryTestCase):
    settings_overrides = {"cache_enabled": False, "optimization_enabled": False}

    @pytest.mark.asyncio
    async def test_fresh_results_every_time(self):
        profile = await self.create_profile()
        [before] = await self.service.get_availability(monday_query())
        slot = await self.first_slot_on_monday(profile.id)
        await self.service.book_slot(slot.id, "booking-1")

        [after] = await self.service.get_availability(monday_query())

        assert before.total_available_slots == 14
        assert after.total_available_slots == 13
        assert len(self.service.cache) == 0

    @pytest.mark.asyncio
    async def test_no_recommendations_without_optimization(self):
        await self.create_profile()

        [result] = await self.service.get_availability(monday_query(duration=60))

        assert result.total_available_slots == 0
        assert result.recommendations == []


class TestBulkQuery(AvailabilityQueryTestCase):
    async def setup_users(self):
        busy = await self.create_profile(
            availability={"patterns": [business_pattern(max_bookings=2)]}
        )
        await self.service.create_profile(profile_data(user_id="user-2"))
        slot = await self.first_slot_on_monday(busy.id)
        await self.service.book_slot(slot.id, "booking-1")

    def bulk(self, **overrides) -> BulkAvailabilityRequest:
        data = {
            "queries": [
                monday_query(user_ids=[USER_ID, "user-2", "user-3"]).model_dump(mode="json")
            ]
        }
        data.update(overrides)
        return BulkAvailabilityRequest.model_validate(data)

    @pytest.mark.asyncio
    async def test_runs_every_query(self):
        await self.setup_users()
        request = self.bulk(
            queries=[
                monday_query().model_dump(mode="json"),
                monday_query(user_ids=["user-2"], duration=60).model_dump(mode="json"),
            ]
        )

        responses = await self.service.get_bulk_availability(request)

        assert len(responses) == 2
        assert responses[0][0].total_available_slots == 14
        assert responses[1][0].total_available_slots == 0

    @pytest.mark.asyncio
    async def test_load_balancing_prefers_least_booked(self):
        await self.setup_users()

        [results] = await self.service.get_bulk_availability(
            self.bulk(optimization={"load_balancing": True})
        )

        # user-3 has no availability and is dropped
        assert [r.user_id for r in results] == ["user-2", USER_ID]

    @pytest.mark.asyncio
    async def test_preferred_users_first(self):
        await self.setup_users()

        [results] = await self.service.get_bulk_availability(
            self.bulk(optimization={"preferred_users": ["user-3"]})
        )

        assert results[0].user_id == "user-3"
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_results_truncated_per_query(self):
        await self.setup_users()

        [results] = await self.service.get_bulk_availability(
            self.bulk(constraints={"max_results_per_query": 3})
        )

        assert all(len(r.slots) <= 3 for r in results)
        assert results[0].total_available_slots == 14


class TestSlotStatusAfterQuery(AvailabilityQueryTestCase):
    @pytest.mark.asyncio
    async def test_query_does_not_change_slots(self):
        profile = await self.create_profile()
        await self.service.get_availability(monday_query())

        slots = await self.service.get_slots(profile.id)
        assert {s.status for s in slots} == {SlotStatus.AVAILABLE}
