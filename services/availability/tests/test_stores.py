"""
Behavior shared by the in-memory and SQL profile/slot stores.
"""

from datetime import timedelta

import pytest

from services.availability.models.profile import AvailabilityProfile
from services.availability.models.slot import (
    AvailabilitySlot,
    SlotMetadata,
    SlotStatus,
    SourceType,
)
from services.availability.services.availability_service import AvailabilityService
from services.availability.services.sql_store import (
    SQLProfileStore,
    SQLSlotStore,
    create_store_engine,
)
from services.availability.services.stores import InMemoryProfileStore, InMemorySlotStore
from services.availability.settings import Settings
from services.availability.tests.availability_test_base import (
    FIXED_NOW,
    MONDAY,
    TENANT_ID,
    USER_ID,
    BaseAvailabilityTest,
    on_day,
    profile_data,
)
from services.common.http_errors import NotFoundError


def make_profile(**overrides) -> AvailabilityProfile:
    data = {"tenant_id": TENANT_ID, "user_id": USER_ID, "created_at": FIXED_NOW}
    data.update(overrides)
    return AvailabilityProfile(**data)


def make_slot(start, profile_id="profile-1", user_id=USER_ID, **overrides) -> AvailabilitySlot:
    data = {
        "user_id": user_id,
        "profile_id": profile_id,
        "start_date_time": start,
        "end_date_time": start + timedelta(minutes=30),
        "metadata": SlotMetadata(source_type=SourceType.PATTERN),
    }
    data.update(overrides)
    return AvailabilitySlot(**data)


class StoreContract:
    """Mixed into one test class per backend."""

    def make_stores(self):
        raise NotImplementedError

    def setup_method(self, method=None):
        self.profiles, self.slots = self.make_stores()

    # Profiles

    def test_add_and_get_profile(self):
        profile = make_profile(name="Office")
        self.profiles.add(profile)

        stored = self.profiles.get(profile.id)
        assert stored.name == "Office"
        assert stored.tenant_id == TENANT_ID

    def test_get_returns_a_copy(self):
        profile = make_profile()
        self.profiles.add(profile)

        self.profiles.get(profile.id).name = "Changed"

        assert self.profiles.get(profile.id).name == "Availability"

    def test_save_unknown_profile(self):
        with pytest.raises(NotFoundError):
            self.profiles.save(make_profile())

    def test_save_updates_profile(self):
        profile = make_profile()
        self.profiles.add(profile)
        profile.name = "Renamed"

        self.profiles.save(profile)

        assert self.profiles.get(profile.id).name == "Renamed"

    def test_delete_profile(self):
        profile = make_profile()
        self.profiles.add(profile)

        assert self.profiles.delete(profile.id) is True
        assert self.profiles.delete(profile.id) is False
        assert self.profiles.get(profile.id) is None

    def test_list_for_tenant(self):
        older = make_profile()
        newer = make_profile(created_at=FIXED_NOW + timedelta(hours=1))
        other_user = make_profile(user_id="user-2")
        other_tenant = make_profile(tenant_id="tenant-2")
        for profile in (newer, older, other_user, other_tenant):
            self.profiles.add(profile)

        ids = [p.id for p in self.profiles.list_for_tenant(TENANT_ID, USER_ID)]

        assert ids == [older.id, newer.id]
        assert len(self.profiles.list_for_tenant(TENANT_ID)) == 3

    def test_list_active_for_user_puts_default_first(self):
        older = make_profile()
        default = make_profile(is_default=True, created_at=FIXED_NOW + timedelta(hours=1))
        inactive = make_profile(status="inactive")
        for profile in (older, default, inactive):
            self.profiles.add(profile)

        ids = [p.id for p in self.profiles.list_active_for_user(USER_ID)]

        assert ids == [default.id, older.id]
        assert self.profiles.count() == (3, 2)
        assert len(self.profiles.list_active()) == 2

    # Slots

    def test_replace_future_keeps_past_slots(self):
        past = make_slot(on_day(MONDAY, 9))
        future = make_slot(on_day(MONDAY, 10))
        self.slots.replace_future("profile-1", FIXED_NOW, [past, future])

        replacement = make_slot(on_day(MONDAY, 11))
        self.slots.replace_future("profile-1", on_day(MONDAY, 9, 30), [replacement])

        ids = [s.id for s in self.slots.list_for_profile("profile-1")]
        assert ids == [past.id, replacement.id]

    def test_list_for_profile_since(self):
        slots = [make_slot(on_day(MONDAY, hour)) for hour in (9, 10, 11)]
        self.slots.replace_future("profile-1", FIXED_NOW, slots)

        since = self.slots.list_for_profile("profile-1", since=on_day(MONDAY, 10))

        assert [s.start_date_time for s in since] == [on_day(MONDAY, 10), on_day(MONDAY, 11)]

    def test_list_for_user_is_half_open_and_sorted(self):
        tuesday = MONDAY + timedelta(days=1)
        slots = [
            make_slot(on_day(tuesday, 9)),
            make_slot(on_day(MONDAY, 10)),
            make_slot(on_day(MONDAY, 9)),
            make_slot(on_day(MONDAY, 9), profile_id="profile-2", user_id="user-2"),
        ]
        self.slots.replace_future("profile-1", FIXED_NOW, slots[:3])
        self.slots.replace_future("profile-2", FIXED_NOW, slots[3:])

        in_range = self.slots.list_for_user(USER_ID, MONDAY, on_day(tuesday, 9))
        open_ended = self.slots.list_for_user(USER_ID, on_day(MONDAY, 10))

        assert [s.start_date_time for s in in_range] == [on_day(MONDAY, 9), on_day(MONDAY, 10)]
        assert [s.start_date_time for s in open_ended] == [
            on_day(MONDAY, 10),
            on_day(tuesday, 9),
        ]

    def test_delete_for_profile(self):
        self.slots.replace_future(
            "profile-1", FIXED_NOW, [make_slot(on_day(MONDAY, h)) for h in (9, 10)]
        )

        assert self.slots.delete_for_profile("profile-1") == 2
        assert self.slots.list_for_profile("profile-1") == []
        assert self.slots.list_for_user(USER_ID, FIXED_NOW) == []

    def test_mutate_persists_changes(self):
        slot = make_slot(on_day(MONDAY, 9))
        self.slots.replace_future("profile-1", FIXED_NOW, [slot])

        def book(working):
            working.booking_ids.append("b1")
            working.current_bookings += 1
            working.refresh_status()
            return working.current_bookings

        assert self.slots.mutate(slot.id, book) == 1
        stored = self.slots.get(slot.id)
        assert stored.booking_ids == ["b1"]
        assert stored.status == SlotStatus.BOOKED

    def test_failed_mutation_writes_nothing(self):
        slot = make_slot(on_day(MONDAY, 9))
        self.slots.replace_future("profile-1", FIXED_NOW, [slot])

        def fail(working):
            working.current_bookings = 1
            raise ValueError("rejected")

        with pytest.raises(ValueError):
            self.slots.mutate(slot.id, fail)
        assert self.slots.get(slot.id).current_bookings == 0

    def test_mutate_unknown_slot(self):
        with pytest.raises(NotFoundError):
            self.slots.mutate("missing", lambda s: s)

    def test_status_counts(self):
        self.slots.replace_future(
            "profile-1",
            FIXED_NOW,
            [
                make_slot(on_day(MONDAY, 9)),
                make_slot(on_day(MONDAY, 10)),
                make_slot(on_day(MONDAY, 11), status=SlotStatus.BLOCKED),
            ],
        )

        assert self.slots.status_counts() == {"available": 2, "blocked": 1}


class TestInMemoryStores(StoreContract):
    def make_stores(self):
        return InMemoryProfileStore(), InMemorySlotStore()


class TestSQLStores(StoreContract):
    def make_stores(self):
        engine = create_store_engine("sqlite://")
        return SQLProfileStore(engine), SQLSlotStore(engine)

    def test_datetimes_come_back_aware(self):
        slot = make_slot(on_day(MONDAY, 9))
        self.slots.replace_future("profile-1", FIXED_NOW, [slot])

        stored = self.slots.get(slot.id)

        assert stored.start_date_time == on_day(MONDAY, 9)
        assert stored.start_date_time.utcoffset() == timedelta(0)


class TestServiceWithSQLBackend(BaseAvailabilityTest):
    settings_overrides = {"storage_backend": "sql", "db_url_availability": "sqlite://"}

    @pytest.mark.asyncio
    async def test_profile_lifecycle(self):
        assert isinstance(self.service.slots, SQLSlotStore)
        profile = await self.service.create_profile(profile_data())
        slots = await self.service.get_slots(profile.id)
        assert len(slots) == 140

        booked = await self.service.book_slot(slots[0].id, "b1")
        assert booked.status == SlotStatus.BOOKED

        await self.service.regenerate_slots(profile)
        assert self.service.slots.get(slots[0].id).booking_ids == ["b1"]

        assert await self.service.delete_profile(profile.id) == 140


class TestUnknownBackend:
    def test_rejected(self):
        with pytest.raises(ValueError):
            AvailabilityService(settings=Settings(storage_backend="redis"))
