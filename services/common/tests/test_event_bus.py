"""
Tests for the in-process EventBus.
"""

from datetime import date

import pytest

from services.common.events import (
    ALL_EVENTS,
    EventBus,
    ProfileCreatedEvent,
    ProfileDeletedEvent,
    SlotsRegeneratedEvent,
)


def created_event() -> ProfileCreatedEvent:
    return ProfileCreatedEvent(profile_id="p-1", tenant_id="t-1", user_id="u-1")


class TestEventModels:
    def test_metadata_defaults(self):
        event = created_event()

        assert event.event_type == "profileCreated"
        assert event.metadata.source_service == "availability-service"
        assert event.metadata.event_id
        assert event.timestamp.tzinfo is not None

    def test_context_helpers(self):
        event = SlotsRegeneratedEvent(
            profile_id="p-1",
            tenant_id="t-1",
            user_id="u-1",
            slot_count=140,
            window_start=date(2025, 6, 1),
            window_end=date(2025, 7, 1),
        )

        event.add_request_context("req-1")
        event.add_correlation_id("corr-1")
        event.add_tags(trigger="nightly")

        assert event.metadata.request_id == "req-1"
        assert event.metadata.correlation_id == "corr-1"
        assert event.metadata.tags == {"trigger": "nightly"}


class TestEventBus:
    def setup_method(self):
        self.bus = EventBus(service_name="availability-service")
        self.received = []

    def record(self, event):
        self.received.append(event.event_type)

    @pytest.mark.asyncio
    async def test_subscribe_by_class_and_name(self):
        self.bus.subscribe(ProfileCreatedEvent, self.record)
        self.bus.subscribe("profileCreated", self.record)

        delivered = await self.bus.publish(created_event())

        assert delivered == 2
        assert self.received == ["profileCreated", "profileCreated"]

    @pytest.mark.asyncio
    async def test_only_matching_subscribers_receive(self):
        self.bus.subscribe(ProfileDeletedEvent, self.record)

        assert await self.bus.publish(created_event()) == 0
        assert self.received == []

    @pytest.mark.asyncio
    async def test_wildcard_subscription(self):
        self.bus.subscribe(ALL_EVENTS, self.record)

        await self.bus.publish(created_event())
        await self.bus.publish(
            ProfileDeletedEvent(profile_id="p-1", tenant_id="t-1", user_id="u-1")
        )

        assert self.received == ["profileCreated", "profileDeleted"]

    @pytest.mark.asyncio
    async def test_async_handler(self):
        async def handler(event):
            self.received.append(event.profile_id)

        self.bus.subscribe(ProfileCreatedEvent, handler)

        assert await self.bus.publish(created_event()) == 1
        assert self.received == ["p-1"]

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, mocker):
        recorded = mocker.patch("services.common.events.event_bus.record_exception")

        def broken(event):
            raise RuntimeError("subscriber down")

        self.bus.subscribe(ProfileCreatedEvent, broken)
        self.bus.subscribe(ProfileCreatedEvent, self.record)

        delivered = await self.bus.publish(created_event())

        assert delivered == 1
        assert self.received == ["profileCreated"]
        recorded.assert_called_once()

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        unsubscribe = self.bus.subscribe(ProfileCreatedEvent, self.record)
        assert self.bus.handler_count("profileCreated") == 1

        unsubscribe()
        unsubscribe()

        assert self.bus.handler_count(ProfileCreatedEvent) == 0
        assert await self.bus.publish(created_event()) == 0

    def test_clear(self):
        self.bus.subscribe(ProfileCreatedEvent, self.record)
        self.bus.subscribe(ALL_EVENTS, self.record)

        self.bus.clear()

        assert self.bus.handler_count(ProfileCreatedEvent) == 0
        assert self.bus.handler_count(ALL_EVENTS) == 0
