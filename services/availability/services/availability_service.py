"""
Availability service: profile lifecycle, slot regeneration, queries and
bookings behind one facade.

Every mutation that other systems care about is published on the event bus
(``profileCreated``, ``profileUpdated``, ``profileDeleted``, ``slotBooked``,
``slotReleased``, ``slotsRegenerated``); the service never calls its
consumers directly.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from services.availability.models.profile import AvailabilityProfile, ProfileStatus
from services.availability.models.query import (
    AvailabilityQuery,
    AvailabilityResult,
    BulkAvailabilityRequest,
)
from services.availability.models.slot import AvailabilitySlot, SlotStatus
from services.availability.services.availability_query import AvailabilityQueryEngine
from services.availability.services.profile_templates import default_profile_template
from services.availability.services.query_cache import QueryCache
from services.availability.services.scheduler import SlotRegenerationScheduler
from services.availability.services.slot_booking import SlotBookingService
from services.availability.services.slot_generation import GenerationResult, SlotGenerator
from services.availability.services.stores import (
    InMemoryProfileStore,
    InMemorySlotStore,
    ProfileStore,
    SlotStore,
)
from services.availability.settings import Settings, get_settings
from services.common.events import (
    AvailabilityEvent,
    EventBus,
    ProfileCreatedEvent,
    ProfileDeletedEvent,
    ProfileUpdatedEvent,
    SlotBookedEvent,
    SlotReleasedEvent,
    SlotsRegeneratedEvent,
)
from services.common.http_errors import NotFoundError, ValidationError
from services.common.logging_config import get_logger, request_id_var
from services.common.telemetry import get_tracer, record_exception

logger = get_logger(__name__)
tracer = get_tracer(__name__)

Clock = Callable[[], datetime]

# Fields callers may not overwrite through update_profile
PROTECTED_FIELDS = {"id", "tenant_id", "user_id", "created_at", "updated_at"}
REGENERATING_FIELDS = {"working_hours", "availability", "time_zone", "status"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_stores(settings: Settings) -> Tuple[ProfileStore, SlotStore]:
    """Create the profile and slot stores selected by ``storage_backend``."""
    backend = settings.storage_backend.lower()
    if backend == "memory":
        return InMemoryProfileStore(), InMemorySlotStore()
    if backend == "sql":
        from services.availability.services.sql_store import (
            SQLProfileStore,
            SQLSlotStore,
            create_store_engine,
        )

        engine = create_store_engine(settings.db_url_availability)
        return SQLProfileStore(engine), SQLSlotStore(engine)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")


def _validate_profile(data: Dict[str, Any]) -> AvailabilityProfile:
    try:
        return AvailabilityProfile.model_validate(data)
    except PydanticValidationError as e:
        errors = e.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            first.get("msg", "Invalid availability profile"),
            field=field,
            details={"errors": [err.get("msg") for err in errors]},
        ) from e


class AvailabilityService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        profile_store: Optional[ProfileStore] = None,
        slot_store: Optional[SlotStore] = None,
        event_bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or get_settings()
        if profile_store is None or slot_store is None:
            default_profiles, default_slots = build_stores(self.settings)
            profile_store = profile_store or default_profiles
            slot_store = slot_store or default_slots
        self.profiles = profile_store
        self.slots = slot_store
        self.events = event_bus or EventBus("availability")
        self.clock: Clock = clock or utc_now

        self.generator = SlotGenerator(self.settings)
        self.cache = QueryCache(
            self.settings.cache_ttl_minutes,
            clock=self.clock,
            enabled=self.settings.cache_enabled,
        )
        self.query_engine = AvailabilityQueryEngine(
            self.settings, self.profiles, self.slots, self.cache, self.clock
        )
        self.booking = SlotBookingService(self.slots)
        self.scheduler = SlotRegenerationScheduler(
            self.regenerate_all_active_profiles,
            clock=self.clock,
            time_zone=self.settings.default_time_zone,
        )

    async def _publish(self, event: AvailabilityEvent) -> None:
        request_id = request_id_var.get()
        if request_id and request_id != "uninitialized":
            event.add_request_context(request_id)
        await self.events.publish(event)

    # Profiles

    async def create_profile(self, profile_data: Dict[str, Any]) -> AvailabilityProfile:
        """
        Create a profile and generate its initial slots.

        If the new profile is the user's default, any previous default of the
        same (tenant, user) is demoted.
        """
        now = self.clock()
        data = {k: v for k, v in profile_data.items() if k not in PROTECTED_FIELDS}
        data.update(
            tenant_id=profile_data.get("tenant_id"),
            user_id=profile_data.get("user_id"),
            created_at=now,
            updated_at=now,
        )
        data.setdefault("time_zone", self.settings.default_time_zone)
        profile = _validate_profile(data)

        if profile.is_default:
            self._demote_defaults(profile.tenant_id, profile.user_id, keep=profile.id)
        self.profiles.add(profile)
        await self.regenerate_slots(profile)

        logger.info(
            "Availability profile created",
            profile_id=profile.id,
            tenant_id=profile.tenant_id,
            user_id=profile.user_id,
            is_default=profile.is_default,
        )
        await self._publish(
            ProfileCreatedEvent(
                profile_id=profile.id, tenant_id=profile.tenant_id, user_id=profile.user_id
            )
        )
        return profile

    async def create_default_profile(
        self,
        tenant_id: str,
        user_id: str,
        customizations: Optional[Dict[str, Any]] = None,
    ) -> AvailabilityProfile:
        today = self.clock().date()
        data = default_profile_template(self.settings, today)
        data.update(customizations or {})
        data.update(tenant_id=tenant_id, user_id=user_id)
        return await self.create_profile(data)

    async def get_profiles(
        self, tenant_id: str, user_id: Optional[str] = None
    ) -> List[AvailabilityProfile]:
        return self.profiles.list_for_tenant(tenant_id, user_id)

    async def get_profile(self, profile_id: str) -> Optional[AvailabilityProfile]:
        return self.profiles.get(profile_id)

    async def require_profile(
        self, profile_id: str, tenant_id: Optional[str] = None
    ) -> AvailabilityProfile:
        profile = self.profiles.get(profile_id)
        # Another tenant's profile is reported as missing
        if profile is None or (tenant_id is not None and profile.tenant_id != tenant_id):
            raise NotFoundError("Profile", profile_id)
        return profile

    async def get_default_profile(
        self, tenant_id: str, user_id: str
    ) -> Optional[AvailabilityProfile]:
        for profile in self.profiles.list_for_tenant(tenant_id, user_id):
            if profile.is_default:
                return profile
        return None

    async def update_profile(
        self, profile_id: str, updates: Dict[str, Any]
    ) -> AvailabilityProfile:
        """
        Apply a partial update.

        Slots are regenerated when working hours, availability rules, the
        time zone or the status change.
        """
        profile = await self.require_profile(profile_id)
        changes = {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}

        merged = profile.model_dump()
        merged.update(changes)
        merged["updated_at"] = self.clock()
        updated = _validate_profile(merged)

        if updated.is_default and not profile.is_default:
            self._demote_defaults(updated.tenant_id, updated.user_id, keep=updated.id)
        self.profiles.save(updated)

        regenerate = bool(REGENERATING_FIELDS & changes.keys())
        if regenerate:
            await self.regenerate_slots(updated)

        logger.info(
            "Availability profile updated",
            profile_id=profile_id,
            updated_fields=sorted(changes),
            slots_regenerated=regenerate,
        )
        await self._publish(
            ProfileUpdatedEvent(
                profile_id=updated.id,
                tenant_id=updated.tenant_id,
                user_id=updated.user_id,
                updated_fields=sorted(changes),
                slots_regenerated=regenerate,
            )
        )
        return updated

    async def delete_profile(self, profile_id: str) -> int:
        """Delete the profile and every slot generated from it."""
        profile = await self.require_profile(profile_id)
        removed = self.slots.delete_for_profile(profile_id)
        self.profiles.delete(profile_id)

        logger.info("Availability profile deleted", profile_id=profile_id, slots_removed=removed)
        await self._publish(
            ProfileDeletedEvent(
                profile_id=profile.id,
                tenant_id=profile.tenant_id,
                user_id=profile.user_id,
                slots_removed=removed,
            )
        )
        return removed

    def _demote_defaults(self, tenant_id: str, user_id: str, keep: str) -> None:
        for existing in self.profiles.list_for_tenant(tenant_id, user_id):
            if existing.is_default and existing.id != keep:
                existing.is_default = False
                existing.updated_at = self.clock()
                self.profiles.save(existing)
                logger.info("Demoted previous default profile", profile_id=existing.id)

    # Slots

    async def get_slots(
        self, profile_id: str, since: Optional[datetime] = None
    ) -> List[AvailabilitySlot]:
        await self.require_profile(profile_id)
        return self.slots.list_for_profile(profile_id, since)

    async def regenerate_slots(self, profile: AvailabilityProfile) -> GenerationResult:
        """Replace the profile's future slots with a freshly generated set."""
        with tracer.start_as_current_span("availability.regenerate_slots") as span:
            span.set_attribute("availability.profile_id", profile.id)
            now = self.clock()
            if profile.status == ProfileStatus.ACTIVE:
                previous = self.slots.list_for_profile(profile.id, since=now)
                result = self.generator.generate(profile, now, previous)
            else:
                window_start, window_end = self.generator.window(profile, now)
                result = GenerationResult([], window_start, window_end)
            self.slots.replace_future(profile.id, now, result.slots)
            span.set_attribute("availability.slot_count", len(result.slots))

        if result.dropped_booking_ids:
            logger.warning(
                "Regeneration removed slots holding bookings",
                profile_id=profile.id,
                booking_ids=result.dropped_booking_ids,
            )
        await self._publish(
            SlotsRegeneratedEvent(
                profile_id=profile.id,
                tenant_id=profile.tenant_id,
                user_id=profile.user_id,
                slot_count=len(result.slots),
                window_start=result.window_start,
                window_end=result.window_end,
            )
        )
        return result

    async def regenerate_all_active_profiles(self) -> Dict[str, Any]:
        """Regenerate every active profile; one failure does not stop the rest."""
        profiles = self.profiles.list_active()
        succeeded = failed = slot_count = 0
        for profile in profiles:
            try:
                result = await self.regenerate_slots(profile)
            except Exception as e:
                failed += 1
                record_exception(e)
                logger.error(
                    "Slot regeneration failed",
                    profile_id=profile.id,
                    error=str(e),
                    exc_info=True,
                )
                continue
            succeeded += 1
            slot_count += len(result.slots)

        purged = self.cache.purge_expired()
        logger.info(
            "Regenerated slots for active profiles",
            profiles=len(profiles),
            succeeded=succeeded,
            failed=failed,
            slots=slot_count,
            cache_entries_purged=purged,
        )
        return {
            "profiles": len(profiles),
            "succeeded": succeeded,
            "failed": failed,
            "slots": slot_count,
        }

    # Queries

    async def get_availability(self, query: AvailabilityQuery) -> List[AvailabilityResult]:
        return await self.query_engine.query(query)

    async def get_bulk_availability(
        self, request: BulkAvailabilityRequest
    ) -> List[List[AvailabilityResult]]:
        return await self.query_engine.bulk_query(request)

    # Bookings

    async def book_slot(
        self, slot_id: str, booking_id: str, meeting_type: Optional[str] = None
    ) -> AvailabilitySlot:
        slot = self.booking.book(slot_id, booking_id, meeting_type)
        await self._publish(
            SlotBookedEvent(
                slot_id=slot.id,
                booking_id=booking_id,
                user_id=slot.user_id,
                profile_id=slot.profile_id,
                start_date_time=slot.start_date_time,
                end_date_time=slot.end_date_time,
                status=slot.status.value,
                current_bookings=slot.current_bookings,
                max_bookings=slot.max_bookings,
                meeting_type=meeting_type,
            )
        )
        return slot

    async def release_slot(self, slot_id: str, booking_id: str) -> AvailabilitySlot:
        slot = self.booking.release(slot_id, booking_id)
        await self._publish(
            SlotReleasedEvent(
                slot_id=slot.id,
                booking_id=booking_id,
                user_id=slot.user_id,
                profile_id=slot.profile_id,
                start_date_time=slot.start_date_time,
                end_date_time=slot.end_date_time,
                status=slot.status.value,
                current_bookings=slot.current_bookings,
                max_bookings=slot.max_bookings,
            )
        )
        return slot

    # Operations

    async def get_system_health(self) -> Dict[str, Any]:
        total_profiles, active_profiles = self.profiles.count()
        by_status = self.slots.status_counts()
        total_slots = sum(by_status.values())
        available = by_status.get(SlotStatus.AVAILABLE.value, 0)

        if active_profiles == 0:
            status = "unhealthy"
        elif total_slots > 0 and available < total_slots * 0.1:
            status = "degraded"
        else:
            status = "healthy"

        return {
            "status": status,
            "profiles": {"total": total_profiles, "active": active_profiles},
            "slots": {
                "total": total_slots,
                **{s.value: by_status.get(s.value, 0) for s in SlotStatus},
            },
            "cache": self.cache.get_stats(),
            "scheduler_running": self.scheduler.running,
            "timestamp": self.clock().isoformat(),
        }

    def start_scheduler(self) -> None:
        self.scheduler.start()

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        self.cache.clear()
        logger.info("Availability service shut down")


_service: Optional[AvailabilityService] = None


def get_availability_service() -> AvailabilityService:
    global _service
    if _service is None:
        _service = AvailabilityService()
    return _service


def reset_availability_service(service: Optional[AvailabilityService] = None) -> None:
    """Replace (or drop) the process-wide service instance."""
    global _service
    _service = service
