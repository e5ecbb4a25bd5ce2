"""
Profile and slot repositories for the availability engine.

The engine only talks to the ``ProfileStore`` / ``SlotStore`` interfaces. The
in-memory implementations keep per-user, per-day and per-profile indexes so
queries never scan the whole slot map, and serialize every write through a
re-entrant lock.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, datetime, timedelta
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

from services.availability.models.profile import AvailabilityProfile, ProfileStatus
from services.availability.models.slot import AvailabilitySlot
from services.common.http_errors import NotFoundError

T = TypeVar("T")

SlotMutation = Callable[[AvailabilitySlot], T]


class ProfileStore(ABC):
    @abstractmethod
    def add(self, profile: AvailabilityProfile) -> None:
        ...

    @abstractmethod
    def save(self, profile: AvailabilityProfile) -> None:
        ...

    @abstractmethod
    def get(self, profile_id: str) -> Optional[AvailabilityProfile]:
        ...

    @abstractmethod
    def delete(self, profile_id: str) -> bool:
        ...

    @abstractmethod
    def list_for_tenant(
        self, tenant_id: str, user_id: Optional[str] = None
    ) -> List[AvailabilityProfile]:
        ...

    @abstractmethod
    def list_active(self) -> List[AvailabilityProfile]:
        ...

    @abstractmethod
    def list_active_for_user(self, user_id: str) -> List[AvailabilityProfile]:
        """Active profiles of the user, default first, then oldest first."""

    @abstractmethod
    def count(self) -> Tuple[int, int]:
        """Return ``(total, active)`` profile counts."""


class SlotStore(ABC):
    @abstractmethod
    def get(self, slot_id: str) -> Optional[AvailabilitySlot]:
        ...

    @abstractmethod
    def replace_future(
        self, profile_id: str, now: datetime, slots: Iterable[AvailabilitySlot]
    ) -> None:
        """Delete the profile's slots starting at or after ``now`` and insert ``slots``."""

    @abstractmethod
    def list_for_profile(
        self, profile_id: str, since: Optional[datetime] = None
    ) -> List[AvailabilitySlot]:
        ...

    @abstractmethod
    def list_for_user(
        self, user_id: str, start: datetime, end: Optional[datetime] = None
    ) -> List[AvailabilitySlot]:
        """Slots of the user starting in ``[start, end)``, sorted by start."""

    @abstractmethod
    def delete_for_profile(self, profile_id: str) -> int:
        ...

    @abstractmethod
    def mutate(self, slot_id: str, fn: SlotMutation) -> T:
        """
        Apply ``fn`` to the stored slot atomically and persist the result.

        ``fn`` receives a working copy; if it raises, nothing is written.
        """

    @abstractmethod
    def status_counts(self) -> Dict[str, int]:
        ...


def _order_key(profile: AvailabilityProfile) -> Tuple[bool, datetime]:
    return (not profile.is_default, profile.created_at)


class InMemoryProfileStore(ProfileStore):
    def __init__(self) -> None:
        self._lock = RLock()
        self._profiles: Dict[str, AvailabilityProfile] = {}

    def add(self, profile: AvailabilityProfile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile.model_copy(deep=True)

    def save(self, profile: AvailabilityProfile) -> None:
        with self._lock:
            if profile.id not in self._profiles:
                raise NotFoundError("Profile", profile.id)
            self._profiles[profile.id] = profile.model_copy(deep=True)

    def get(self, profile_id: str) -> Optional[AvailabilityProfile]:
        with self._lock:
            profile = self._profiles.get(profile_id)
            return profile.model_copy(deep=True) if profile else None

    def delete(self, profile_id: str) -> bool:
        with self._lock:
            return self._profiles.pop(profile_id, None) is not None

    def list_for_tenant(
        self, tenant_id: str, user_id: Optional[str] = None
    ) -> List[AvailabilityProfile]:
        with self._lock:
            profiles = [
                p.model_copy(deep=True)
                for p in self._profiles.values()
                if p.tenant_id == tenant_id and (user_id is None or p.user_id == user_id)
            ]
        return sorted(profiles, key=lambda p: p.created_at)

    def list_active(self) -> List[AvailabilityProfile]:
        with self._lock:
            return [
                p.model_copy(deep=True)
                for p in self._profiles.values()
                if p.status == ProfileStatus.ACTIVE
            ]

    def list_active_for_user(self, user_id: str) -> List[AvailabilityProfile]:
        with self._lock:
            candidates = [
                p.model_copy(deep=True)
                for p in self._profiles.values()
                if p.user_id == user_id and p.status == ProfileStatus.ACTIVE
            ]
        return sorted(candidates, key=_order_key)

    def count(self) -> Tuple[int, int]:
        with self._lock:
            active = sum(
                1 for p in self._profiles.values() if p.status == ProfileStatus.ACTIVE
            )
            return len(self._profiles), active


class InMemorySlotStore(SlotStore):
    def __init__(self) -> None:
        self._lock = RLock()
        self._slots: Dict[str, AvailabilitySlot] = {}
        self._by_profile: Dict[str, Set[str]] = defaultdict(set)
        # (user_id, UTC start date) -> slot ids
        self._by_user_day: Dict[Tuple[str, date], Set[str]] = defaultdict(set)
        self._user_days: Dict[str, Set[date]] = defaultdict(set)

    def _index(self, slot: AvailabilitySlot) -> None:
        day = slot.start_date_time.date()
        self._slots[slot.id] = slot
        self._by_profile[slot.profile_id].add(slot.id)
        self._by_user_day[(slot.user_id, day)].add(slot.id)
        self._user_days[slot.user_id].add(day)

    def _unindex(self, slot_id: str) -> None:
        slot = self._slots.pop(slot_id, None)
        if slot is None:
            return
        day = slot.start_date_time.date()
        profile_slots = self._by_profile.get(slot.profile_id)
        if profile_slots is not None:
            profile_slots.discard(slot_id)
        bucket = self._by_user_day.get((slot.user_id, day))
        if bucket is not None:
            bucket.discard(slot_id)
            if not bucket:
                del self._by_user_day[(slot.user_id, day)]
                self._user_days[slot.user_id].discard(day)

    def get(self, slot_id: str) -> Optional[AvailabilitySlot]:
        with self._lock:
            slot = self._slots.get(slot_id)
            return slot.model_copy(deep=True) if slot else None

    def replace_future(
        self, profile_id: str, now: datetime, slots: Iterable[AvailabilitySlot]
    ) -> None:
        with self._lock:
            for slot_id in list(self._by_profile.get(profile_id, ())):
                if self._slots[slot_id].start_date_time >= now:
                    self._unindex(slot_id)
            for slot in slots:
                if slot.id in self._slots:
                    self._unindex(slot.id)
                self._index(slot.model_copy(deep=True))

    def list_for_profile(
        self, profile_id: str, since: Optional[datetime] = None
    ) -> List[AvailabilitySlot]:
        with self._lock:
            slots = [
                self._slots[slot_id].model_copy(deep=True)
                for slot_id in self._by_profile.get(profile_id, ())
                if since is None or self._slots[slot_id].start_date_time >= since
            ]
        return sorted(slots, key=lambda s: s.start_date_time)

    def list_for_user(
        self, user_id: str, start: datetime, end: Optional[datetime] = None
    ) -> List[AvailabilitySlot]:
        with self._lock:
            if end is None:
                days = [d for d in self._user_days.get(user_id, ()) if d >= start.date()]
            else:
                days = []
                current = start.date()
                while current <= end.date():
                    days.append(current)
                    current += timedelta(days=1)

            slots = []
            for day in days:
                for slot_id in self._by_user_day.get((user_id, day), ()):
                    slot = self._slots[slot_id]
                    if slot.start_date_time < start:
                        continue
                    if end is not None and slot.start_date_time >= end:
                        continue
                    slots.append(slot.model_copy(deep=True))
        return sorted(slots, key=lambda s: (s.start_date_time, s.end_date_time))

    def delete_for_profile(self, profile_id: str) -> int:
        with self._lock:
            slot_ids = list(self._by_profile.pop(profile_id, ()))
            for slot_id in slot_ids:
                self._unindex(slot_id)
            return len(slot_ids)

    def mutate(self, slot_id: str, fn: SlotMutation) -> T:
        with self._lock:
            slot = self._slots.get(slot_id)
            if slot is None:
                raise NotFoundError("Slot", slot_id)
            working = slot.model_copy(deep=True)
            result = fn(working)
            self._slots[slot_id] = working.model_copy(deep=True)
            return result

    def status_counts(self) -> Dict[str, int]:
        with self._lock:
            counts: Dict[str, int] = defaultdict(int)
            for slot in self._slots.values():
                counts[slot.status.value] += 1
            return dict(counts)
