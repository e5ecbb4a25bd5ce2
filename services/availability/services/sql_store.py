"""
SQLAlchemy-backed profile and slot stores.

Profiles and slots are stored as JSON documents next to the handful of
columns the engine filters on. Datetimes are stored as naive UTC.
"""

from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import RLock
from typing import Dict, Generator, Iterable, List, Optional, Tuple

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from services.availability.models.profile import AvailabilityProfile, ProfileStatus
from services.availability.models.slot import AvailabilitySlot
from services.availability.services.stores import ProfileStore, SlotMutation, SlotStore, T
from services.common.http_errors import ErrorCode, NotFoundError, ServiceError
from services.common.logging_config import get_logger

logger = get_logger(__name__)

Base = declarative_base()


class ProfileRow(Base):
    __tablename__ = "availability_profiles"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(255), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    is_default = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False)
    payload = Column(JSON, nullable=False)


class SlotRow(Base):
    __tablename__ = "availability_slots"
    __table_args__ = (Index("ix_availability_slots_user_start", "user_id", "start_at"),)

    id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False)
    profile_id = Column(String(64), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    status = Column(String(16), nullable=False)
    payload = Column(JSON, nullable=False)


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def create_store_engine(db_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            db_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(db_url, future=True, pool_pre_ping=True)
    Base.metadata.create_all(engine)
    logger.info("Availability tables ready", dialect=engine.dialect.name)
    return engine


class _SessionMixin:
    _session_maker: sessionmaker

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._session_maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def _profile_row(profile: AvailabilityProfile) -> Dict:
    return {
        "id": profile.id,
        "tenant_id": profile.tenant_id,
        "user_id": profile.user_id,
        "is_default": profile.is_default,
        "status": profile.status.value,
        "created_at": _naive_utc(profile.created_at),
        "payload": profile.model_dump(mode="json"),
    }


def _slot_row(slot: AvailabilitySlot) -> SlotRow:
    return SlotRow(
        id=slot.id,
        user_id=slot.user_id,
        profile_id=slot.profile_id,
        start_at=_naive_utc(slot.start_date_time),
        end_at=_naive_utc(slot.end_date_time),
        status=slot.status.value,
        payload=slot.model_dump(mode="json"),
    )


class SQLProfileStore(_SessionMixin, ProfileStore):
    def __init__(self, engine: Engine) -> None:
        self._session_maker = sessionmaker(bind=engine, expire_on_commit=False)

    def add(self, profile: AvailabilityProfile) -> None:
        with self._session() as session:
            session.add(ProfileRow(**_profile_row(profile)))

    def save(self, profile: AvailabilityProfile) -> None:
        with self._session() as session:
            row = session.get(ProfileRow, profile.id)
            if row is None:
                raise NotFoundError("Profile", profile.id)
            for key, value in _profile_row(profile).items():
                setattr(row, key, value)

    def get(self, profile_id: str) -> Optional[AvailabilityProfile]:
        with self._session() as session:
            row = session.get(ProfileRow, profile_id)
            return AvailabilityProfile.model_validate(row.payload) if row else None

    def delete(self, profile_id: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(ProfileRow).where(ProfileRow.id == profile_id))
            return result.rowcount > 0

    def list_for_tenant(
        self, tenant_id: str, user_id: Optional[str] = None
    ) -> List[AvailabilityProfile]:
        stmt = select(ProfileRow).where(ProfileRow.tenant_id == tenant_id)
        if user_id is not None:
            stmt = stmt.where(ProfileRow.user_id == user_id)
        with self._session() as session:
            rows = session.scalars(stmt.order_by(ProfileRow.created_at)).all()
            return [AvailabilityProfile.model_validate(row.payload) for row in rows]

    def list_active(self) -> List[AvailabilityProfile]:
        stmt = select(ProfileRow).where(ProfileRow.status == ProfileStatus.ACTIVE.value)
        with self._session() as session:
            return [
                AvailabilityProfile.model_validate(row.payload)
                for row in session.scalars(stmt).all()
            ]

    def list_active_for_user(self, user_id: str) -> List[AvailabilityProfile]:
        stmt = (
            select(ProfileRow)
            .where(
                ProfileRow.user_id == user_id,
                ProfileRow.status == ProfileStatus.ACTIVE.value,
            )
            .order_by(ProfileRow.is_default.desc(), ProfileRow.created_at)
        )
        with self._session() as session:
            return [
                AvailabilityProfile.model_validate(row.payload)
                for row in session.scalars(stmt).all()
            ]

    def count(self) -> Tuple[int, int]:
        with self._session() as session:
            total = session.scalar(select(func.count()).select_from(ProfileRow)) or 0
            active = (
                session.scalar(
                    select(func.count())
                    .select_from(ProfileRow)
                    .where(ProfileRow.status == ProfileStatus.ACTIVE.value)
                )
                or 0
            )
            return total, active


class SQLSlotStore(_SessionMixin, SlotStore):
    def __init__(self, engine: Engine) -> None:
        self._session_maker = sessionmaker(bind=engine, expire_on_commit=False)
        # SQLite has no row locks; serialize mutations within the process too
        self._mutation_lock = RLock()

    def get(self, slot_id: str) -> Optional[AvailabilitySlot]:
        with self._session() as session:
            row = session.get(SlotRow, slot_id)
            return AvailabilitySlot.model_validate(row.payload) if row else None

    def replace_future(
        self, profile_id: str, now: datetime, slots: Iterable[AvailabilitySlot]
    ) -> None:
        with self._mutation_lock, self._session() as session:
            session.execute(
                delete(SlotRow).where(
                    SlotRow.profile_id == profile_id,
                    SlotRow.start_at >= _naive_utc(now),
                )
            )
            session.add_all([_slot_row(slot) for slot in slots])

    def list_for_profile(
        self, profile_id: str, since: Optional[datetime] = None
    ) -> List[AvailabilitySlot]:
        stmt = select(SlotRow).where(SlotRow.profile_id == profile_id)
        if since is not None:
            stmt = stmt.where(SlotRow.start_at >= _naive_utc(since))
        with self._session() as session:
            rows = session.scalars(stmt.order_by(SlotRow.start_at)).all()
            return [AvailabilitySlot.model_validate(row.payload) for row in rows]

    def list_for_user(
        self, user_id: str, start: datetime, end: Optional[datetime] = None
    ) -> List[AvailabilitySlot]:
        stmt = select(SlotRow).where(
            SlotRow.user_id == user_id, SlotRow.start_at >= _naive_utc(start)
        )
        if end is not None:
            stmt = stmt.where(SlotRow.start_at < _naive_utc(end))
        with self._session() as session:
            rows = session.scalars(stmt.order_by(SlotRow.start_at, SlotRow.end_at)).all()
            return [AvailabilitySlot.model_validate(row.payload) for row in rows]

    def delete_for_profile(self, profile_id: str) -> int:
        with self._mutation_lock, self._session() as session:
            result = session.execute(delete(SlotRow).where(SlotRow.profile_id == profile_id))
            return result.rowcount

    def mutate(self, slot_id: str, fn: SlotMutation) -> T:
        with self._mutation_lock, self._session() as session:
            row = session.scalars(
                select(SlotRow).where(SlotRow.id == slot_id).with_for_update()
            ).one_or_none()
            if row is None:
                raise NotFoundError("Slot", slot_id)
            working = AvailabilitySlot.model_validate(row.payload)
            result = fn(working)
            if working.id != slot_id:
                raise ServiceError(
                    "Slot mutation changed the slot id",
                    details={"slot_id": slot_id},
                    code=ErrorCode.DATABASE_ERROR,
                )
            row.status = working.status.value
            row.payload = working.model_dump(mode="json")
            return result

    def status_counts(self) -> Dict[str, int]:
        with self._session() as session:
            rows = session.execute(
                select(SlotRow.status, func.count()).group_by(SlotRow.status)
            ).all()
            counts: Dict[str, int] = defaultdict(int)
            for status, count in rows:
                counts[status] = count
            return dict(counts)
