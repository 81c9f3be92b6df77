"""Attendance log store contract, live subscriptions, and the SQL-backed store."""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from attendance.models import AttendanceEventRecord
from attendance.schemas import ActionType, AttendanceEvent, AttendanceEventCreate, EventFilter
from errors import NotFound, ReadFailed, WriteDenied, WriteFailed

logger = logging.getLogger(__name__)

Snapshot = List[AttendanceEvent]


class Subscription:
    """
    Lazy, cancellable sequence of snapshots for one filter.

    The first iteration yields the current snapshot; later iterations wait for
    a change signal from the store and yield only when the snapshot differs.
    Consumers must cancel() (or use ``async with``) on teardown.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Snapshot]],
        wait_for_change: Callable[[], Awaitable[None]],
        restart: Callable[[], "Subscription"],
        on_cancel: Optional[Callable[[], None]] = None,
    ):
        self._fetch = fetch
        self._wait_for_change = wait_for_change
        self._restart = restart
        self._on_cancel = on_cancel
        self._wakeup = asyncio.Event()
        self._cancelled = False
        self._primed = False
        self._last: Optional[Snapshot] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._wakeup.set()
        if self._on_cancel is not None:
            self._on_cancel()

    def restart(self) -> "Subscription":
        """Cancel this subscription and return a fresh one for the same filter."""
        self.cancel()
        return self._restart()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        while not self._cancelled:
            if self._primed:
                await self._next_change()
                if self._cancelled:
                    break
            self._primed = True
            snapshot = await self._fetch()
            if self._last is None or snapshot != self._last:
                self._last = snapshot
                return snapshot
        raise StopAsyncIteration

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    async def _next_change(self) -> None:
        change = asyncio.ensure_future(self._wait_for_change())
        wakeup = asyncio.ensure_future(self._wakeup.wait())
        try:
            await asyncio.wait({change, wakeup}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (change, wakeup):
                if not task.done():
                    task.cancel()


class AttendanceLogStore(ABC):
    """What the engine needs from its backing event log."""

    @abstractmethod
    async def append(self, event: AttendanceEventCreate) -> str:
        """Persist a new event and return its id. Raises WriteDenied or WriteFailed."""

    @abstractmethod
    async def get(self, event_id: str) -> Optional[AttendanceEvent]:
        """Point lookup by id."""

    @abstractmethod
    async def last_by_crew_member(self, crew_member_id: str) -> Optional[AttendanceEvent]:
        """Most recent event (by timestamp) for a crew member."""

    @abstractmethod
    async def query(self, event_filter: EventFilter) -> List[AttendanceEvent]:
        """Matching events, newest first."""

    @abstractmethod
    async def update_notes(self, event_id: str, notes: Optional[str]) -> AttendanceEvent:
        """Replace an event's notes. Raises NotFound or WriteDenied."""

    @abstractmethod
    def subscribe(self, event_filter: EventFilter) -> Subscription:
        """Live snapshots of the events matching the filter."""

    async def by_time_range(
        self, location_id: Optional[str], start: datetime, end: datetime
    ) -> List[AttendanceEvent]:
        """Events in [start, end] for one location (or all when None), newest first."""
        return await self.query(EventFilter(location_id=location_id, start=start, end=end))

    def close(self) -> None:
        pass


def to_storage_time(value: datetime) -> datetime:
    """Aware datetime -> naive UTC for the database."""
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_permission_error(exc: SQLAlchemyError) -> bool:
    """True when the driver reports an authorization failure rather than an outage."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "42501":  # insufficient_privilege
        return True
    text = str(orig if orig is not None else exc).lower()
    return any(
        marker in text
        for marker in ("permission denied", "insufficient privilege", "readonly database", "read-only")
    )


def map_write_error(exc: SQLAlchemyError) -> Exception:
    if is_permission_error(exc):
        return WriteDenied()
    return WriteFailed()


class SqlAttendanceLogStore(AttendanceLogStore):
    """SQLAlchemy-backed store; blocking calls run in worker threads, subscriptions poll."""

    def __init__(self, session_factory: sessionmaker, poll_seconds: float = 2.0):
        self.session_factory = session_factory
        self.poll_seconds = poll_seconds

    # ---------- writes ----------

    async def append(self, event: AttendanceEventCreate) -> str:
        return await asyncio.to_thread(self._append, event)

    def _append(self, event: AttendanceEventCreate) -> str:
        event_id = uuid.uuid4().hex
        record = AttendanceEventRecord(
            id=event_id,
            crew_member_id=event.crew_member_id,
            crew_member_name=event.crew_member_name,
            location_id=event.location_id,
            location_name=event.location_name,
            timestamp=to_storage_time(event.timestamp),
            type=event.type.value,
            photo=event.photo,
            shift=event.shift,
            notes=event.notes,
        )
        with self.session_factory() as db:
            try:
                db.add(record)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                mapped = map_write_error(e)
                logger.error("Attendance append failed (%s): %s", mapped.code, e)
                raise mapped from e
        return event_id

    async def update_notes(self, event_id: str, notes: Optional[str]) -> AttendanceEvent:
        return await asyncio.to_thread(self._update_notes, event_id, notes)

    def _update_notes(self, event_id: str, notes: Optional[str]) -> AttendanceEvent:
        with self.session_factory() as db:
            try:
                record = db.get(AttendanceEventRecord, event_id)
                if record is None:
                    raise NotFound()
                record.notes = notes
                db.commit()
                return self._to_event(record)
            except SQLAlchemyError as e:
                db.rollback()
                mapped = map_write_error(e)
                logger.error("Notes update for %s failed (%s): %s", event_id, mapped.code, e)
                raise mapped from e

    # ---------- reads ----------

    async def get(self, event_id: str) -> Optional[AttendanceEvent]:
        return await asyncio.to_thread(self._get, event_id)

    def _get(self, event_id: str) -> Optional[AttendanceEvent]:
        with self.session_factory() as db:
            try:
                record = db.get(AttendanceEventRecord, event_id)
            except SQLAlchemyError as e:
                raise ReadFailed() from e
            return self._to_event(record) if record else None

    async def last_by_crew_member(self, crew_member_id: str) -> Optional[AttendanceEvent]:
        events = await self.query(EventFilter(crew_member_id=crew_member_id, limit=1))
        return events[0] if events else None

    async def query(self, event_filter: EventFilter) -> List[AttendanceEvent]:
        return await asyncio.to_thread(self._query, event_filter)

    def _query(self, event_filter: EventFilter) -> List[AttendanceEvent]:
        stmt = select(AttendanceEventRecord)
        if event_filter.location_id is not None:
            stmt = stmt.where(AttendanceEventRecord.location_id == event_filter.location_id)
        if event_filter.crew_member_id is not None:
            stmt = stmt.where(AttendanceEventRecord.crew_member_id == event_filter.crew_member_id)
        if event_filter.start is not None:
            stmt = stmt.where(AttendanceEventRecord.timestamp >= to_storage_time(event_filter.start))
        if event_filter.end is not None:
            stmt = stmt.where(AttendanceEventRecord.timestamp <= to_storage_time(event_filter.end))
        stmt = stmt.order_by(AttendanceEventRecord.timestamp.desc())
        if event_filter.limit is not None:
            stmt = stmt.limit(event_filter.limit)

        with self.session_factory() as db:
            try:
                records = db.execute(stmt).scalars().all()
            except SQLAlchemyError as e:
                logger.error("Attendance query failed: %s", e)
                raise ReadFailed() from e
            return [self._to_event(r) for r in records]

    def subscribe(self, event_filter: EventFilter) -> Subscription:
        return Subscription(
            fetch=lambda: self.query(event_filter),
            wait_for_change=lambda: asyncio.sleep(self.poll_seconds),
            restart=lambda: self.subscribe(event_filter),
        )

    @staticmethod
    def _to_event(record: AttendanceEventRecord) -> AttendanceEvent:
        return AttendanceEvent(
            id=record.id,
            crew_member_id=record.crew_member_id,
            crew_member_name=record.crew_member_name,
            location_id=record.location_id,
            location_name=record.location_name,
            timestamp=from_storage_time(record.timestamp),
            type=ActionType(record.type),
            photo=record.photo,
            shift=record.shift,
            notes=record.notes,
        )
