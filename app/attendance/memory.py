"""In-process attendance log store, used as the test double and for local runs."""
import asyncio
import itertools
from typing import Iterable, List, Optional, Set, Tuple

from attendance.schemas import AttendanceEvent, AttendanceEventCreate, EventFilter
from attendance.store import AttendanceLogStore, Subscription
from errors import NotFound, WriteDenied, WriteFailed


class InMemoryAttendanceLogStore(AttendanceLogStore):
    """
    Append-only list of events with push notifications to subscribers.

    ``deny_writes`` / ``fail_writes`` make every write raise WriteDenied /
    WriteFailed so callers' error paths can be exercised.
    """

    def __init__(
        self,
        events: Iterable[AttendanceEvent] = (),
        deny_writes: bool = False,
        fail_writes: bool = False,
    ):
        self.deny_writes = deny_writes
        self.fail_writes = fail_writes
        self.append_calls = 0
        self._seq = itertools.count(1)
        # (insertion sequence, event); the sequence breaks timestamp ties
        self._rows: List[Tuple[int, AttendanceEvent]] = []
        self._listeners: Set[asyncio.Event] = set()
        for event in events:
            self._rows.append((next(self._seq), event.model_copy(deep=True)))

    @property
    def events(self) -> List[AttendanceEvent]:
        """Stored events in insertion order (copies)."""
        return [e.model_copy(deep=True) for _, e in self._rows]

    def _check_writable(self) -> None:
        if self.deny_writes:
            raise WriteDenied()
        if self.fail_writes:
            raise WriteFailed()

    def _notify(self) -> None:
        for flag in self._listeners:
            flag.set()

    async def append(self, event: AttendanceEventCreate) -> str:
        self.append_calls += 1
        self._check_writable()
        seq = next(self._seq)
        event_id = f"evt-{seq}"
        stored = AttendanceEvent(id=event_id, **event.model_dump())
        self._rows.append((seq, stored))
        self._notify()
        return event_id

    async def update_notes(self, event_id: str, notes: Optional[str]) -> AttendanceEvent:
        for _, event in self._rows:
            if event.id == event_id:
                self._check_writable()
                event.notes = notes
                self._notify()
                return event.model_copy(deep=True)
        raise NotFound()

    async def get(self, event_id: str) -> Optional[AttendanceEvent]:
        for _, event in self._rows:
            if event.id == event_id:
                return event.model_copy(deep=True)
        return None

    async def last_by_crew_member(self, crew_member_id: str) -> Optional[AttendanceEvent]:
        events = await self.query(EventFilter(crew_member_id=crew_member_id, limit=1))
        return events[0] if events else None

    async def query(self, event_filter: EventFilter) -> List[AttendanceEvent]:
        rows = [(seq, e) for seq, e in self._rows if event_filter.matches(e)]
        rows.sort(key=lambda row: (row[1].timestamp, row[0]), reverse=True)
        if event_filter.limit is not None:
            rows = rows[: event_filter.limit]
        return [e.model_copy(deep=True) for _, e in rows]

    def subscribe(self, event_filter: EventFilter) -> Subscription:
        flag = asyncio.Event()
        self._listeners.add(flag)

        async def wait_for_change() -> None:
            await flag.wait()
            flag.clear()

        return Subscription(
            fetch=lambda: self.query(event_filter),
            wait_for_change=wait_for_change,
            restart=lambda: self.subscribe(event_filter),
            on_cancel=lambda: self._listeners.discard(flag),
        )

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
