"""Business logic for the attendance read side and administrative writes."""
import logging
from datetime import datetime, tzinfo
from typing import List, Optional

from attendance.schemas import (
    AttendanceEvent,
    AttendanceEventCreate,
    DailyOverview,
    EventFilter,
    ManualEventCreate,
    ManualEventResponse,
    SummaryResponse,
)
from attendance.store import AttendanceLogStore
from attendance.summary import alternation_violations, daily_overview, summarize_by_crew, today_bounds
from directory.schemas import CrewMember, Location

logger = logging.getLogger(__name__)


class AttendanceService:
    """Service class for attendance queries and admin edits."""

    def __init__(self, store: AttendanceLogStore, local_tz: Optional[tzinfo] = None):
        self.store = store
        self.local_tz = local_tz

    def local_now(self) -> datetime:
        if self.local_tz is not None:
            return datetime.now(self.local_tz)
        return datetime.now().astimezone()

    def as_local(self, value: Optional[datetime]) -> Optional[datetime]:
        """Naive query datetimes are read as local wall-clock time."""
        if value is None or value.tzinfo is not None:
            return value
        if self.local_tz is not None:
            return value.replace(tzinfo=self.local_tz)
        return value.astimezone()

    async def get_events(
        self,
        location_id: Optional[str] = None,
        crew_member_id: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AttendanceEvent]:
        """Events matching the filters, newest first."""
        return await self.store.query(
            EventFilter(
                location_id=location_id,
                crew_member_id=crew_member_id,
                start=self.as_local(from_date),
                end=self.as_local(to_date),
                limit=limit,
            )
        )

    async def get_event(self, event_id: str) -> Optional[AttendanceEvent]:
        return await self.store.get(event_id)

    async def summarize(
        self, start: datetime, end: datetime, location_id: Optional[str] = None
    ) -> SummaryResponse:
        """Per-crew summary for [start, end], optionally for one store."""
        start, end = self.as_local(start), self.as_local(end)
        events = await self.store.by_time_range(location_id, start, end)
        return SummaryResponse(
            start=start, end=end, location_id=location_id, crew=summarize_by_crew(events)
        )

    async def overview(
        self, total_crew: Optional[int] = None, recent_limit: int = 5, now: Optional[datetime] = None
    ) -> DailyOverview:
        """Today's headcounts across all stores, plus the latest events of any day."""
        now = now or self.local_now()
        start, end = today_bounds(now)
        events = await self.store.by_time_range(None, start, end)
        recent = await self.store.query(EventFilter(limit=recent_limit))
        return daily_overview(
            events, now, total_crew=total_crew, recent_limit=recent_limit, recent=recent
        )

    async def update_notes(self, event_id: str, notes: Optional[str]) -> AttendanceEvent:
        event = await self.store.update_notes(event_id, notes)
        logger.info("Notes updated on attendance event %s", event_id)
        return event

    async def record_manual_event(
        self, data: ManualEventCreate, crew_member: CrewMember, location: Location
    ) -> ManualEventResponse:
        """
        Append an administrative entry without geofence or photo checks.

        The entry is stored even when it breaks in/out alternation for the crew
        member; the break is logged and reported back instead.
        """
        history = await self.store.query(EventFilter(crew_member_id=crew_member.id))
        before = {e.id for e in alternation_violations(history)}

        event = AttendanceEventCreate(
            crew_member_id=crew_member.id,
            crew_member_name=crew_member.name,
            location_id=location.id,
            location_name=location.name,
            timestamp=self.as_local(data.timestamp) or self.local_now(),
            type=data.type,
            photo=None,
            shift=data.shift,
            notes=data.notes,
        )
        event_id = await self.store.append(event)
        stored = AttendanceEvent(id=event_id, **event.model_dump())

        after = {e.id for e in alternation_violations(history + [stored])}
        breaks = bool(after - before)
        if breaks:
            logger.warning(
                "Manual %s entry %s for %s breaks in/out alternation",
                stored.type.value,
                stored.id,
                crew_member.id,
            )
        return ManualEventResponse(event=stored, breaks_alternation=breaks)
