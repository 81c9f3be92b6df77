"""FastAPI routes for attendance events."""

from typing import Optional
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from deps import get_db, get_settings, get_store
from security import admin_guard
from settings import Settings
from attendance.service import AttendanceService
from attendance.store import AttendanceLogStore
from attendance.schemas import (
    AttendanceEvent,
    DailyOverview,
    EventListResponse,
    ManualEventCreate,
    ManualEventResponse,
    NotesUpdate,
    SummaryResponse,
)
from directory.service import DirectoryService

router = APIRouter(prefix="/attendance", tags=["attendance"])


def get_attendance_service(
    store: AttendanceLogStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AttendanceService:
    tz = ZoneInfo(settings.local_timezone) if settings.local_timezone else None
    return AttendanceService(store, local_tz=tz)


# Fixed paths BEFORE the parameterized one
@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    start: datetime = Query(..., description="Range start (ISO format)"),
    end: datetime = Query(..., description="Range end (ISO format)"),
    location_id: Optional[str] = Query(None, description="Store id"),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Per-crew clock-in counts and logs for a time range."""
    if service.as_local(end) < service.as_local(start):
        raise HTTPException(status_code=400, detail="end must not be before start")
    return await service.summarize(start, end, location_id)


@router.get("/overview", response_model=DailyOverview)
async def get_overview(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Today's headcounts and latest activity."""
    total_crew = DirectoryService(db).count_crew()
    return await service.overview(total_crew=total_crew, recent_limit=settings.overview_recent_limit)


@router.post("/manual", response_model=ManualEventResponse, status_code=201)
async def create_manual_event(
    data: ManualEventCreate,
    db: Session = Depends(get_db),
    service: AttendanceService = Depends(get_attendance_service),
    _admin: bool = Depends(admin_guard),
):
    """Administrative entry (e.g. a missed clock-out). Alternation breaks are flagged, not rejected."""
    directory = DirectoryService(db)
    crew_member = directory.get_crew_member(data.crew_member_id)
    if not crew_member:
        raise HTTPException(status_code=404, detail="Crew member not found")
    location = directory.get_location(crew_member.location_id)
    if not location:
        raise HTTPException(status_code=404, detail="Store not found")
    return await service.record_manual_event(data, crew_member, location)


@router.get("", response_model=EventListResponse)
async def get_events(
    location_id: Optional[str] = Query(None, description="Store id"),
    crew_member_id: Optional[str] = Query(None, description="Crew member id"),
    from_date: Optional[datetime] = Query(None, description="Start (ISO format)"),
    to_date: Optional[datetime] = Query(None, description="End (ISO format)"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of events"),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Attendance events, newest first."""
    events = await service.get_events(
        location_id=location_id,
        crew_member_id=crew_member_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
    )
    return EventListResponse(events=events, total=len(events))


@router.get("/{event_id}", response_model=AttendanceEvent)
async def get_event(
    event_id: str,
    service: AttendanceService = Depends(get_attendance_service),
):
    event = await service.get_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Attendance event not found")
    return event


@router.patch("/{event_id}/notes", response_model=AttendanceEvent)
async def update_notes(
    event_id: str,
    data: NotesUpdate,
    service: AttendanceService = Depends(get_attendance_service),
    _admin: bool = Depends(admin_guard),
):
    """Edit the notes of an event (the only field mutable after it is recorded)."""
    return await service.update_notes(event_id, data.notes)
