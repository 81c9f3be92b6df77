"""FastAPI routes for device clock-in / clock-out."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from deps import get_db, get_settings, get_store
from settings import Settings
from attendance.store import AttendanceLogStore
from capture import CaptureGate, CaptureStatus, SubmittedFrameCamera
from clock.machine import ClockSession
from clock.schemas import ClockRequest, ClockResponse, EligibilityResponse
from directory.service import DirectoryService
from errors import CameraFailure, ClockBlocked, PositionFailure, StoreError
from location import LocationFeed, ReportedPosition
from metrics import CLOCK_BLOCKED, CLOCK_REQUESTS, CLOCK_SUCCESSES, STORE_WRITE_ERRORS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clock", tags=["clock"])


async def open_session(
    data: ClockRequest, db: Session, store: AttendanceLogStore, settings: Settings
) -> ClockSession:
    """Replay what the device reported through a fresh clock session."""
    directory = DirectoryService(db)
    crew_member = directory.get_crew_member(data.crew_member_id)
    if not crew_member:
        raise HTTPException(status_code=404, detail="Crew member not found")
    location = directory.get_location(crew_member.location_id)
    if not location:
        raise HTTPException(status_code=404, detail="Assigned store not found")

    try:
        position_failure = PositionFailure(data.location_error) if data.location_error else None
        camera_failure = CameraFailure(data.camera_error) if data.camera_error else None
        camera = SubmittedFrameCamera.from_data_url(data.photo, failure=camera_failure)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    session = ClockSession(
        store,
        LocationFeed(
            ReportedPosition(data.latitude, data.longitude, data.accuracy_m, failure=position_failure),
            timeout_seconds=settings.location_timeout_seconds,
        ),
        CaptureGate(camera, quality=settings.photo_quality),
        radius_km=settings.geofence_radius_km,
    )
    session.select_location(location)
    await session.select_crew_member(crew_member)
    session.select_shift(data.shift)
    await session.locate()
    if data.photo or camera_failure:
        if await session.open_camera() == CaptureStatus.streaming:
            await session.capture_photo()
    return session


@router.get("/shifts", response_model=List[str])
async def get_shifts(settings: Settings = Depends(get_settings)):
    """Shift labels offered to crew."""
    return settings.shift_labels


@router.post("/eligibility", response_model=EligibilityResponse)
async def check_eligibility(
    data: ClockRequest,
    db: Session = Depends(get_db),
    store: AttendanceLogStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Report every unmet gate and the action a submission would record."""
    session = await open_session(data, db, store, settings)
    try:
        eligibility = await session.evaluate()
    finally:
        await session.close()
    return eligibility.to_dict()


@router.post("", response_model=ClockResponse, status_code=201)
async def clock(
    data: ClockRequest,
    db: Session = Depends(get_db),
    store: AttendanceLogStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Record the next clock-in or clock-out for a crew member."""
    CLOCK_REQUESTS.inc()

    session = await open_session(data, db, store, settings)
    try:
        event = await session.submit()
    except ClockBlocked as exc:
        for reason in exc.reasons:
            CLOCK_BLOCKED.labels(reason=reason.code).inc()
        raise
    except StoreError as exc:
        STORE_WRITE_ERRORS.labels(kind=exc.code).inc()
        raise
    finally:
        await session.close()

    CLOCK_SUCCESSES.labels(type=event.type.value).inc()
    verb = "In" if event.type.value == "in" else "Out"
    return ClockResponse(
        message=f"Successfully Clocked {verb}! {event.crew_member_name} at {event.location_name}",
        event=event,
    )
