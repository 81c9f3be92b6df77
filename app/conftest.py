"""Shared test doubles for the clock engine."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from attendance.schemas import ActionType, AttendanceEvent, AttendanceEventCreate
from capture import CameraProvider, CameraStream
from directory.schemas import CrewMember, Location
from errors import CameraFailure, CameraUnavailable, LocationUnavailable, PositionFailure
from location import LocationFix, PositionSource

BASE_TIME = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class FakePositionSource(PositionSource):
    """Returns a fixed fix, raises a failure, or never resolves (hang=True)."""

    def __init__(self, fix: Optional[LocationFix] = None, failure: Optional[PositionFailure] = None, hang: bool = False):
        self.fix = fix
        self.failure = failure
        self.hang = hang
        self.calls = 0

    async def current_position(self) -> LocationFix:
        self.calls += 1
        if self.hang:
            await asyncio.Event().wait()
        if self.failure is not None:
            raise LocationUnavailable(self.failure)
        return self.fix


class FakeStream(CameraStream):
    def __init__(self, frame: bytes):
        self.frame = frame
        self.stopped = False
        self.qualities: List[float] = []

    async def grab_jpeg(self, quality: float) -> bytes:
        self.qualities.append(quality)
        return self.frame

    def stop(self) -> None:
        self.stopped = True


class FakeCamera(CameraProvider):
    def __init__(self, frame: bytes = b"\xff\xd8jpeg", failure: Optional[CameraFailure] = None):
        self.frame = frame
        self.failure = failure
        self.streams: List[FakeStream] = []

    async def open(self) -> CameraStream:
        if self.failure is not None:
            raise CameraUnavailable(self.failure)
        stream = FakeStream(self.frame)
        self.streams.append(stream)
        return stream


def make_event(
    event_id: str,
    crew_member_id: str = "crew-1",
    type: ActionType = ActionType.clock_in,
    minutes: int = 0,
    crew_member_name: str = "Alex Johnson",
    location_id: str = "store-1",
    location_name: str = "Semarang Store",
    timestamp: Optional[datetime] = None,
) -> AttendanceEvent:
    return AttendanceEvent(
        id=event_id,
        crew_member_id=crew_member_id,
        crew_member_name=crew_member_name,
        location_id=location_id,
        location_name=location_name,
        timestamp=timestamp or BASE_TIME + timedelta(minutes=minutes),
        type=type,
        shift="Shift 1",
    )


def make_create(**kwargs) -> AttendanceEventCreate:
    return AttendanceEventCreate(**make_event("unused", **kwargs).model_dump(exclude={"id"}))


@pytest.fixture
def store_location() -> Location:
    return Location(id="store-1", name="Semarang Store", latitude=0.0, longitude=0.0)


@pytest.fixture
def crew_member() -> CrewMember:
    return CrewMember(id="crew-1", name="Alex Johnson", location_id="store-1")
