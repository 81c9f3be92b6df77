"""Pydantic schemas for attendance events."""
from typing import Dict, List, Optional
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict, field_validator


class ActionType(str, Enum):
    """Clock action type."""
    clock_in = "in"
    clock_out = "out"


class AttendanceEventBase(BaseModel):
    """Fields written once at append time."""
    crew_member_id: str = Field(..., min_length=1, description="Crew member id")
    crew_member_name: str = Field(..., description="Crew member name at write time")
    location_id: str = Field(..., min_length=1, description="Store id")
    location_name: str = Field(..., description="Store name at write time")
    timestamp: datetime = Field(..., description="Instant of submission (timezone-aware)")
    type: ActionType
    photo: Optional[str] = Field(None, description="Photo evidence reference (data URL)")
    shift: Optional[str] = Field(None, description="Shift label")
    notes: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def require_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("timestamp must be timezone-aware")
        return v


class AttendanceEventCreate(AttendanceEventBase):
    """An event before the store assigns its id."""
    pass


class AttendanceEvent(AttendanceEventBase):
    """A stored event."""
    id: str

    model_config = ConfigDict(from_attributes=True)


class EventFilter(BaseModel):
    """Filter shared by range queries and live subscriptions."""
    location_id: Optional[str] = None
    crew_member_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: Optional[int] = Field(None, ge=1)

    def matches(self, event: AttendanceEvent) -> bool:
        if self.location_id is not None and event.location_id != self.location_id:
            return False
        if self.crew_member_id is not None and event.crew_member_id != self.crew_member_id:
            return False
        if self.start is not None and event.timestamp < self.start:
            return False
        if self.end is not None and event.timestamp > self.end:
            return False
        return True


class NotesUpdate(BaseModel):
    """Admin edit of an event's notes."""
    notes: Optional[str] = Field(None, max_length=2000)


class ManualEventCreate(BaseModel):
    """Administrative entry; bypasses the geofence and photo gates."""
    crew_member_id: str = Field(..., min_length=1)
    type: ActionType
    timestamp: Optional[datetime] = Field(None, description="Defaults to now")
    shift: Optional[str] = None
    notes: Optional[str] = None


class ManualEventResponse(BaseModel):
    """Stored administrative entry with the alternation check result."""
    event: AttendanceEvent
    breaks_alternation: bool = Field(
        ..., description="True when the entry repeats the previous type (or starts with 'out')"
    )


class EventListResponse(BaseModel):
    """Schema for event list response."""
    events: List[AttendanceEvent]
    total: int


class CrewSummary(BaseModel):
    """Per-crew-member roll-up over a time range."""
    crew_member_id: str
    crew_member_name: str
    location_name: str
    clock_in_count: int
    logs: List[AttendanceEvent]


class SummaryResponse(BaseModel):
    start: datetime
    end: datetime
    location_id: Optional[str] = None
    crew: List[CrewSummary]


class DailyOverview(BaseModel):
    """Today's headcounts and latest activity."""
    date: str = Field(..., description="Local date (YYYY-MM-DD)")
    start: datetime
    end: datetime
    total_crew: Optional[int] = None
    present_count: int = Field(..., description="Distinct crew members with a clock-in today")
    present_crew_ids: List[str]
    present_by_location: Dict[str, List[str]]
    recent: List[AttendanceEvent]
