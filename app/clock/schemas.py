"""Pydantic schemas for the clock endpoints."""
from typing import List, Optional

from pydantic import BaseModel, Field

from attendance.schemas import ActionType, AttendanceEvent


class ClockRequest(BaseModel):
    """What a device submits to check eligibility or record a clock event."""
    crew_member_id: str = Field(..., min_length=1, description="Crew member id")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="Device latitude")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="Device longitude")
    accuracy_m: Optional[float] = Field(None, ge=0, description="Reported accuracy in meters")
    location_error: Optional[str] = Field(
        None, description="Device positioning failure: permission_denied, timeout or unavailable"
    )
    camera_error: Optional[str] = Field(None, description="Device camera failure: denied or unsupported")
    photo: Optional[str] = Field(None, description="JPEG data URL captured on the device")
    shift: Optional[str] = Field(None, description="Shift label")


class Blocker(BaseModel):
    """One unmet precondition."""
    code: str
    message: str
    reason: Optional[str] = None
    distance_km: Optional[float] = None
    radius_km: Optional[float] = None


class EligibilityResponse(BaseModel):
    state: str
    eligible: bool
    next_action: Optional[ActionType] = None
    distance_km: Optional[float] = None
    radius_km: float
    blockers: List[Blocker]


class ClockResponse(BaseModel):
    message: str
    event: AttendanceEvent
