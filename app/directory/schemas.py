"""Pydantic schemas for reference data."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class Location(BaseModel):
    """Store with its geofence center."""

    id: str
    name: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = ConfigDict(from_attributes=True)


class CrewMember(BaseModel):
    """Crew member and the store they are assigned to."""

    id: str
    name: str
    location_id: str

    model_config = ConfigDict(from_attributes=True)


class BroadcastMessage(BaseModel):
    id: str
    message: str
    attachment_url: Optional[str] = None
    timestamp: datetime
