"""SQLAlchemy models for reference data (stores, crew, broadcasts)."""

from sqlalchemy import Column, String, Float, DateTime, Text, ForeignKey
from db import Base


class LocationRecord(Base):
    """Store a crew member is assigned to."""

    __tablename__ = "locations"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)


class CrewMemberRecord(Base):
    """Crew member model."""

    __tablename__ = "crew_members"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    location_id = Column(
        String(64),
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )


class BroadcastRecord(Base):
    """Announcement shown on the clock screen."""

    __tablename__ = "broadcasts"

    id = Column(String(64), primary_key=True)
    message = Column(Text, nullable=False)
    attachment_url = Column(String(500), nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)
