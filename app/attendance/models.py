"""SQLAlchemy models for attendance events."""

from sqlalchemy import Column, String, DateTime, Text, Index
from db import Base


class AttendanceEventRecord(Base):
    """Append-only clock event; only `notes` changes after insert."""

    __tablename__ = "attendance_events"

    id = Column(String(32), primary_key=True)
    crew_member_id = Column(String(64), nullable=False, index=True)
    crew_member_name = Column(String(200), nullable=False)
    location_id = Column(String(64), nullable=False, index=True)
    location_name = Column(String(200), nullable=False)
    # stored as naive UTC
    timestamp = Column(DateTime, nullable=False, index=True)
    type = Column(String(3), nullable=False)
    photo = Column(Text, nullable=True)
    shift = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_attendance_events_crew_ts", "crew_member_id", "timestamp"),
    )
