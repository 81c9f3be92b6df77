"""Read-only queries over stores, crew members and broadcasts."""

from typing import List, Optional
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from attendance.store import from_storage_time
from directory.models import BroadcastRecord, CrewMemberRecord, LocationRecord
from directory.schemas import BroadcastMessage, CrewMember, Location


class DirectoryService:
    """Service class for reference data lookups."""

    def __init__(self, db: Session):
        self.db = db

    def list_locations(self) -> List[Location]:
        rows = self.db.execute(select(LocationRecord).order_by(LocationRecord.name)).scalars().all()
        return [Location.model_validate(r) for r in rows]

    def get_location(self, location_id: str) -> Optional[Location]:
        row = self.db.get(LocationRecord, location_id)
        return Location.model_validate(row) if row else None

    def get_crew_member(self, crew_member_id: str) -> Optional[CrewMember]:
        row = self.db.get(CrewMemberRecord, crew_member_id)
        return CrewMember.model_validate(row) if row else None

    def crew_for_location(self, location_id: str) -> List[CrewMember]:
        """Crew assigned to a store, by name."""
        rows = self.db.execute(
            select(CrewMemberRecord)
            .where(CrewMemberRecord.location_id == location_id)
            .order_by(CrewMemberRecord.name)
        ).scalars().all()
        return [CrewMember.model_validate(r) for r in rows]

    def count_crew(self) -> int:
        return self.db.execute(select(func.count()).select_from(CrewMemberRecord)).scalar_one()

    def list_broadcasts(self, limit: int = 20) -> List[BroadcastMessage]:
        """Newest first."""
        rows = self.db.execute(
            select(BroadcastRecord).order_by(BroadcastRecord.timestamp.desc()).limit(limit)
        ).scalars().all()
        return [
            BroadcastMessage(
                id=r.id,
                message=r.message,
                attachment_url=r.attachment_url,
                timestamp=from_storage_time(r.timestamp),
            )
            for r in rows
        ]
