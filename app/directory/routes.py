"""FastAPI routes for read-only reference data."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from deps import get_db
from directory.service import DirectoryService
from directory.schemas import BroadcastMessage, CrewMember, Location


router = APIRouter(tags=["directory"])


@router.get("/locations", response_model=List[Location])
async def get_locations(db: Session = Depends(get_db)):
    return DirectoryService(db).list_locations()


@router.get("/locations/{location_id}/crew", response_model=List[CrewMember])
async def get_location_crew(location_id: str, db: Session = Depends(get_db)):
    """Crew assigned to a store."""
    service = DirectoryService(db)
    if not service.get_location(location_id):
        raise HTTPException(status_code=404, detail="Store not found")
    return service.crew_for_location(location_id)


@router.get("/broadcasts", response_model=List[BroadcastMessage])
async def get_broadcasts(
    limit: int = Query(20, ge=1, le=100, description="Maximum number of messages"),
    db: Session = Depends(get_db),
):
    """Announcements, newest first."""
    return DirectoryService(db).list_broadcasts(limit=limit)
