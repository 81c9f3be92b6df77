from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
import json

from deps import get_store
from attendance.schemas import EventFilter
from attendance.store import AttendanceLogStore, Subscription

router = APIRouter()


async def _stream(subscription: Subscription):
    try:
        async for snapshot in subscription:
            payload = [event.model_dump(mode="json", exclude={"photo"}) for event in snapshot]
            yield f"data: {json.dumps(payload)}\n\n"
    finally:
        # client went away or the server is shutting down
        subscription.cancel()


@router.get("/stream/attendance")
async def stream_attendance(
    location_id: Optional[str] = Query(None, description="Store id"),
    limit: int = Query(5, ge=1, le=100, description="Events per snapshot"),
    store: AttendanceLogStore = Depends(get_store),
):
    """Server-sent events: latest attendance snapshot, re-sent on every change."""
    subscription = store.subscribe(EventFilter(location_id=location_id, limit=limit))
    return StreamingResponse(_stream(subscription), media_type="text/event-stream")
