from fastapi import APIRouter
from starlette.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST, Counter

router = APIRouter()

# incremented by the clock and attendance routes
CLOCK_REQUESTS = Counter("clock_requests_total", "Clock submissions received")
CLOCK_SUCCESSES = Counter("clock_success_total", "Clock events recorded", ["type"])
CLOCK_BLOCKED = Counter("clock_blocked_total", "Clock submissions blocked by a gate", ["reason"])
STORE_WRITE_ERRORS = Counter("attendance_write_errors_total", "Attendance store write errors", ["kind"])


@router.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
