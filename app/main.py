"""FastAPI application exposing the crew clock engine."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# local modules (same folder as main.py inside the container)
from metrics import router as metrics_router
from live import router as live_router

from db import create_db_engine, create_session_factory, init_db
from settings import Settings, settings
from attendance.routes import router as attendance_router
from attendance.store import AttendanceLogStore, SqlAttendanceLogStore
from clock.routes import router as clock_router
from directory.routes import router as directory_router
from errors import (
    ClockBusy,
    ClockError,
    GateError,
    ClockBlocked,
    InvalidTransition,
    NotFound,
    ReadFailed,
    WriteDenied,
    WriteFailed,
)

logger = logging.getLogger(__name__)

# first match wins
ERROR_STATUS = (
    (ClockBlocked, 422),
    (GateError, 422),
    (WriteDenied, 403),
    (WriteFailed, 503),
    (ReadFailed, 503),
    (NotFound, 404),
    (InvalidTransition, 409),
    (ClockBusy, 409),
)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def clock_error_handler(request: Request, exc: ClockError) -> JSONResponse:
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "error": exc.to_dict()})


def create_app(app_settings: Settings = settings, store: Optional[AttendanceLogStore] = None) -> FastAPI:
    """
    Build the application.

    The database engine and the attendance store handle are created once in
    the lifespan and shared through ``app.state``; pass ``store`` to use
    another backing store (e.g. the in-memory one).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_db_engine(app_settings.database_url)
        init_db(engine)
        app.state.settings = app_settings
        app.state.session_factory = create_session_factory(engine)
        app.state.store = store or SqlAttendanceLogStore(
            app.state.session_factory, poll_seconds=app_settings.subscription_poll_seconds
        )
        logger.info(
            "CrewClock started (store=%s, radius=%.2f km)",
            type(app.state.store).__name__,
            app_settings.geofence_radius_km,
        )
        try:
            yield
        finally:
            app.state.store.close()
            engine.dispose()

    app = FastAPI(
        title="CrewClock",
        description="Geofenced clock-in/clock-out with photo evidence",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(ClockError, clock_error_handler)

    # Observability & live stream
    app.include_router(metrics_router)  # exposes GET /metrics
    app.include_router(live_router)  # exposes GET /stream/attendance

    # Functional routers
    app.include_router(directory_router)
    app.include_router(clock_router)
    app.include_router(attendance_router)

    @app.get("/")
    async def root():
        return {"message": "CrewClock attendance API", "version": "1.0.0"}

    return app


configure_logging(settings.log_level)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
