"""FastAPI dependencies for handles created once at startup."""
from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from attendance.store import AttendanceLogStore
from settings import Settings


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_store(request: Request) -> AttendanceLogStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
