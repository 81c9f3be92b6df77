"""Device position sources and the location feed used by the clock session."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from errors import LocationUnavailable, PositionFailure

logger = logging.getLogger(__name__)


class LocationFix(BaseModel):
    """A single position fix."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy_m: Optional[float] = Field(None, ge=0, description="Reported accuracy in meters")


class PositionSource(ABC):
    """Device positioning collaborator."""

    @abstractmethod
    async def current_position(self) -> LocationFix:
        """Return one fix or raise LocationUnavailable."""

    async def watch_positions(self, interval_seconds: float = 5.0) -> AsyncIterator[LocationFix]:
        """Continuous fixes; sources with a native watch API override this."""
        while True:
            yield await self.current_position()
            await asyncio.sleep(interval_seconds)


class ReportedPosition(PositionSource):
    """Coordinates (or a positioning failure) reported by the device in a request body."""

    def __init__(
        self,
        latitude: Optional[float],
        longitude: Optional[float],
        accuracy_m: Optional[float] = None,
        failure: Optional[PositionFailure] = None,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.accuracy_m = accuracy_m
        self.failure = PositionFailure(failure) if failure else None

    async def current_position(self) -> LocationFix:
        if self.failure is not None:
            raise LocationUnavailable(self.failure)
        if self.latitude is None or self.longitude is None:
            raise LocationUnavailable(PositionFailure.unavailable)
        return LocationFix(latitude=self.latitude, longitude=self.longitude, accuracy_m=self.accuracy_m)


class LocationWatch:
    """Handle on a running continuous watch; cancel() releases it."""

    def __init__(self, task: "asyncio.Task[None]"):
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class LocationFeed:
    """Wraps a PositionSource with a timeout and typed failures."""

    def __init__(self, source: PositionSource, timeout_seconds: float = 10.0):
        self.source = source
        self.timeout_seconds = timeout_seconds

    async def current_fix(self) -> LocationFix:
        """One-shot fix; a request that does not resolve in time becomes LocationUnavailable(timeout)."""
        try:
            return await asyncio.wait_for(self.source.current_position(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.info("Location fix timed out after %.1fs", self.timeout_seconds)
            raise LocationUnavailable(PositionFailure.timeout)

    def watch(
        self,
        on_fix: Callable[[LocationFix], Awaitable[None]],
        on_error: Callable[[LocationUnavailable], Awaitable[None]],
        interval_seconds: float = 5.0,
    ) -> LocationWatch:
        """
        Start a continuous watch in the current event loop.

        The watch stops at the first failure (no automatic retry); the caller
        owns the returned handle and must cancel it on teardown.
        """

        async def _run() -> None:
            positions = self.source.watch_positions(interval_seconds)
            try:
                while True:
                    try:
                        fix = await asyncio.wait_for(
                            positions.__anext__(), timeout=self.timeout_seconds + interval_seconds
                        )
                    except StopAsyncIteration:
                        return
                    except asyncio.TimeoutError:
                        await on_error(LocationUnavailable(PositionFailure.timeout))
                        return
                    except LocationUnavailable as exc:
                        await on_error(exc)
                        return
                    await on_fix(fix)
            finally:
                aclose = getattr(positions, "aclose", None)
                if aclose is not None:
                    await aclose()

        return LocationWatch(asyncio.create_task(_run()))
