"""
Clock-in/clock-out session state machine.

One ClockSession serves one user session. It combines the selected store and
crew member, the latest location fix, the capture gate and a fresh last-event
lookup from the attendance log store, and appends a new event on submit.

States::

    no_selection -> awaiting_location -> out_of_range | ready_in | ready_out
                 -> submitting -> idle | error

Triggers are the closed set in ``Trigger``; ``TRANSITIONS`` lists the ones each
state accepts. Anything else raises InvalidTransition.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from attendance.schemas import ActionType, AttendanceEvent, AttendanceEventCreate
from attendance.store import AttendanceLogStore
from capture import CaptureGate, CaptureStatus
from directory.schemas import CrewMember, Location
from errors import (
    ClockBlocked,
    ClockBusy,
    GateError,
    InvalidTransition,
    LocationPending,
    LocationUnavailable,
    OutOfRange,
    SelectionMissing,
    ShiftMissing,
    StoreError,
)
from geo import haversine_km, within_radius
from location import LocationFeed, LocationFix, LocationWatch

logger = logging.getLogger(__name__)


class ClockState(str, Enum):
    no_selection = "no_selection"
    awaiting_location = "awaiting_location"
    out_of_range = "out_of_range"
    ready_in = "ready_in"
    ready_out = "ready_out"
    submitting = "submitting"
    idle = "idle"
    error = "error"


class Trigger(str, Enum):
    location_selected = "location_selected"
    crew_member_selected = "crew_member_selected"
    shift_selected = "shift_selected"
    fix_obtained = "fix_obtained"
    fix_failed = "fix_failed"
    camera_opened = "camera_opened"
    photo_captured = "photo_captured"
    photo_cleared = "photo_cleared"
    submit_invoked = "submit_invoked"
    write_settled = "write_settled"
    reset = "reset"


_SETUP = frozenset(
    {
        Trigger.location_selected,
        Trigger.crew_member_selected,
        Trigger.shift_selected,
        Trigger.fix_obtained,
        Trigger.fix_failed,
        Trigger.camera_opened,
        Trigger.photo_captured,
        Trigger.photo_cleared,
        Trigger.submit_invoked,
        Trigger.reset,
    }
)

TRANSITIONS: Dict[ClockState, FrozenSet[Trigger]] = {
    ClockState.no_selection: _SETUP,
    ClockState.awaiting_location: _SETUP,
    ClockState.out_of_range: _SETUP,
    ClockState.ready_in: _SETUP,
    ClockState.ready_out: _SETUP,
    # selections are frozen while a write is in flight; a running location watch may still report
    ClockState.submitting: frozenset({Trigger.write_settled, Trigger.fix_obtained, Trigger.fix_failed}),
    ClockState.idle: _SETUP,
    ClockState.error: _SETUP,
}


def next_action_type(last_event: Optional[AttendanceEvent]) -> ActionType:
    """'in' when there is no prior event or the latest one is 'out', else 'out'."""
    if last_event is None or last_event.type == ActionType.clock_out:
        return ActionType.clock_in
    return ActionType.clock_out


@dataclass
class Eligibility:
    """Result of evaluating every gate at one point in time."""

    state: ClockState
    next_action: Optional[ActionType]
    distance_km: Optional[float]
    radius_km: float
    blockers: List[GateError] = field(default_factory=list)

    @property
    def eligible(self) -> bool:
        return not self.blockers

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "eligible": self.eligible,
            "next_action": self.next_action.value if self.next_action else None,
            "distance_km": round(self.distance_km, 4) if self.distance_km is not None else None,
            "radius_km": self.radius_km,
            "blockers": [b.to_dict() for b in self.blockers],
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClockSession:
    """Eligibility gate and submission path for one user session."""

    def __init__(
        self,
        store: AttendanceLogStore,
        location_feed: LocationFeed,
        capture_gate: CaptureGate,
        radius_km: float = 1.0,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if radius_km <= 0:
            raise ValueError("radius_km must be positive")
        self.store = store
        self.location_feed = location_feed
        self.capture_gate = capture_gate
        self.radius_km = radius_km
        self._clock = clock

        self.location: Optional[Location] = None
        self.crew_member: Optional[CrewMember] = None
        self.shift: Optional[str] = None
        self.fix: Optional[LocationFix] = None
        self.location_error: Optional[LocationUnavailable] = None
        self.locating = False
        self.next_action: Optional[ActionType] = None
        self.last_event: Optional[AttendanceEvent] = None
        self.last_error: Optional[StoreError] = None
        self.history: List[Tuple[Trigger, ClockState]] = []

        self._submitting = False
        self._settled: Optional[ClockState] = None
        self._watch: Optional[LocationWatch] = None

    # ---------- derived state ----------

    @property
    def state(self) -> ClockState:
        if self._submitting:
            return ClockState.submitting
        if self._settled is not None:
            return self._settled
        if self.crew_member is None or self.location is None:
            return ClockState.no_selection
        if self.fix is None:
            return ClockState.awaiting_location
        if not within_radius(self.distance_km, self.radius_km):
            return ClockState.out_of_range
        if self.next_action is None:
            # last event not looked up yet (or the lookup failed)
            return ClockState.awaiting_location
        if self.next_action == ActionType.clock_out:
            return ClockState.ready_out
        return ClockState.ready_in

    @property
    def distance_km(self) -> Optional[float]:
        if self.fix is None or self.location is None:
            return None
        return haversine_km(
            self.fix.latitude, self.fix.longitude, self.location.latitude, self.location.longitude
        )

    @property
    def submitting(self) -> bool:
        return self._submitting

    def blockers(self) -> List[GateError]:
        """Every unmet gate, each reported on its own."""
        found: List[GateError] = []
        if self.crew_member is None or self.location is None:
            found.append(SelectionMissing())
        if self.location_error is not None:
            found.append(self.location_error)
        elif self.fix is None:
            found.append(LocationPending())
        elif self.location is not None and not within_radius(self.distance_km, self.radius_km):
            found.append(OutOfRange(self.distance_km, self.radius_km))
        camera = self.capture_gate.blocker()
        if camera is not None:
            found.append(camera)
        if not self.shift:
            found.append(ShiftMissing())
        return found

    # ---------- triggers ----------

    def _check(self, trigger: Trigger) -> None:
        state = self.state
        if trigger not in TRANSITIONS[state]:
            raise InvalidTransition(f"'{trigger.value}' is not allowed while {state.value}")

    def _record(self, trigger: Trigger) -> None:
        if trigger != Trigger.write_settled:
            self._settled = None
        self.history.append((trigger, self.state))

    def select_location(self, location: Location) -> None:
        """Choose the store; clears crew member, shift and photo."""
        self._check(Trigger.location_selected)
        self.stop_watch()
        self.location = location
        self.crew_member = None
        self.shift = None
        self.next_action = None
        self.capture_gate.clear()
        self._record(Trigger.location_selected)

    async def select_crew_member(self, crew_member: CrewMember) -> None:
        """Choose the crew member (must belong to the selected store) and look up their last event."""
        self._check(Trigger.crew_member_selected)
        if self.location is None or crew_member.location_id != self.location.id:
            raise ValueError("Crew member is not assigned to the selected store")
        self.stop_watch()
        self.crew_member = crew_member
        self.shift = None
        self.next_action = None
        self.capture_gate.clear()
        self._record(Trigger.crew_member_selected)
        self.next_action = next_action_type(await self.store.last_by_crew_member(crew_member.id))

    def select_shift(self, shift: Optional[str]) -> None:
        self._check(Trigger.shift_selected)
        self.shift = shift.strip() if shift and shift.strip() else None
        self._record(Trigger.shift_selected)

    async def locate(self) -> Optional[LocationFix]:
        """One-shot fix. Failures are recorded as a gate, not raised."""
        self.locating = True
        try:
            fix = await self.location_feed.current_fix()
        except LocationUnavailable as exc:
            self._fix_failed(exc)
            return None
        finally:
            self.locating = False
        self._fix_obtained(fix)
        return fix

    def start_watch(self, interval_seconds: float = 5.0) -> LocationWatch:
        """Continuous fixes until stop_watch(), a selection change, reset or close()."""
        self.stop_watch()

        async def on_fix(fix: LocationFix) -> None:
            self._fix_obtained(fix)

        async def on_error(exc: LocationUnavailable) -> None:
            self._fix_failed(exc)

        self._watch = self.location_feed.watch(on_fix, on_error, interval_seconds)
        return self._watch

    def stop_watch(self) -> None:
        if self._watch is not None:
            self._watch.cancel()
            self._watch = None

    def _fix_obtained(self, fix: LocationFix) -> None:
        self._check(Trigger.fix_obtained)
        self.fix = fix
        self.location_error = None
        self._record(Trigger.fix_obtained)

    def _fix_failed(self, exc: LocationUnavailable) -> None:
        self._check(Trigger.fix_failed)
        self.fix = None
        self.location_error = exc
        self._record(Trigger.fix_failed)

    async def open_camera(self) -> CaptureStatus:
        self._check(Trigger.camera_opened)
        status = await self.capture_gate.open()
        self._record(Trigger.camera_opened)
        return status

    async def capture_photo(self) -> str:
        self._check(Trigger.photo_captured)
        photo = await self.capture_gate.capture()
        self._record(Trigger.photo_captured)
        return photo

    async def retake_photo(self) -> CaptureStatus:
        self._check(Trigger.photo_cleared)
        self.capture_gate.clear()
        self._record(Trigger.photo_cleared)
        return await self.open_camera()

    def reset(self) -> None:
        """Drop all selections and the photo; the last fix is kept."""
        self._check(Trigger.reset)
        self._clear_selections()
        self._record(Trigger.reset)

    def _clear_selections(self) -> None:
        self.stop_watch()
        self.capture_gate.clear()
        self.shift = None
        self.crew_member = None
        self.location = None
        self.next_action = None

    # ---------- decision & submission ----------

    async def evaluate(self) -> Eligibility:
        """Check every gate, re-reading the crew member's last event from the store."""
        if self.crew_member is not None:
            self.next_action = next_action_type(await self.store.last_by_crew_member(self.crew_member.id))
        return Eligibility(
            state=self.state,
            next_action=self.next_action,
            distance_km=self.distance_km,
            radius_km=self.radius_km,
            blockers=self.blockers(),
        )

    async def submit(self) -> AttendanceEvent:
        """
        Append the next event for the selected crew member.

        Raises ClockBlocked listing every unmet gate, or a StoreError
        (ReadFailed from the last-event lookup, WriteDenied/WriteFailed from
        the append). A store error settles the session in ``error``;
        selections survive it.
        """
        if self._submitting:
            raise ClockBusy()
        self._check(Trigger.submit_invoked)
        self._record(Trigger.submit_invoked)
        self._submitting = True
        try:
            eligibility = await self.evaluate()
            if eligibility.blockers:
                logger.info(
                    "Clock submission blocked: %s", ", ".join(b.code for b in eligibility.blockers)
                )
                raise ClockBlocked(eligibility.blockers)

            event = AttendanceEventCreate(
                crew_member_id=self.crew_member.id,
                crew_member_name=self.crew_member.name,
                location_id=self.location.id,
                location_name=self.location.name,
                timestamp=self._clock(),
                type=eligibility.next_action,
                photo=self.capture_gate.photo,
                shift=self.shift,
            )
            event_id = await self.store.append(event)
        except StoreError as exc:
            logger.warning(
                "Clock submission for %s failed: %s",
                self.crew_member.id if self.crew_member else None,
                exc.code,
            )
            self.last_error = exc
            self._submitting = False
            self._settle(ClockState.error)
            raise
        finally:
            self._submitting = False

        stored = AttendanceEvent(id=event_id, **event.model_dump())
        logger.info(
            "Clocked %s: %s at %s (%.3f km)",
            stored.type.value,
            stored.crew_member_name,
            stored.location_name,
            eligibility.distance_km,
        )
        self.last_event = stored
        self.last_error = None
        self._clear_selections()
        self._settle(ClockState.idle)
        return stored

    def _settle(self, state: ClockState) -> None:
        self._settled = state
        self._record(Trigger.write_settled)

    async def close(self) -> None:
        """Release the location watch and the camera."""
        watch = self._watch
        self.stop_watch()
        if watch is not None:
            await watch.wait_closed()
        self.capture_gate.close()
