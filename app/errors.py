"""Error taxonomy for the clock-in engine and the attendance log store."""
from enum import Enum
from typing import List, Optional

from geo import format_distance


class PositionFailure(str, Enum):
    """Why a location fix could not be obtained."""
    permission_denied = "permission_denied"
    timeout = "timeout"
    unavailable = "unavailable"


class CameraFailure(str, Enum):
    """Why the camera stream could not be opened."""
    denied = "denied"
    unsupported = "unsupported"


class ClockError(Exception):
    """Base class; every error carries a stable code and a readable message."""

    code = "clock_error"
    default_message = "Clock action failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# --------------------
# Eligibility gates
# --------------------
class GateError(ClockError):
    """An unmet eligibility precondition."""

    code = "gate"


class SelectionMissing(GateError):
    code = "selection_missing"
    default_message = "Select your store and your name to begin."


class LocationPending(GateError):
    code = "location_pending"
    default_message = "Getting your location..."


class LocationUnavailable(GateError):
    code = "location_unavailable"

    _messages = {
        PositionFailure.permission_denied: "Location permission was denied.",
        PositionFailure.timeout: "Timed out waiting for a location fix.",
        PositionFailure.unavailable: "Position update is unavailable.",
    }

    def __init__(self, reason: PositionFailure = PositionFailure.unavailable, message: Optional[str] = None):
        self.reason = PositionFailure(reason)
        super().__init__(message or self._messages[self.reason])

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason.value}


class OutOfRange(GateError):
    code = "out_of_range"

    def __init__(self, distance_km: float, radius_km: float):
        self.distance_km = distance_km
        self.radius_km = radius_km
        super().__init__(
            f"You are {format_distance(distance_km)} km away. "
            f"Please be within {radius_km:g} km of the store."
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "distance_km": round(self.distance_km, 2),
            "radius_km": self.radius_km,
        }


class CameraUnavailable(GateError):
    code = "camera_unavailable"

    _messages = {
        CameraFailure.denied: "Camera access was denied. Allow camera access and reopen the camera.",
        CameraFailure.unsupported: "This device does not support camera access.",
    }

    def __init__(self, reason: CameraFailure, message: Optional[str] = None):
        self.reason = CameraFailure(reason)
        super().__init__(message or self._messages[self.reason])

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason.value}


class CameraInitializing(GateError):
    code = "camera_initializing"
    default_message = "Starting camera..."


class PhotoMissing(GateError):
    code = "photo_missing"
    default_message = "Take a photo before clocking in or out."


class ShiftMissing(GateError):
    code = "shift_missing"
    default_message = "Select your shift."


class ClockBlocked(ClockError):
    """Raised by a submission attempt while one or more gates are unmet."""

    code = "blocked"

    def __init__(self, reasons: List[GateError]):
        self.reasons = list(reasons)
        super().__init__(" ".join(r.message for r in self.reasons) or self.default_message)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reasons": [r.to_dict() for r in self.reasons]}


# --------------------
# State machine misuse
# --------------------
class InvalidTransition(ClockError):
    code = "invalid_transition"


class ClockBusy(ClockError):
    code = "busy"
    default_message = "A submission is already in progress."


# --------------------
# Store
# --------------------
class StoreError(ClockError):
    code = "store_error"


class WriteDenied(StoreError):
    code = "write_denied"
    default_message = "The attendance store rejected the write (permission denied)."


class WriteFailed(StoreError):
    code = "write_failed"
    default_message = "Could not save the attendance record. Please try again."


class NotFound(StoreError):
    code = "not_found"
    default_message = "Attendance record not found."


class ReadFailed(StoreError):
    code = "read_failed"
    default_message = "Could not read attendance records."
