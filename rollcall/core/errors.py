# rollcall/core/errors.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class RejectionReason(str, Enum):
    INVALID_TOKEN = "INVALID_TOKEN"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_CLOSED = "SESSION_CLOSED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    COURSE_MISMATCH = "COURSE_MISMATCH"
    NOT_ENROLLED = "NOT_ENROLLED"
    LOCATION_REQUIRED = "LOCATION_REQUIRED"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    ALREADY_RECORDED = "ALREADY_RECORDED"


# text shown to the student by the mobile client
REJECTION_MESSAGES: Dict[RejectionReason, str] = {
    RejectionReason.INVALID_TOKEN: "This QR code is not a valid attendance code. Scan the code shown by your instructor.",
    RejectionReason.SESSION_NOT_FOUND: "This attendance session does not exist.",
    RejectionReason.SESSION_CLOSED: "Your instructor has already closed this attendance session.",
    RejectionReason.SESSION_EXPIRED: "This attendance session has expired.",
    RejectionReason.COURSE_MISMATCH: "This QR code does not belong to the current session for the course.",
    RejectionReason.NOT_ENROLLED: "You are not enrolled in this course.",
    RejectionReason.LOCATION_REQUIRED: "This session requires your location. Enable location services and scan again.",
    RejectionReason.OUT_OF_RANGE: "You are too far from the classroom. Move closer and scan again.",
    RejectionReason.ALREADY_RECORDED: "You are already checked in for this session.",
}


class RollcallError(Exception):
    """Expected, named failure. Rendered as {"code", "message", "details"}."""

    code: str = "ROLLCALL_ERROR"
    status_code: int = 400
    message: str = "Request failed."

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details or None}


# ---- session lifecycle ----

class SessionNotFound(RollcallError):
    code = "SESSION_NOT_FOUND"
    status_code = 404
    message = "Attendance session not found."


class ActiveSessionExists(RollcallError):
    code = "ACTIVE_SESSION_EXISTS"
    status_code = 409
    message = "This course already has an active attendance session."


class NotOwner(RollcallError):
    code = "NOT_OWNER"
    status_code = 403
    message = "Only the instructor who opened the session can close it."


class AlreadyTerminal(RollcallError):
    code = "ALREADY_TERMINAL"
    status_code = 409
    message = "The attendance session is already closed or expired."


class SessionNotActive(RollcallError):
    code = "SESSION_NOT_ACTIVE"
    status_code = 409
    message = "The attendance session is no longer active."


class InvalidSessionWindow(RollcallError):
    code = "INVALID_SESSION_WINDOW"
    status_code = 422
    message = "Invalid attendance window."


class InvalidGeofence(RollcallError):
    code = "INVALID_GEOFENCE"
    status_code = 422
    message = "Invalid geofence."


# ---- directory ----

class CourseNotFound(RollcallError):
    code = "COURSE_NOT_FOUND"
    status_code = 404
    message = "Course not found."


class NotInstructor(RollcallError):
    code = "NOT_INSTRUCTOR"
    status_code = 403
    message = "You are not an instructor of this course."


# ---- infrastructure ----

class StorageUnavailable(RollcallError):
    """Storage failed mid-request. Safe to retry the whole call."""

    code = "STORAGE_UNAVAILABLE"
    status_code = 503
    message = "Attendance storage is temporarily unavailable. Try again."
