# rollcall/models/__init__.py
# Loads every model module so all tables land in Base.metadata
from rollcall.models.user import User, UserRole  # noqa: F401
from rollcall.models.course import Course  # noqa: F401
from rollcall.models.enrollment import Enrollment  # noqa: F401
from rollcall.models.attendance_session import AttendanceSession, SessionState  # noqa: F401
from rollcall.models.attendance import AttendanceRecord, AttendanceStatus  # noqa: F401

__all__ = [
    "User",
    "UserRole",
    "Course",
    "Enrollment",
    "AttendanceSession",
    "SessionState",
    "AttendanceRecord",
    "AttendanceStatus",
]
