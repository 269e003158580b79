# rollcall/models/attendance_session.py
from __future__ import annotations

import uuid
from enum import Enum
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import ForeignKey, String, Integer, Float, DateTime, Index, CheckConstraint, text
from rollcall.db.base import Base

class SessionState(str, Enum):
    active = "active"
    closed = "closed"
    expired = "expired"

def new_session_id() -> str:
    return uuid.uuid4().hex

class AttendanceSession(Base):
    __tablename__ = "attendance_sessions"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_session_id)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), index=True)
    instructor_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    on_time_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    geofence_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    geofence_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    geofence_radius_meters: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # stored state; "active" rows past expires_at are effectively expired
    state: Mapped[str] = mapped_column(String(16), default=SessionState.active.value)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    course = relationship("Course")
    records = relationship("AttendanceRecord", back_populates="session")

    __table_args__ = (
        # one live session per course, enforced by the store
        Index(
            "uq_attendance_sessions_active_course",
            "course_id",
            unique=True,
            sqlite_where=text("state = 'active'"),
            postgresql_where=text("state = 'active'"),
        ),
        CheckConstraint("expires_at > created_at", name="window_positive"),
        CheckConstraint(
            "(geofence_latitude IS NULL AND geofence_longitude IS NULL AND geofence_radius_meters IS NULL)"
            " OR (geofence_latitude IS NOT NULL AND geofence_longitude IS NOT NULL AND geofence_radius_meters IS NOT NULL)",
            name="geofence_complete",
        ),
    )
