# rollcall/models/attendance.py
from __future__ import annotations

from enum import Enum
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import ForeignKey, String, Float, Boolean, DateTime, Index, text
from rollcall.db.base import Base

class AttendanceStatus(str, Enum):
    present = "present"
    late = "late"
    rejected = "rejected"

SUCCESS_STATUSES = (AttendanceStatus.present.value, AttendanceStatus.late.value)

class AttendanceRecord(Base):
    """One scan outcome. Rows are append-only."""

    __tablename__ = "attendance_records"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(ForeignKey("attendance_sessions.id"), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    scan_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(16))
    reason: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    geolocation_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    distance_meters: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    session = relationship("AttendanceSession", back_populates="records")

    __table_args__ = (
        # exactly one successful redemption per (session, student)
        Index(
            "uq_attendance_records_success",
            "session_id",
            "student_id",
            unique=True,
            sqlite_where=text("status IN ('present', 'late')"),
            postgresql_where=text("status IN ('present', 'late')"),
        ),
    )
