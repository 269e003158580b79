# rollcall/schemas/attendance.py
from __future__ import annotations
from typing import List, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field, model_validator

from rollcall.services.geofence import GeoPoint
from rollcall.services.redemption import ScanResult

# ---- scan ----

class ScanIn(BaseModel):
    token: str = Field(min_length=1, max_length=4096)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    scanned_at: Optional[datetime] = Field(default=None, description="Device time of the scan; server time if omitted")

    @model_validator(mode="after")
    def _both_coordinates(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be sent together")
        return self

    def location(self) -> Optional[GeoPoint]:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)

class ScanOut(BaseModel):
    accepted: bool
    status: str
    reason: Optional[str] = None
    message: str
    scan_time: datetime
    session_id: Optional[str] = None
    course_id: Optional[int] = None
    record_id: Optional[int] = None
    geolocation_verified: bool = False
    distance_meters: Optional[float] = None

    @classmethod
    def from_result(cls, result: ScanResult) -> "ScanOut":
        return cls(
            accepted=result.accepted,
            status=result.status.value,
            reason=result.reason.value if result.reason else None,
            message=result.message,
            scan_time=result.scan_time,
            session_id=result.session_id,
            course_id=result.course_id,
            record_id=result.record_id,
            geolocation_verified=result.geolocation_verified,
            distance_meters=result.distance_meters,
        )

# ---- listing / roll-ups ----

class AttendanceOut(BaseModel):
    id: int
    session_id: str
    student_id: int
    scan_time: datetime
    status: str
    reason: Optional[str] = None
    geolocation_verified: bool
    distance_meters: Optional[float] = None

    model_config = {"from_attributes": True}

class StudentSummaryOut(BaseModel):
    student_id: int
    present: int
    late: int
    absent: int
    enrolled: bool

    model_config = {"from_attributes": True}

class CourseSummaryOut(BaseModel):
    course_id: int
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sessions_counted: int
    sessions_open: int
    students: List[StudentSummaryOut]

    model_config = {"from_attributes": True}
