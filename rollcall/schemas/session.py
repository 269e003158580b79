# rollcall/schemas/session.py
from __future__ import annotations
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from rollcall.services.geofence import Geofence
from rollcall.services.sessions import SessionView

# ---------------------------
# Geofence
# ---------------------------

class GeofenceIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius_meters: float = Field(gt=0)

    def to_domain(self) -> Geofence:
        return Geofence(latitude=self.latitude, longitude=self.longitude, radius_meters=self.radius_meters)

class GeofenceOut(BaseModel):
    latitude: float
    longitude: float
    radius_meters: float

# ---------------------------
# Attendance sessions
# ---------------------------

class SessionCreate(BaseModel):
    course_id: int
    window_seconds: Optional[int] = Field(default=None, description="Defaults to ATTENDANCE_WINDOW_SECONDS (5 minutes)")
    on_time_seconds: Optional[int] = Field(default=None, description="Scans after this many seconds count as late")
    geofence: Optional[GeofenceIn] = None

class SessionOut(BaseModel):
    session_id: str
    course_id: int
    instructor_id: int
    status: str
    created_at: datetime
    expires_at: datetime
    on_time_until: datetime
    closed_at: Optional[datetime] = None
    geofence: Optional[GeofenceOut] = None
    geolocation_required: bool = False

    @classmethod
    def from_view(cls, view: SessionView) -> "SessionOut":
        fence = None
        if view.geofence is not None:
            fence = GeofenceOut(
                latitude=view.geofence.latitude,
                longitude=view.geofence.longitude,
                radius_meters=view.geofence.radius_meters,
            )
        return cls(
            session_id=view.session_id,
            course_id=view.course_id,
            instructor_id=view.instructor_id,
            status=view.status.value,
            created_at=view.created_at,
            expires_at=view.expires_at,
            on_time_until=view.on_time_until,
            closed_at=view.closed_at,
            geofence=fence,
            geolocation_required=fence is not None,
        )

class SessionCreated(SessionOut):
    token: str

class TokenDisplay(BaseModel):
    session_id: str
    token: str
    qr_data_uri: str
    expires_at: datetime
    seconds_remaining: int
    geolocation_required: bool
