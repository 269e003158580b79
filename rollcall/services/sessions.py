# rollcall/services/sessions.py
"""Attendance session lifecycle.

Status is derived on every read: a session is Active while ``now <
expires_at`` and nobody closed it. There is no expiry sweeper; stale
'active' rows are retired when the next session for the course opens.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from sqlalchemy.orm import Session

from rollcall.core.clock import Clock, as_utc
from rollcall.core.config import settings
from rollcall.core.errors import (
    ActiveSessionExists,
    AlreadyTerminal,
    CourseNotFound,
    InvalidGeofence,
    InvalidSessionWindow,
    NotInstructor,
    NotOwner,
    SessionNotFound,
)
from rollcall.crud.attendance_session import attendance_session_crud
from rollcall.models.attendance_session import AttendanceSession, SessionState
from rollcall.services.directory import CourseDirectory
from rollcall.services.geofence import Geofence

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    active = "active"
    closed = "closed"
    expired = "expired"


@dataclass(frozen=True)
class SessionView:
    session_id: str
    course_id: int
    instructor_id: int
    created_at: datetime
    expires_at: datetime
    status: SessionStatus
    on_time_seconds: Optional[int] = None
    geofence: Optional[Geofence] = None
    closed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.active

    @property
    def on_time_until(self) -> datetime:
        if self.on_time_seconds is None:
            return self.expires_at
        return min(self.created_at + timedelta(seconds=self.on_time_seconds), self.expires_at)

    def seconds_remaining(self, now: datetime) -> int:
        return max(0, int((self.expires_at - as_utc(now)).total_seconds()))


def effective_status(row: AttendanceSession, now: datetime) -> SessionStatus:
    if row.state == SessionState.closed.value:
        return SessionStatus.closed
    if row.state == SessionState.expired.value or as_utc(now) >= as_utc(row.expires_at):
        return SessionStatus.expired
    return SessionStatus.active


def session_view(row: AttendanceSession, now: datetime) -> SessionView:
    fence = None
    if row.geofence_radius_meters is not None:
        fence = Geofence(
            latitude=row.geofence_latitude,
            longitude=row.geofence_longitude,
            radius_meters=row.geofence_radius_meters,
        )
    return SessionView(
        session_id=row.id,
        course_id=row.course_id,
        instructor_id=row.instructor_id,
        created_at=as_utc(row.created_at),
        expires_at=as_utc(row.expires_at),
        status=effective_status(row, now),
        on_time_seconds=row.on_time_seconds,
        geofence=fence,
        closed_at=as_utc(row.closed_at) if row.closed_at else None,
    )


class SessionManager:
    def __init__(self, db: Session, clock: Clock, directory: CourseDirectory):
        self.db = db
        self.clock = clock
        self.directory = directory

    def create_session(
        self,
        course_id: int,
        instructor_id: int,
        window_seconds: Optional[int] = None,
        geofence: Optional[Geofence] = None,
        on_time_seconds: Optional[int] = None,
    ) -> SessionView:
        window = settings.ATTENDANCE_WINDOW_SECONDS if window_seconds is None else window_seconds
        if not settings.ATTENDANCE_WINDOW_MIN_SECONDS <= window <= settings.ATTENDANCE_WINDOW_MAX_SECONDS:
            raise InvalidSessionWindow(
                window_seconds=window,
                min_seconds=settings.ATTENDANCE_WINDOW_MIN_SECONDS,
                max_seconds=settings.ATTENDANCE_WINDOW_MAX_SECONDS,
            )
        if on_time_seconds is not None and not 0 < on_time_seconds <= window:
            raise InvalidSessionWindow(
                "The on-time period must be positive and fit inside the window.",
                on_time_seconds=on_time_seconds,
                window_seconds=window,
            )
        if geofence is not None and not geofence.is_valid(settings.GEOFENCE_MAX_RADIUS_METERS):
            raise InvalidGeofence(max_radius_meters=settings.GEOFENCE_MAX_RADIUS_METERS)

        if not self.directory.course_exists(course_id):
            raise CourseNotFound(course_id=course_id)
        if not self.directory.is_instructor_of_course(instructor_id, course_id):
            raise NotInstructor(course_id=course_id)

        now = self.clock.now()
        row = attendance_session_crud.create_active(
            self.db,
            course_id=course_id,
            instructor_id=instructor_id,
            created_at=now,
            expires_at=now + timedelta(seconds=window),
            on_time_seconds=on_time_seconds,
            geofence=geofence,
        )
        if row is None:
            logger.info("session refused: course=%s already has an active session", course_id)
            raise ActiveSessionExists(course_id=course_id)

        view = session_view(row, now)
        logger.info(
            "session opened: id=%s course=%s instructor=%s window=%ss geofence=%s",
            view.session_id, course_id, instructor_id, window, geofence is not None,
        )
        return view

    def close_session(self, session_id: str, requesting_instructor_id: int) -> SessionView:
        now = self.clock.now()
        row = attendance_session_crud.get(self.db, session_id)
        if row is None:
            raise SessionNotFound(session_id=session_id)
        if row.instructor_id != requesting_instructor_id:
            raise NotOwner(session_id=session_id)
        if effective_status(row, now) != SessionStatus.active:
            raise AlreadyTerminal(session_id=session_id, status=effective_status(row, now).value)

        if not attendance_session_crud.close_if_live(self.db, session_id=session_id, now=now):
            # lost a race with another close or with the clock
            row = attendance_session_crud.get(self.db, session_id)
            raise AlreadyTerminal(session_id=session_id, status=effective_status(row, now).value)

        logger.info("session closed: id=%s by instructor=%s", session_id, requesting_instructor_id)
        return session_view(attendance_session_crud.get(self.db, session_id), now)

    def get_session(self, session_id: str) -> SessionView:
        row = attendance_session_crud.get(self.db, session_id)
        if row is None:
            raise SessionNotFound(session_id=session_id)
        return session_view(row, self.clock.now())

    def active_session_for_course(self, course_id: int) -> Optional[SessionView]:
        now = self.clock.now()
        row = attendance_session_crud.live_for_course(self.db, course_id=course_id, now=now)
        return session_view(row, now) if row else None

    def list_sessions(
        self,
        course_id: int,
        created_from: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
    ) -> List[SessionView]:
        now = self.clock.now()
        rows = attendance_session_crud.list_for_course(
            self.db, course_id=course_id, created_from=created_from, created_before=created_before
        )
        return [session_view(r, now) for r in rows]
