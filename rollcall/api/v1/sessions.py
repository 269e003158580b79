# rollcall/api/v1/sessions.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from rollcall.api.deps import get_clock, get_directory, get_reports, get_session_manager
from rollcall.core.clock import Clock
from rollcall.core.errors import NotInstructor, SessionNotActive
from rollcall.core.rbac import ROLE_ADMIN, ROLE_INSTRUCTOR, require_roles
from rollcall.models.user import User
from rollcall.schemas.attendance import AttendanceOut
from rollcall.schemas.session import SessionCreate, SessionCreated, SessionOut, TokenDisplay
from rollcall.services.directory import SqlCourseDirectory
from rollcall.services.qr import TokenClaims, encode_token, qr_data_uri
from rollcall.services.reports import AttendanceReports
from rollcall.services.sessions import SessionManager

router = APIRouter()

require_staff = require_roles(ROLE_INSTRUCTOR, ROLE_ADMIN)

def _ensure_course_staff(directory: SqlCourseDirectory, user: User, course_id: int) -> None:
    if user.role == ROLE_ADMIN:
        return
    if not directory.is_instructor_of_course(user.id, course_id):
        raise NotInstructor(course_id=course_id)

# POST /sessions  (opens the attendance window and returns the QR payload)
@router.post("/sessions", response_model=SessionCreated, status_code=status.HTTP_201_CREATED)
def create_session(
    body: SessionCreate,
    user: User = Depends(require_staff),
    manager: SessionManager = Depends(get_session_manager),
):
    view = manager.create_session(
        course_id=body.course_id,
        instructor_id=user.id,
        window_seconds=body.window_seconds,
        geofence=body.geofence.to_domain() if body.geofence else None,
        on_time_seconds=body.on_time_seconds,
    )
    out = SessionOut.from_view(view)
    return SessionCreated(**out.model_dump(), token=encode_token(TokenClaims.for_session(view)))

@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(
    session_id: str,
    user: User = Depends(require_staff),
    manager: SessionManager = Depends(get_session_manager),
    directory: SqlCourseDirectory = Depends(get_directory),
):
    view = manager.get_session(session_id)
    _ensure_course_staff(directory, user, view.course_id)
    return SessionOut.from_view(view)

@router.post("/sessions/{session_id}/close", response_model=SessionOut)
def close_session(
    session_id: str,
    user: User = Depends(require_staff),
    manager: SessionManager = Depends(get_session_manager),
):
    return SessionOut.from_view(manager.close_session(session_id, requesting_instructor_id=user.id))

# GET /sessions/{id}/token  (what the instructor's screen renders as a QR code)
@router.get("/sessions/{session_id}/token", response_model=TokenDisplay)
def session_token(
    session_id: str,
    user: User = Depends(require_staff),
    manager: SessionManager = Depends(get_session_manager),
    directory: SqlCourseDirectory = Depends(get_directory),
    clock: Clock = Depends(get_clock),
):
    view = manager.get_session(session_id)
    _ensure_course_staff(directory, user, view.course_id)
    if not view.is_active:
        raise SessionNotActive(session_id=session_id, status=view.status.value)
    token = encode_token(TokenClaims.for_session(view))
    return TokenDisplay(
        session_id=view.session_id,
        token=token,
        qr_data_uri=qr_data_uri(token),
        expires_at=view.expires_at,
        seconds_remaining=view.seconds_remaining(clock.now()),
        geolocation_required=view.geofence is not None,
    )

@router.get("/sessions/{session_id}/attendance", response_model=List[AttendanceOut])
def list_session_attendance(
    session_id: str,
    include_rejected: bool = Query(False),
    user: User = Depends(require_staff),
    manager: SessionManager = Depends(get_session_manager),
    directory: SqlCourseDirectory = Depends(get_directory),
    reports: AttendanceReports = Depends(get_reports),
):
    view = manager.get_session(session_id)
    _ensure_course_staff(directory, user, view.course_id)
    return reports.list_attendance(session_id, include_rejected=include_rejected)

@router.get("/courses/{course_id}/sessions/active", response_model=Optional[SessionOut])
def active_session(
    course_id: int,
    user: User = Depends(require_staff),
    manager: SessionManager = Depends(get_session_manager),
    directory: SqlCourseDirectory = Depends(get_directory),
):
    _ensure_course_staff(directory, user, course_id)
    view = manager.active_session_for_course(course_id)
    return SessionOut.from_view(view) if view else None

@router.get("/courses/{course_id}/sessions", response_model=List[SessionOut])
def list_sessions(
    course_id: int,
    user: User = Depends(require_staff),
    manager: SessionManager = Depends(get_session_manager),
    directory: SqlCourseDirectory = Depends(get_directory),
):
    _ensure_course_staff(directory, user, course_id)
    return [SessionOut.from_view(v) for v in manager.list_sessions(course_id)]
