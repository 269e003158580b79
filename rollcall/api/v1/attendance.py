# rollcall/api/v1/attendance.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from rollcall.api.deps import get_arbiter, get_directory, get_reports
from rollcall.core.errors import NotInstructor
from rollcall.core.rbac import ROLE_ADMIN, ROLE_INSTRUCTOR, ROLE_STUDENT, require_roles
from rollcall.models.user import User
from rollcall.schemas.attendance import CourseSummaryOut, ScanIn, ScanOut
from rollcall.services.directory import SqlCourseDirectory
from rollcall.services.redemption import RedemptionArbiter
from rollcall.services.reports import AttendanceReports

router = APIRouter()

# POST /attendance/scan
# 200 for accepted and rejected scans alike; "accepted"/"reason" tell them apart
@router.post("/attendance/scan", response_model=ScanOut)
def scan(
    body: ScanIn,
    user: User = Depends(require_roles(ROLE_STUDENT)),
    arbiter: RedemptionArbiter = Depends(get_arbiter),
):
    result = arbiter.redeem(
        body.token.strip(),
        student_id=user.id,
        location=body.location(),
        scan_time=body.scanned_at,
    )
    return ScanOut.from_result(result)

# GET /courses/{course_id}/attendance/summary?date_from=..&date_to=..
@router.get("/courses/{course_id}/attendance/summary", response_model=CourseSummaryOut)
def course_summary(
    course_id: int,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    user: User = Depends(require_roles(ROLE_INSTRUCTOR, ROLE_ADMIN)),
    directory: SqlCourseDirectory = Depends(get_directory),
    reports: AttendanceReports = Depends(get_reports),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=422, detail="date_from must not be after date_to")
    if user.role != ROLE_ADMIN and directory.course_exists(course_id) \
            and not directory.is_instructor_of_course(user.id, course_id):
        raise NotInstructor(course_id=course_id)
    return reports.course_attendance_summary(course_id, date_from=date_from, date_to=date_to)
