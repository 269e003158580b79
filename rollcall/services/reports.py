# rollcall/services/reports.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from rollcall.core.clock import Clock, as_utc
from rollcall.core.errors import CourseNotFound, SessionNotFound
from rollcall.crud.attendance import attendance_crud
from rollcall.crud.attendance_session import attendance_session_crud
from rollcall.models.attendance import AttendanceRecord, AttendanceStatus
from rollcall.services.directory import CourseDirectory
from rollcall.services.sessions import SessionStatus, session_view


@dataclass(frozen=True)
class AttendanceEntry:
    id: int
    session_id: str
    student_id: int
    scan_time: datetime
    status: str
    reason: Optional[str]
    geolocation_verified: bool
    distance_meters: Optional[float]

    @classmethod
    def from_row(cls, row: AttendanceRecord) -> "AttendanceEntry":
        return cls(
            id=row.id,
            session_id=row.session_id,
            student_id=row.student_id,
            scan_time=as_utc(row.scan_time),
            status=row.status,
            reason=row.reason,
            geolocation_verified=bool(row.geolocation_verified),
            distance_meters=row.distance_meters,
        )


@dataclass
class StudentSummary:
    student_id: int
    present: int = 0
    late: int = 0
    absent: int = 0
    enrolled: bool = True

    @property
    def attended(self) -> int:
        return self.present + self.late


@dataclass
class CourseSummary:
    course_id: int
    date_from: Optional[date]
    date_to: Optional[date]
    sessions_counted: int = 0
    sessions_open: int = 0
    students: List[StudentSummary] = field(default_factory=list)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


class AttendanceReports:
    """Read-only roll-ups. Each call recomputes from the store."""

    def __init__(self, db: Session, clock: Clock, directory: CourseDirectory):
        self.db = db
        self.clock = clock
        self.directory = directory

    def list_attendance(self, session_id: str, include_rejected: bool = False) -> List[AttendanceEntry]:
        if attendance_session_crud.get(self.db, session_id) is None:
            raise SessionNotFound(session_id=session_id)
        rows = attendance_crud.list_for_session(self.db, session_id=session_id, include_rejected=include_rejected)
        return [AttendanceEntry.from_row(r) for r in rows]

    def course_attendance_summary(
        self,
        course_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> CourseSummary:
        """Present/late/absent per student over the course's sessions in [date_from, date_to].

        Absent is inferred: an enrolled student with no successful record in a
        finished session. Sessions still open are not over yet, so they add
        present/late counts but no absences.
        """
        if not self.directory.course_exists(course_id):
            raise CourseNotFound(course_id=course_id)

        now = self.clock.now()
        rows = attendance_session_crud.list_for_course(
            self.db,
            course_id=course_id,
            created_from=_day_start(date_from) if date_from else None,
            created_before=_day_start(date_to + timedelta(days=1)) if date_to else None,
        )
        sessions = [session_view(r, now) for r in rows]
        finished = [s.session_id for s in sessions if s.status != SessionStatus.active]

        roster = self.directory.enrolled_students(course_id)
        by_student: Dict[int, StudentSummary] = {sid: StudentSummary(student_id=sid) for sid in roster}
        attended: Dict[str, set] = {s.session_id: set() for s in sessions}

        for rec in attendance_crud.successes_for_sessions(self.db, session_ids=attended.keys()):
            summary = by_student.get(rec.student_id)
            if summary is None:
                # has records but is no longer on the roster
                summary = by_student[rec.student_id] = StudentSummary(student_id=rec.student_id, enrolled=False)
            if rec.status == AttendanceStatus.late.value:
                summary.late += 1
            else:
                summary.present += 1
            attended[rec.session_id].add(rec.student_id)

        for session_id in finished:
            for sid in roster:
                if sid not in attended[session_id]:
                    by_student[sid].absent += 1

        return CourseSummary(
            course_id=course_id,
            date_from=date_from,
            date_to=date_to,
            sessions_counted=len(finished),
            sessions_open=len(sessions) - len(finished),
            students=[by_student[k] for k in sorted(by_student)],
        )
