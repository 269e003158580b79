# rollcall/crud/attendance_session.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rollcall.crud.base import CRUDBase
from rollcall.models.attendance_session import AttendanceSession, SessionState, new_session_id
from rollcall.services.geofence import Geofence

class CRUDAttendanceSession(CRUDBase[AttendanceSession]):
    def create_active(
        self,
        db: Session,
        *,
        course_id: int,
        instructor_id: int,
        created_at: datetime,
        expires_at: datetime,
        on_time_seconds: Optional[int] = None,
        geofence: Optional[Geofence] = None,
    ) -> Optional[AttendanceSession]:
        """Inserts an active session; None when the course already has a live one.

        Sessions that ran out without being closed still carry state='active';
        they are retired first so the partial unique index only counts live rows.
        """
        try:
            db.execute(
                update(AttendanceSession)
                .where(
                    AttendanceSession.course_id == course_id,
                    AttendanceSession.state == SessionState.active.value,
                    AttendanceSession.expires_at <= created_at,
                )
                .values(state=SessionState.expired.value)
                .execution_options(synchronize_session=False)
            )
            row = AttendanceSession(
                id=new_session_id(),
                course_id=course_id,
                instructor_id=instructor_id,
                created_at=created_at,
                expires_at=expires_at,
                on_time_seconds=on_time_seconds,
                state=SessionState.active.value,
            )
            if geofence is not None:
                row.geofence_latitude = geofence.latitude
                row.geofence_longitude = geofence.longitude
                row.geofence_radius_meters = geofence.radius_meters
            db.add(row)
            db.commit()
        except IntegrityError:
            db.rollback()
            return None
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)
        # retired rows may still sit in the identity map as 'active'
        db.expire_all()
        return row

    def close_if_live(self, db: Session, *, session_id: str, now: datetime) -> bool:
        """Atomic active -> closed transition; False if the row was no longer live."""
        try:
            result = db.execute(
                update(AttendanceSession)
                .where(
                    AttendanceSession.id == session_id,
                    AttendanceSession.state == SessionState.active.value,
                    AttendanceSession.expires_at > now,
                )
                .values(state=SessionState.closed.value, closed_at=now)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)
        self._commit(db)
        # the bulk UPDATE bypassed the identity map
        db.expire_all()
        return result.rowcount == 1

    def live_for_course(self, db: Session, *, course_id: int, now: datetime) -> Optional[AttendanceSession]:
        try:
            return db.scalars(
                select(AttendanceSession).where(
                    AttendanceSession.course_id == course_id,
                    AttendanceSession.state == SessionState.active.value,
                    AttendanceSession.expires_at > now,
                )
            ).first()
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)

    def list_for_course(
        self,
        db: Session,
        *,
        course_id: int,
        created_from: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
    ) -> List[AttendanceSession]:
        stmt = select(AttendanceSession).where(AttendanceSession.course_id == course_id)
        if created_from is not None:
            stmt = stmt.where(AttendanceSession.created_at >= created_from)
        if created_before is not None:
            stmt = stmt.where(AttendanceSession.created_at < created_before)
        try:
            return list(db.scalars(stmt.order_by(AttendanceSession.created_at, AttendanceSession.id)).all())
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)

attendance_session_crud = CRUDAttendanceSession(AttendanceSession)
