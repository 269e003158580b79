# rollcall/crud/attendance.py
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rollcall.crud.base import CRUDBase
from rollcall.models.attendance import AttendanceRecord, AttendanceStatus, SUCCESS_STATUSES

class CRUDAttendance(CRUDBase[AttendanceRecord]):
    def insert_success(
        self,
        db: Session,
        *,
        session_id: str,
        student_id: int,
        status: AttendanceStatus,
        scan_time: datetime,
        created_at: datetime,
        geolocation_verified: bool = False,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        distance_meters: Optional[float] = None,
    ) -> Optional[AttendanceRecord]:
        """Conditional insert of the one successful record for (session, student).

        Returns None when another present/late row already exists; the partial
        unique index decides, so concurrent callers cannot both win.
        """
        att = AttendanceRecord(
            session_id=session_id,
            student_id=student_id,
            status=status.value,
            reason=None,
            scan_time=scan_time,
            created_at=created_at,
            geolocation_verified=geolocation_verified,
            latitude=latitude,
            longitude=longitude,
            distance_meters=distance_meters,
        )
        try:
            db.add(att)
            db.commit()
        except IntegrityError:
            db.rollback()
            if self.success_for(db, session_id=session_id, student_id=student_id) is None:
                # some other constraint failed
                raise
            return None
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)
        return att

    def success_for(self, db: Session, *, session_id: str, student_id: int) -> Optional[AttendanceRecord]:
        stmt = select(AttendanceRecord).where(
            AttendanceRecord.session_id == session_id,
            AttendanceRecord.student_id == student_id,
            AttendanceRecord.status.in_(SUCCESS_STATUSES),
        )
        try:
            return db.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)

    def insert_rejection(
        self,
        db: Session,
        *,
        session_id: str,
        student_id: int,
        reason: str,
        scan_time: datetime,
        created_at: datetime,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        distance_meters: Optional[float] = None,
    ) -> AttendanceRecord:
        att = AttendanceRecord(
            session_id=session_id,
            student_id=student_id,
            status=AttendanceStatus.rejected.value,
            reason=reason,
            scan_time=scan_time,
            created_at=created_at,
            geolocation_verified=False,
            latitude=latitude,
            longitude=longitude,
            distance_meters=distance_meters,
        )
        try:
            db.add(att)
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)
        self._commit(db)
        return att

    def list_for_session(self, db: Session, *, session_id: str, include_rejected: bool = False) -> List[AttendanceRecord]:
        stmt = select(AttendanceRecord).where(AttendanceRecord.session_id == session_id)
        if not include_rejected:
            stmt = stmt.where(AttendanceRecord.status.in_(SUCCESS_STATUSES))
        stmt = stmt.order_by(AttendanceRecord.scan_time, AttendanceRecord.id)
        try:
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)

    def successes_for_sessions(self, db: Session, *, session_ids: Iterable[str]) -> List[AttendanceRecord]:
        ids = list(session_ids)
        if not ids:
            return []
        stmt = (
            select(AttendanceRecord)
            .where(AttendanceRecord.session_id.in_(ids), AttendanceRecord.status.in_(SUCCESS_STATUSES))
            .order_by(AttendanceRecord.scan_time, AttendanceRecord.id)
        )
        try:
            return list(db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise self._unavailable(db, exc)

attendance_crud = CRUDAttendance(AttendanceRecord)
