# rollcall/services/redemption.py
"""Scan redemption: turns a presented token into at most one attendance record.

Every attempt ends in a single call with either an accepted record
(present/late) or a named rejection. The exactly-once rule per
(session, student) is left to the store: the insert is conditional on the
partial unique index, and whoever loses the race is told ALREADY_RECORDED.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from rollcall.core.clock import Clock, as_utc, to_epoch
from rollcall.core.config import settings
from rollcall.core.errors import REJECTION_MESSAGES, RejectionReason
from rollcall.crud.attendance import attendance_crud
from rollcall.crud.attendance_session import attendance_session_crud
from rollcall.models.attendance import AttendanceStatus
from rollcall.services.directory import CourseDirectory
from rollcall.services.geofence import GeoPoint, distance_meters
from rollcall.services.qr import DecodeError, decode_token
from rollcall.services.sessions import SessionStatus, SessionView, session_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    accepted: bool
    status: AttendanceStatus
    scan_time: datetime
    reason: Optional[RejectionReason] = None
    session_id: Optional[str] = None
    course_id: Optional[int] = None
    record_id: Optional[int] = None
    geolocation_verified: bool = False
    distance_meters: Optional[float] = None

    @property
    def message(self) -> str:
        if self.reason is not None:
            return REJECTION_MESSAGES[self.reason]
        if self.status == AttendanceStatus.late:
            return "Checked in (late)."
        return "Checked in."


def device_scan_time(claimed: datetime, session: SessionView, now: datetime) -> datetime:
    """The device clock is believed only between session start and server receipt."""
    claimed = as_utc(claimed)
    if session.created_at <= claimed <= now:
        return claimed
    logger.info("ignoring device scan time %s for session=%s (outside %s..%s)",
                claimed.isoformat(), session.session_id, session.created_at.isoformat(), now.isoformat())
    return now


class RedemptionArbiter:
    def __init__(self, db: Session, clock: Clock, directory: CourseDirectory):
        self.db = db
        self.clock = clock
        self.directory = directory

    def redeem(
        self,
        token: str,
        student_id: int,
        location: Optional[GeoPoint] = None,
        scan_time: Optional[datetime] = None,
    ) -> ScanResult:
        now = self.clock.now()
        scanned = now

        claims = decode_token(token)
        if isinstance(claims, DecodeError):
            logger.info("scan rejected: student=%s reason=%s (%s)",
                        student_id, RejectionReason.INVALID_TOKEN.value, claims.kind.value)
            return ScanResult(False, AttendanceStatus.rejected, scanned, RejectionReason.INVALID_TOKEN)

        row = attendance_session_crud.get(self.db, claims.session_id)
        if row is None:
            logger.info("scan rejected: student=%s session=%s reason=%s",
                        student_id, claims.session_id, RejectionReason.SESSION_NOT_FOUND.value)
            return ScanResult(False, AttendanceStatus.rejected, scanned, RejectionReason.SESSION_NOT_FOUND,
                              session_id=claims.session_id)
        session = session_view(row, now)
        if scan_time is not None:
            scanned = device_scan_time(scan_time, session, now)

        # expiry first: a closed session past its window still reads as expired
        if now >= session.expires_at:
            return self._reject(session, student_id, scanned, RejectionReason.SESSION_EXPIRED, location)
        if session.status == SessionStatus.closed:
            return self._reject(session, student_id, scanned, RejectionReason.SESSION_CLOSED, location)
        if session.status != SessionStatus.active:
            return self._reject(session, student_id, scanned, RejectionReason.SESSION_EXPIRED, location)

        if (
            claims.course_id != session.course_id
            or claims.issued_at != to_epoch(session.created_at)
            or claims.expires_at != to_epoch(session.expires_at)
            or claims.geofence != session.geofence
        ):
            return self._reject(session, student_id, scanned, RejectionReason.COURSE_MISMATCH, location)

        if settings.ENFORCE_ENROLLMENT and not self.directory.is_enrolled_student(student_id, session.course_id):
            return self._reject(session, student_id, scanned, RejectionReason.NOT_ENROLLED, location)

        verified = False
        distance = None
        if session.geofence is not None:
            if location is None or not location.is_valid():
                return self._reject(session, student_id, scanned, RejectionReason.LOCATION_REQUIRED, location)
            distance = distance_meters(session.geofence, location)
            if distance > session.geofence.radius_meters:
                return self._reject(session, student_id, scanned, RejectionReason.OUT_OF_RANGE, location, distance)
            verified = True

        status = AttendanceStatus.present if scanned < session.on_time_until else AttendanceStatus.late
        record = attendance_crud.insert_success(
            self.db,
            session_id=session.session_id,
            student_id=student_id,
            status=status,
            scan_time=scanned,
            created_at=now,
            geolocation_verified=verified,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            distance_meters=distance,
        )
        if record is None:
            return self._reject(session, student_id, scanned, RejectionReason.ALREADY_RECORDED, location, distance)

        logger.info("scan accepted: student=%s session=%s status=%s record=%s",
                    student_id, session.session_id, status.value, record.id)
        return ScanResult(
            True,
            status,
            scanned,
            session_id=session.session_id,
            course_id=session.course_id,
            record_id=record.id,
            geolocation_verified=verified,
            distance_meters=distance,
        )

    def _reject(
        self,
        session: SessionView,
        student_id: int,
        scanned: datetime,
        reason: RejectionReason,
        location: Optional[GeoPoint] = None,
        distance: Optional[float] = None,
    ) -> ScanResult:
        logger.info("scan rejected: student=%s session=%s reason=%s",
                    student_id, session.session_id, reason.value)
        record_id = None
        if settings.RECORD_REJECTED_SCANS:
            record = attendance_crud.insert_rejection(
                self.db,
                session_id=session.session_id,
                student_id=student_id,
                reason=reason.value,
                scan_time=scanned,
                created_at=self.clock.now(),
                latitude=location.latitude if location else None,
                longitude=location.longitude if location else None,
                distance_meters=distance,
            )
            record_id = record.id
        return ScanResult(
            False,
            AttendanceStatus.rejected,
            scanned,
            reason,
            session_id=session.session_id,
            course_id=session.course_id,
            record_id=record_id,
            distance_meters=distance,
        )
