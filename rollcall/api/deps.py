# rollcall/api/deps.py
import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rollcall.core.clock import Clock, SystemClock
from rollcall.core.errors import StorageUnavailable
from rollcall.core.tokens import decode_access
from rollcall.db.session import get_db
from rollcall.models.user import User
from rollcall.services.directory import SqlCourseDirectory
from rollcall.services.redemption import RedemptionArbiter
from rollcall.services.reports import AttendanceReports
from rollcall.services.sessions import SessionManager

logger = logging.getLogger(__name__)

_system_clock = SystemClock()

# ----------------------------------------------------------------------
# Injected clock; tests swap it through app.dependency_overrides
# ----------------------------------------------------------------------
def get_clock() -> Clock:
    return _system_clock

# ----------------------------------------------------------------------
# Bearer token from the Authorization header (no OAuth2PasswordBearer)
# ----------------------------------------------------------------------
def get_bearer_token(authorization: str = Header(None, alias="Authorization")) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return parts[1]

def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    payload = decode_access(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user = db.get(User, user_id)
    except SQLAlchemyError as exc:
        logger.error("storage failure loading current user", exc_info=exc)
        db.rollback()
        raise StorageUnavailable(table="users")
    if not user or user.status != "active":
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

# ----------------------------------------------------------------------
# Services, one set per request
# ----------------------------------------------------------------------
def get_directory(db: Session = Depends(get_db)) -> SqlCourseDirectory:
    return SqlCourseDirectory(db)

def get_session_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    directory: SqlCourseDirectory = Depends(get_directory),
) -> SessionManager:
    return SessionManager(db, clock, directory)

def get_arbiter(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    directory: SqlCourseDirectory = Depends(get_directory),
) -> RedemptionArbiter:
    return RedemptionArbiter(db, clock, directory)

def get_reports(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    directory: SqlCourseDirectory = Depends(get_directory),
) -> AttendanceReports:
    return AttendanceReports(db, clock, directory)
