# rollcall/services/directory.py
"""Course/User directory as seen by the attendance services.

Users, courses and enrollments are owned elsewhere; the attendance code
only asks these questions about them.
"""
from __future__ import annotations

import logging
from typing import List, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rollcall.core.errors import StorageUnavailable
from rollcall.models.course import Course
from rollcall.models.enrollment import Enrollment
from rollcall.models.user import User, UserRole

logger = logging.getLogger(__name__)


class CourseDirectory(Protocol):
    def course_exists(self, course_id: int) -> bool: ...

    def is_instructor_of_course(self, user_id: int, course_id: int) -> bool: ...

    def is_enrolled_student(self, user_id: int, course_id: int) -> bool: ...

    def enrolled_students(self, course_id: int) -> List[int]: ...


class SqlCourseDirectory:
    def __init__(self, db: Session):
        self.db = db

    def course_exists(self, course_id: int) -> bool:
        try:
            return self.db.get(Course, course_id) is not None
        except SQLAlchemyError as exc:
            raise self._unavailable(exc)

    def is_instructor_of_course(self, user_id: int, course_id: int) -> bool:
        try:
            course = self.db.get(Course, course_id)
            if course is None:
                return False
            if course.instructor_id == user_id:
                return True
            # admins may run sessions for any course
            user = self.db.get(User, user_id)
        except SQLAlchemyError as exc:
            raise self._unavailable(exc)
        return user is not None and user.role == UserRole.admin.value

    def is_enrolled_student(self, user_id: int, course_id: int) -> bool:
        stmt = select(Enrollment.id).where(Enrollment.student_id == user_id, Enrollment.course_id == course_id)
        try:
            return self.db.execute(stmt).first() is not None
        except SQLAlchemyError as exc:
            raise self._unavailable(exc)

    def enrolled_students(self, course_id: int) -> List[int]:
        stmt = select(Enrollment.student_id).where(Enrollment.course_id == course_id).order_by(Enrollment.student_id)
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise self._unavailable(exc)

    def _unavailable(self, exc: SQLAlchemyError) -> StorageUnavailable:
        logger.error("storage failure in course directory", exc_info=exc)
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.warning("rollback after storage failure also failed", exc_info=True)
        return StorageUnavailable(table="directory")
