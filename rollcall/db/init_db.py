# rollcall/db/init_db.py
"""Demo dataset: one instructor, one course, a few enrolled students."""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from rollcall.core.passwords import hash_password
from rollcall.models.course import Course
from rollcall.models.enrollment import Enrollment
from rollcall.models.user import User, UserRole

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "rollcall123"

DEMO_USERS = [
    ("Admin Demo", "admin@demo", UserRole.admin),
    ("Instructor Demo", "instructor@demo", UserRole.instructor),
    ("Student One", "student1@demo", UserRole.student),
    ("Student Two", "student2@demo", UserRole.student),
    ("Student Three", "student3@demo", UserRole.student),
]

def _get_or_create_user(db: Session, name: str, email: str, role: UserRole) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if not user:
        user = User(name=name, email=email, hashed_password=hash_password(DEMO_PASSWORD), role=role.value)
        db.add(user); db.flush()
    return user

def init_db(db: Session) -> None:
    users = {email: _get_or_create_user(db, name, email, role) for name, email, role in DEMO_USERS}

    course = db.scalar(select(Course).where(Course.code == "CS101"))
    if not course:
        course = Course(code="CS101", title="Introduction to Programming", instructor_id=users["instructor@demo"].id)
        db.add(course); db.flush()

    for email, user in users.items():
        if user.role != UserRole.student.value:
            continue
        enrolled = db.scalar(select(Enrollment).where(Enrollment.student_id == user.id, Enrollment.course_id == course.id))
        if not enrolled:
            db.add(Enrollment(student_id=user.id, course_id=course.id))

    db.commit()
    logger.info("demo data ready (course %s)", course.code)
