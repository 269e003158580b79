import os
import tempfile

# settings are read at import time
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="rollcall-test-"))
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ.setdefault("TOKEN_SECRET", "test-attendance-secret")
os.environ.setdefault("SECRET_KEY", "test-access-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import rollcall.models  # noqa: F401
from rollcall.api.deps import get_clock
from rollcall.core.clock import FrozenClock
from rollcall.core.tokens import create_access_token
from rollcall.db.base import Base
from rollcall.db.session import get_db, make_engine
from rollcall.main import api
from rollcall.models.course import Course
from rollcall.models.enrollment import Enrollment
from rollcall.models.user import User, UserRole
from rollcall.services.directory import SqlCourseDirectory
from rollcall.services.redemption import RedemptionArbiter
from rollcall.services.reports import AttendanceReports
from rollcall.services.sessions import SessionManager

# bcrypt is slow on purpose; tests only need a stored value
PLACEHOLDER_HASH = "not-a-real-hash"


@pytest.fixture()
def engine(tmp_path):
    # a file database so separate connections (threads) see the same data
    eng = make_engine(f"sqlite:///{tmp_path / 'rollcall_test.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture()
def world(session_factory):
    """Two instructors, an admin, three students; CS101 has students 1 and 2 enrolled."""
    with session_factory() as db:
        def user(name, email, role):
            u = User(name=name, email=email, hashed_password=PLACEHOLDER_HASH, role=role.value)
            db.add(u)
            db.flush()
            return u

        ids = {
            "instructor": user("Ada Instructor", "ada@school.test", UserRole.instructor).id,
            "other_instructor": user("Bob Instructor", "bob@school.test", UserRole.instructor).id,
            "admin": user("Root Admin", "root@school.test", UserRole.admin).id,
            "student1": user("Student One", "s1@school.test", UserRole.student).id,
            "student2": user("Student Two", "s2@school.test", UserRole.student).id,
            "outsider": user("Not Enrolled", "s3@school.test", UserRole.student).id,
        }
        course = Course(code="CS101", title="Intro to Programming", instructor_id=ids["instructor"])
        other = Course(code="MA201", title="Linear Algebra", instructor_id=ids["other_instructor"])
        db.add_all([course, other])
        db.flush()
        ids["course"] = course.id
        ids["other_course"] = other.id
        db.add_all([
            Enrollment(student_id=ids["student1"], course_id=course.id),
            Enrollment(student_id=ids["student2"], course_id=course.id),
            Enrollment(student_id=ids["student1"], course_id=other.id),
        ])
        db.commit()
    return ids


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def db(session_factory, world):
    with session_factory() as s:
        yield s


@pytest.fixture()
def services(db, clock):
    """(SessionManager, RedemptionArbiter, AttendanceReports) sharing one db session."""
    directory = SqlCourseDirectory(db)
    return (
        SessionManager(db, clock, directory),
        RedemptionArbiter(db, clock, directory),
        AttendanceReports(db, clock, directory),
    )


@pytest.fixture()
def client(session_factory, world, clock):
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    api.dependency_overrides[get_db] = override_get_db
    api.dependency_overrides[get_clock] = lambda: clock
    with TestClient(api) as c:
        yield c
    api.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(world):
    roles = {
        "instructor": UserRole.instructor.value,
        "other_instructor": UserRole.instructor.value,
        "admin": UserRole.admin.value,
        "student1": UserRole.student.value,
        "student2": UserRole.student.value,
        "outsider": UserRole.student.value,
    }

    def headers(who: str) -> dict:
        token = create_access_token(sub=str(world[who]), role=roles[who])
        return {"Authorization": f"Bearer {token}"}

    return headers
