from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from rollcall.core.errors import (
    ActiveSessionExists,
    AlreadyTerminal,
    CourseNotFound,
    InvalidGeofence,
    InvalidSessionWindow,
    NotInstructor,
    NotOwner,
    SessionNotFound,
)
from rollcall.models.attendance_session import AttendanceSession, SessionState
from rollcall.services.directory import SqlCourseDirectory
from rollcall.services.geofence import Geofence
from rollcall.services.sessions import SessionManager, SessionStatus


def test_create_opens_five_minute_window(services, world, clock):
    manager, _, _ = services
    view = manager.create_session(world["course"], world["instructor"])
    assert view.status == SessionStatus.active
    assert view.created_at == clock.now()
    assert view.expires_at == clock.now() + timedelta(minutes=5)
    assert view.geofence is None
    assert len(view.session_id) == 32


def test_second_active_session_for_course_is_refused(services, world):
    manager, _, _ = services
    manager.create_session(world["course"], world["instructor"])
    with pytest.raises(ActiveSessionExists):
        manager.create_session(world["course"], world["instructor"])
    # another course is unaffected
    manager.create_session(world["other_course"], world["other_instructor"])


def test_new_session_allowed_once_previous_expired(services, world, clock, db):
    manager, _, _ = services
    first = manager.create_session(world["course"], world["instructor"])
    clock.advance(300)
    assert manager.get_session(first.session_id).status == SessionStatus.expired
    second = manager.create_session(world["course"], world["instructor"])
    assert second.session_id != first.session_id
    assert db.get(AttendanceSession, first.session_id).state == SessionState.expired.value


def test_new_session_allowed_after_close(services, world):
    manager, _, _ = services
    first = manager.create_session(world["course"], world["instructor"])
    manager.close_session(first.session_id, world["instructor"])
    assert manager.create_session(world["course"], world["instructor"]).is_active


def test_close_records_time_and_status(services, world, clock):
    manager, _, _ = services
    view = manager.create_session(world["course"], world["instructor"])
    clock.advance(60)
    closed = manager.close_session(view.session_id, world["instructor"])
    assert closed.status == SessionStatus.closed
    assert closed.closed_at == clock.now()
    assert manager.active_session_for_course(world["course"]) is None


def test_close_by_someone_else_is_refused(services, world):
    manager, _, _ = services
    view = manager.create_session(world["course"], world["instructor"])
    with pytest.raises(NotOwner):
        manager.close_session(view.session_id, world["other_instructor"])
    assert manager.get_session(view.session_id).is_active


def test_close_twice_or_after_expiry_is_refused(services, world, clock):
    manager, _, _ = services
    view = manager.create_session(world["course"], world["instructor"])
    manager.close_session(view.session_id, world["instructor"])
    with pytest.raises(AlreadyTerminal):
        manager.close_session(view.session_id, world["instructor"])

    clock.advance(600)
    other = manager.create_session(world["course"], world["instructor"])
    clock.advance(301)
    with pytest.raises(AlreadyTerminal):
        manager.close_session(other.session_id, world["instructor"])


def test_unknown_session(services):
    manager, _, _ = services
    with pytest.raises(SessionNotFound):
        manager.get_session("f" * 32)
    with pytest.raises(SessionNotFound):
        manager.close_session("f" * 32, 1)


def test_directory_checks(services, world):
    manager, _, _ = services
    with pytest.raises(CourseNotFound):
        manager.create_session(9999, world["instructor"])
    with pytest.raises(NotInstructor):
        manager.create_session(world["course"], world["other_instructor"])
    # admins may open sessions for any course
    assert manager.create_session(world["course"], world["admin"]).is_active


@pytest.mark.parametrize("window", [0, 29, 14401, -5])
def test_window_bounds(services, world, window):
    manager, _, _ = services
    with pytest.raises(InvalidSessionWindow):
        manager.create_session(world["course"], world["instructor"], window_seconds=window)


def test_on_time_period_must_fit_window(services, world):
    manager, _, _ = services
    with pytest.raises(InvalidSessionWindow):
        manager.create_session(world["course"], world["instructor"], window_seconds=300, on_time_seconds=301)
    view = manager.create_session(world["course"], world["instructor"], window_seconds=600, on_time_seconds=120)
    assert view.on_time_until == view.created_at + timedelta(seconds=120)


def test_geofence_is_validated_and_stored(services, world):
    manager, _, _ = services
    with pytest.raises(InvalidGeofence):
        manager.create_session(world["course"], world["instructor"], geofence=Geofence(0.0, 0.0, 0.0))
    with pytest.raises(InvalidGeofence):
        manager.create_session(world["course"], world["instructor"], geofence=Geofence(0.0, 0.0, 10_000.0))
    fence = Geofence(6.5244, 3.3792, 80.0)
    view = manager.create_session(world["course"], world["instructor"], geofence=fence)
    assert manager.get_session(view.session_id).geofence == fence


def test_list_sessions_in_creation_order(services, world, clock):
    manager, _, _ = services
    a = manager.create_session(world["course"], world["instructor"])
    manager.close_session(a.session_id, world["instructor"])
    clock.advance(3600)
    b = manager.create_session(world["course"], world["instructor"])
    listed = manager.list_sessions(world["course"])
    assert [v.session_id for v in listed] == [a.session_id, b.session_id]
    assert [v.status for v in listed] == [SessionStatus.closed, SessionStatus.active]


def test_concurrent_creators_leave_one_active_session(session_factory, world, clock):
    def create(_):
        with session_factory() as s:
            manager = SessionManager(s, clock, SqlCourseDirectory(s))
            try:
                return manager.create_session(world["course"], world["instructor"]).session_id
            except ActiveSessionExists:
                return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(create, range(8)))

    assert sum(1 for r in results if r) == 1
    with session_factory() as s:
        active = s.scalar(
            select(func.count()).select_from(AttendanceSession).where(
                AttendanceSession.course_id == world["course"],
                AttendanceSession.state == SessionState.active.value,
            )
        )
    assert active == 1
