from datetime import date

import pytest

from rollcall.core.errors import CourseNotFound, SessionNotFound
from rollcall.services.qr import TokenClaims, encode_token


def run_session(manager, arbiter, clock, world, attendees, late=(), close=True):
    view = manager.create_session(world["course"], world["instructor"], window_seconds=600, on_time_seconds=60)
    token = encode_token(TokenClaims.for_session(view))
    for who in attendees:
        arbiter.redeem(token, world[who])
    if late:
        clock.advance(120)
        for who in late:
            arbiter.redeem(token, world[who])
    if close:
        manager.close_session(view.session_id, world["instructor"])
    return view


def by_student(summary):
    return {s.student_id: s for s in summary.students}


def test_summary_counts_present_late_absent(services, world, clock):
    manager, arbiter, reports = services
    run_session(manager, arbiter, clock, world, ["student1", "student2"])
    clock.advance(86400)
    run_session(manager, arbiter, clock, world, ["student1"], late=["student2"])
    clock.advance(86400)
    run_session(manager, arbiter, clock, world, [])

    summary = reports.course_attendance_summary(world["course"])
    assert summary.sessions_counted == 3
    assert summary.sessions_open == 0
    rows = by_student(summary)
    assert (rows[world["student1"]].present, rows[world["student1"]].late, rows[world["student1"]].absent) == (2, 0, 1)
    assert (rows[world["student2"]].present, rows[world["student2"]].late, rows[world["student2"]].absent) == (1, 1, 1)


def test_open_session_adds_no_absences(services, world, clock):
    manager, arbiter, reports = services
    run_session(manager, arbiter, clock, world, ["student1"], close=False)
    summary = reports.course_attendance_summary(world["course"])
    assert summary.sessions_counted == 0
    assert summary.sessions_open == 1
    rows = by_student(summary)
    assert rows[world["student1"]].present == 1
    assert rows[world["student2"]].absent == 0


def test_expired_session_counts_as_finished(services, world, clock):
    manager, arbiter, reports = services
    run_session(manager, arbiter, clock, world, ["student1"], close=False)
    clock.advance(600)
    summary = reports.course_attendance_summary(world["course"])
    assert summary.sessions_counted == 1
    assert by_student(summary)[world["student2"]].absent == 1


def test_date_range_limits_sessions(services, world, clock):
    manager, arbiter, reports = services
    run_session(manager, arbiter, clock, world, ["student1"])  # 2025-01-06
    clock.advance(86400)
    run_session(manager, arbiter, clock, world, ["student2"])  # 2025-01-07

    day_two = reports.course_attendance_summary(world["course"], date(2025, 1, 7), date(2025, 1, 7))
    assert day_two.sessions_counted == 1
    rows = by_student(day_two)
    assert rows[world["student1"]].absent == 1
    assert rows[world["student2"]].present == 1

    nothing = reports.course_attendance_summary(world["course"], date(2025, 2, 1))
    assert nothing.sessions_counted == 0


def test_rejected_scans_do_not_count(services, world, clock):
    manager, arbiter, reports = services
    run_session(manager, arbiter, clock, world, ["outsider", "student1", "student1"])
    rows = by_student(reports.course_attendance_summary(world["course"]))
    assert world["outsider"] not in rows
    assert rows[world["student1"]].present == 1


def test_list_attendance(services, world, clock):
    manager, arbiter, reports = services
    view = run_session(manager, arbiter, clock, world, ["student1", "outsider"], late=["student2"])
    entries = reports.list_attendance(view.session_id)
    assert [(e.student_id, e.status) for e in entries] == [
        (world["student1"], "present"),
        (world["student2"], "late"),
    ]
    everything = reports.list_attendance(view.session_id, include_rejected=True)
    assert len(everything) == 3
    assert {e.reason for e in everything} == {None, "NOT_ENROLLED"}


def test_unknown_ids(services):
    _, _, reports = services
    with pytest.raises(SessionNotFound):
        reports.list_attendance("0" * 32)
    with pytest.raises(CourseNotFound):
        reports.course_attendance_summary(4242)
