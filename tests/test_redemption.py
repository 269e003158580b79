from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import select

from rollcall.core.config import settings
from rollcall.core.errors import RejectionReason
from rollcall.models.attendance import AttendanceRecord, AttendanceStatus
from rollcall.services.directory import SqlCourseDirectory
from rollcall.services.geofence import GeoPoint, Geofence
from rollcall.services.qr import TokenClaims, encode_token
from rollcall.services.redemption import RedemptionArbiter

CLASSROOM = Geofence(latitude=0.0, longitude=0.0, radius_meters=50.0)


def open_session(manager, world, **kwargs):
    view = manager.create_session(world["course"], world["instructor"], **kwargs)
    return view, encode_token(TokenClaims.for_session(view))


def records(db, session_id):
    return db.scalars(
        select(AttendanceRecord).where(AttendanceRecord.session_id == session_id).order_by(AttendanceRecord.id)
    ).all()


def test_enrolled_student_is_marked_present(services, world, clock):
    manager, arbiter, _ = services
    view, token = open_session(manager, world)
    clock.advance(30)
    result = arbiter.redeem(token, world["student1"])
    assert result.accepted
    assert result.status == AttendanceStatus.present
    assert result.reason is None
    assert result.scan_time == clock.now()
    assert result.session_id == view.session_id
    assert result.record_id is not None
    assert not result.geolocation_verified


def test_second_scan_is_already_recorded(services, world, db):
    manager, arbiter, _ = services
    view, token = open_session(manager, world)
    assert arbiter.redeem(token, world["student1"]).accepted
    again = arbiter.redeem(token, world["student1"])
    assert not again.accepted
    assert again.reason == RejectionReason.ALREADY_RECORDED
    statuses = [r.status for r in records(db, view.session_id)]
    assert statuses.count(AttendanceStatus.present.value) == 1


def test_each_student_gets_their_own_record(services, world):
    manager, arbiter, _ = services
    _, token = open_session(manager, world)
    assert arbiter.redeem(token, world["student1"]).accepted
    assert arbiter.redeem(token, world["student2"]).accepted


def test_scan_at_expiry_instant_is_expired(services, world, clock):
    manager, arbiter, _ = services
    _, token = open_session(manager, world)
    clock.advance(299)
    assert arbiter.redeem(token, world["student1"]).accepted
    clock.advance(1)
    result = arbiter.redeem(token, world["student2"])
    assert result.reason == RejectionReason.SESSION_EXPIRED


def test_device_time_ahead_of_server_is_ignored(services, world, clock):
    manager, arbiter, _ = services
    view, token = open_session(manager, world)
    clock.advance(30)
    result = arbiter.redeem(token, world["student1"], scan_time=view.expires_at + timedelta(seconds=1))
    assert result.accepted
    assert result.scan_time == clock.now()


def test_backdated_device_time_cannot_dodge_late(services, world, clock):
    manager, arbiter, _ = services
    view, token = open_session(manager, world, window_seconds=600, on_time_seconds=60)
    clock.advance(400)
    result = arbiter.redeem(token, world["student1"], scan_time=view.created_at - timedelta(hours=1))
    assert result.accepted
    assert result.status == AttendanceStatus.late
    assert result.scan_time == clock.now()
    assert result.scan_time >= view.created_at


def test_device_time_inside_session_is_kept(services, world, clock):
    manager, arbiter, _ = services
    view, token = open_session(manager, world, window_seconds=600, on_time_seconds=60)
    clock.advance(100)
    queued = view.created_at + timedelta(seconds=30)
    result = arbiter.redeem(token, world["student1"], scan_time=queued)
    assert result.status == AttendanceStatus.present
    assert result.scan_time == queued


def test_closed_session_rejects_and_expiry_takes_over(services, world, clock):
    manager, arbiter, _ = services
    view, token = open_session(manager, world)
    manager.close_session(view.session_id, world["instructor"])
    assert arbiter.redeem(token, world["student1"]).reason == RejectionReason.SESSION_CLOSED
    clock.advance(301)
    assert arbiter.redeem(token, world["student1"]).reason == RejectionReason.SESSION_EXPIRED


def test_token_of_previous_session_is_rejected(services, world, clock):
    manager, arbiter, _ = services
    old, old_token = open_session(manager, world)
    manager.close_session(old.session_id, world["instructor"])
    _, new_token = open_session(manager, world)
    assert arbiter.redeem(old_token, world["student1"]).reason == RejectionReason.SESSION_CLOSED
    assert arbiter.redeem(new_token, world["student1"]).accepted


@pytest.mark.parametrize("token", ["", "garbage", "abc.def.ghi"])
def test_invalid_token_leaves_no_trace(services, world, db, token):
    _, arbiter, _ = services
    result = arbiter.redeem(token, world["student1"])
    assert result.reason == RejectionReason.INVALID_TOKEN
    assert result.session_id is None
    assert db.scalars(select(AttendanceRecord)).all() == []


def test_tampered_token_is_invalid(services, world):
    manager, arbiter, _ = services
    _, token = open_session(manager, world)
    tampered = token[:-5] + ("A" if token[-5] != "A" else "B") + token[-4:]
    assert arbiter.redeem(tampered, world["student1"]).reason == RejectionReason.INVALID_TOKEN


def test_unknown_session_id(services, world, clock):
    _, arbiter, _ = services
    now = int(clock.now().timestamp())
    token = encode_token(TokenClaims("ab" * 16, world["course"], now, now + 300))
    result = arbiter.redeem(token, world["student1"])
    assert result.reason == RejectionReason.SESSION_NOT_FOUND


def test_claims_that_disagree_with_session_are_a_mismatch(services, world):
    manager, arbiter, _ = services
    view, _ = open_session(manager, world)
    claims = TokenClaims.for_session(view)
    wrong_course = TokenClaims(claims.session_id, world["other_course"], claims.issued_at, claims.expires_at)
    longer = TokenClaims(claims.session_id, claims.course_id, claims.issued_at, claims.expires_at + 600)
    for forged in (wrong_course, longer):
        result = arbiter.redeem(encode_token(forged), world["student1"])
        assert result.reason == RejectionReason.COURSE_MISMATCH


def test_student_outside_roster_is_not_enrolled(services, world):
    manager, arbiter, _ = services
    _, token = open_session(manager, world)
    assert arbiter.redeem(token, world["outsider"]).reason == RejectionReason.NOT_ENROLLED


def test_enrollment_check_can_be_switched_off(services, world, monkeypatch):
    monkeypatch.setattr(settings, "ENFORCE_ENROLLMENT", False)
    manager, arbiter, _ = services
    _, token = open_session(manager, world)
    assert arbiter.redeem(token, world["outsider"]).accepted


def test_geofenced_session_needs_location(services, world):
    manager, arbiter, _ = services
    _, token = open_session(manager, world, geofence=CLASSROOM)
    assert arbiter.redeem(token, world["student1"]).reason == RejectionReason.LOCATION_REQUIRED
    bogus = GeoPoint(latitude=123.0, longitude=0.0)
    assert arbiter.redeem(token, world["student1"], location=bogus).reason == RejectionReason.LOCATION_REQUIRED


def test_geofenced_session_rejects_far_scans(services, world):
    manager, arbiter, _ = services
    _, token = open_session(manager, world, geofence=CLASSROOM)
    result = arbiter.redeem(token, world["student1"], location=GeoPoint(0.0, 0.001))
    assert result.reason == RejectionReason.OUT_OF_RANGE
    assert result.distance_meters == pytest.approx(111.2, abs=1.0)


def test_geofenced_session_accepts_near_scans(services, world):
    manager, arbiter, _ = services
    _, token = open_session(manager, world, geofence=CLASSROOM)
    # out of range first, then a retry from inside still succeeds
    arbiter.redeem(token, world["student1"], location=GeoPoint(0.0, 0.001))
    result = arbiter.redeem(token, world["student1"], location=GeoPoint(0.0, 0.0002))
    assert result.accepted
    assert result.geolocation_verified
    assert result.distance_meters < 50


def test_location_is_ignored_without_fence(services, world):
    manager, arbiter, _ = services
    _, token = open_session(manager, world)
    result = arbiter.redeem(token, world["student1"], location=GeoPoint(45.0, 45.0))
    assert result.accepted
    assert not result.geolocation_verified


def test_scans_after_on_time_period_are_late(services, world, clock):
    manager, arbiter, _ = services
    _, token = open_session(manager, world, window_seconds=600, on_time_seconds=120)
    clock.advance(119)
    assert arbiter.redeem(token, world["student1"]).status == AttendanceStatus.present
    clock.advance(1)
    late = arbiter.redeem(token, world["student2"])
    assert late.accepted
    assert late.status == AttendanceStatus.late


def test_rejections_are_kept_for_audit(services, world, db):
    manager, arbiter, _ = services
    view, token = open_session(manager, world, geofence=CLASSROOM)
    arbiter.redeem(token, world["student1"])
    arbiter.redeem(token, world["outsider"])
    rows = records(db, view.session_id)
    assert [(r.status, r.reason) for r in rows] == [
        (AttendanceStatus.rejected.value, RejectionReason.LOCATION_REQUIRED.value),
        (AttendanceStatus.rejected.value, RejectionReason.NOT_ENROLLED.value),
    ]


def test_rejections_not_kept_when_disabled(services, world, db, monkeypatch):
    monkeypatch.setattr(settings, "RECORD_REJECTED_SCANS", False)
    manager, arbiter, _ = services
    view, token = open_session(manager, world)
    result = arbiter.redeem(token, world["outsider"])
    assert result.reason == RejectionReason.NOT_ENROLLED
    assert result.record_id is None
    assert records(db, view.session_id) == []


def test_concurrent_scans_record_exactly_once(session_factory, services, world, clock, db):
    manager, _, _ = services
    view, token = open_session(manager, world)

    def scan(_):
        with session_factory() as s:
            return RedemptionArbiter(s, clock, SqlCourseDirectory(s)).redeem(token, world["student1"])

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(scan, range(16)))

    assert sum(1 for r in results if r.accepted) == 1
    assert all(r.reason == RejectionReason.ALREADY_RECORDED for r in results if not r.accepted)
    db.expire_all()
    successes = [r for r in records(db, view.session_id) if r.status != AttendanceStatus.rejected.value]
    assert len(successes) == 1


def test_only_a_real_duplicate_counts_as_already_recorded(services, world, db, clock):
    from sqlalchemy.exc import IntegrityError

    from rollcall.crud.attendance import attendance_crud

    manager, arbiter, _ = services
    view, token = open_session(manager, world)
    fields = dict(session_id=view.session_id, status=AttendanceStatus.present, scan_time=clock.now(), created_at=clock.now())

    # a NOT NULL failure is not a duplicate and must surface
    with pytest.raises(IntegrityError):
        attendance_crud.insert_success(db, student_id=None, **fields)

    assert attendance_crud.insert_success(db, student_id=world["student1"], **fields) is not None
    assert attendance_crud.insert_success(db, student_id=world["student1"], **fields) is None
    assert arbiter.redeem(token, world["student2"]).accepted
