"""attendance core: directory tables, attendance sessions and records

Revision ID: 20260301_attendance_core
Revises:
Create Date: 2026-03-01 10:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "20260301_attendance_core"
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(160), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), autoincrement=True),
        sa.Column("code", sa.String(40), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("instructor_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_courses"),
        sa.ForeignKeyConstraint(["instructor_id"], ["users.id"], name="fk_courses_instructor_id_users"),
        sa.UniqueConstraint("code", name="uq_courses_code"),
    )
    op.create_index("ix_courses_instructor_id", "courses", ["instructor_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), autoincrement=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_enrollments"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], name="fk_enrollments_student_id_users"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], name="fk_enrollments_course_id_courses"),
        sa.UniqueConstraint("student_id", "course_id", name="uq_enrollment_student_course"),
    )
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])

    op.create_table(
        "attendance_sessions",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("instructor_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("on_time_seconds", sa.Integer(), nullable=True),
        sa.Column("geofence_latitude", sa.Float(), nullable=True),
        sa.Column("geofence_longitude", sa.Float(), nullable=True),
        sa.Column("geofence_radius_meters", sa.Float(), nullable=True),
        sa.Column("state", sa.String(16), nullable=False, server_default="active"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_attendance_sessions"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], name="fk_attendance_sessions_course_id_courses"),
        sa.ForeignKeyConstraint(["instructor_id"], ["users.id"], name="fk_attendance_sessions_instructor_id_users"),
        sa.CheckConstraint("expires_at > created_at", name="ck_attendance_sessions_window_positive"),
        sa.CheckConstraint(
            "(geofence_latitude IS NULL AND geofence_longitude IS NULL AND geofence_radius_meters IS NULL)"
            " OR (geofence_latitude IS NOT NULL AND geofence_longitude IS NOT NULL AND geofence_radius_meters IS NOT NULL)",
            name="ck_attendance_sessions_geofence_complete",
        ),
    )
    op.create_index("ix_attendance_sessions_course_id", "attendance_sessions", ["course_id"])
    op.create_index(
        "uq_attendance_sessions_active_course",
        "attendance_sessions",
        ["course_id"],
        unique=True,
        sqlite_where=sa.text("state = 'active'"),
        postgresql_where=sa.text("state = 'active'"),
    )

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), autoincrement=True),
        sa.Column("session_id", sa.String(32), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("scan_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("reason", sa.String(32), nullable=True),
        sa.Column("geolocation_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("distance_meters", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_attendance_records"),
        sa.ForeignKeyConstraint(["session_id"], ["attendance_sessions.id"], name="fk_attendance_records_session_id_attendance_sessions"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], name="fk_attendance_records_student_id_users"),
    )
    op.create_index("ix_attendance_records_session_id", "attendance_records", ["session_id"])
    op.create_index("ix_attendance_records_student_id", "attendance_records", ["student_id"])
    op.create_index(
        "uq_attendance_records_success",
        "attendance_records",
        ["session_id", "student_id"],
        unique=True,
        sqlite_where=sa.text("status IN ('present', 'late')"),
        postgresql_where=sa.text("status IN ('present', 'late')"),
    )


def downgrade() -> None:
    op.drop_index("uq_attendance_records_success", table_name="attendance_records")
    op.drop_index("ix_attendance_records_student_id", table_name="attendance_records")
    op.drop_index("ix_attendance_records_session_id", table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_index("uq_attendance_sessions_active_course", table_name="attendance_sessions")
    op.drop_index("ix_attendance_sessions_course_id", table_name="attendance_sessions")
    op.drop_table("attendance_sessions")
    op.drop_index("ix_enrollments_course_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_index("ix_courses_instructor_id", table_name="courses")
    op.drop_table("courses")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
