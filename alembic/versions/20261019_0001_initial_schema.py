"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


project_status = postgresql.ENUM(
    "PLANNING", "IN_PROGRESS", "PAUSED", "CANCELLED", "COMPLETED", name="project_status", create_type=False
)
scheduling_mode = postgresql.ENUM("BUSINESS_DAYS", "CALENDAR_DAYS", name="scheduling_mode", create_type=False)
activity_level = postgresql.ENUM("PHASE", "STAGE", "ACTIVITY", name="activity_level", create_type=False)
activity_scope = postgresql.ENUM(
    "ALL_UNITS", "SPECIFIC_UNITS", "GENERAL", name="activity_scope", create_type=False
)
activity_status = postgresql.ENUM("PENDING", "IN_PROGRESS", "COMPLETED", name="activity_status", create_type=False)
measurement_status = postgresql.ENUM(
    "PENDING", "APPROVED", "REJECTED", name="measurement_status", create_type=False
)

ENUMS = (project_status, scheduling_mode, activity_level, activity_scope, activity_status, measurement_status)


def upgrade() -> None:
    for enum_type in ENUMS:
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=2000), nullable=True),
        sa.Column("status", project_status, nullable=False),
        sa.Column("scheduling_mode", scheduling_mode, nullable=False),
        sa.Column("holidays", sa.JSON(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("actual_end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "units",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.UniqueConstraint("project_id", "code", name="uq_units_project_code"),
    )
    op.create_index("ix_units_project_id", "units", ["project_id"])

    op.create_table(
        "project_activities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_activities.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("level", activity_level, nullable=False),
        sa.Column("sequence_no", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Numeric(7, 2), nullable=False),
        sa.Column("scope", activity_scope, nullable=False),
        sa.Column("status", activity_status, nullable=False),
        sa.Column("color_token", sa.String(length=32), nullable=True),
        sa.Column("duration_days", sa.Integer(), nullable=True),
        sa.Column("dependencies", sa.JSON(), nullable=True),
        sa.Column("planned_start_date", sa.Date(), nullable=True),
        sa.Column("planned_end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("weight >= 0", name="ck_project_activities_weight_non_negative"),
        sa.CheckConstraint(
            "duration_days IS NULL OR duration_days > 0",
            name="ck_project_activities_duration_positive",
        ),
    )
    op.create_index("ix_project_activities_project_id", "project_activities", ["project_id"])
    op.create_index("ix_project_activities_parent_id", "project_activities", ["parent_id"])

    op.create_table(
        "unit_activities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "activity_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_activities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "unit_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("units.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("progress", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", activity_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_unit_activities_progress_range"),
        sa.UniqueConstraint("activity_id", "unit_id", name="uq_unit_activities_activity_unit"),
    )
    op.create_index("ix_unit_activities_activity_id", "unit_activities", ["activity_id"])

    op.create_table(
        "measurements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "activity_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_activities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "unit_activity_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("unit_activities.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("progress", sa.Numeric(5, 2), nullable=False),
        sa.Column("previous_progress", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", measurement_status, nullable=False),
        sa.Column("notes", sa.String(length=2000), nullable=True),
        sa.Column("reported_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.String(length=2000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_measurements_progress_range"),
    )
    op.create_index("ix_measurements_activity_id", "measurements", ["activity_id"])
    op.create_index("ix_measurements_status", "measurements", ["status"])

    op.create_table(
        "activity_templates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("description", sa.String(length=2000), nullable=True),
        sa.Column("phases", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("activity_templates")

    op.drop_index("ix_measurements_status", table_name="measurements")
    op.drop_index("ix_measurements_activity_id", table_name="measurements")
    op.drop_table("measurements")

    op.drop_index("ix_unit_activities_activity_id", table_name="unit_activities")
    op.drop_table("unit_activities")

    op.drop_index("ix_project_activities_parent_id", table_name="project_activities")
    op.drop_index("ix_project_activities_project_id", table_name="project_activities")
    op.drop_table("project_activities")

    op.drop_index("ix_units_project_id", table_name="units")
    op.drop_table("units")

    op.drop_table("projects")

    for enum_type in reversed(ENUMS):
        enum_type.drop(op.get_bind(), checkfirst=True)
