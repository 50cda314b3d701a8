"""ORM entities for projects, activity hierarchy, unit progress and measurements."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildplan.db.base import Base
from buildplan.engine.calendar import SchedulingMode
from buildplan.engine.review import ActivityStatus, MeasurementStatus, ProjectStatus
from buildplan.engine.schedule import ActivityLevel, ActivityScope


def _enum_column(enum_cls: type, name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    status: Mapped[ProjectStatus] = mapped_column(
        _enum_column(ProjectStatus, "project_status"),
        nullable=False,
        default=ProjectStatus.PLANNING,
    )
    scheduling_mode: Mapped[SchedulingMode] = mapped_column(
        _enum_column(SchedulingMode, "scheduling_mode"),
        nullable=False,
        default=SchedulingMode.BUSINESS_DAYS,
    )
    holidays: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class Unit(Base):
    __tablename__ = "units"
    __table_args__ = (
        Index("ix_units_project_id", "project_id"),
        UniqueConstraint("project_id", "code", name="uq_units_project_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class ProjectActivity(Base):
    __tablename__ = "project_activities"
    __table_args__ = (
        CheckConstraint("weight >= 0", name="ck_project_activities_weight_non_negative"),
        CheckConstraint(
            "duration_days IS NULL OR duration_days > 0",
            name="ck_project_activities_duration_positive",
        ),
        Index("ix_project_activities_project_id", "project_id"),
        Index("ix_project_activities_parent_id", "parent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("project_activities.id", ondelete="CASCADE"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[ActivityLevel] = mapped_column(
        _enum_column(ActivityLevel, "activity_level"),
        nullable=False,
        default=ActivityLevel.ACTIVITY,
    )
    sequence_no: Mapped[int] = mapped_column(nullable=False, default=0)
    weight: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False, default=Decimal("1.00"))
    scope: Mapped[ActivityScope] = mapped_column(
        _enum_column(ActivityScope, "activity_scope"),
        nullable=False,
        default=ActivityScope.ALL_UNITS,
    )
    status: Mapped[ActivityStatus] = mapped_column(
        _enum_column(ActivityStatus, "activity_status"),
        nullable=False,
        default=ActivityStatus.PENDING,
    )
    color_token: Mapped[str | None] = mapped_column(String(32), nullable=True)
    duration_days: Mapped[int | None] = mapped_column(nullable=True)
    dependencies: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    planned_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    planned_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    children: Mapped[list[ProjectActivity]] = relationship(cascade="all, delete-orphan", passive_deletes=True)
    unit_activities: Mapped[list[UnitActivity]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    measurements: Mapped[list[Measurement]] = relationship(cascade="all, delete-orphan", passive_deletes=True)


class UnitActivity(Base):
    __tablename__ = "unit_activities"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_unit_activities_progress_range"),
        Index("ix_unit_activities_activity_id", "activity_id"),
        UniqueConstraint("activity_id", "unit_id", name="uq_unit_activities_activity_unit"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("project_activities.id", ondelete="CASCADE"), nullable=False
    )
    unit_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=True
    )
    progress: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[ActivityStatus] = mapped_column(
        _enum_column(ActivityStatus, "activity_status"),
        nullable=False,
        default=ActivityStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class Measurement(Base):
    __tablename__ = "measurements"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_measurements_progress_range"),
        Index("ix_measurements_activity_id", "activity_id"),
        Index("ix_measurements_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("project_activities.id", ondelete="CASCADE"), nullable=False
    )
    unit_activity_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("unit_activities.id", ondelete="CASCADE"), nullable=True
    )
    progress: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    previous_progress: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[MeasurementStatus] = mapped_column(
        _enum_column(MeasurementStatus, "measurement_status"),
        nullable=False,
        default=MeasurementStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    reported_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class ActivityTemplate(Base):
    """Reusable phase / stage / activity plan that can be previewed or applied to a project."""

    __tablename__ = "activity_templates"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    phases: Mapped[list[dict[str, object]]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
