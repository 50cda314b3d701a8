"""Repository helpers for projects, activity hierarchy, measurements and templates."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import ColumnElement, and_, func, select, update
from sqlalchemy.orm import Session

from buildplan.engine.review import MeasurementStatus
from buildplan.models.entities import (
    ActivityTemplate,
    Measurement,
    Project,
    ProjectActivity,
    Unit,
    UnitActivity,
)


class ActivityRepository:
    """Persistence operations used by activity, progress and measurement services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Projects ----------
    def get_project(self, project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(Project.id == project_id))

    def list_projects(self) -> list[Project]:
        return self.db.scalars(select(Project).order_by(Project.code.asc())).all()

    def add_project(self, project: Project) -> Project:
        self.db.add(project)
        self.db.flush()
        return project

    # ---------- Units ----------
    def list_units(self, project_id: UUID) -> list[Unit]:
        return self.db.scalars(
            select(Unit).where(Unit.project_id == project_id).order_by(Unit.code.asc())
        ).all()

    def list_units_by_ids(self, project_id: UUID, unit_ids: list[UUID]) -> list[Unit]:
        if not unit_ids:
            return []
        return self.db.scalars(
            select(Unit).where(and_(Unit.project_id == project_id, Unit.id.in_(unit_ids)))
        ).all()

    def add_unit(self, unit: Unit) -> Unit:
        self.db.add(unit)
        self.db.flush()
        return unit

    # ---------- Activities ----------
    def list_activities(self, project_id: UUID) -> list[ProjectActivity]:
        return self.db.scalars(
            select(ProjectActivity)
            .where(ProjectActivity.project_id == project_id)
            .order_by(ProjectActivity.sequence_no.asc(), ProjectActivity.created_at.asc())
        ).all()

    def get_activity(self, project_id: UUID, activity_id: UUID) -> ProjectActivity | None:
        return self.db.scalar(
            select(ProjectActivity).where(
                and_(
                    ProjectActivity.id == activity_id,
                    ProjectActivity.project_id == project_id,
                )
            )
        )

    def activity_count_for_project(self, project_id: UUID) -> int:
        return int(
            self.db.scalar(
                select(func.count()).select_from(ProjectActivity).where(ProjectActivity.project_id == project_id)
            )
            or 0
        )

    def add_activity(self, activity: ProjectActivity) -> ProjectActivity:
        self.db.add(activity)
        self.db.flush()
        return activity

    def delete_activity(self, activity: ProjectActivity) -> None:
        self.db.delete(activity)
        self.db.flush()

    # ---------- Unit activities ----------
    def list_unit_activities_for_project(self, project_id: UUID) -> list[UnitActivity]:
        return self.db.scalars(
            select(UnitActivity)
            .join(ProjectActivity, ProjectActivity.id == UnitActivity.activity_id)
            .where(ProjectActivity.project_id == project_id)
            .order_by(UnitActivity.created_at.asc())
        ).all()

    def list_unit_activities(self, activity_id: UUID) -> list[UnitActivity]:
        return self.db.scalars(
            select(UnitActivity)
            .where(UnitActivity.activity_id == activity_id)
            .order_by(UnitActivity.created_at.asc())
        ).all()

    def get_unit_activity(self, unit_activity_id: UUID) -> UnitActivity | None:
        return self.db.scalar(select(UnitActivity).where(UnitActivity.id == unit_activity_id))

    def add_unit_activities(self, rows: list[UnitActivity]) -> list[UnitActivity]:
        self.db.add_all(rows)
        self.db.flush()
        return rows

    # ---------- Measurements ----------
    @staticmethod
    def _measurement_conditions(
        project_id: UUID,
        status: MeasurementStatus | None,
        activity_id: UUID | None,
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [ProjectActivity.project_id == project_id]
        if status is not None:
            conditions.append(Measurement.status == status)
        if activity_id is not None:
            conditions.append(Measurement.activity_id == activity_id)
        return conditions

    def list_measurements(
        self,
        project_id: UUID,
        *,
        status: MeasurementStatus | None = None,
        activity_id: UUID | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Measurement]:
        query = (
            select(Measurement)
            .join(ProjectActivity, ProjectActivity.id == Measurement.activity_id)
            .where(and_(*self._measurement_conditions(project_id, status, activity_id)))
            .order_by(Measurement.created_at.desc(), Measurement.id.asc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        return self.db.scalars(query).all()

    def count_measurements(
        self,
        project_id: UUID,
        *,
        status: MeasurementStatus | None = None,
        activity_id: UUID | None = None,
    ) -> int:
        return int(
            self.db.scalar(
                select(func.count())
                .select_from(Measurement)
                .join(ProjectActivity, ProjectActivity.id == Measurement.activity_id)
                .where(and_(*self._measurement_conditions(project_id, status, activity_id)))
            )
            or 0
        )

    def get_measurement(
        self,
        project_id: UUID,
        measurement_id: UUID,
        *,
        for_update: bool = False,
    ) -> Measurement | None:
        query = (
            select(Measurement)
            .join(ProjectActivity, ProjectActivity.id == Measurement.activity_id)
            .where(
                and_(
                    Measurement.id == measurement_id,
                    ProjectActivity.project_id == project_id,
                )
            )
        )
        if for_update:
            query = query.with_for_update(of=Measurement)
        return self.db.scalar(query)

    def add_measurement(self, measurement: Measurement) -> Measurement:
        self.db.add(measurement)
        self.db.flush()
        return measurement

    def close_pending_measurement(
        self,
        measurement_id: UUID,
        *,
        status: MeasurementStatus,
        reviewed_by: UUID,
        reviewed_at: datetime,
        review_notes: str | None,
    ) -> bool:
        """Move a measurement out of PENDING; False when another review got there first."""

        result = self.db.execute(
            update(Measurement)
            .where(
                and_(
                    Measurement.id == measurement_id,
                    Measurement.status == MeasurementStatus.PENDING,
                )
            )
            .values(
                status=status,
                reviewed_by=reviewed_by,
                reviewed_at=reviewed_at,
                review_notes=review_notes,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ---------- Activity templates ----------
    def list_templates(self, *, search: str | None = None) -> list[ActivityTemplate]:
        query = select(ActivityTemplate).order_by(ActivityTemplate.name.asc())
        if search:
            query = query.where(ActivityTemplate.name.ilike(f"%{search}%"))
        return self.db.scalars(query).all()

    def get_template(self, template_id: UUID) -> ActivityTemplate | None:
        return self.db.scalar(select(ActivityTemplate).where(ActivityTemplate.id == template_id))

    def delete_template(self, template: ActivityTemplate) -> None:
        self.db.delete(template)
        self.db.flush()
