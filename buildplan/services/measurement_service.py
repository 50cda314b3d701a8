"""Application service for measurement submission and review."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buildplan.engine.progress import ZERO, q2
from buildplan.engine.review import (
    ActivityState,
    MeasurementNotReviewable,
    MeasurementState,
    MeasurementStatus,
    ReviewContext,
    ReviewDecision,
    ReviewOutcome,
    UnitActivityState,
    review_measurement,
)
from buildplan.engine.schedule import ActivityLevel
from buildplan.models.entities import Measurement, Project, ProjectActivity, UnitActivity
from buildplan.repositories.activity_repository import ActivityRepository
from buildplan.services.project_service import ProjectService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MeasurementCreateData:
    activity_id: UUID
    progress: Decimal
    unit_activity_id: UUID | None = None
    notes: str | None = None
    reported_by: UUID | None = None


@dataclass(slots=True)
class MeasurementReviewData:
    decision: ReviewDecision
    reviewer_id: UUID
    review_notes: str | None = None


class MeasurementService:
    """Service for progress reports and the cascade their approval triggers."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ActivityRepository(db)
        self.projects = ProjectService(db)

    @staticmethod
    def serialize_measurement(measurement: Measurement) -> dict[str, object]:
        return {
            "id": str(measurement.id),
            "activity_id": str(measurement.activity_id),
            "unit_activity_id": str(measurement.unit_activity_id) if measurement.unit_activity_id else None,
            "progress": str(q2(measurement.progress)),
            "previous_progress": str(q2(measurement.previous_progress)),
            "status": measurement.status.value,
            "notes": measurement.notes,
            "reported_by": str(measurement.reported_by) if measurement.reported_by else None,
            "reviewed_by": str(measurement.reviewed_by) if measurement.reviewed_by else None,
            "reviewed_at": measurement.reviewed_at.isoformat() if measurement.reviewed_at else None,
            "review_notes": measurement.review_notes,
            "created_at": measurement.created_at.isoformat(),
        }

    # ---------- Submission ----------
    def _build_measurement(self, project: Project, data: MeasurementCreateData) -> Measurement:
        activity = self.repo.get_activity(project.id, data.activity_id)
        if activity is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found.")
        if activity.level is not ActivityLevel.ACTIVITY:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Measurements can only target leaf activities.",
            )

        previous_progress = ZERO
        if data.unit_activity_id is not None:
            unit_activity = self.repo.get_unit_activity(data.unit_activity_id)
            if unit_activity is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unit activity not found.")
            if unit_activity.activity_id != activity.id:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Unit activity does not belong to the measured activity.",
                )
            previous_progress = unit_activity.progress

        return Measurement(
            activity_id=activity.id,
            unit_activity_id=data.unit_activity_id,
            progress=data.progress,
            previous_progress=previous_progress,
            status=MeasurementStatus.PENDING,
            notes=data.notes.strip() if data.notes else None,
            reported_by=data.reported_by,
            created_at=datetime.utcnow(),
        )

    def create_measurement(self, project_id: UUID, data: MeasurementCreateData) -> Measurement:
        project = self.projects.require_project(project_id)
        measurement = self._build_measurement(project, data)
        self.repo.add_measurement(measurement)
        self.db.commit()
        self.db.refresh(measurement)
        logger.info(
            "Measurement submitted id=%s activity=%s progress=%s",
            measurement.id,
            measurement.activity_id,
            measurement.progress,
        )
        return measurement

    def create_measurements_batch(
        self,
        project_id: UUID,
        items: list[MeasurementCreateData],
    ) -> list[Measurement]:
        project = self.projects.require_project(project_id)
        for item in items:
            if item.unit_activity_id is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Every batch item requires unit_activity_id.",
                )
        # Validate every item before anything is written.
        measurements = [self._build_measurement(project, item) for item in items]
        for measurement in measurements:
            self.repo.add_measurement(measurement)
        self.db.commit()
        for measurement in measurements:
            self.db.refresh(measurement)
        logger.info("Measurement batch submitted project=%s count=%s", project.id, len(measurements))
        return measurements

    # ---------- Queries ----------
    def list_measurements(
        self,
        project_id: UUID,
        *,
        status_filter: MeasurementStatus | None = None,
        activity_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Measurement], int]:
        project = self.projects.require_project(project_id)
        items = self.repo.list_measurements(
            project.id,
            status=status_filter,
            activity_id=activity_id,
            limit=limit,
            offset=offset,
        )
        total = self.repo.count_measurements(project.id, status=status_filter, activity_id=activity_id)
        return items, total

    def get_measurement(self, project_id: UUID, measurement_id: UUID) -> Measurement:
        project = self.projects.require_project(project_id)
        measurement = self.repo.get_measurement(project.id, measurement_id)
        if measurement is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Measurement not found.")
        return measurement

    # ---------- Review ----------
    def _review_context(self, project: Project, measurement: Measurement) -> ReviewContext:
        unit_activities = self.repo.list_unit_activities(measurement.activity_id)
        activities = self.repo.list_activities(project.id)
        return ReviewContext(
            measurement=MeasurementState(
                id=measurement.id,
                activity_id=measurement.activity_id,
                progress=measurement.progress,
                status=measurement.status,
                unit_activity_id=measurement.unit_activity_id,
            ),
            unit_activities=[
                UnitActivityState(id=row.id, progress=row.progress, status=row.status) for row in unit_activities
            ],
            activities=[
                ActivityState(id=row.id, parent_id=row.parent_id, status=row.status) for row in activities
            ],
            project_status=project.status,
            project_actual_end_date=project.actual_end_date,
        )

    def _apply_outcome(self, project: Project, outcome: ReviewOutcome) -> None:
        for unit_activity_id, state in outcome.unit_activity_updates.items():
            row: UnitActivity | None = self.repo.get_unit_activity(unit_activity_id)
            if row is not None:
                row.progress = state.progress
                row.status = state.status

        if outcome.activity_status_updates:
            activities: dict[UUID, ProjectActivity] = {row.id: row for row in self.repo.list_activities(project.id)}
            for activity_id, activity_status in outcome.activity_status_updates.items():
                activities[activity_id].status = activity_status

        if outcome.project_changed:
            logger.info(
                "Project status auto-transition id=%s %s -> %s",
                project.id,
                project.status.value,
                outcome.project_status.value,
            )
            project.status = outcome.project_status
            project.actual_end_date = outcome.actual_end_date
            project.updated_at = outcome.reviewed_at

    def review_measurement(
        self,
        project_id: UUID,
        measurement_id: UUID,
        data: MeasurementReviewData,
    ) -> Measurement:
        """Approve or reject a pending measurement and persist the whole cascade at once.

        The measurement row is locked for the rest of the transaction and only
        leaves PENDING through a conditional update, so of two overlapping
        reviews exactly one commits.
        """

        project = self.projects.require_project(project_id)
        measurement = self.repo.get_measurement(project.id, measurement_id, for_update=True)
        if measurement is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Measurement not found or already reviewed.",
            )

        try:
            outcome = review_measurement(
                self._review_context(project, measurement),
                data.decision,
                reviewer_id=data.reviewer_id,
                reviewed_at=datetime.utcnow(),
                notes=data.review_notes.strip() if data.review_notes else None,
            )
        except MeasurementNotReviewable as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Measurement not found or already reviewed.",
            ) from exc

        try:
            closed = self.repo.close_pending_measurement(
                measurement.id,
                status=outcome.status,
                reviewed_by=outcome.reviewed_by,
                reviewed_at=outcome.reviewed_at,
                review_notes=outcome.review_notes,
            )
            if not closed:
                self.db.rollback()
                logger.warning("Measurement review lost race id=%s", measurement_id)
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Measurement not found or already reviewed.",
                )
            self._apply_outcome(project, outcome)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(measurement)
        logger.info(
            "Measurement reviewed id=%s status=%s reviewer=%s",
            measurement.id,
            measurement.status.value,
            data.reviewer_id,
        )
        return measurement
