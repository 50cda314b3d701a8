"""Application service for the activity hierarchy: scheduling, listing and progress."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from buildplan.core.config import get_settings
from buildplan.engine.allocation import to_decimal
from buildplan.engine.calendar import SchedulingMode
from buildplan.engine.progress import (
    ActivityRecord,
    ActivityTree,
    ProgressReport,
    average_progress,
    calculate_project_progress,
    q2,
)
from buildplan.engine.schedule import (
    ActivityLevel,
    ActivityPlan,
    ActivityScope,
    PhasePlan,
    ScheduleConfig,
    ScheduledNode,
    StagePlan,
    calculate_schedule,
)
from buildplan.models.entities import Project, ProjectActivity, Unit, UnitActivity
from buildplan.repositories.activity_repository import ActivityRepository
from buildplan.services.project_service import ProjectService, ensure_date_range

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SchedulePlanData:
    start_date: date
    end_date: date
    phases: list[PhasePlan]
    mode: SchedulingMode | None = None
    holidays: list[date] = field(default_factory=list)


@dataclass(slots=True)
class ActivityCreateData:
    name: str
    order: int
    weight: Decimal = Decimal("1")
    scope: ActivityScope = ActivityScope.ALL_UNITS
    unit_ids: list[UUID] = field(default_factory=list)


@dataclass(slots=True)
class ActivityUpdateData:
    name: str | None = None
    order: int | None = None
    weight: Decimal | None = None


def _order_of(item: Mapping[str, Any], index: int) -> int:
    value = item.get("order")
    return index if value is None else int(value)


def _weight_of(activity: Mapping[str, Any]) -> Decimal:
    value = activity.get("weight")
    return Decimal("1") if value is None else to_decimal(value)


def phase_plans_from_dicts(phases: Sequence[Mapping[str, Any]]) -> list[PhasePlan]:
    """Build engine plans from plain phase dicts; a missing order follows list position."""

    return [
        PhasePlan(
            name=phase["name"],
            order=_order_of(phase, phase_index),
            percentage_of_total=to_decimal(phase["percentage_of_total"]),
            color=phase.get("color"),
            stages=[
                StagePlan(
                    name=stage["name"],
                    order=_order_of(stage, stage_index),
                    activities=[
                        ActivityPlan(
                            name=activity["name"],
                            order=_order_of(activity, activity_index),
                            weight=_weight_of(activity),
                            duration_days=activity.get("duration_days"),
                            dependencies=tuple(activity.get("dependencies") or ()),
                            scope=ActivityScope(activity.get("scope") or ActivityScope.ALL_UNITS),
                            unit_ids=tuple(UUID(str(unit_id)) for unit_id in activity.get("unit_ids") or ()),
                        )
                        for activity_index, activity in enumerate(stage.get("activities") or ())
                    ],
                )
                for stage_index, stage in enumerate(phase.get("stages") or ())
            ],
        )
        for phase_index, phase in enumerate(phases)
    ]


class ActivityService:
    """Service turning plans into persisted activity trees and reading their progress."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ActivityRepository(db)
        self.projects = ProjectService(db)
        self.settings = get_settings()

    # ---------- Serialization ----------
    @staticmethod
    def serialize_unit_activity(unit_activity: UnitActivity) -> dict[str, object]:
        return {
            "id": str(unit_activity.id),
            "activity_id": str(unit_activity.activity_id),
            "unit_id": str(unit_activity.unit_id) if unit_activity.unit_id else None,
            "progress": str(q2(unit_activity.progress)),
            "status": unit_activity.status.value,
        }

    @classmethod
    def serialize_activity(
        cls,
        activity: ProjectActivity,
        unit_activities: Sequence[UnitActivity] = (),
    ) -> dict[str, object]:
        return {
            "id": str(activity.id),
            "project_id": str(activity.project_id),
            "parent_id": str(activity.parent_id) if activity.parent_id else None,
            "name": activity.name,
            "level": activity.level.value,
            "order": activity.sequence_no,
            "weight": str(q2(activity.weight)),
            "scope": activity.scope.value,
            "status": activity.status.value,
            "color": activity.color_token,
            "duration_days": activity.duration_days,
            "dependencies": list(activity.dependencies or []),
            "planned_start_date": activity.planned_start_date.isoformat() if activity.planned_start_date else None,
            "planned_end_date": activity.planned_end_date.isoformat() if activity.planned_end_date else None,
            "average_progress": str(average_progress(row.progress for row in unit_activities)),
            "unit_activities": [cls.serialize_unit_activity(row) for row in unit_activities],
        }

    # ---------- Helpers ----------
    def _require_activity(self, project_id: UUID, activity_id: UUID) -> ProjectActivity:
        activity = self.repo.get_activity(project_id, activity_id)
        if activity is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found.")
        return activity

    def _ensure_units_in_project(self, project_id: UUID, unit_ids: Sequence[UUID]) -> None:
        wanted = set(unit_ids)
        found = {unit.id for unit in self.repo.list_units_by_ids(project_id, list(wanted))}
        if found != wanted:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="One or more units do not belong to this project.",
            )

    def _unit_activities_by_activity(self, project_id: UUID) -> dict[UUID, list[UnitActivity]]:
        grouped: dict[UUID, list[UnitActivity]] = defaultdict(list)
        for row in self.repo.list_unit_activities_for_project(project_id):
            grouped[row.activity_id].append(row)
        return grouped

    def _create_unit_activities(
        self,
        activity: ProjectActivity,
        units: Sequence[Unit],
        unit_ids: Sequence[UUID],
    ) -> list[UnitActivity]:
        now = datetime.utcnow()
        if activity.scope is ActivityScope.ALL_UNITS:
            targets: list[UUID | None] = [unit.id for unit in units]
        elif activity.scope is ActivityScope.SPECIFIC_UNITS:
            targets = list(dict.fromkeys(unit_ids))
        else:
            targets = [None]

        rows = [
            UnitActivity(activity_id=activity.id, unit_id=unit_id, created_at=now)
            for unit_id in targets
        ]
        return self.repo.add_unit_activities(rows)

    def _persist_nodes(
        self,
        project: Project,
        nodes: Sequence[ScheduledNode],
        parent_id: UUID | None,
        units: Sequence[Unit],
    ) -> int:
        created = 0
        now = datetime.utcnow()
        for node in nodes:
            leaf = node.level is ActivityLevel.ACTIVITY
            activity = ProjectActivity(
                project_id=project.id,
                parent_id=parent_id,
                name=node.name,
                level=node.level,
                sequence_no=node.order,
                weight=node.weight,
                scope=node.scope if leaf and node.scope else ActivityScope.GENERAL,
                color_token=node.color,
                duration_days=node.duration_days if leaf else None,
                dependencies=list(node.dependencies) or None,
                planned_start_date=node.planned_start_date,
                planned_end_date=node.planned_end_date,
                created_at=now,
            )
            self.repo.add_activity(activity)
            created += 1
            if leaf:
                self._create_unit_activities(activity, units, node.unit_ids)
            created += self._persist_nodes(project, node.children, activity.id, units)
        return created

    @staticmethod
    def _to_record(activity: ProjectActivity, unit_activities: Sequence[UnitActivity]) -> ActivityRecord:
        return ActivityRecord(
            id=activity.id,
            parent_id=activity.parent_id,
            name=activity.name,
            level=activity.level,
            weight=activity.weight,
            order=activity.sequence_no,
            unit_progress=tuple(row.progress for row in unit_activities),
            status=activity.status,
            color=activity.color_token,
            planned_start_date=activity.planned_start_date,
            planned_end_date=activity.planned_end_date,
        )

    # ---------- Scheduling ----------
    def preview_schedule(self, data: SchedulePlanData) -> list[ScheduledNode]:
        ensure_date_range(data.start_date, data.end_date)
        config = ScheduleConfig(
            start_date=data.start_date,
            end_date=data.end_date,
            mode=data.mode or self.settings.default_scheduling_mode,
            holidays=tuple(data.holidays),
        )
        return calculate_schedule(config, data.phases)

    def schedule_project(self, project_id: UUID, data: SchedulePlanData) -> list[dict[str, object]]:
        project = self.projects.require_project(project_id)
        if self.repo.activity_count_for_project(project.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Project already has activities.",
            )

        specific = [
            activity
            for phase in data.phases
            for stage in phase.stages
            for activity in stage.activities
            if activity.scope is ActivityScope.SPECIFIC_UNITS
        ]
        for activity in specific:
            if not activity.unit_ids:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"Activity '{activity.name}' has scope SPECIFIC_UNITS but no unit_ids.",
                )
        self._ensure_units_in_project(
            project.id,
            [unit_id for activity in specific for unit_id in activity.unit_ids],
        )

        if data.mode is None:
            data.mode = project.scheduling_mode
        schedule = self.preview_schedule(data)
        units = self.repo.list_units(project.id)
        created = self._persist_nodes(project, schedule, None, units)

        project.scheduling_mode = data.mode
        project.holidays = [holiday.isoformat() for holiday in data.holidays] or None
        project.start_date = data.start_date
        project.end_date = data.end_date
        project.updated_at = datetime.utcnow()
        self.db.commit()

        logger.info(
            "Plan scheduled project=%s mode=%s activities=%s window=%s..%s",
            project.id,
            data.mode.value,
            created,
            data.start_date.isoformat(),
            data.end_date.isoformat(),
        )
        return self.list_activity_tree(project.id)

    # ---------- Activities ----------
    def create_activity(self, project_id: UUID, data: ActivityCreateData) -> ProjectActivity:
        project = self.projects.require_project(project_id)
        if data.scope is ActivityScope.SPECIFIC_UNITS:
            if not data.unit_ids:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="unit_ids are required when scope is SPECIFIC_UNITS.",
                )
            self._ensure_units_in_project(project.id, data.unit_ids)

        activity = ProjectActivity(
            project_id=project.id,
            name=data.name.strip(),
            level=ActivityLevel.ACTIVITY,
            sequence_no=data.order,
            weight=data.weight,
            scope=data.scope,
            created_at=datetime.utcnow(),
        )
        self.repo.add_activity(activity)
        self._create_unit_activities(activity, self.repo.list_units(project.id), data.unit_ids)
        self.db.commit()
        self.db.refresh(activity)
        logger.info("Activity created id=%s project=%s scope=%s", activity.id, project.id, activity.scope.value)
        return activity

    def get_activity(self, project_id: UUID, activity_id: UUID) -> dict[str, object]:
        self.projects.require_project(project_id)
        activity = self._require_activity(project_id, activity_id)
        return self.serialize_activity(activity, self.repo.list_unit_activities(activity.id))

    def update_activity(self, project_id: UUID, activity_id: UUID, data: ActivityUpdateData) -> dict[str, object]:
        """Rename, reweight or reorder an activity at any level; dates and scope stay as planned."""

        self.projects.require_project(project_id)
        activity = self._require_activity(project_id, activity_id)
        if data.name is not None:
            activity.name = data.name.strip()
        if data.order is not None:
            activity.sequence_no = data.order
        if data.weight is not None:
            logger.info("Activity weight changed id=%s %s -> %s", activity.id, activity.weight, data.weight)
            activity.weight = data.weight
        self.db.commit()
        self.db.refresh(activity)
        return self.serialize_activity(activity, self.repo.list_unit_activities(activity.id))

    def delete_activity(self, project_id: UUID, activity_id: UUID) -> None:
        self.projects.require_project(project_id)
        activity = self._require_activity(project_id, activity_id)
        self.repo.delete_activity(activity)
        self.db.commit()
        logger.info("Activity deleted id=%s project=%s", activity_id, project_id)

    def list_activity_tree(self, project_id: UUID) -> list[dict[str, object]]:
        """Activities nested under their parents, ordered by sequence."""

        project = self.projects.require_project(project_id)
        activities = self.repo.list_activities(project.id)
        unit_rows = self._unit_activities_by_activity(project.id)

        by_id = {activity.id: activity for activity in activities}
        tree = ActivityTree([self._to_record(activity, ()) for activity in activities])

        def render(activity_id: UUID) -> dict[str, object]:
            payload = self.serialize_activity(by_id[activity_id], unit_rows.get(activity_id, []))
            payload["children"] = [render(child_id) for child_id in tree.children[activity_id]]
            return payload

        return [render(root_id) for root_id in tree.roots]

    # ---------- Progress ----------
    def get_project_progress(self, project_id: UUID) -> ProgressReport:
        project = self.projects.require_project(project_id)
        unit_rows = self._unit_activities_by_activity(project.id)
        records = [
            self._to_record(activity, unit_rows.get(activity.id, []))
            for activity in self.repo.list_activities(project.id)
        ]
        return calculate_project_progress(records)
