"""Application service for projects and their physical units."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildplan.engine.calendar import SchedulingMode
from buildplan.engine.review import ProjectStatus
from buildplan.models.entities import Project, Unit
from buildplan.repositories.activity_repository import ActivityRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProjectCreateData:
    code: str
    name: str
    description: str | None = None
    status: ProjectStatus = ProjectStatus.PLANNING
    scheduling_mode: SchedulingMode = SchedulingMode.BUSINESS_DAYS
    start_date: date | None = None
    end_date: date | None = None


@dataclass(slots=True)
class ProjectUpdateData:
    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(slots=True)
class UnitCreateData:
    code: str
    name: str | None = None


def ensure_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date must be greater than or equal to start_date.",
        )


class ProjectService:
    """Service for project records and the units progress is measured against."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ActivityRepository(db)

    def require_project(self, project_id: UUID) -> Project:
        project = self.repo.get_project(project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        return project

    # ---------- Serialization ----------
    @staticmethod
    def serialize_project(project: Project) -> dict[str, object]:
        return {
            "id": str(project.id),
            "code": project.code,
            "name": project.name,
            "description": project.description,
            "status": project.status.value,
            "scheduling_mode": project.scheduling_mode.value,
            "holidays": list(project.holidays or []),
            "start_date": project.start_date.isoformat() if project.start_date else None,
            "end_date": project.end_date.isoformat() if project.end_date else None,
            "actual_end_date": project.actual_end_date.isoformat() if project.actual_end_date else None,
            "created_at": project.created_at.isoformat(),
            "updated_at": project.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_unit(unit: Unit) -> dict[str, object]:
        return {
            "id": str(unit.id),
            "project_id": str(unit.project_id),
            "code": unit.code,
            "name": unit.name,
        }

    # ---------- Projects ----------
    def list_projects(self) -> list[Project]:
        return self.repo.list_projects()

    def create_project(self, data: ProjectCreateData) -> Project:
        ensure_date_range(data.start_date, data.end_date)

        now = datetime.utcnow()
        project = Project(
            code=data.code.strip(),
            name=data.name.strip(),
            description=data.description.strip() if data.description else None,
            status=data.status,
            scheduling_mode=data.scheduling_mode,
            start_date=data.start_date,
            end_date=data.end_date,
            created_at=now,
            updated_at=now,
        )
        try:
            self.repo.add_project(project)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Project code already exists.",
            ) from exc

        self.db.refresh(project)
        logger.info("Project created id=%s code=%s", project.id, project.code)
        return project

    def update_project(self, project_id: UUID, data: ProjectUpdateData) -> Project:
        project = self.require_project(project_id)

        target_start = data.start_date if data.start_date is not None else project.start_date
        target_end = data.end_date if data.end_date is not None else project.end_date
        ensure_date_range(target_start, target_end)

        if data.name is not None:
            project.name = data.name.strip()
        if data.description is not None:
            project.description = data.description.strip() if data.description else None
        if data.status is not None and data.status is not project.status:
            logger.info("Project status set id=%s %s -> %s", project.id, project.status.value, data.status.value)
            project.status = data.status
        project.start_date = target_start
        project.end_date = target_end
        project.updated_at = datetime.utcnow()

        self.db.commit()
        self.db.refresh(project)
        return project

    # ---------- Units ----------
    def list_units(self, project_id: UUID) -> list[Unit]:
        project = self.require_project(project_id)
        return self.repo.list_units(project.id)

    def add_unit(self, project_id: UUID, data: UnitCreateData) -> Unit:
        project = self.require_project(project_id)
        unit = Unit(project_id=project.id, code=data.code.strip(), name=data.name.strip() if data.name else None)
        try:
            self.repo.add_unit(unit)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Unit code already exists in this project.",
            ) from exc

        self.db.refresh(unit)
        return unit
