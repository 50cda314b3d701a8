"""Project and unit endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from buildplan.db.dependencies import get_db_session
from buildplan.engine.calendar import SchedulingMode
from buildplan.engine.review import ProjectStatus
from buildplan.services.project_service import (
    ProjectCreateData,
    ProjectService,
    ProjectUpdateData,
    UnitCreateData,
)

router = APIRouter(tags=["projects"])


class ProjectCreatePayload(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus = ProjectStatus.PLANNING
    scheduling_mode: SchedulingMode = SchedulingMode.BUSINESS_DAYS
    start_date: date | None = None
    end_date: date | None = None


class ProjectUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus | None = None
    start_date: date | None = None
    end_date: date | None = None


class UnitCreatePayload(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: str | None = Field(default=None, max_length=255)


def _project_service(db: Session) -> ProjectService:
    return ProjectService(db)


@router.get("/projects")
def list_projects(db: Session = Depends(get_db_session)) -> dict[str, list[object]]:
    service = _project_service(db)
    return {"items": [service.serialize_project(project) for project in service.list_projects()]}


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _project_service(db)
    project = service.create_project(
        ProjectCreateData(
            code=payload.code,
            name=payload.name,
            description=payload.description,
            status=payload.status,
            scheduling_mode=payload.scheduling_mode,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    )
    return service.serialize_project(project)


@router.get("/projects/{project_id}")
def get_project(project_id: UUID, db: Session = Depends(get_db_session)) -> dict[str, object]:
    service = _project_service(db)
    return service.serialize_project(service.require_project(project_id))


@router.patch("/projects/{project_id}")
def update_project(
    project_id: UUID,
    payload: ProjectUpdatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _project_service(db)
    project = service.update_project(
        project_id,
        ProjectUpdateData(
            name=payload.name,
            description=payload.description,
            status=payload.status,
            start_date=payload.start_date,
            end_date=payload.end_date,
        ),
    )
    return service.serialize_project(project)


@router.get("/projects/{project_id}/units")
def list_units(project_id: UUID, db: Session = Depends(get_db_session)) -> dict[str, list[object]]:
    service = _project_service(db)
    return {"items": [service.serialize_unit(unit) for unit in service.list_units(project_id)]}


@router.post("/projects/{project_id}/units", status_code=status.HTTP_201_CREATED)
def create_unit(
    project_id: UUID,
    payload: UnitCreatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _project_service(db)
    unit = service.add_unit(project_id, UnitCreateData(code=payload.code, name=payload.name))
    return service.serialize_unit(unit)
