"""Activity hierarchy, plan scheduling and progress endpoints."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from buildplan.api.routes.schedule import SchedulePlanPayload, ScheduleWindowPayload, to_plan_data, to_window_data
from buildplan.db.dependencies import get_db_session
from buildplan.engine.schedule import ActivityScope
from buildplan.services.activity_service import ActivityCreateData, ActivityService, ActivityUpdateData
from buildplan.services.template_service import TemplateService

router = APIRouter(tags=["activities"])


class ActivityCreatePayload(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    order: int = Field(ge=0)
    weight: Decimal = Field(default=Decimal("1"), ge=0, le=100)
    scope: ActivityScope = ActivityScope.ALL_UNITS
    unit_ids: list[UUID] = Field(default_factory=list)


class ActivityUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    order: int | None = Field(default=None, ge=0)
    weight: Decimal | None = Field(default=None, ge=0, le=100)


class TemplateApplyPayload(ScheduleWindowPayload):
    template_id: UUID


def _activity_service(db: Session) -> ActivityService:
    return ActivityService(db)


@router.get("/projects/{project_id}/activities")
def list_project_activities(project_id: UUID, db: Session = Depends(get_db_session)) -> dict[str, list[object]]:
    service = _activity_service(db)
    return {"items": service.list_activity_tree(project_id)}


@router.post("/projects/{project_id}/activities", status_code=status.HTTP_201_CREATED)
def create_project_activity(
    project_id: UUID,
    payload: ActivityCreatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _activity_service(db)
    activity = service.create_activity(
        project_id,
        ActivityCreateData(
            name=payload.name,
            order=payload.order,
            weight=payload.weight,
            scope=payload.scope,
            unit_ids=list(payload.unit_ids),
        ),
    )
    return service.get_activity(project_id, activity.id)


@router.post("/projects/{project_id}/activities/schedule", status_code=status.HTTP_201_CREATED)
def schedule_project_activities(
    project_id: UUID,
    payload: SchedulePlanPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _activity_service(db)
    return {"items": service.schedule_project(project_id, to_plan_data(payload))}


@router.post("/projects/{project_id}/activities/from-template", status_code=status.HTTP_201_CREATED)
def apply_activity_template(
    project_id: UUID,
    payload: TemplateApplyPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = TemplateService(db)
    return {"items": service.apply_template(project_id, payload.template_id, to_window_data(payload))}


@router.get("/projects/{project_id}/activities/{activity_id}")
def get_project_activity(
    project_id: UUID,
    activity_id: UUID,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _activity_service(db)
    return service.get_activity(project_id, activity_id)


@router.patch("/projects/{project_id}/activities/{activity_id}")
def update_project_activity(
    project_id: UUID,
    activity_id: UUID,
    payload: ActivityUpdatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _activity_service(db)
    return service.update_activity(
        project_id,
        activity_id,
        ActivityUpdateData(name=payload.name, order=payload.order, weight=payload.weight),
    )


@router.delete("/projects/{project_id}/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project_activity(
    project_id: UUID,
    activity_id: UUID,
    db: Session = Depends(get_db_session),
) -> Response:
    service = _activity_service(db)
    service.delete_activity(project_id, activity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/projects/{project_id}/progress")
def get_project_progress(project_id: UUID, db: Session = Depends(get_db_session)) -> dict[str, object]:
    service = _activity_service(db)
    return service.get_project_progress(project_id).to_dict()
