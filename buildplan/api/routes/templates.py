"""Activity template endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from buildplan.api.routes.schedule import PhasePlanPayload, ScheduleWindowPayload, to_window_data
from buildplan.db.dependencies import get_db_session
from buildplan.services.template_service import TemplateCreateData, TemplateService, TemplateUpdateData

router = APIRouter(tags=["activity-templates"])


class TemplateCreatePayload(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    phases: list[PhasePlanPayload] = Field(min_length=1)


class TemplateUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    phases: list[PhasePlanPayload] | None = None


def _template_service(db: Session) -> TemplateService:
    return TemplateService(db)


def _phases_json(phases: list[PhasePlanPayload]) -> list[dict[str, object]]:
    return [phase.model_dump(mode="json") for phase in phases]


@router.get("/activity-templates")
def list_templates(search: str | None = None, db: Session = Depends(get_db_session)) -> dict[str, list[object]]:
    service = _template_service(db)
    return {"items": [service.serialize_template(template) for template in service.list_templates(search=search)]}


@router.post("/activity-templates", status_code=status.HTTP_201_CREATED)
def create_template(payload: TemplateCreatePayload, db: Session = Depends(get_db_session)) -> dict[str, object]:
    service = _template_service(db)
    template = service.create_template(
        TemplateCreateData(
            name=payload.name,
            description=payload.description,
            phases=_phases_json(payload.phases),
        )
    )
    return service.serialize_template(template)


@router.get("/activity-templates/{template_id}")
def get_template(template_id: UUID, db: Session = Depends(get_db_session)) -> dict[str, object]:
    service = _template_service(db)
    return service.serialize_template(service.require_template(template_id))


@router.patch("/activity-templates/{template_id}")
def update_template(
    template_id: UUID,
    payload: TemplateUpdatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _template_service(db)
    template = service.update_template(
        template_id,
        TemplateUpdateData(
            name=payload.name,
            description=payload.description,
            phases=_phases_json(payload.phases) if payload.phases is not None else None,
        ),
    )
    return service.serialize_template(template)


@router.delete("/activity-templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(template_id: UUID, db: Session = Depends(get_db_session)) -> Response:
    _template_service(db).delete_template(template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/activity-templates/{template_id}/preview")
def preview_template(
    template_id: UUID,
    payload: ScheduleWindowPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    schedule = _template_service(db).preview_template(template_id, to_window_data(payload))
    return {"schedule": [node.to_dict() for node in schedule]}
