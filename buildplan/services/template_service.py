"""Application service for reusable activity templates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildplan.engine.schedule import ScheduledNode
from buildplan.models.entities import ActivityTemplate
from buildplan.repositories.activity_repository import ActivityRepository
from buildplan.services.activity_service import ActivityService, SchedulePlanData, phase_plans_from_dicts

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TemplateCreateData:
    name: str
    phases: list[dict[str, Any]]
    description: str | None = None


@dataclass(slots=True)
class TemplateUpdateData:
    name: str | None = None
    description: str | None = None
    phases: list[dict[str, Any]] | None = None


class TemplateService:
    """Service for stored phase / stage / activity plans."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ActivityRepository(db)

    @staticmethod
    def serialize_template(template: ActivityTemplate) -> dict[str, object]:
        return {
            "id": str(template.id),
            "name": template.name,
            "description": template.description,
            "phases": template.phases,
            "activity_count": sum(
                len(stage.get("activities") or ())
                for phase in template.phases
                for stage in phase.get("stages") or ()
            ),
            "created_at": template.created_at.isoformat(),
            "updated_at": template.updated_at.isoformat(),
        }

    def require_template(self, template_id: UUID) -> ActivityTemplate:
        template = self.repo.get_template(template_id)
        if template is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity template not found.")
        return template

    def _commit_unique_name(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Activity template name already exists.",
            ) from exc

    def list_templates(self, *, search: str | None = None) -> list[ActivityTemplate]:
        return self.repo.list_templates(search=search.strip() if search else None)

    def create_template(self, data: TemplateCreateData) -> ActivityTemplate:
        now = datetime.utcnow()
        template = ActivityTemplate(
            name=data.name.strip(),
            description=data.description.strip() if data.description else None,
            phases=data.phases,
            created_at=now,
            updated_at=now,
        )
        self.db.add(template)
        self._commit_unique_name()
        self.db.refresh(template)
        logger.info("Activity template created id=%s name=%s", template.id, template.name)
        return template

    def update_template(self, template_id: UUID, data: TemplateUpdateData) -> ActivityTemplate:
        template = self.require_template(template_id)
        if data.phases is not None and not data.phases:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A template needs at least one phase.",
            )

        if data.name is not None:
            template.name = data.name.strip()
        if data.description is not None:
            template.description = data.description.strip() or None
        if data.phases is not None:
            template.phases = data.phases
        template.updated_at = datetime.utcnow()
        self._commit_unique_name()
        self.db.refresh(template)
        return template

    def delete_template(self, template_id: UUID) -> None:
        template = self.require_template(template_id)
        self.repo.delete_template(template)
        self.db.commit()
        logger.info("Activity template deleted id=%s", template_id)

    # ---------- Scheduling ----------
    def _plan(self, template: ActivityTemplate, window: SchedulePlanData) -> SchedulePlanData:
        return SchedulePlanData(
            start_date=window.start_date,
            end_date=window.end_date,
            mode=window.mode,
            holidays=list(window.holidays),
            phases=phase_plans_from_dicts(template.phases),
        )

    def preview_template(self, template_id: UUID, window: SchedulePlanData) -> list[ScheduledNode]:
        template = self.require_template(template_id)
        return ActivityService(self.db).preview_schedule(self._plan(template, window))

    def apply_template(self, project_id: UUID, template_id: UUID, window: SchedulePlanData) -> list[dict[str, object]]:
        template = self.require_template(template_id)
        logger.info("Applying activity template id=%s project=%s", template.id, project_id)
        return ActivityService(self.db).schedule_project(project_id, self._plan(template, window))
