"""Schedule preview endpoint and plan payload models shared with activity and template routes."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from buildplan.db.dependencies import get_db_session
from buildplan.engine.calendar import SchedulingMode
from buildplan.engine.schedule import ActivityScope
from buildplan.services.activity_service import ActivityService, SchedulePlanData, phase_plans_from_dicts

router = APIRouter(tags=["schedule"])


class ActivityPlanPayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    order: int | None = Field(default=None, ge=0)
    weight: Decimal = Field(default=Decimal("1"), ge=0, le=100)
    duration_days: int | None = Field(default=None, gt=0)
    dependencies: list[str] | None = None
    scope: ActivityScope = ActivityScope.ALL_UNITS
    unit_ids: list[UUID] = Field(default_factory=list)


class StagePlanPayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    order: int | None = Field(default=None, ge=0)
    activities: list[ActivityPlanPayload] = Field(min_length=1)


class PhasePlanPayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    order: int | None = Field(default=None, ge=0)
    percentage_of_total: Decimal = Field(ge=0, le=100)
    color: str | None = Field(default=None, max_length=32)
    stages: list[StagePlanPayload] = Field(min_length=1)


class ScheduleWindowPayload(BaseModel):
    start_date: date
    end_date: date
    mode: SchedulingMode | None = None
    holidays: list[date] = Field(default_factory=list)


class SchedulePlanPayload(ScheduleWindowPayload):
    phases: list[PhasePlanPayload] = Field(min_length=1)


def to_window_data(payload: ScheduleWindowPayload) -> SchedulePlanData:
    return SchedulePlanData(
        start_date=payload.start_date,
        end_date=payload.end_date,
        mode=payload.mode,
        holidays=list(payload.holidays),
        phases=[],
    )


def to_plan_data(payload: SchedulePlanPayload) -> SchedulePlanData:
    """Map the request body onto engine plan types; missing orders follow list position."""

    data = to_window_data(payload)
    data.phases = phase_plans_from_dicts([phase.model_dump() for phase in payload.phases])
    return data


@router.post("/schedule/preview")
def preview_schedule(
    payload: SchedulePlanPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ActivityService(db)
    schedule = service.preview_schedule(to_plan_data(payload))
    return {"schedule": [node.to_dict() for node in schedule]}
