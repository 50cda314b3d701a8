"""Measurement submission and review endpoints."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from buildplan.db.dependencies import get_db_session
from buildplan.engine.review import MeasurementStatus, ReviewDecision
from buildplan.services.measurement_service import (
    MeasurementCreateData,
    MeasurementReviewData,
    MeasurementService,
)

router = APIRouter(tags=["measurements"])


class MeasurementCreatePayload(BaseModel):
    activity_id: UUID
    unit_activity_id: UUID | None = None
    progress: Decimal = Field(ge=0, le=100)
    notes: str | None = Field(default=None, max_length=2000)
    reported_by: UUID | None = None


class MeasurementBatchItemPayload(BaseModel):
    activity_id: UUID
    unit_activity_id: UUID
    progress: Decimal = Field(ge=0, le=100)


class MeasurementBatchPayload(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)
    reported_by: UUID | None = None
    items: list[MeasurementBatchItemPayload] = Field(min_length=1)


class MeasurementReviewPayload(BaseModel):
    status: ReviewDecision
    reviewer_id: UUID
    review_notes: str | None = Field(default=None, max_length=2000)


def _measurement_service(db: Session) -> MeasurementService:
    return MeasurementService(db)


@router.get("/projects/{project_id}/measurements")
def list_measurements(
    project_id: UUID,
    status_filter: MeasurementStatus | None = None,
    activity_id: UUID | None = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _measurement_service(db)
    items, total = service.list_measurements(
        project_id,
        status_filter=status_filter,
        activity_id=activity_id,
        limit=limit,
        offset=offset,
    )
    return {
        "items": [service.serialize_measurement(measurement) for measurement in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/projects/{project_id}/measurements", status_code=status.HTTP_201_CREATED)
def create_measurement(
    project_id: UUID,
    payload: MeasurementCreatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _measurement_service(db)
    measurement = service.create_measurement(
        project_id,
        MeasurementCreateData(
            activity_id=payload.activity_id,
            unit_activity_id=payload.unit_activity_id,
            progress=payload.progress,
            notes=payload.notes,
            reported_by=payload.reported_by,
        ),
    )
    return service.serialize_measurement(measurement)


@router.post("/projects/{project_id}/measurements/batch", status_code=status.HTTP_201_CREATED)
def create_measurements_batch(
    project_id: UUID,
    payload: MeasurementBatchPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _measurement_service(db)
    measurements = service.create_measurements_batch(
        project_id,
        [
            MeasurementCreateData(
                activity_id=item.activity_id,
                unit_activity_id=item.unit_activity_id,
                progress=item.progress,
                notes=payload.notes,
                reported_by=payload.reported_by,
            )
            for item in payload.items
        ],
    )
    return {"items": [service.serialize_measurement(measurement) for measurement in measurements]}


@router.get("/projects/{project_id}/measurements/{measurement_id}")
def get_measurement(
    project_id: UUID,
    measurement_id: UUID,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _measurement_service(db)
    return service.serialize_measurement(service.get_measurement(project_id, measurement_id))


@router.patch("/projects/{project_id}/measurements/{measurement_id}/review")
def review_measurement(
    project_id: UUID,
    measurement_id: UUID,
    payload: MeasurementReviewPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _measurement_service(db)
    measurement = service.review_measurement(
        project_id,
        measurement_id,
        MeasurementReviewData(
            decision=payload.status,
            reviewer_id=payload.reviewer_id,
            review_notes=payload.review_notes,
        ),
    )
    return service.serialize_measurement(measurement)
