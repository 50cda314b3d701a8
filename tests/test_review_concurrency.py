from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from buildplan.db.base import Base
from buildplan.engine.review import MeasurementStatus, ProjectStatus, ReviewDecision
from buildplan.engine.schedule import ActivityScope
from buildplan.models.entities import Measurement, Project, UnitActivity
from buildplan.repositories.activity_repository import ActivityRepository
from buildplan.services import measurement_service
from buildplan.services.activity_service import ActivityCreateData, ActivityService
from buildplan.services.measurement_service import MeasurementCreateData, MeasurementReviewData, MeasurementService
from buildplan.services.project_service import ProjectCreateData, ProjectService


@pytest.fixture()
def session_factory(tmp_path: Path) -> Generator[sessionmaker[Session], None, None]:
    # Separate connections per session, unlike the shared in-memory fixture.
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'reviews.db'}", future=True)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


def _seed(session: Session) -> tuple[UUID, UUID, UUID]:
    project = ProjectService(session).create_project(ProjectCreateData(code="RACE-1", name="Race"))
    activity = ActivityService(session).create_activity(
        project.id,
        ActivityCreateData(name="Site cleanup", order=0, scope=ActivityScope.GENERAL),
    )
    [unit_activity] = ActivityRepository(session).list_unit_activities(activity.id)
    measurement = MeasurementService(session).create_measurement(
        project.id,
        MeasurementCreateData(activity_id=activity.id, unit_activity_id=unit_activity.id, progress=Decimal("100")),
    )
    return project.id, measurement.id, unit_activity.id


def _decision(decision: ReviewDecision) -> MeasurementReviewData:
    return MeasurementReviewData(decision=decision, reviewer_id=uuid4())


def test_overlapping_reviews_commit_only_once(
    session_factory: sessionmaker[Session],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    with session_factory() as setup:
        project_id, measurement_id, unit_activity_id = _seed(setup)

    decide = measurement_service.review_measurement
    competing: list[bool] = []

    def decide_then_let_other_reviewer_commit(*args, **kwargs):
        outcome = decide(*args, **kwargs)
        if not competing:
            competing.append(True)
            with session_factory() as other:
                MeasurementService(other).review_measurement(
                    project_id, measurement_id, _decision(ReviewDecision.APPROVED)
                )
        return outcome

    monkeypatch.setattr(measurement_service, "review_measurement", decide_then_let_other_reviewer_commit)

    with session_factory() as first:
        with pytest.raises(HTTPException) as exc_info:
            MeasurementService(first).review_measurement(project_id, measurement_id, _decision(ReviewDecision.REJECTED))

    assert exc_info.value.status_code == 409
    with session_factory() as check:
        assert check.get(Measurement, measurement_id).status is MeasurementStatus.APPROVED
        assert check.get(UnitActivity, unit_activity_id).progress == Decimal("100.00")
        assert check.get(Project, project_id).status is ProjectStatus.COMPLETED


def test_review_after_commit_by_other_session_conflicts(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as setup:
        project_id, measurement_id, _ = _seed(setup)

    with session_factory() as first, session_factory() as second:
        MeasurementService(first).review_measurement(project_id, measurement_id, _decision(ReviewDecision.APPROVED))

        with pytest.raises(HTTPException) as exc_info:
            MeasurementService(second).review_measurement(
                project_id, measurement_id, _decision(ReviewDecision.REJECTED)
            )

    assert exc_info.value.status_code == 409
