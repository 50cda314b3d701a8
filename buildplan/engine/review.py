"""Measurement review state machine and the status cascade of an approval.

A measurement starts ``PENDING`` and is reviewed exactly once, ending
``APPROVED`` or ``REJECTED``. Approving a measurement that targets a unit
activity propagates upward:

    unit activity -> leaf activity -> stage / phase ancestors -> project

``review_measurement`` is a pure command: it receives everything it needs
in a ``ReviewContext`` and returns a ``ReviewOutcome`` listing every write.
The caller persists the outcome in a single transaction.
"""

from __future__ import annotations

import enum
from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

COMPLETE = Decimal("100")


class ActivityStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class MeasurementStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReviewDecision(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ProjectStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


MANUAL_PROJECT_STATUSES = {ProjectStatus.PAUSED, ProjectStatus.CANCELLED}
STARTED_STATUSES = {ActivityStatus.IN_PROGRESS, ActivityStatus.COMPLETED}


class MeasurementNotReviewable(Exception):
    """Raised when a measurement is missing or has already been reviewed."""

    def __init__(self, measurement_id: Hashable | None, status: MeasurementStatus | None = None) -> None:
        super().__init__(f"Measurement {measurement_id} not found or already reviewed (status={status}).")
        self.measurement_id = measurement_id
        self.status = status


@dataclass(slots=True)
class MeasurementState:
    id: Hashable
    activity_id: Hashable
    progress: Decimal
    status: MeasurementStatus = MeasurementStatus.PENDING
    unit_activity_id: Hashable | None = None


@dataclass(slots=True)
class UnitActivityState:
    id: Hashable
    progress: Decimal
    status: ActivityStatus = ActivityStatus.PENDING


@dataclass(slots=True)
class ActivityState:
    id: Hashable
    parent_id: Hashable | None
    status: ActivityStatus = ActivityStatus.PENDING


@dataclass(slots=True)
class ReviewContext:
    """Snapshot of the ancestor chain read before a review."""

    measurement: MeasurementState | None
    unit_activities: Sequence[UnitActivityState] = ()
    activities: Sequence[ActivityState] = ()
    project_status: ProjectStatus = ProjectStatus.PLANNING
    project_actual_end_date: date | None = None


@dataclass(slots=True)
class ReviewOutcome:
    measurement_id: Hashable
    status: MeasurementStatus
    reviewed_by: Hashable
    reviewed_at: datetime
    review_notes: str | None
    project_status: ProjectStatus
    actual_end_date: date | None
    unit_activity_updates: dict[Hashable, UnitActivityState] = field(default_factory=dict)
    activity_status_updates: dict[Hashable, ActivityStatus] = field(default_factory=dict)
    project_changed: bool = False


def unit_status_for(progress: Decimal) -> ActivityStatus:
    if progress >= COMPLETE:
        return ActivityStatus.COMPLETED
    if progress > 0:
        return ActivityStatus.IN_PROGRESS
    return ActivityStatus.PENDING


def activity_status_for(unit_progress: Iterable[Decimal]) -> ActivityStatus:
    """Leaf status from the progress of every unit activity under it."""

    values = list(unit_progress)
    if all(value >= COMPLETE for value in values):
        return ActivityStatus.COMPLETED
    if any(value > 0 for value in values):
        return ActivityStatus.IN_PROGRESS
    return ActivityStatus.PENDING


def rollup_status(child_statuses: Iterable[ActivityStatus]) -> ActivityStatus:
    """Stage / phase status from the statuses of its children."""

    statuses = list(child_statuses)
    if not statuses:
        return ActivityStatus.PENDING
    if all(status is ActivityStatus.COMPLETED for status in statuses):
        return ActivityStatus.COMPLETED
    if any(status in STARTED_STATUSES for status in statuses):
        return ActivityStatus.IN_PROGRESS
    return ActivityStatus.PENDING


def next_project_status(
    current: ProjectStatus,
    top_level_statuses: Sequence[ActivityStatus],
    *,
    today: date,
    actual_end_date: date | None = None,
) -> tuple[ProjectStatus, date | None]:
    """Forward-only automatic project transition.

    Only PLANNING -> IN_PROGRESS and -> COMPLETED are automatic; PAUSED and
    CANCELLED are never touched.
    """

    if current in MANUAL_PROJECT_STATUSES:
        return current, actual_end_date
    if top_level_statuses and all(status is ActivityStatus.COMPLETED for status in top_level_statuses):
        if current is ProjectStatus.COMPLETED and actual_end_date is not None:
            return current, actual_end_date
        return ProjectStatus.COMPLETED, today
    if current is ProjectStatus.PLANNING and any(status in STARTED_STATUSES for status in top_level_statuses):
        return ProjectStatus.IN_PROGRESS, actual_end_date
    return current, actual_end_date


def _cascade_activity_statuses(
    activities: Sequence[ActivityState],
    leaf_id: Hashable,
    leaf_status: ActivityStatus,
) -> tuple[dict[Hashable, ActivityStatus], dict[Hashable, ActivityStatus]]:
    statuses = {activity.id: activity.status for activity in activities}
    parent_of = {activity.id: activity.parent_id for activity in activities}
    children_of: dict[Hashable, list[Hashable]] = {activity.id: [] for activity in activities}
    for activity in activities:
        if activity.parent_id in children_of:
            children_of[activity.parent_id].append(activity.id)

    updates = {leaf_id: leaf_status}
    statuses[leaf_id] = leaf_status
    current = parent_of.get(leaf_id)
    while current is not None and current in statuses:
        status = rollup_status(statuses[child_id] for child_id in children_of[current])
        statuses[current] = status
        updates[current] = status
        current = parent_of.get(current)
    return statuses, updates


def review_measurement(
    context: ReviewContext,
    decision: ReviewDecision,
    *,
    reviewer_id: Hashable,
    reviewed_at: datetime,
    notes: str | None = None,
) -> ReviewOutcome:
    measurement = context.measurement
    if measurement is None:
        raise MeasurementNotReviewable(None)
    if measurement.status is not MeasurementStatus.PENDING:
        raise MeasurementNotReviewable(measurement.id, measurement.status)

    outcome = ReviewOutcome(
        measurement_id=measurement.id,
        status=MeasurementStatus(decision.value),
        reviewed_by=reviewer_id,
        reviewed_at=reviewed_at,
        review_notes=notes,
        project_status=context.project_status,
        actual_end_date=context.project_actual_end_date,
    )
    if decision is ReviewDecision.REJECTED or measurement.unit_activity_id is None:
        return outcome

    target = UnitActivityState(
        id=measurement.unit_activity_id,
        progress=measurement.progress,
        status=unit_status_for(measurement.progress),
    )
    outcome.unit_activity_updates[target.id] = target

    unit_progress = [
        target.progress if unit.id == target.id else unit.progress for unit in context.unit_activities
    ]
    statuses, outcome.activity_status_updates = _cascade_activity_statuses(
        context.activities,
        measurement.activity_id,
        activity_status_for(unit_progress),
    )

    top_level = [statuses[activity.id] for activity in context.activities if activity.parent_id is None]
    project_status, actual_end_date = next_project_status(
        context.project_status,
        top_level,
        today=reviewed_at.date(),
        actual_end_date=context.project_actual_end_date,
    )
    outcome.project_changed = (
        project_status is not context.project_status or actual_end_date != context.project_actual_end_date
    )
    outcome.project_status = project_status
    outcome.actual_end_date = actual_end_date
    return outcome
