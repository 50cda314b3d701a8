"""Schedule calculator: plan hierarchy + date window -> planned dates."""

from __future__ import annotations

import enum
from collections.abc import Hashable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol, TypeVar

from buildplan.engine.allocation import PERCENT_BASIS, allocate_days
from buildplan.engine.calendar import ONE_DAY, SchedulingMode, WorkCalendar
from buildplan.engine.sequencing import topological_order


class ActivityLevel(str, enum.Enum):
    PHASE = "PHASE"
    STAGE = "STAGE"
    ACTIVITY = "ACTIVITY"


class ActivityScope(str, enum.Enum):
    ALL_UNITS = "ALL_UNITS"
    SPECIFIC_UNITS = "SPECIFIC_UNITS"
    GENERAL = "GENERAL"


@dataclass(slots=True)
class ActivityPlan:
    name: str
    order: int = 0
    weight: Decimal = Decimal("1")
    duration_days: int | None = None
    dependencies: tuple[str, ...] = ()
    scope: ActivityScope = ActivityScope.ALL_UNITS
    unit_ids: tuple[Hashable, ...] = ()

    @property
    def has_fixed_duration(self) -> bool:
        return self.duration_days is not None and self.duration_days > 0


@dataclass(slots=True)
class StagePlan:
    name: str
    order: int = 0
    activities: list[ActivityPlan] = field(default_factory=list)


@dataclass(slots=True)
class PhasePlan:
    name: str
    order: int = 0
    percentage_of_total: Decimal = Decimal("0")
    color: str | None = None
    stages: list[StagePlan] = field(default_factory=list)


@dataclass(slots=True)
class ScheduleConfig:
    start_date: date
    end_date: date
    mode: SchedulingMode = SchedulingMode.CALENDAR_DAYS
    holidays: tuple[date, ...] = ()


@dataclass(slots=True)
class ScheduledNode:
    """One phase, stage or activity with its planned window."""

    name: str
    level: ActivityLevel
    order: int
    weight: Decimal
    planned_start_date: date
    planned_end_date: date
    color: str | None = None
    dependencies: tuple[str, ...] = ()
    duration_days: int | None = None
    scope: ActivityScope | None = None
    unit_ids: tuple[Hashable, ...] = ()
    children: list[ScheduledNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "name": self.name,
            "level": self.level.value,
            "order": self.order,
            "weight": str(self.weight),
            "planned_start_date": self.planned_start_date.isoformat(),
            "planned_end_date": self.planned_end_date.isoformat(),
        }
        if self.level is ActivityLevel.PHASE:
            payload["color"] = self.color
        if self.level is ActivityLevel.ACTIVITY:
            payload["duration_days"] = self.duration_days
            payload["dependencies"] = list(self.dependencies)
            payload["scope"] = self.scope.value if self.scope else None
            payload["unit_ids"] = [str(unit_id) for unit_id in self.unit_ids]
        else:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload


class _HasOrder(Protocol):
    order: int


_Ordered = TypeVar("_Ordered", bound=_HasOrder)


@dataclass(slots=True)
class _BatchEntry:
    name: str
    dependencies: tuple[str, ...]
    stage_index: int
    activity: ActivityPlan


def _by_order(items: Sequence[_Ordered]) -> list[_Ordered]:
    return sorted(items, key=lambda item: item.order)


def _activity_durations(entries: list[_BatchEntry], phase_days: int) -> list[int]:
    durations = [0] * len(entries)
    flexible: list[int] = []
    fixed_total = 0
    for index, entry in enumerate(entries):
        if entry.activity.has_fixed_duration:
            durations[index] = entry.activity.duration_days
            fixed_total += entry.activity.duration_days
        else:
            flexible.append(index)

    remaining = max(0, phase_days - fixed_total)
    shares = allocate_days([entries[index].activity.weight for index in flexible], remaining)
    for index, days in zip(flexible, shares):
        durations[index] = days
    return durations


def schedule_phase(
    calendar: WorkCalendar,
    phase_start: date,
    phase_days: int,
    stages: Sequence[StagePlan],
) -> list[ScheduledNode]:
    """Schedule every activity of one phase as a single dependency batch."""

    entries = [
        _BatchEntry(
            name=activity.name,
            dependencies=tuple(activity.dependencies or ()),
            stage_index=stage_index,
            activity=activity,
        )
        for stage_index, stage in enumerate(stages)
        for activity in stage.activities
    ]
    durations = _activity_durations(entries, phase_days)
    position = {id(entry): index for index, entry in enumerate(entries)}

    windows: dict[int, tuple[date, date]] = {}
    windows_by_name: dict[str, tuple[date, date]] = {}
    for entry in topological_order(entries):
        start = calendar.next_working_day(phase_start)
        for dependency in entry.dependencies:
            window = windows_by_name.get(dependency)
            if window is None:
                continue
            candidate = calendar.next_working_day(window[1] + ONE_DAY)
            if candidate > start:
                start = candidate

        index = position[id(entry)]
        duration = durations[index] or 1
        end = calendar.advance(start, duration - 1)
        windows[index] = (start, end)
        windows_by_name[entry.name] = (start, end)

    activities_by_stage: dict[int, list[ScheduledNode]] = {index: [] for index in range(len(stages))}
    for index, entry in enumerate(entries):
        start, end = windows[index]
        activity = entry.activity
        activities_by_stage[entry.stage_index].append(
            ScheduledNode(
                name=activity.name,
                level=ActivityLevel.ACTIVITY,
                order=activity.order,
                weight=activity.weight,
                planned_start_date=start,
                planned_end_date=end,
                dependencies=entry.dependencies,
                duration_days=durations[index],
                scope=activity.scope,
                unit_ids=tuple(activity.unit_ids),
            )
        )

    scheduled: list[ScheduledNode] = []
    for stage_index, stage in enumerate(stages):
        children = activities_by_stage[stage_index]
        if not children:
            continue
        scheduled.append(
            ScheduledNode(
                name=stage.name,
                level=ActivityLevel.STAGE,
                order=stage.order,
                weight=Decimal("1"),
                planned_start_date=min(child.planned_start_date for child in children),
                planned_end_date=max(child.planned_end_date for child in children),
                children=_by_order(children),
            )
        )
    return _by_order(scheduled)


def calculate_schedule(config: ScheduleConfig, phases: Sequence[PhasePlan]) -> list[ScheduledNode]:
    """Lay phases out over the configured window and date every node."""

    calendar = WorkCalendar.build(config.mode, config.holidays)
    total_days = calendar.count_days(config.start_date, config.end_date)

    ordered = _by_order(phases)
    phase_days = allocate_days([phase.percentage_of_total for phase in ordered], total_days, PERCENT_BASIS)

    result: list[ScheduledNode] = []
    cursor = calendar.next_working_day(config.start_date)
    for phase, days in zip(ordered, phase_days):
        phase_start = cursor
        phase_end = calendar.advance(phase_start, days - 1)
        stages = schedule_phase(calendar, phase_start, days, phase.stages)
        # Empty phases still consume their share of the window.
        if stages:
            result.append(
                ScheduledNode(
                    name=phase.name,
                    level=ActivityLevel.PHASE,
                    order=phase.order,
                    weight=phase.percentage_of_total,
                    planned_start_date=phase_start,
                    planned_end_date=phase_end,
                    color=phase.color,
                    children=stages,
                )
            )
        cursor = calendar.next_working_day(phase_end + ONE_DAY)
    return result
