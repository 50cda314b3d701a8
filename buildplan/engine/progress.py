"""Weighted bottom-up completion percentages for the activity hierarchy."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from buildplan.engine.allocation import to_decimal
from buildplan.engine.review import ActivityStatus
from buildplan.engine.schedule import ActivityLevel

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")


def q2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


@dataclass(slots=True)
class ActivityRecord:
    """Flat activity row as loaded from storage."""

    id: Hashable
    name: str
    level: ActivityLevel | None = ActivityLevel.ACTIVITY
    parent_id: Hashable | None = None
    weight: Decimal = Decimal("1")
    order: int = 0
    unit_progress: tuple[Decimal, ...] = ()
    status: ActivityStatus = ActivityStatus.PENDING
    color: str | None = None
    planned_start_date: date | None = None
    planned_end_date: date | None = None


@dataclass(slots=True)
class ProgressNode:
    id: Hashable
    name: str
    level: ActivityLevel | None
    order: int
    weight: Decimal
    progress: Decimal
    status: ActivityStatus
    unit_count: int
    color: str | None = None
    planned_start_date: date | None = None
    planned_end_date: date | None = None
    children: list[ProgressNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": str(self.id),
            "name": self.name,
            "level": self.level.value if self.level else None,
            "order": self.order,
            "weight": str(self.weight),
            "progress": str(self.progress),
            "status": self.status.value,
            "unit_count": self.unit_count,
            "color": self.color,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(slots=True)
class ProgressReport:
    overall_progress: Decimal
    nodes: list[ProgressNode]
    hierarchical: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "overall_progress": str(self.overall_progress),
            "hierarchical": self.hierarchical,
            "activities": [node.to_dict() for node in self.nodes],
        }


def average_progress(values: Iterable[Decimal]) -> Decimal:
    """Arithmetic mean of unit progress values, 0 when there are none."""

    items = [to_decimal(value) for value in values]
    if not items:
        return ZERO
    return q2(sum(items, Decimal("0")) / len(items))


def weighted_progress(nodes: Iterable[ProgressNode]) -> Decimal:
    total_weight = Decimal("0")
    weighted = Decimal("0")
    for node in nodes:
        total_weight += node.weight
        weighted += node.weight * node.progress
    if total_weight == 0:
        return ZERO
    return q2(weighted / total_weight)


class ActivityTree:
    """Arena of activity records indexed by id with parent -> children adjacency."""

    def __init__(self, records: Sequence[ActivityRecord]) -> None:
        self.records = {record.id: record for record in records}
        self.children: dict[Hashable, list[Hashable]] = {record_id: [] for record_id in self.records}
        self.roots: list[Hashable] = []
        for record in records:
            if record.parent_id is None:
                self.roots.append(record.id)
            elif record.parent_id in self.children:
                self.children[record.parent_id].append(record.id)
            # Orphans whose parent is not loaded are left out of the tree.

        self.roots.sort(key=self._order_key)
        for child_ids in self.children.values():
            child_ids.sort(key=self._order_key)

    def _order_key(self, record_id: Hashable) -> int:
        return self.records[record_id].order

    def children_of(self, record_id: Hashable) -> list[ActivityRecord]:
        return [self.records[child_id] for child_id in self.children[record_id]]

    def root_records(self) -> list[ActivityRecord]:
        return [self.records[root_id] for root_id in self.roots]


def _leaf_node(record: ActivityRecord) -> ProgressNode:
    return ProgressNode(
        id=record.id,
        name=record.name,
        level=record.level,
        order=record.order,
        weight=to_decimal(record.weight),
        progress=average_progress(record.unit_progress),
        status=record.status,
        unit_count=len(record.unit_progress),
        color=record.color,
        planned_start_date=record.planned_start_date,
        planned_end_date=record.planned_end_date,
    )


def _progress_subtree(tree: ActivityTree, record: ActivityRecord) -> ProgressNode:
    node = _leaf_node(record)
    children = [_progress_subtree(tree, child) for child in tree.children_of(record.id)]
    if children:
        node.children = children
        node.progress = weighted_progress(children)
    return node


def calculate_flat_progress(records: Sequence[ActivityRecord]) -> ProgressReport:
    """Single-level weighted mean over leaf activities."""

    leaves = [record for record in records if record.level in (None, ActivityLevel.ACTIVITY)]
    nodes = [_leaf_node(record) for record in sorted(leaves, key=lambda record: record.order)]
    return ProgressReport(overall_progress=weighted_progress(nodes), nodes=nodes, hierarchical=False)


def calculate_hierarchical_progress(records: Sequence[ActivityRecord]) -> ProgressReport:
    """Post-order weighted aggregation from leaves up to the project."""

    tree = ActivityTree(records)
    roots = [_progress_subtree(tree, record) for record in tree.root_records()]
    return ProgressReport(overall_progress=weighted_progress(roots), nodes=roots, hierarchical=True)


def has_hierarchy(records: Iterable[ActivityRecord]) -> bool:
    return any(record.level in (ActivityLevel.PHASE, ActivityLevel.STAGE) for record in records)


def calculate_project_progress(records: Sequence[ActivityRecord]) -> ProgressReport:
    if has_hierarchy(records):
        return calculate_hierarchical_progress(records)
    return calculate_flat_progress(records)
