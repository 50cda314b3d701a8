"""Dependency ordering of named items."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence
from typing import Protocol, TypeVar

logger = logging.getLogger(__name__)


class Dependent(Protocol):
    name: str
    dependencies: Sequence[str] | None


T = TypeVar("T", bound=Dependent)


def topological_order(items: Sequence[T]) -> list[T]:
    """Order items so each follows the items it depends on.

    Dependencies are matched by name inside ``items`` only; unknown names
    are ignored. Ready items are emitted in their original order. Items
    caught in a cycle are appended in declared order instead of failing.
    """

    index_by_name: dict[str, int] = {}
    for index, item in enumerate(items):
        index_by_name[item.name] = index

    in_degree = [0] * len(items)
    successors: list[list[int]] = [[] for _ in items]
    for index, item in enumerate(items):
        for dependency in item.dependencies or ():
            source = index_by_name.get(dependency)
            if source is None:
                continue
            successors[source].append(index)
            in_degree[index] += 1

    queue = deque(index for index, degree in enumerate(in_degree) if degree == 0)
    emitted: list[int] = []
    while queue:
        index = queue.popleft()
        emitted.append(index)
        for successor in successors[index]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    if len(emitted) < len(items):
        seen = set(emitted)
        leftover = [index for index in range(len(items)) if index not in seen]
        logger.debug(
            "Dependency cycle among %s; keeping declared order",
            [items[index].name for index in leftover],
        )
        emitted.extend(leftover)

    return [items[index] for index in emitted]
