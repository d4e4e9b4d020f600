# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Dependency graph builder: declared operations -> ordered levels.

Levels are produced by Kahn-style peeling: level 0 holds every operation
that depends only on ROOT, level k+1 holds every remaining operation whose
dependencies were all placed in levels <= k. Runs in O(V + E).

Example:
    plan = (
        OperationGraphBuilder()
        .add("/articles", id="list")
        .add("/articles/{{list.body@$.data[*].id}}", id="detail", wait_for="list")
        .build()
    )
    assert [len(level) for level in plan] == [1, 1]
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from subrequests.errors import ExistsError, UnresolvableDependencyError, ValidationError

from .node import DERIVED_ID, Operation

__all__ = ("Builder", "ExecutionPlan", "OperationGraphBuilder", "build_plan")


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    """Ordered levels of operations.

    Operations within a level never depend on each other; each depends only
    on operations of strictly earlier levels (or on ROOT).
    """

    levels: tuple[tuple[Operation, ...], ...]

    def __iter__(self) -> Iterator[tuple[Operation, ...]]:
        return iter(self.levels)

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, index: int) -> tuple[Operation, ...]:
        return self.levels[index]

    @property
    def operations(self) -> list[Operation]:
        """All operations, level by level."""
        return [op for level in self.levels for op in level]

    def level_of(self, operation_id: str) -> int:
        """Index of the level holding operation_id. Raises KeyError if absent."""
        for index, level in enumerate(self.levels):
            if any(op.id == operation_id for op in level):
                return index
        raise KeyError(f"Operation '{operation_id}' not in plan")

    def __repr__(self) -> str:
        sizes = [len(level) for level in self.levels]
        return f"ExecutionPlan(levels={sizes})"


def build_plan(operations: Iterable[Operation]) -> ExecutionPlan:
    """Organize declared operations into an ExecutionPlan.

    Within a level, operations keep their declaration order.

    Raises:
        ValidationError: If a declared id has the form of a derived clone id
            ('<id>#<location>{<n>}').
        ExistsError: If two operations share an id.
        UnresolvableDependencyError: If some operation can never be placed
            (dependency cycle, self-dependency, or an undeclared id).
    """
    declared = list(operations)
    by_id: dict[str, Operation] = {}
    order: dict[str, int] = {}
    for index, op in enumerate(declared):
        if DERIVED_ID.search(op.id):
            raise ValidationError(
                f"Operation id '{op.id}' clashes with derived clone ids",
                details={"id": op.id},
            )
        if op.id in by_id:
            raise ExistsError(
                f"Operation id '{op.id}' is declared more than once",
                details={"id": op.id},
            )
        by_id[op.id] = op
        order[op.id] = index

    waiting: dict[str, int] = {}
    dependents: dict[str, list[str]] = defaultdict(list)
    for op in declared:
        waiting[op.id] = len(op.dependencies)
        for dep in op.dependencies:
            dependents[dep].append(op.id)

    levels: list[tuple[Operation, ...]] = []
    current = [op for op in declared if waiting[op.id] == 0]
    placed = 0
    while current:
        levels.append(tuple(current))
        placed += len(current)
        ready: list[str] = []
        for op in current:
            for child in dependents.get(op.id, ()):
                waiting[child] -= 1
                if waiting[child] == 0:
                    ready.append(child)
        current = [by_id[i] for i in sorted(ready, key=order.__getitem__)]

    if placed < len(declared):
        stuck = next(op for op in declared if waiting[op.id] > 0)
        unknown = sorted(d for d in stuck.dependencies if d not in by_id)
        raise UnresolvableDependencyError(
            stuck.id,
            sorted(stuck.dependencies),
            details={
                "unknown": unknown,
                "unplaced": [op.id for op in declared if waiting[op.id] > 0],
            },
        )

    return ExecutionPlan(levels=tuple(levels))


class OperationGraphBuilder:
    """Fluent construction of a batch.

    Collects operations and delegates levelling to build_plan().
    """

    def __init__(self) -> None:
        self._operations: list[Operation] = []

    def add(self, target: str, **fields: Any) -> OperationGraphBuilder:
        """Declare an operation. Fields are passed to Operation()."""
        self._operations.append(Operation(target=target, **fields))
        return self

    def include(self, *operations: Operation) -> OperationGraphBuilder:
        """Declare already constructed operations."""
        self._operations.extend(operations)
        return self

    @property
    def operations(self) -> list[Operation]:
        return list(self._operations)

    def build(self) -> ExecutionPlan:
        """Level the declared operations. See build_plan() for errors."""
        return build_plan(self._operations)

    def __len__(self) -> int:
        return len(self._operations)


Builder = OperationGraphBuilder
