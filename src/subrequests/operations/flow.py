# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Level-synchronous scheduler.

For each level of an ExecutionPlan the scheduler:
    1. resolves tokens of every operation against the result pool
       (a level may grow through fan-out or shrink to nothing),
    2. dispatches all concrete operations concurrently,
    3. waits for every one of them (a barrier, not a queue),
    4. merges the level's results into the pool in one write.

The pool is therefore read-only while operations are in flight. Failed
operations are ordinary Results; only graph and resolution errors abort the
batch, and they do so before anything else is dispatched.

Example:
    results = await flow(operations, InProcessExecutor(registry))

    async for result in flow_stream(operations, executor):
        print(result.id, result.status)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator, Iterable, Sequence
from enum import Enum
from typing import TYPE_CHECKING

import anyio

from subrequests.errors import SubrequestsError

from .builder import ExecutionPlan, build_plan
from .node import Operation
from .result import Result, ResultPool
from .tokens import DEFAULT_MAX_DEPTH, resolve_batch

if TYPE_CHECKING:
    from subrequests.resources.executor import Executor

__all__ = ("BatchState", "DependencyAwareExecutor", "flow", "flow_stream")

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    """Scheduler lifecycle."""

    PENDING = "pending"
    LEVEL_IN_FLIGHT = "level_in_flight"
    DONE = "done"
    FAILED = "failed"


class DependencyAwareExecutor:
    """Drive an ExecutionPlan through an Executor, level by level.

    Attributes:
        plan: Levels to execute.
        executor: Capability dispatching one resolved operation.
        pool: Results produced so far.
        state: Current BatchState.
        error: Batch-fatal error, once FAILED.
        current_level: Index of the level being (or last) processed.

    Args:
        max_concurrent: Bound on in-flight executor calls. None = unbounded.
        level_timeout: Seconds allowed for one level's join. Calls still
            running are cancelled and recorded as 504 Results.
        max_depth: Bound on nested token expansion.
        verbose: Print progress with the rich display helpers.
    """

    def __init__(
        self,
        plan: ExecutionPlan,
        executor: Executor,
        *,
        max_concurrent: int | None = None,
        level_timeout: float | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        verbose: bool = False,
    ) -> None:
        self.plan = plan
        self.executor = executor
        self.level_timeout = level_timeout
        self.max_depth = max_depth
        self.verbose = verbose

        self.pool = ResultPool()
        self.state = BatchState.PENDING
        self.error: SubrequestsError | None = None
        self.current_level = 0
        self._limiter = anyio.CapacityLimiter(max_concurrent) if max_concurrent else None
        self._started = False

    async def run(self) -> list[Result]:
        """Execute every level. Returns results in level order.

        Raises:
            ResolutionError: A token could not be resolved.
            ExistsError: Two results share an id.
        """
        async for _ in self.levels():
            pass
        return self.pool.results()

    async def levels(self) -> AsyncIterator[tuple[Result, ...]]:
        """Execute level by level, yielding each level's results after its join."""
        if self._started:
            raise RuntimeError("DependencyAwareExecutor can only run once")
        self._started = True

        for index, level in enumerate(self.plan):
            self.current_level = index
            try:
                concrete = resolve_batch(level, self.pool, max_depth=self.max_depth)
            except SubrequestsError as e:
                self._fail(e)
                raise

            if self.verbose:
                from subrequests.utils.display import phase

                phase(f"Level {index}: {len(concrete)} operations")

            logger.debug(
                "Level %d: %d declared, %d concrete operations",
                index,
                len(level),
                len(concrete),
            )
            self.state = BatchState.LEVEL_IN_FLIGHT
            results = await self._dispatch(concrete)

            try:
                self.pool.merge(results)
            except SubrequestsError as e:
                self._fail(e)
                raise
            self.state = BatchState.PENDING
            logger.info(
                "Level %d complete: %d results (%d failed)",
                index,
                len(results),
                sum(not r.ok for r in results),
            )
            yield results

        self.state = BatchState.DONE

    async def _dispatch(self, operations: Sequence[Operation]) -> tuple[Result, ...]:
        """Run one level concurrently and join."""
        slots: list[Result | None] = [None] * len(operations)

        async def run_one(slot: int, operation: Operation) -> None:
            if self._limiter is None:
                slots[slot] = await self._call(operation)
            else:
                async with self._limiter:
                    slots[slot] = await self._call(operation)

        with anyio.move_on_after(self.level_timeout) as scope:
            async with anyio.create_task_group() as tg:
                for slot, operation in enumerate(operations):
                    tg.start_soon(run_one, slot, operation)

        if scope.cancelled_caught:
            logger.warning(
                "Level %d exceeded %ss; unfinished operations recorded as 504",
                self.current_level,
                self.level_timeout,
            )

        return tuple(
            result
            if result is not None
            else Result.error(op.id, 504, "Level deadline exceeded")
            for op, result in zip(operations, slots)
        )

    async def _call(self, operation: Operation) -> Result:
        try:
            result = await self.executor(operation)
        except Exception as e:
            logger.exception("Executor raised for '%s'", operation.id)
            result = Result.error(operation.id, 500, f"Executor error: {e}")

        if result.id != operation.id:
            result = result.model_copy(update={"id": operation.id})

        if self.verbose:
            from subrequests.utils.display import status, status_style

            status(
                f"{operation.method} {operation.target} -> {result.status}",
                style=status_style(result.status),
            )
        return result

    def _fail(self, error: SubrequestsError) -> None:
        self.state = BatchState.FAILED
        self.error = error
        logger.error("Batch failed at level %d: %s", self.current_level, error)

    def __repr__(self) -> str:
        return (
            f"DependencyAwareExecutor(levels={len(self.plan)}, "
            f"state={self.state.value}, results={len(self.pool)})"
        )


def _as_plan(operations: Iterable[Operation] | ExecutionPlan) -> ExecutionPlan:
    if isinstance(operations, ExecutionPlan):
        return operations
    return build_plan(operations)


async def flow(
    operations: Iterable[Operation] | ExecutionPlan,
    executor: Executor,
    *,
    max_concurrent: int | None = None,
    level_timeout: float | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    verbose: bool = False,
) -> list[Result]:
    """Execute a batch and return all results in level order.

    Raises:
        UnresolvableDependencyError: Before any dispatch, if the graph
            cannot be levelled.
        ResolutionError: If a token cannot be resolved.
    """
    scheduler = DependencyAwareExecutor(
        _as_plan(operations),
        executor,
        max_concurrent=max_concurrent,
        level_timeout=level_timeout,
        max_depth=max_depth,
        verbose=verbose,
    )
    return await scheduler.run()


async def flow_stream(
    operations: Iterable[Operation] | ExecutionPlan,
    executor: Executor,
    *,
    max_concurrent: int | None = None,
    level_timeout: float | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> AsyncGenerator[Result, None]:
    """Execute a batch, yielding results as each level completes."""
    scheduler = DependencyAwareExecutor(
        _as_plan(operations),
        executor,
        max_concurrent=max_concurrent,
        level_timeout=level_timeout,
        max_depth=max_depth,
    )
    async for results in scheduler.levels():
        for result in results:
            yield result
