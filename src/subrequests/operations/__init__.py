# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Operations: declared sub-operations and their dependency-aware execution.

Core types:
    Operation: Immutable declared sub-operation (verb, target, body, waitFor).
    Result / ResultPool: Executed outcomes, append-only per batch.
    ExecutionPlan: Ordered levels from build_plan().
    OperationGraphBuilder (Builder): Fluent batch construction.
    HandlerRegistry / RequestContext: In-process routing.

Resolution:
    resolve() / resolve_batch(): Token fan-out against a ResultPool.
    compile_path(): Cached JSONPath queries over result bodies.

Execution:
    flow(): Execute a batch, return results list.
    flow_stream(): Execute a batch, yield results level by level.
"""

from __future__ import annotations

from .builder import Builder, ExecutionPlan, OperationGraphBuilder, build_plan
from .context import RequestContext
from .flow import BatchState, DependencyAwareExecutor, flow, flow_stream
from .node import ROOT, Dependency, DependsOn, Operation, Root, Verb
from .registry import HandlerRegistry, OperationHandler
from .result import Result, ResultPool
from .tokens import (
    TokenLocation,
    TokenMatch,
    compile_path,
    find_tokens,
    resolve,
    resolve_batch,
)

__all__ = (
    "ROOT",
    "BatchState",
    "Builder",
    "Dependency",
    "DependencyAwareExecutor",
    "DependsOn",
    "ExecutionPlan",
    "HandlerRegistry",
    "Operation",
    "OperationGraphBuilder",
    "OperationHandler",
    "RequestContext",
    "Result",
    "ResultPool",
    "Root",
    "TokenLocation",
    "TokenMatch",
    "Verb",
    "build_plan",
    "compile_path",
    "find_tokens",
    "flow",
    "flow_stream",
    "resolve",
    "resolve_batch",
)
