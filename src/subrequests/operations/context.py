# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""RequestContext: what an in-process handler sees of its operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .node import Operation

__all__ = ("RequestContext",)


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Routing information passed to handler(body, ctx).

    Attributes:
        operation: The resolved operation being executed.
        path: Target path without query string.
        query: Parsed query string (repeated keys keep every value).
        path_params: Values captured from '{name}' segments of the route.
    """

    operation: Operation
    path: str
    query: dict[str, list[str]] = field(default_factory=dict)
    path_params: dict[str, str] = field(default_factory=dict)

    @property
    def method(self) -> str:
        return self.operation.method

    @property
    def headers(self) -> dict[str, str]:
        return self.operation.headers

    @property
    def operation_id(self) -> str:
        return self.operation.id
