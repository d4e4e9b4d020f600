# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Shared base types."""

from __future__ import annotations

from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict

__all__ = ("HashableModel", "JsonValue", "Scalar")

JsonValue: TypeAlias = Any
"""Decoded JSON: None, bool, int, float, str, list, or dict."""

Scalar: TypeAlias = str | int
"""Values that may be substituted for a replacement token."""


def _freeze(value: Any) -> Any:
    """Hashable stand-in for a dumped value (dicts and lists included)."""
    if isinstance(value, dict):
        return frozenset((k, _freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    return value


class HashableModel(BaseModel):
    """Frozen pydantic model; instances are immutable values.

    Hashing follows content, so equal instances hash equal even when fields
    hold dicts or lists.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    def __hash__(self) -> int:
        return hash((type(self), _freeze(self.model_dump())))
