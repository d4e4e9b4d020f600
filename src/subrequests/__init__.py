# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""subrequests - dependency-aware batch execution of sub-operations.

Top-level re-exports for convenient imports:
- subrequests.types -> subrequests.core.types
- subrequests.operations -> subrequests.operations
- subrequests.blueprint -> subrequests.blueprint
- subrequests.resources -> subrequests.resources
- subrequests.session -> subrequests.session
- subrequests.Session, subrequests.flow, ... -> their defining modules
"""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

# Lazy module re-exports via __getattr__
_MODULE_ALIASES: dict[str, str] = {
    "types": "subrequests.core.types",
    "operations": "subrequests.operations",
    "blueprint": "subrequests.blueprint",
    "resources": "subrequests.resources",
    "session": "subrequests.session",
    "errors": "subrequests.errors",
}

_ATTR_ALIASES: dict[str, str] = {
    "Operation": "subrequests.operations",
    "Result": "subrequests.operations",
    "HandlerRegistry": "subrequests.operations",
    "build_plan": "subrequests.operations",
    "flow": "subrequests.operations",
    "flow_stream": "subrequests.operations",
    "parse_blueprint": "subrequests.blueprint",
    "combine_results": "subrequests.blueprint",
    "HttpExecutor": "subrequests.resources",
    "InProcessExecutor": "subrequests.resources",
    "Session": "subrequests.session",
    "SessionConfig": "subrequests.session",
}

_LOADED: dict[str, object] = {}


def __getattr__(name: str) -> object:
    """Lazy load aliased modules and attributes."""
    if name in _LOADED:
        return _LOADED[name]

    from importlib import import_module

    if name in _MODULE_ALIASES:
        value = import_module(_MODULE_ALIASES[name])
    elif name in _ATTR_ALIASES:
        value = getattr(import_module(_ATTR_ALIASES[name]), name)
    else:
        raise AttributeError(f"module 'subrequests' has no attribute {name!r}")

    _LOADED[name] = value
    return value


def __dir__() -> list[str]:
    """List available attributes."""
    return [*_MODULE_ALIASES, *_ATTR_ALIASES, "__version__"]


if TYPE_CHECKING:
    from subrequests import blueprint as blueprint
    from subrequests import errors as errors
    from subrequests import operations as operations
    from subrequests import resources as resources
    from subrequests import session as session
    from subrequests.blueprint import combine_results, parse_blueprint
    from subrequests.core import types as types
    from subrequests.operations import (
        HandlerRegistry,
        Operation,
        Result,
        build_plan,
        flow,
        flow_stream,
    )
    from subrequests.resources import HttpExecutor, InProcessExecutor
    from subrequests.session import Session, SessionConfig
