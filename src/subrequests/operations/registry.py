# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Route registry for in-process execution.

Maps (method, path template) to async handlers. Instantiated per executor
for isolation and testability.

Handler signature: async handler(body, ctx: RequestContext) -> response
where response is a body (status 200), a (status, body) tuple, or a Result.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .node import Verb

__all__ = ("HandlerRegistry", "OperationHandler", "Route")

OperationHandler = Callable[..., Awaitable[Any]]
"""Handler signature: async (body, ctx: RequestContext) -> response"""

_PARAM = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True, slots=True)
class Route:
    """A registered path template with its compiled matcher."""

    method: str
    template: str
    pattern: re.Pattern[str]
    handler: OperationHandler

    @classmethod
    def compile(cls, method: str, template: str, handler: OperationHandler) -> Route:
        parts: list[str] = []
        last = 0
        for match in _PARAM.finditer(template):
            parts.append(re.escape(template[last : match.start()]))
            parts.append(f"(?P<{match.group(1)}>[^/]+)")
            last = match.end()
        parts.append(re.escape(template[last:]))
        return cls(method, template, re.compile("^" + "".join(parts) + "$"), handler)

    def match(self, path: str) -> dict[str, str] | None:
        found = self.pattern.match(path)
        return found.groupdict() if found else None


def _method(method: Verb | str) -> str:
    if isinstance(method, Verb):
        return method.method
    return method.upper()


class HandlerRegistry:
    """Map routes to async handler functions.

    Literal routes win over templated ones; otherwise the first registered
    match is used.

    Example:
        registry = HandlerRegistry()
        registry.register("GET", "/articles", list_articles)
        registry.register(Verb.VIEW, "/articles/{id}", get_article)

        handler, params = registry.get("GET", "/articles/7")
        assert params == {"id": "7"}
    """

    def __init__(self):
        """Initialize empty registry."""
        self._routes: dict[tuple[str, str], Route] = {}

    def register(
        self,
        method: Verb | str,
        path: str,
        handler: OperationHandler,
        *,
        override: bool = False,
    ) -> None:
        """Register handler for a method and path template.

        Args:
            method: HTTP method or Verb.
            path: Path, optionally with '{name}' segments.
            handler: Async (body, ctx) -> response.
            override: Allow replacing existing. Default False.

        Raises:
            ValueError: If the route exists and override=False.
        """
        key = (_method(method), path)
        if key in self._routes and not override:
            raise ValueError(
                f"Route '{key[0]} {path}' already registered. "
                "Use override=True to replace."
            )
        self._routes[key] = Route.compile(key[0], path, handler)

    def route(self, method: Verb | str, path: str) -> Callable[[OperationHandler], OperationHandler]:
        """Decorator form of register()."""

        def decorator(handler: OperationHandler) -> OperationHandler:
            self.register(method, path, handler)
            return handler

        return decorator

    def get(self, method: Verb | str, path: str) -> tuple[OperationHandler, dict[str, str]]:
        """Find handler and path params. Raises KeyError listing routes if not found."""
        key = (_method(method), path)
        if key in self._routes:
            return self._routes[key].handler, {}
        for route in self._routes.values():
            if route.method != key[0]:
                continue
            params = route.match(path)
            if params is not None:
                return route.handler, params
        raise KeyError(
            f"Route '{key[0]} {path}' not registered. Available: {self.list_routes()}"
        )

    def has(self, method: Verb | str, path: str) -> bool:
        """Check if a request would be routed."""
        try:
            self.get(method, path)
        except KeyError:
            return False
        return True

    def unregister(self, method: Verb | str, path: str) -> bool:
        """Remove registration. Returns True if existed."""
        return self._routes.pop((_method(method), path), None) is not None

    def list_routes(self) -> list[str]:
        """Return all registered routes as 'METHOD template'."""
        return [f"{m} {p}" for m, p in self._routes]

    def __contains__(self, route: tuple[Verb | str, str]) -> bool:
        """Support '(method, path) in registry' syntax."""
        return self.has(*route)

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        return f"HandlerRegistry(routes={self.list_routes()})"
