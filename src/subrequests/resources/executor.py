# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Executors: dispatch one resolved Operation and report a Result.

An executor must be safe to call concurrently and must never raise for a
failed call: transport problems become Results with a failing status.

Implementations:
    HttpExecutor: remote dispatch through httpx.AsyncClient.
    InProcessExecutor: local dispatch to handlers in a HandlerRegistry.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable
from urllib.parse import parse_qs, urlsplit

import httpx

from subrequests.operations.context import RequestContext
from subrequests.operations.node import Operation
from subrequests.operations.registry import HandlerRegistry
from subrequests.operations.result import Result

__all__ = (
    "CONTENT_ID",
    "Executor",
    "HttpExecutor",
    "InProcessExecutor",
    "failure",
)

logger = logging.getLogger(__name__)

CONTENT_ID = "Content-ID"
JSON_TYPE = "application/json"


@runtime_checkable
class Executor(Protocol):
    """Capability consumed by the scheduler."""

    async def __call__(self, operation: Operation) -> Result: ...


def content_id(operation: Operation) -> str:
    """Content-ID header value for an operation: '<id>'."""
    return f"<{operation.id}>"


def failure(operation: Operation, status: int, message: str) -> Result:
    """Build a failure Result carrying a JSON error body."""
    return Result.error(
        operation.id, status, message, headers={CONTENT_ID: content_id(operation)}
    )


class HttpExecutor:
    """Dispatch operations over HTTP.

    Args:
        base_url: Prefix joined with each operation target.
        client: Shared client. If omitted, one is created and owned.
        timeout: Per-call timeout in seconds for an owned client.
        headers: Default headers merged under each operation's headers.

    Example:
        async with HttpExecutor("https://api.example.com") as executor:
            results = await flow(operations, executor)
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url
        self.headers = dict(headers or {})
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __call__(self, operation: Operation) -> Result:
        headers = {**self.headers, **operation.headers, CONTENT_ID: content_id(operation)}
        request: dict[str, Any] = {"headers": headers}
        if operation.body is not None:
            if not operation.verb.sends_body and isinstance(operation.body, dict):
                request["params"] = operation.body
            elif isinstance(operation.body, (str, bytes)):
                request["content"] = operation.body
            else:
                request["json"] = operation.body

        try:
            response = await self.client.request(
                operation.method, operation.target, **request
            )
        except httpx.InvalidURL as e:
            logger.warning("Subrequest '%s' has an invalid target: %s", operation.id, e)
            return failure(operation, 400, f"Invalid URL: {e}")
        except httpx.TimeoutException as e:
            logger.warning("Subrequest '%s' timed out: %s", operation.id, e)
            return failure(operation, 504, f"Timed out: {e}")
        except httpx.HTTPError as e:
            logger.warning("Subrequest '%s' failed: %s", operation.id, e)
            return failure(operation, 502, f"Transport error: {e}")

        result_headers = dict(response.headers)
        result_headers[CONTENT_ID] = content_id(operation)
        return Result(
            id=operation.id,
            status=response.status_code,
            headers=result_headers,
            body=response.content,
        )

    async def aclose(self) -> None:
        """Close the client if this executor created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> HttpExecutor:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"HttpExecutor(base_url={self.base_url!r})"


class InProcessExecutor:
    """Dispatch operations to async handlers in the same process.

    Unknown routes produce 404 Results; handler exceptions produce 500
    Results.
    """

    def __init__(self, registry: HandlerRegistry | None = None) -> None:
        self.registry = registry or HandlerRegistry()

    async def __call__(self, operation: Operation) -> Result:
        parts = urlsplit(operation.target)
        path = parts.path or "/"
        try:
            handler, params = self.registry.get(operation.method, path)
        except KeyError:
            return failure(operation, 404, f"No route for {operation.method} {path}")

        ctx = RequestContext(
            operation=operation,
            path=path,
            query=parse_qs(parts.query),
            path_params=params,
        )
        try:
            response = await handler(operation.body, ctx)
        except Exception as e:
            logger.exception("Handler for '%s' failed", operation.id)
            return failure(operation, 500, str(e))
        return self._to_result(operation, response)

    @staticmethod
    def _to_result(operation: Operation, response: Any) -> Result:
        if isinstance(response, Result):
            return response.model_copy(
                update={
                    "id": operation.id,
                    "headers": {**response.headers, CONTENT_ID: content_id(operation)},
                }
            )
        status = 200
        if (
            isinstance(response, tuple)
            and len(response) == 2
            and isinstance(response[0], int)
        ):
            status, response = response
        headers = {CONTENT_ID: content_id(operation)}
        if isinstance(response, bytes):
            body = response
        elif isinstance(response, str):
            body = response.encode()
            headers["Content-Type"] = "text/plain"
        else:
            body = json.dumps(response).encode()
            headers["Content-Type"] = JSON_TYPE
        return Result(id=operation.id, status=status, headers=headers, body=body)

    def __repr__(self) -> str:
        return f"InProcessExecutor({self.registry!r})"
