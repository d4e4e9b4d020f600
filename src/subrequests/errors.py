# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Error taxonomy for batch orchestration.

Batch-fatal errors (GraphError, ResolutionError, ValidationError) abort the
whole batch before any further dispatch. Failures of individual operations
are never raised: they are recorded as Results with a failing status.

Hierarchy:
    SubrequestsError
    ├── ValidationError
    ├── ConfigurationError
    ├── ExistsError
    ├── GraphError
    │   └── UnresolvableDependencyError
    └── ResolutionError
        ├── MissingReferenceError
        ├── InvalidReplacementError
        ├── PathQueryError
        └── UnsupportedLocationError
"""

from __future__ import annotations

from typing import Any

__all__ = (
    "ConfigurationError",
    "ExistsError",
    "GraphError",
    "InvalidReplacementError",
    "MissingReferenceError",
    "PathQueryError",
    "ResolutionError",
    "SubrequestsError",
    "UnresolvableDependencyError",
    "UnsupportedLocationError",
    "ValidationError",
)


class SubrequestsError(Exception):
    """Base error with structured details.

    Attributes:
        message: Human readable description.
        details: Extra context (ids, candidates, offending values).
        retryable: Whether repeating the same request could succeed.
        cause: Underlying exception, if any.
        status_code: Status used when the error rejects a whole request.
    """

    default_message = "Subrequests error"
    default_retryable = False
    status_code = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        retryable: bool | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        self.retryable = self.default_retryable if retryable is None else retryable
        self.cause = cause
        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize for error responses."""
        data: dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(SubrequestsError):
    """Blueprint or operation fields are malformed."""

    default_message = "Invalid subrequest"
    status_code = 400


class ConfigurationError(SubrequestsError):
    """Session or executor is misconfigured."""

    default_message = "Invalid configuration"


class ExistsError(SubrequestsError):
    """An id is declared (or produced) more than once."""

    default_message = "Item already exists"
    status_code = 400


class GraphError(SubrequestsError):
    """The dependency graph cannot be scheduled."""

    default_message = "Invalid dependency graph"
    status_code = 400


class UnresolvableDependencyError(GraphError):
    """An operation's waitFor set can never be satisfied (cycle or unknown id)."""

    default_message = "Unresolvable dependency"

    def __init__(
        self,
        operation_id: str,
        waiting_for: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        self.operation_id = operation_id
        self.waiting_for = list(waiting_for or [])
        details = {"operation_id": operation_id, "waiting_for": self.waiting_for}
        details.update(kwargs.pop("details", None) or {})
        super().__init__(
            kwargs.pop("message", None)
            or f"Operation '{operation_id}' waits for {self.waiting_for} which can never complete",
            details=details,
            **kwargs,
        )


class ResolutionError(SubrequestsError):
    """A placeholder cannot be resolved against the result pool."""

    default_message = "Unable to resolve replacement token"
    status_code = 400


class MissingReferenceError(ResolutionError):
    """A placeholder references an id absent from the result pool."""

    def __init__(self, ref_id: str, candidates: list[str], **kwargs: Any) -> None:
        self.ref_id = ref_id
        self.candidates = list(candidates)
        super().__init__(
            f"Unable to find specified request for a replacement {ref_id}. "
            f"Candidates are [{', '.join(self.candidates)}].",
            details={"ref_id": ref_id, "candidates": self.candidates},
            **kwargs,
        )


class InvalidReplacementError(ResolutionError):
    """A path query matched something other than strings or integers."""

    def __init__(self, values: list[Any], **kwargs: Any) -> None:
        self.values = list(values)
        super().__init__(
            f"The replacement token did not find a list of strings or integers. "
            f"Instead it found {self.values!r}.",
            details={"values": self.values},
            **kwargs,
        )


class PathQueryError(ResolutionError):
    """A path query expression is syntactically invalid."""

    def __init__(self, query: str, reason: str, **kwargs: Any) -> None:
        self.query = query
        super().__init__(
            f"Invalid path query {query!r}: {reason}",
            details={"query": query, "reason": reason},
            **kwargs,
        )


class UnsupportedLocationError(ResolutionError):
    """A placeholder references a result member other than the body."""

    def __init__(self, token: str, location: str, **kwargs: Any) -> None:
        self.token = token
        self.location = location
        super().__init__(
            f"Token {token} references '{location}'; only 'body' is supported",
            details={"token": token, "location": location},
            **kwargs,
        )
