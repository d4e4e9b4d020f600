# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Result and ResultPool: outcomes of executed operations.

A ResultPool is append-only. The scheduler merges one level's results after
that level's join; nothing else writes to it, so readers never need locks.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import Field

from subrequests.core.types import HashableModel, JsonValue
from subrequests.errors import ExistsError

__all__ = ("Result", "ResultPool")

logger = logging.getLogger(__name__)

_UNDECODABLE = object()


class Result(HashableModel):
    """Outcome of executing one resolved Operation.

    Attributes:
        id: Derived id of the operation that produced it.
        status: Status code reported by the executor.
        headers: Response headers.
        body: Raw bytes/text or an already-decoded JSON value.
    """

    id: str
    status: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None

    @property
    def ok(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str | None:
        """Content-Type header, matched case-insensitively."""
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return None

    def content(self) -> bytes:
        """Body as bytes; decoded JSON values are re-encoded."""
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode()
        if self.body is None:
            return b""
        return json.dumps(self.body).encode()

    def json(self, default: Any = _UNDECODABLE) -> JsonValue:
        """Decode the body as JSON.

        Args:
            default: Returned when the body is not valid JSON. If omitted,
                the decoding error propagates.
        """
        if not isinstance(self.body, (bytes, str)):
            return self.body
        try:
            return json.loads(self.body)
        except ValueError:
            if default is _UNDECODABLE:
                raise
            return default

    @classmethod
    def error(
        cls,
        result_id: str,
        status: int,
        message: str,
        headers: dict[str, str] | None = None,
    ) -> Result:
        """Build a failure Result with a JSON {"message": ...} body."""
        return cls(
            id=result_id,
            status=status,
            headers={"Content-Type": "application/json", **(headers or {})},
            body=json.dumps({"message": message}).encode(),
        )

    def __repr__(self) -> str:
        return f"Result(id={self.id!r}, status={self.status})"


class ResultPool(Mapping[str, Result]):
    """Append-only id -> Result store for one batch execution.

    Iteration follows insertion order, so results of level k precede results
    of level k+1.
    """

    def __init__(self, results: Iterable[Result] = ()):
        self._results: dict[str, Result] = {}
        self.merge(results)

    def merge(self, results: Iterable[Result]) -> None:
        """Add results produced by one level.

        Raises:
            ExistsError: If any id is already present; nothing is written.
        """
        batch = list(results)
        seen: set[str] = set()
        for result in batch:
            if result.id in self._results or result.id in seen:
                raise ExistsError(
                    f"Result '{result.id}' already exists in the pool",
                    details={"id": result.id},
                )
            seen.add(result.id)
        for result in batch:
            self._results[result.id] = result
        logger.debug("Merged %d results into pool (size=%d)", len(batch), len(self))

    def matching(self, ref_id: str) -> list[Result]:
        """Results for ref_id itself or for any clone derived from it."""
        prefix = f"{ref_id}#"
        return [
            r for rid, r in self._results.items() if rid == ref_id or rid.startswith(prefix)
        ]

    def ids(self) -> list[str]:
        """All ids in insertion order."""
        return list(self._results)

    def results(self) -> list[Result]:
        """All results in insertion order."""
        return list(self._results.values())

    def __getitem__(self, result_id: str) -> Result:
        return self._results[result_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        return f"ResultPool(results={len(self)})"
