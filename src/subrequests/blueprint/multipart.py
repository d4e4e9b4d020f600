# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Combine a batch's Results into one 207 Multi-Status response."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal
from uuid import uuid4

from subrequests.errors import SubrequestsError
from subrequests.operations.result import Result

__all__ = (
    "CombinedResponse",
    "ResponseFormat",
    "combine_results",
    "negotiate_content_type",
    "rejection",
)

JSON_TYPE = "application/json"
MULTI_STATUS = 207
CRLF = b"\r\n"

ResponseFormat = Literal["multipart", "json"]


@dataclass(frozen=True, slots=True)
class CombinedResponse:
    """Aggregate response for a whole blueprint."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def json(self):
        return json.loads(self.body)


def negotiate_content_type(results: Sequence[Result]) -> str:
    """Common Content-Type of all results, else application/json."""
    types = {r.content_type for r in results}
    if len(types) == 1:
        (only,) = types
        if only:
            return only
    return JSON_TYPE


def _content_id(result: Result) -> str:
    for key, value in result.headers.items():
        if key.lower() == "content-id":
            return value
    return f"<{result.id}>"


def _part(result: Result, boundary: str) -> bytes:
    headers = [
        f"Content-Type: {result.content_type or JSON_TYPE}",
        f"Content-ID: {_content_id(result)}",
        f"Status: {result.status}",
    ]
    head = "\r\n".join([f"--{boundary}", *headers]).encode()
    return head + CRLF + CRLF + result.content() + CRLF


def combine_results(
    results: Sequence[Result],
    boundary: str | None = None,
    format: ResponseFormat = "multipart",
) -> CombinedResponse:
    """Build the 207 response for a completed batch.

    Args:
        results: Results in the order they should appear.
        boundary: Multipart delimiter; random when omitted.
        format: "multipart" for multipart/related parts, "json" for an
            object keyed by result id.
    """
    if format == "json":
        payload = {
            r.id: {
                "status": r.status,
                "headers": r.headers,
                "body": r.json(default=r.content().decode(errors="replace")),
            }
            for r in results
        }
        return CombinedResponse(
            status=MULTI_STATUS,
            headers={"Content-Type": JSON_TYPE},
            body=json.dumps(payload).encode(),
        )

    boundary = boundary or uuid4().hex
    content_type = (
        f'multipart/related; boundary="{boundary}", '
        f"type={negotiate_content_type(results)}"
    )
    body = b"".join(_part(r, boundary) for r in results)
    body += f"--{boundary}--".encode()
    return CombinedResponse(
        status=MULTI_STATUS,
        headers={"Content-Type": content_type},
        body=body,
    )


def rejection(error: SubrequestsError) -> CombinedResponse:
    """Single response rejecting a whole blueprint."""
    return CombinedResponse(
        status=error.status_code,
        headers={"Content-Type": JSON_TYPE},
        body=json.dumps(error.to_dict(), default=str).encode(),
    )
