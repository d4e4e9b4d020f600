# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Blueprint ingestion: a JSON array of subrequest entries to Operations.

Wire format of one entry::

    {
        "requestId": "user",                  # optional, uuid4 when absent
        "action": "view",                     # create/update/replace/delete/...
        "uri": "/user/{{me.body@$.id}}",      # alias: "path"
        "query": {"fields": "name"},          # string or object, optional
        "body": {...},                        # optional
        "headers": {"Accept": "..."},         # optional
        "waitFor": ["me"]                     # string or list, optional
    }
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote_plus

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from subrequests.core.types import JsonValue
from subrequests.errors import SubrequestsError, ValidationError
from subrequests.operations.node import Operation
from subrequests.operations.tokens import TOKEN_PATTERN

__all__ = ("SubrequestSpec", "parse_blueprint")


class SubrequestSpec(BaseModel):
    """Validated wire form of one blueprint entry."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    request_id: str | None = Field(default=None, alias="requestId")
    action: str | None = None
    uri: str = Field(validation_alias=AliasChoices("uri", "path"))
    query: str | dict[str, Any] | None = None
    body: JsonValue = None
    headers: dict[str, str] = Field(default_factory=dict)
    wait_for: list[str] = Field(default_factory=list, alias="waitFor")

    @field_validator("wait_for", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value

    @property
    def target(self) -> str:
        """uri with query merged into its query string."""
        query = _encode_query(self.query)
        if not query:
            return self.uri
        if self.uri.endswith(("?", "&")):
            return self.uri + query
        return f"{self.uri}{'&' if '?' in self.uri else '?'}{query}"

    def to_operation(self) -> Operation:
        return Operation(
            id=self.request_id,
            verb=self.action,
            target=self.target,
            body=self.body,
            headers=self.headers,
            wait_for=self.wait_for,
        )


def _encode_query(query: str | dict[str, Any] | None) -> str:
    """Form-encode query pairs; a list value repeats its key.

    Values holding replacement tokens are kept verbatim so they can still be
    resolved once their reference completes.
    """
    if not query:
        return ""
    if isinstance(query, str):
        return query.lstrip("?")
    pairs: list[str] = []
    for key, value in query.items():
        for item in value if isinstance(value, list) else [value]:
            text = _query_text(item)
            if not TOKEN_PATTERN.search(text):
                text = quote_plus(text)
            pairs.append(f"{quote_plus(key)}={text}")
    return "&".join(pairs)


def _query_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_blueprint(payload: str | bytes | list[Any]) -> list[Operation]:
    """Parse a blueprint into declared Operations, in declaration order.

    Args:
        payload: JSON text/bytes, or an already-decoded list.

    Raises:
        ValidationError: Malformed JSON, non-array top level, or an invalid
            entry. `details["errors"]` lists the offending fields.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ValidationError(
                f"Blueprint is not valid JSON: {e}", cause=e
            ) from e

    if not isinstance(payload, list):
        raise ValidationError(
            "Blueprint must be a JSON array of subrequests",
            details={"type": type(payload).__name__},
        )

    operations: list[Operation] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise ValidationError(
                f"Subrequest #{index} must be an object",
                details={"index": index, "type": type(entry).__name__},
            )
        try:
            operations.append(SubrequestSpec.model_validate(entry).to_operation())
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Subrequest #{index} is invalid",
                details={
                    "index": index,
                    "errors": [
                        {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
                    ],
                },
                cause=e,
            ) from e
        except SubrequestsError as e:
            raise ValidationError(
                f"Subrequest #{index} is invalid: {e.message}",
                details={"index": index, **e.details},
                cause=e,
            ) from e
    return operations
