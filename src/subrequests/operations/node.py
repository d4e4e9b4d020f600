# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Operation: one declared sub-operation of a batch.

An Operation is an immutable value. Token expansion never patches a template
in place; it derives new Operations via Operation.derive().
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias
from uuid import uuid4

from pydantic import Field, field_serializer, field_validator

from subrequests.core.types import HashableModel, JsonValue
from subrequests.errors import ValidationError

__all__ = (
    "DERIVED_ID",
    "ROOT",
    "Dependency",
    "DependsOn",
    "Operation",
    "Root",
    "Verb",
)


class Verb(str, Enum):
    """Declared action of an operation, mapped onto a transport method."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    EXISTS = "exists"
    DISCOVER = "discover"
    VIEW = "view"

    @property
    def method(self) -> str:
        """HTTP method for this verb."""
        return _METHODS[self]

    @property
    def sends_body(self) -> bool:
        """False for verbs whose payload travels in the query string."""
        return self not in (Verb.VIEW, Verb.EXISTS, Verb.DISCOVER)

    @classmethod
    def parse(cls, value: Verb | str | None) -> Verb:
        """Coerce a verb token (case-insensitive). None or empty means VIEW.

        Raises:
            ValidationError: If the token is not a known verb.
        """
        if isinstance(value, cls):
            return value
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.VIEW
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValidationError(
            f"Unknown action {value!r}",
            details={"action": value, "allowed": [v.value for v in cls]},
        )


_METHODS: dict[Verb, str] = {
    Verb.CREATE: "POST",
    Verb.UPDATE: "PATCH",
    Verb.REPLACE: "PUT",
    Verb.DELETE: "DELETE",
    Verb.EXISTS: "HEAD",
    Verb.DISCOVER: "OPTIONS",
    Verb.VIEW: "GET",
}


class Root(Enum):
    """Dependency on the batch's originating context only."""

    ROOT = "#ROOT#"

    def __repr__(self) -> str:
        return "ROOT"


ROOT = Root.ROOT


@dataclass(frozen=True, slots=True)
class DependsOn:
    """Dependency on the result of another operation in the batch."""

    id: str

    def __str__(self) -> str:
        return self.id


Dependency: TypeAlias = Root | DependsOn

DERIVED_ID = re.compile(r"#[A-Za-z_]+\{\d+\}")
"""Suffix Operation.derive() appends to a clone id."""


def _coerce_dependency(value: Any) -> Dependency:
    if value is ROOT or isinstance(value, DependsOn):
        return value
    if isinstance(value, str) and value.strip():
        value = value.strip()
        return ROOT if value == ROOT.value else DependsOn(value)
    raise ValidationError(
        f"Invalid waitFor entry {value!r}",
        details={"wait_for": value},
    )


class Operation(HashableModel):
    """One declared unit of work, possibly templated with replacement tokens.

    Attributes:
        id: Unique within the batch. Generated (uuid4) when empty.
        verb: Declared action; VIEW by default.
        target: URI-like template, may contain tokens.
        body: JSON-like payload, may contain tokens inside string leaves.
        headers: Request headers.
        wait_for: Dependencies; {ROOT} when the operation depends on nothing.
        resolved: True once no tokens remain.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    verb: Verb = Verb.VIEW
    target: str
    body: JsonValue = None
    headers: dict[str, str] = Field(default_factory=dict)
    wait_for: frozenset[Dependency] = Field(default_factory=lambda: frozenset({ROOT}))
    resolved: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return str(uuid4())
        return value

    @field_validator("verb", mode="before")
    @classmethod
    def _parse_verb(cls, value: Any) -> Verb:
        return Verb.parse(value)

    @field_validator("wait_for", mode="before")
    @classmethod
    def _parse_wait_for(cls, value: Any) -> frozenset[Dependency]:
        if value is None:
            return frozenset({ROOT})
        if isinstance(value, (str, DependsOn, Root)):
            value = [value]
        deps = frozenset(_coerce_dependency(v) for v in value)
        return deps or frozenset({ROOT})

    @field_serializer("wait_for")
    def _serialize_wait_for(self, wait_for: frozenset[Dependency]) -> list[str]:
        return sorted(ROOT.value if d is ROOT else d.id for d in wait_for)

    @property
    def method(self) -> str:
        """Transport method derived from the verb."""
        return self.verb.method

    @property
    def dependencies(self) -> frozenset[str]:
        """Ids this operation waits for, ROOT excluded."""
        return frozenset(d.id for d in self.wait_for if isinstance(d, DependsOn))

    @property
    def is_root(self) -> bool:
        """True when the operation depends only on the originating context."""
        return not self.dependencies

    def derive(self, location: str, index: int, **updates: Any) -> Operation:
        """Build a clone for one point of a token expansion.

        The clone id is '<id>#<location>{<index>}', which keeps ids unique and
        traceable to the template.
        """
        return self.model_copy(
            update={"id": f"{self.id}#{location}{{{index}}}", **updates}
        )

    def mark_resolved(self) -> Operation:
        """Return this operation flagged as concrete."""
        if self.resolved:
            return self
        return self.model_copy(update={"resolved": True})

    def __repr__(self) -> str:
        state = "resolved" if self.resolved else "template"
        return f"Operation(id={self.id!r}, {self.method} {self.target}, {state})"
