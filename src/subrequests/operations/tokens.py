# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Replacement tokens: find, evaluate, and fan out.

A token has the form {{<refId>.body@<pathQuery>}}. It references the body of
an earlier result (or of every clone derived from it) and is replaced by each
scalar the path query matches. One templated operation becomes one concrete
operation per point of the Cartesian product of its distinct tokens' values.

Tokens in the target take priority over tokens in the body: the target is
expanded first and every clone is resolved again, which then expands the
body. Clone ids are therefore '<id>#target{i}#body{j}'.

All functions here are pure; the result pool is only read.
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any

import jsonpath

from subrequests.core.types import JsonValue, Scalar
from subrequests.errors import (
    InvalidReplacementError,
    MissingReferenceError,
    PathQueryError,
    ResolutionError,
    UnsupportedLocationError,
)

from .node import Operation
from .result import ResultPool

__all__ = (
    "DEFAULT_MAX_DEPTH",
    "TOKEN_PATTERN",
    "TokenLocation",
    "TokenMatch",
    "compile_path",
    "extract_replacements",
    "find_tokens",
    "resolve",
    "resolve_batch",
)

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{([^{}@]+\.[^{}@]+)@([^{}]+)\}\}")
DEFAULT_MAX_DEPTH = 32

_NOT_JSON = object()


class TokenLocation(str, Enum):
    """Operation members scanned for tokens, in resolution priority order."""

    TARGET = "target"
    BODY = "body"


@dataclass(frozen=True, slots=True)
class TokenMatch:
    """One token occurrence.

    Attributes:
        token: Full token text, braces included, as it appears in the subject.
        ref_id: Id of the referenced operation.
        member: Referenced result member (only 'body' is supported).
        query: Path query evaluated against the referenced body.
    """

    token: str
    ref_id: str
    member: str
    query: str


def find_tokens(subject: str, *, escaped: bool = False) -> list[TokenMatch]:
    """Find every token occurrence in subject.

    Args:
        subject: Target string or serialized body.
        escaped: Subject is JSON-encoded text; unescape ids and queries.
    """
    found: list[TokenMatch] = []
    for match in TOKEN_PATTERN.finditer(subject):
        reference, query = match.group(1), match.group(2)
        if escaped:
            reference, query = _unescape(reference), _unescape(query)
        ref_id, _, member = reference.rpartition(".")
        found.append(
            TokenMatch(
                token=match.group(0),
                ref_id=ref_id.strip(),
                member=member.strip(),
                query=query.strip(),
            )
        )
    return found


@lru_cache(maxsize=256)
def compile_path(query: str) -> jsonpath.JSONPath | jsonpath.CompoundJSONPath:
    """Compile (and cache) a JSONPath query.

    Raises:
        PathQueryError: If the query is not valid JSONPath.
    """
    try:
        return jsonpath.compile(query)
    except jsonpath.JSONPathError as e:
        raise PathQueryError(query, str(e), cause=e) from e


def extract_replacements(
    operation: Operation,
    location: TokenLocation,
    pool: ResultPool,
) -> dict[str, list[Scalar]]:
    """Map each distinct token of one location to its candidate values.

    Values of a token are gathered from every result matching its ref_id
    (the result itself and all clones derived from it), in pool order.

    Raises:
        UnsupportedLocationError: Token references a member other than body.
        MissingReferenceError: No result matches the referenced id.
        PathQueryError: Query syntax is invalid.
        InvalidReplacementError: Query matched a non-scalar value.
    """
    subject = _serialize(operation, location)
    axes: dict[str, list[Scalar]] = {}
    for match in find_tokens(subject, escaped=location is TokenLocation.BODY):
        if match.token in axes:
            continue
        if match.member != "body":
            raise UnsupportedLocationError(match.token, match.member)
        subjects = pool.matching(match.ref_id)
        if not subjects:
            raise MissingReferenceError(match.ref_id, pool.ids())
        path = compile_path(match.query)
        values: list[Scalar] = []
        for result in subjects:
            data = result.json(default=_NOT_JSON)
            if data is _NOT_JSON:
                logger.debug("Result '%s' body is not JSON; no replacements", result.id)
                continue
            try:
                found = path.findall(data)
            except jsonpath.JSONPathError as e:
                raise PathQueryError(match.query, str(e), cause=e) from e
            _validate_replacements(found)
            values.extend(found)
        axes[match.token] = values
    return axes


def resolve(
    operation: Operation,
    pool: ResultPool,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Operation]:
    """Resolve every token of operation against pool.

    Returns:
        Concrete operations, all with resolved=True. An operation without
        tokens comes back alone and otherwise unchanged. Tokens that match no
        value add no axis and stay in place as literal text, so an operation
        whose tokens all match nothing passes through once.

    Raises:
        ResolutionError: See extract_replacements(); also raised when
            substituted values keep producing tokens beyond max_depth.
    """
    return _resolve(operation, pool, max_depth, 0)


def resolve_batch(
    operations: Iterable[Operation],
    pool: ResultPool,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Operation]:
    """Resolve a whole level; one input may yield zero or many outputs."""
    return [
        resolved for op in operations for resolved in _resolve(op, pool, max_depth, 0)
    ]


def _resolve(
    operation: Operation, pool: ResultPool, max_depth: int, depth: int
) -> list[Operation]:
    if depth > max_depth:
        raise ResolutionError(
            f"Operation '{operation.id}' still has tokens after {max_depth} expansions",
            details={"operation_id": operation.id, "max_depth": max_depth},
        )

    # Both locations are checked up front so a bad body token fails the
    # batch even when the target expands first.
    replacements = {
        location: extract_replacements(operation, location, pool)
        for location in TokenLocation
    }
    for location in TokenLocation:
        axes = {token: values for token, values in replacements[location].items() if values}
        for token in (t for t, values in replacements[location].items() if not values):
            logger.warning(
                "Operation '%s': token %s matched no values, left as is",
                operation.id,
                token,
            )
        if not axes:
            continue
        clones = list(_expand(operation, location, axes))
        return [
            resolved
            for clone in clones
            for resolved in _resolve(clone, pool, max_depth, depth + 1)
        ]

    return [operation.mark_resolved()]


def _expand(
    operation: Operation,
    location: TokenLocation,
    axes: dict[str, list[Scalar]],
) -> Iterable[Operation]:
    """Yield one clone per point of the Cartesian product of token values."""
    template = _serialize(operation, location)
    tokens = list(axes)
    for index, point in enumerate(itertools.product(*(axes[t] for t in tokens))):
        subject = template
        for token, value in zip(tokens, point):
            text = _literal(value, location)
            subject = re.sub(re.escape(token), lambda _m, text=text: text, subject)
        yield operation.derive(
            location.value,
            index,
            **{location.value: _deserialize(operation, location, subject)},
        )


def _validate_replacements(values: list[Any]) -> None:
    """Replacements must be strings or integers (booleans are not integers)."""
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise InvalidReplacementError(values)


def _serialize(operation: Operation, location: TokenLocation) -> str:
    if location is TokenLocation.TARGET:
        return operation.target
    return json.dumps(operation.body, ensure_ascii=False)


def _deserialize(operation: Operation, location: TokenLocation, text: str) -> JsonValue:
    if location is TokenLocation.TARGET:
        return text
    try:
        return json.loads(text)
    except ValueError as e:
        raise ResolutionError(
            f"Body of operation '{operation.id}' is not valid JSON after replacement",
            details={"operation_id": operation.id},
            cause=e,
        ) from e


def _literal(value: Scalar, location: TokenLocation) -> str:
    """Text form of a value; escaped so it stays literal inside a JSON string."""
    text = str(value)
    if location is TokenLocation.BODY:
        return json.dumps(text, ensure_ascii=False)[1:-1]
    return text


def _unescape(text: str) -> str:
    try:
        return json.loads(f'"{text}"')
    except ValueError:
        return text
