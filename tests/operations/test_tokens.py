# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for subrequests.operations.tokens - discovery, extraction, fan-out."""

from __future__ import annotations

import json

import pytest

from subrequests.errors import (
    InvalidReplacementError,
    MissingReferenceError,
    PathQueryError,
    ResolutionError,
    UnsupportedLocationError,
)
from subrequests.operations.node import Operation
from subrequests.operations.result import Result, ResultPool
from subrequests.operations.tokens import (
    TokenLocation,
    extract_replacements,
    find_tokens,
    resolve,
    resolve_batch,
)


def _pool(**bodies) -> ResultPool:
    return ResultPool(
        Result(id=rid, status=200, body=json.dumps(body).encode())
        for rid, body in bodies.items()
    )


# =============================================================================
# Tests: find_tokens
# =============================================================================


class TestFindTokens:
    """Tests for token discovery."""

    def test_single(self):
        (match,) = find_tokens("/item/{{a.body@$.x}}")
        assert match.token == "{{a.body@$.x}}"
        assert match.ref_id == "a"
        assert match.member == "body"
        assert match.query == "$.x"

    def test_multiple_and_repeated(self):
        found = find_tokens("/{{a.body@$.x}}/{{b.body@$.y}}/{{a.body@$.x}}")
        assert [m.ref_id for m in found] == ["a", "b", "a"]

    def test_dotted_reference_id(self):
        """The member is the last dotted segment of the reference."""
        (match,) = find_tokens("{{user.v2.body@$.id}}")
        assert match.ref_id == "user.v2"
        assert match.member == "body"

    def test_filter_query_with_at_sign(self):
        (match,) = find_tokens("{{a.body@$.items[?(@.ok)].id}}")
        assert match.query == "$.items[?(@.ok)].id"

    def test_no_tokens(self):
        assert find_tokens("/plain/{id}") == []
        assert find_tokens("{{not a token}}") == []

    def test_escaped_subject(self):
        subject = json.dumps({"q": '{{a.body@$["x"]}}'})
        (match,) = find_tokens(subject, escaped=True)
        assert match.query == '$["x"]'


# =============================================================================
# Tests: extract_replacements
# =============================================================================


class TestExtractReplacements:
    """Tests for token evaluation against the pool."""

    def test_values_per_distinct_token(self):
        pool = _pool(a={"x": ["1", "2"], "y": 3})
        op = Operation(target="/{{a.body@$.x[*]}}/{{a.body@$.y}}/{{a.body@$.x[*]}}")
        axes = extract_replacements(op, TokenLocation.TARGET, pool)
        assert axes == {"{{a.body@$.x[*]}}": ["1", "2"], "{{a.body@$.y}}": [3]}

    def test_missing_reference(self):
        pool = _pool(a={}, b={})
        op = Operation(target="/{{z.body@$.x}}")
        with pytest.raises(MissingReferenceError) as exc_info:
            extract_replacements(op, TokenLocation.TARGET, pool)
        err = exc_info.value
        assert err.ref_id == "z"
        assert err.candidates == ["a", "b"]
        assert "Candidates are [a, b]" in err.message

    def test_unsupported_member(self):
        op = Operation(target="/{{a.headers@$.x}}")
        with pytest.raises(UnsupportedLocationError):
            extract_replacements(op, TokenLocation.TARGET, _pool(a={}))

    def test_object_value_rejected(self):
        op = Operation(target="/{{a.body@$.obj}}")
        with pytest.raises(InvalidReplacementError) as exc_info:
            extract_replacements(op, TokenLocation.TARGET, _pool(a={"obj": {"k": 1}}))
        assert exc_info.value.values == [{"k": 1}]

    @pytest.mark.parametrize("value", [True, 1.5, None, [1]])
    def test_non_scalar_values_rejected(self, value):
        op = Operation(target="/{{a.body@$.v}}")
        with pytest.raises(InvalidReplacementError):
            extract_replacements(op, TokenLocation.TARGET, _pool(a={"v": value}))

    def test_invalid_query(self):
        op = Operation(target="/{{a.body@$..[}}")
        with pytest.raises(PathQueryError):
            extract_replacements(op, TokenLocation.TARGET, _pool(a={}))

    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("$.items[?@.ok && @.n > 1].id", ["c"]),
            ("$.items[?@.id =~ /a.*/].id", ["a", "ab"]),
            ("$.items[?@.id in ['a', 'c']].n", [1, 3]),
        ],
    )
    def test_filter_expressions(self, query, expected):
        pool = _pool(
            a={
                "items": [
                    {"id": "a", "ok": True, "n": 1},
                    {"id": "ab", "ok": False, "n": 2},
                    {"id": "c", "ok": True, "n": 3},
                ]
            }
        )
        op = Operation(target=f"/{{{{a.body@{query}}}}}")
        (values,) = extract_replacements(op, TokenLocation.TARGET, pool).values()
        assert values == expected

    def test_invalid_query_carries_query(self):
        op = Operation(target="/{{a.body@$.x[?@.y ==]}}")
        with pytest.raises(PathQueryError) as exc_info:
            extract_replacements(op, TokenLocation.TARGET, _pool(a={"x": []}))
        assert exc_info.value.details["query"] == "$.x[?@.y ==]"

    def test_non_json_body_yields_nothing(self):
        pool = ResultPool([Result(id="a", status=200, body=b"<html>")])
        op = Operation(target="/{{a.body@$.x}}")
        assert extract_replacements(op, TokenLocation.TARGET, pool) == {
            "{{a.body@$.x}}": []
        }

    def test_reference_gathers_derived_results(self):
        """A reference to a fanned-out id sees every clone's body."""
        pool = ResultPool(
            [
                Result(id="a#target{0}", status=200, body=b'{"id": 1}'),
                Result(id="a#target{1}", status=200, body=b'{"id": 2}'),
            ]
        )
        op = Operation(target="/{{a.body@$.id}}")
        assert extract_replacements(op, TokenLocation.TARGET, pool) == {
            "{{a.body@$.id}}": [1, 2]
        }


# =============================================================================
# Tests: resolve
# =============================================================================


class TestResolve:
    """Tests for fan-out of templated operations."""

    def test_no_tokens(self):
        op = Operation(id="a", target="/a", body={"k": "v"})
        (resolved,) = resolve(op, ResultPool())
        assert resolved.id == "a"
        assert resolved.resolved
        assert resolved.body == {"k": "v"}

    def test_target_fan_out(self):
        pool = _pool(A={"things": ["x", "y"]})
        op = Operation(id="B", target="/item/{{A.body@$.things[*]}}", wait_for="A")

        resolved = resolve(op, pool)

        assert [(r.id, r.target) for r in resolved] == [
            ("B#target{0}", "/item/x"),
            ("B#target{1}", "/item/y"),
        ]
        assert all(r.resolved for r in resolved)

    def test_body_fan_out(self):
        pool = _pool(A={"things": ["x", "y"]})
        op = Operation(
            id="B",
            verb="create",
            target="/item",
            body={"name": "{{A.body@$.things[*]}}", "n": 1},
        )
        resolved = resolve(op, pool)
        assert [r.id for r in resolved] == ["B#body{0}", "B#body{1}"]
        assert [r.body for r in resolved] == [{"name": "x", "n": 1}, {"name": "y", "n": 1}]

    def test_cartesian_cardinality(self):
        """m values x n values yields m*n clones."""
        pool = _pool(A={"x": ["1", "2"]}, C={"y": ["a", "b", "c"]})
        op = Operation(id="B", target="/{{A.body@$.x[*]}}/{{C.body@$.y[*]}}")

        resolved = resolve(op, pool)

        assert len(resolved) == 6
        assert [r.target for r in resolved] == [
            "/1/a", "/1/b", "/1/c", "/2/a", "/2/b", "/2/c",
        ]
        assert len({r.id for r in resolved}) == 6

    def test_repeated_token_is_one_axis(self):
        pool = _pool(A={"x": ["1", "2"]})
        op = Operation(id="B", target="/{{A.body@$.x[*]}}/{{A.body@$.x[*]}}")
        assert [r.target for r in resolve(op, pool)] == ["/1/1", "/2/2"]

    def test_target_before_body(self):
        pool = _pool(A={"x": ["1", "2"], "y": ["p", "q"]})
        op = Operation(
            id="B",
            verb="create",
            target="/{{A.body@$.x[*]}}",
            body={"v": "{{A.body@$.y[*]}}"},
        )

        resolved = resolve(op, pool)

        assert [r.id for r in resolved] == [
            "B#target{0}#body{0}",
            "B#target{0}#body{1}",
            "B#target{1}#body{0}",
            "B#target{1}#body{1}",
        ]
        assert resolved[3].target == "/2"
        assert resolved[3].body == {"v": "q"}

    def test_empty_match_passes_through(self):
        """A token matching nothing stays literal; the operation runs once."""
        op = Operation(id="B", target="/{{A.body@$.nothing[*]}}")

        (resolved,) = resolve(op, _pool(A={"nothing": []}))

        assert resolved.id == "B"
        assert resolved.target == "/{{A.body@$.nothing[*]}}"
        assert resolved.resolved

    def test_empty_axis_does_not_block_valued_axis(self):
        pool = _pool(A={"x": ["1", "2"], "nothing": []})
        op = Operation(id="B", target="/{{A.body@$.x[*]}}/{{A.body@$.nothing[*]}}")

        resolved = resolve(op, pool)

        assert [(r.id, r.target) for r in resolved] == [
            ("B#target{0}", "/1/{{A.body@$.nothing[*]}}"),
            ("B#target{1}", "/2/{{A.body@$.nothing[*]}}"),
        ]

    def test_body_value_is_json_escaped(self):
        pool = _pool(A={"s": 'say "hi"\\'})
        op = Operation(id="B", verb="create", target="/x", body={"v": "{{A.body@$.s}}"})
        (resolved,) = resolve(op, pool)
        assert resolved.body == {"v": 'say "hi"\\'}

    def test_integer_substituted_as_text(self):
        pool = _pool(A={"n": 42})
        op = Operation(id="B", verb="create", target="/n/{{A.body@$.n}}", body={"n": "{{A.body@$.n}}"})
        (resolved,) = resolve(op, pool)
        assert resolved.target == "/n/42"
        assert resolved.body == {"n": "42"}

    def test_bad_body_token_fails_even_when_target_expands(self):
        pool = _pool(A={"x": ["1"]})
        op = Operation(
            id="B",
            verb="create",
            target="/{{A.body@$.x[*]}}",
            body={"v": "{{Z.body@$.y}}"},
        )
        with pytest.raises(MissingReferenceError):
            resolve(op, pool)

    def test_depth_guard(self):
        """Values that reintroduce tokens stop at max_depth."""
        pool = _pool(A={"t": "{{A.body@$.t}}"})
        op = Operation(id="B", target="{{A.body@$.t}}")
        with pytest.raises(ResolutionError) as exc_info:
            resolve(op, pool, max_depth=3)
        assert exc_info.value.details["max_depth"] == 3

    def test_template_left_unchanged(self):
        pool = _pool(A={"x": ["1"]})
        op = Operation(id="B", target="/{{A.body@$.x[*]}}")
        resolve(op, pool)
        assert op.target == "/{{A.body@$.x[*]}}"
        assert not op.resolved


class TestResolveBatch:
    """Tests for whole-level resolution."""

    def test_mixed_level(self):
        """Two templates referencing one result expand to four operations."""
        pool = ResultPool(
            [
                Result(
                    id="foo",
                    status=200,
                    headers={"Content-ID": "<foo>"},
                    body=b'{"things":["what","keep","talking"],"stuff":42}',
                )
            ]
        )
        level = [
            Operation(
                id="oop",
                verb="create",
                target="/ipsum/{{foo.body@$.things[*]}}",
                body={"answer": "{{foo.body@$.stuff}}"},
                wait_for="foo",
            ),
            Operation(
                id="oof",
                verb="create",
                target="/dolor/{{foo.body@$.stuff}}",
                body="bar",
                wait_for="foo",
            ),
        ]

        resolved = resolve_batch(level, pool)

        assert [r.target for r in resolved] == [
            "/ipsum/what",
            "/ipsum/keep",
            "/ipsum/talking",
            "/dolor/42",
        ]
        assert resolved[0].body == {"answer": "42"}
        assert resolved[3].body == "bar"
