# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for subrequests.core.types - HashableModel."""

from __future__ import annotations

from subrequests.core.log import DataLoggerConfig
from subrequests.operations.node import Operation
from subrequests.operations.result import Result


class TestHashableModel:
    """Content hashing of frozen models with container fields."""

    def test_operation_hashable(self):
        a = Operation(
            id="b",
            verb="create",
            target="/b",
            body={"k": [1, {"n": 2}]},
            headers={"Accept": "application/json"},
            wait_for=["a", "c"],
        )
        b = Operation(
            id="b",
            verb="create",
            target="/b",
            body={"k": [1, {"n": 2}]},
            headers={"Accept": "application/json"},
            wait_for=["c", "a"],
        )
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_result_hashable(self):
        ok = Result(id="a", status=200, headers={"Content-Type": "text/plain"}, body=b"x")
        decoded = Result(id="a", status=200, body={"items": [1, 2]})
        assert {ok, decoded} == {decoded, ok}
        assert ok in {ok.model_copy()}

    def test_different_content_different_members(self):
        assert len({Result(id="a", status=200), Result(id="a", status=404)}) == 2

    def test_subclasses_inherit_hash(self):
        assert hash(DataLoggerConfig()) == hash(DataLoggerConfig())
