# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for subrequests.blueprint.parser - blueprint ingestion."""

from __future__ import annotations

import json
from uuid import UUID

import pytest

from subrequests.blueprint import parse_blueprint
from subrequests.errors import ValidationError
from subrequests.operations.node import ROOT, Verb


class TestParseBlueprint:
    """Tests for parse_blueprint."""

    def test_full_entry(self):
        payload = json.dumps(
            [
                {
                    "requestId": "me",
                    "action": "view",
                    "uri": "/me",
                    "headers": {"Accept": "application/json"},
                },
                {
                    "requestId": "posts",
                    "action": "create",
                    "uri": "/posts",
                    "body": {"author": "{{me.body@$.id}}"},
                    "waitFor": ["me"],
                },
            ]
        )

        me, posts = parse_blueprint(payload)

        assert me.id == "me"
        assert me.verb is Verb.VIEW
        assert me.headers == {"Accept": "application/json"}
        assert me.wait_for == frozenset({ROOT})
        assert posts.method == "POST"
        assert posts.body == {"author": "{{me.body@$.id}}"}
        assert posts.dependencies == frozenset({"me"})

    def test_defaults(self):
        (op,) = parse_blueprint([{"uri": "/a"}])
        assert UUID(op.id)
        assert op.verb is Verb.VIEW
        assert op.is_root

    def test_path_alias_and_string_wait_for(self):
        (op,) = parse_blueprint(b'[{"requestId": "b", "path": "/b", "waitFor": "a"}]')
        assert op.target == "/b"
        assert op.dependencies == frozenset({"a"})

    def test_empty_wait_for_string_is_root(self):
        (op,) = parse_blueprint([{"uri": "/b", "waitFor": ""}])
        assert op.is_root

    def test_declaration_order(self):
        ops = parse_blueprint([{"requestId": str(i), "uri": "/x"} for i in range(4)])
        assert [op.id for op in ops] == ["0", "1", "2", "3"]

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="not valid JSON"):
            parse_blueprint("[{")

    def test_keyed_object_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_blueprint('{"a": {"uri": "/a"}}')
        assert exc_info.value.details["type"] == "dict"

    def test_entry_must_be_object(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_blueprint(["/a"])
        assert exc_info.value.details["index"] == 0

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_blueprint([{"uri": "/a", "colour": "red"}])
        locs = [e["loc"] for e in exc_info.value.details["errors"]]
        assert ["colour"] in locs

    def test_missing_uri(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_blueprint([{"requestId": "a"}])
        assert exc_info.value.status_code == 400

    def test_unknown_action(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_blueprint([{"uri": "/a"}, {"uri": "/b", "action": "sing"}])
        assert exc_info.value.details["index"] == 1
        assert exc_info.value.details["action"] == "sing"

    @pytest.mark.parametrize(
        ("entry", "target"),
        [
            ({"uri": "/a", "query": {"q": "a b", "n": 2}}, "/a?q=a+b&n=2"),
            ({"uri": "/a?x=1", "query": {"y": "2"}}, "/a?x=1&y=2"),
            ({"uri": "/a", "query": "?x=1&y=2"}, "/a?x=1&y=2"),
            ({"uri": "/a", "query": {"tag": ["p", "q"], "on": True}}, "/a?tag=p&tag=q&on=true"),
            ({"uri": "/a", "query": {}}, "/a"),
        ],
    )
    def test_query_merged_into_target(self, entry, target):
        (op,) = parse_blueprint([entry])
        assert op.target == target

    def test_query_token_kept_verbatim(self):
        (_, op) = parse_blueprint(
            [
                {"requestId": "me", "uri": "/me"},
                {"uri": "/posts", "query": {"author": "{{me.body@$.id}}"}, "waitFor": "me"},
            ]
        )
        assert op.target == "/posts?author={{me.body@$.id}}"

    def test_query_wrong_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_blueprint([{"uri": "/a", "query": 5}])
        locs = [e["loc"][0] for e in exc_info.value.details["errors"]]
        assert "query" in locs
