# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for subrequests.utils.display."""

from __future__ import annotations

import pytest

from subrequests.operations.result import Result
from subrequests.utils.display import Timer, phase, preview, show_results, status, status_style


class TestStatusStyle:
    @pytest.mark.parametrize(
        ("code", "style"),
        [(200, "success"), (207, "success"), (304, "info"), (404, "warning"), (504, "error")],
    )
    def test_style(self, code, style):
        assert status_style(code) == style


class TestResults:
    """Tests for result rendering."""

    def test_preview_collapses_whitespace(self):
        result = Result(id="a", status=200, body=b'{\n  "k":   1\n}')
        assert preview(result) == '{ "k": 1 }'

    def test_preview_truncates(self):
        result = Result(id="a", status=200, body="x" * 100)
        text = preview(result, max_chars=10)
        assert text == "xxxxxxx..."
        assert len(text) == 10

    def test_show_results_plain(self, capsys):
        show_results(
            [
                Result.error("b#target{0}", 504, "late"),
                Result(id="c", status=204),
            ],
            title="Failed",
        )
        lines = capsys.readouterr().out.splitlines()
        assert lines[1] == "--- Failed ---"
        assert lines[2] == '  b#target{0} 504 application/json {"message": "late"}'
        assert lines[3] == "  c 204 - "


class TestStatus:
    def test_plain_output(self, capsys):
        status("done", style="success")
        assert capsys.readouterr().out == "  done\n"

    def test_phase(self, capsys):
        phase("Level 1: 2 operations")
        assert "=== Level 1: 2 operations ===" in capsys.readouterr().out

    def test_timer(self, capsys):
        with Timer("work") as timer:
            pass
        assert timer.elapsed >= 0
        assert "work:" in capsys.readouterr().out
