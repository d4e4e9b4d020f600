# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Verbose batch output: level headers, per-dispatch status lines, result tables.

Rich styling when stdout is a terminal, plain print otherwise.
"""

from __future__ import annotations

import sys
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

from rich.box import ROUNDED
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

if TYPE_CHECKING:
    from subrequests.operations.result import Result

__all__ = (
    "Timer",
    "phase",
    "preview",
    "show_results",
    "status",
    "status_style",
)

STATUS_THEME = Theme(
    {
        "info": "bright_cyan",
        "warning": "bright_yellow",
        "error": "bold bright_red",
        "success": "bold bright_green",
        "level": "bold bright_cyan",
    }
)

_console: Console | None = None


def _get_console() -> Console:
    global _console
    if _console is None:
        _console = Console(theme=STATUS_THEME)
    return _console


def in_console() -> bool:
    """Check if running in a terminal with TTY."""
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def status_style(code: int) -> str:
    """Theme style for a result status code."""
    if 200 <= code < 300:
        return "success"
    if code < 400:
        return "info"
    if code < 500:
        return "warning"
    return "error"


def preview(result: Result, max_chars: int = 80) -> str:
    """One-line body preview, truncated to max_chars."""
    text = " ".join(result.content().decode(errors="replace").split())
    if len(text) > max_chars:
        text = text[: max_chars - 3] + "..."
    return text


def show_results(results: Iterable[Result], *, title: str = "Results") -> None:
    """Print one row per result: id, status, content type, body preview."""
    results = list(results)
    if in_console():
        table = Table(title=title, title_justify="left", box=ROUNDED)
        table.add_column("id", style="info", no_wrap=True)
        table.add_column("status", justify="right")
        table.add_column("content-type")
        table.add_column("body", overflow="fold")
        for r in results:
            style = status_style(r.status)
            table.add_row(
                r.id,
                f"[{style}]{r.status}[/{style}]",
                r.content_type or "",
                preview(r),
            )
        _get_console().print(table)
        return

    print(f"\n--- {title} ---")
    for r in results:
        print(f"  {r.id} {r.status} {r.content_type or '-'} {preview(r)}")


def status(msg: str, *, style: str = "info") -> None:
    """Print a status message, styled when attached to a terminal.

    Args:
        msg: Status message.
        style: Theme style name (info, success, warning, error).
    """
    if in_console():
        _get_console().print(f"  [{style}]{msg}[/{style}]")
    else:
        print(f"  {msg}")


def phase(title: str) -> None:
    """Print a level header."""
    if in_console():
        _get_console().print(f"\n[level]=== {title} ===[/level]")
    else:
        print(f"\n=== {title} ===")


class Timer:
    """Context manager reporting elapsed batch time."""

    def __init__(self, label: str = ""):
        self.label = label
        self.start = 0.0
        self.elapsed = 0.0

    def __enter__(self):
        self.start = time.monotonic()
        return self

    def __exit__(self, *args):
        self.elapsed = time.monotonic() - self.start
        if self.label:
            status(f"{self.label}: {self.elapsed:.2f}s", style="success")
