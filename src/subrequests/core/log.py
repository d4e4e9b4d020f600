# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Logging configuration for batch result persistence.

Provides DataLoggerConfig for configuring automatic result dumps.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field

from .types import HashableModel

__all__ = ("DataLoggerConfig",)


class DataLoggerConfig(HashableModel):
    """Configuration for batch result persistence.

    Attributes:
        persist_dir: Directory for dump files.
        extension: Output format (.json array or .jsonl newline-delimited).
        auto_save: Dump results after every completed batch.
    """

    persist_dir: str | Path = Field(default="./logs")
    extension: Literal[".json", ".jsonl"] = Field(default=".jsonl")
    auto_save: bool = Field(default=True)
