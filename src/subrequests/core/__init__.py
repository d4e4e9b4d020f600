# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Core primitives: base models and logging configuration."""

from .log import DataLoggerConfig
from .types import HashableModel, JsonValue, Scalar

__all__ = (
    "DataLoggerConfig",
    "HashableModel",
    "JsonValue",
    "Scalar",
)
