# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from .session import Blueprint, Session, SessionConfig, SubrequestsSettings

__all__ = (
    "Blueprint",
    "Session",
    "SessionConfig",
    "SubrequestsSettings",
)
