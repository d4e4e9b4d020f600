# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Resources module: executors that dispatch resolved operations.

Core exports:
- Executor: Protocol consumed by the scheduler
- HttpExecutor: httpx-based remote dispatch
- InProcessExecutor: HandlerRegistry-based local dispatch
"""

from .executor import CONTENT_ID, Executor, HttpExecutor, InProcessExecutor, failure

__all__ = (
    "CONTENT_ID",
    "Executor",
    "HttpExecutor",
    "InProcessExecutor",
    "failure",
)
