# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Session: entry point for executing blueprints.

A Session binds an Executor to a SessionConfig and runs the full pipeline:
parse -> plan -> resolve/dispatch level by level -> combine.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from subrequests.blueprint import (
    CombinedResponse,
    combine_results,
    parse_blueprint,
    rejection,
)
from subrequests.core.log import DataLoggerConfig
from subrequests.core.types import HashableModel
from subrequests.errors import ConfigurationError, SubrequestsError
from subrequests.operations.builder import build_plan
from subrequests.operations.flow import DependencyAwareExecutor
from subrequests.operations.node import Operation
from subrequests.operations.result import Result
from subrequests.operations.tokens import DEFAULT_MAX_DEPTH

if TYPE_CHECKING:
    from subrequests.resources.executor import Executor

__all__ = (
    "Blueprint",
    "Session",
    "SessionConfig",
    "SubrequestsSettings",
)

logger = logging.getLogger(__name__)

Blueprint = str | bytes | Sequence[Any]


class SessionConfig(HashableModel):
    max_concurrent: int | None = Field(
        default=None,
        description="Bound on in-flight executor calls. None = unbounded.",
    )
    level_timeout: float | None = Field(
        default=None,
        description="Seconds allowed per level; late operations become 504.",
    )
    max_resolution_depth: int = DEFAULT_MAX_DEPTH
    response_format: Literal["multipart", "json"] = "multipart"

    # Logging configuration
    log_config: DataLoggerConfig | None = Field(
        default=None,
        description="Where to dump results. None disables logging.",
    )

    @field_validator("max_concurrent", "max_resolution_depth")
    @classmethod
    def _positive(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("level_timeout")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("must be > 0")
        return value

    @property
    def logging_enabled(self) -> bool:
        """True if result dumps are configured."""
        return self.log_config is not None


class SubrequestsSettings(BaseSettings):
    """Environment configuration loaded from SUBREQUESTS_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="SUBREQUESTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        str_strip_whitespace=True,
    )

    base_url: str = ""
    request_timeout: float = 30.0
    max_concurrent: int | None = None
    level_timeout: float | None = None
    max_resolution_depth: int = DEFAULT_MAX_DEPTH
    response_format: Literal["multipart", "json"] = "multipart"
    log_dir: Path | None = None
    log_extension: Literal[".json", ".jsonl"] = ".jsonl"

    def to_session_config(self) -> SessionConfig:
        log_config = None
        if self.log_dir is not None:
            log_config = DataLoggerConfig(
                persist_dir=self.log_dir, extension=self.log_extension
            )
        try:
            return SessionConfig(
                max_concurrent=self.max_concurrent,
                level_timeout=self.level_timeout,
                max_resolution_depth=self.max_resolution_depth,
                response_format=self.response_format,
                log_config=log_config,
            )
        except ValueError as e:
            raise ConfigurationError(str(e), cause=e) from e


def _record(result: Result) -> dict[str, Any]:
    return {
        "id": result.id,
        "status": result.status,
        "headers": result.headers,
        "body": result.json(default=result.content().decode(errors="replace")),
    }


class Session:
    """Execute blueprints through an Executor.

    Example:
        registry = HandlerRegistry()

        @registry.route("GET", "/user/{name}")
        async def user(body, ctx):
            return {"name": ctx.path_params["name"]}

        session = Session(InProcessExecutor(registry))
        results = await session.conduct('[{"requestId": "a", "uri": "/user/x"}]')
    """

    def __init__(
        self,
        executor: Executor,
        config: SessionConfig | None = None,
    ) -> None:
        self.executor = executor
        self.config = config or SessionConfig()
        self._dump_count = 0

    @classmethod
    def from_settings(
        cls, settings: SubrequestsSettings | None = None
    ) -> Session:
        """Session over an HttpExecutor configured from the environment."""
        from subrequests.resources.executor import HttpExecutor

        settings = settings or SubrequestsSettings()
        executor = HttpExecutor(settings.base_url, timeout=settings.request_timeout)
        return cls(executor, settings.to_session_config())

    def _scheduler(
        self, blueprint: Blueprint | Sequence[Operation], verbose: bool = False
    ) -> DependencyAwareExecutor:
        if not isinstance(blueprint, (str, bytes)) and all(
            isinstance(op, Operation) for op in blueprint
        ):
            operations = list(blueprint)
        else:
            operations = parse_blueprint(blueprint)
        return DependencyAwareExecutor(
            build_plan(operations),
            self.executor,
            max_concurrent=self.config.max_concurrent,
            level_timeout=self.config.level_timeout,
            max_depth=self.config.max_resolution_depth,
            verbose=verbose,
        )

    async def conduct(
        self,
        blueprint: Blueprint | Sequence[Operation],
        verbose: bool = False,
    ) -> list[Result]:
        """Execute a blueprint.

        Args:
            blueprint: JSON text/bytes, decoded list, or Operations.
            verbose: Print real-time status updates.

        Returns:
            Results in level order.

        Raises:
            ValidationError: Malformed blueprint.
            UnresolvableDependencyError: Cycle or unknown waitFor id.
            ResolutionError: A token cannot be resolved.
        """
        scheduler = self._scheduler(blueprint, verbose=verbose)

        if verbose:
            from subrequests.utils.display import Timer, show_results, status

            status(
                f"conduct: {len(scheduler.plan.operations)} operations "
                f"in {len(scheduler.plan)} levels",
                style="info",
            )
            with Timer("batch completed"):
                results = await scheduler.run()
            failed = [r for r in results if not r.ok]
            if failed:
                show_results(failed, title="Failed subrequests")
            status(
                f"{len(results)} results, {len(failed)} failed",
                style="warning" if failed else "success",
            )
        else:
            results = await scheduler.run()

        if self.config.logging_enabled and self.config.log_config.auto_save:
            self.dump_results(results)
        return results

    async def stream(
        self, blueprint: Blueprint | Sequence[Operation]
    ) -> AsyncGenerator[tuple[Result, ...], None]:
        """Yield each level's results as soon as the level completes."""
        scheduler = self._scheduler(blueprint)
        async for results in scheduler.levels():
            yield results

    async def handle(self, blueprint: Blueprint) -> CombinedResponse:
        """Execute a blueprint and build its aggregate response.

        Batch-fatal errors become a single rejection instead of raising.
        """
        try:
            results = await self.conduct(blueprint)
        except SubrequestsError as e:
            logger.warning("Blueprint rejected: %s", e)
            return rejection(e)
        return combine_results(results, format=self.config.response_format)

    def dump_results(self, results: Sequence[Result]) -> Path | None:
        """Write results under the configured persist_dir.

        Returns:
            Path to the written file, or None if logging is disabled.
        """
        log_config = self.config.log_config
        if log_config is None:
            return None

        self._dump_count += 1
        directory = Path(log_config.persist_dir)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        filepath = directory / (
            f"results_{stamp}_{self._dump_count}{log_config.extension}"
        )

        records = [_record(r) for r in results]
        if log_config.extension == ".jsonl":
            text = "".join(json.dumps(r, default=str) + "\n" for r in records)
        else:
            text = json.dumps(records, default=str, indent=2)
        filepath.write_text(text, encoding="utf-8")
        logger.debug("Dumped %d results to %s", len(records), filepath)
        return filepath

    def __repr__(self) -> str:
        return f"Session(executor={self.executor!r}, config={self.config!r})"
