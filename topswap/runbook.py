"""Runbook: swap every configured topology class of one application.

The configuration replaces hand-edited script variables (server names,
store names) with an explicit structure:

    {
        "application": "search-app",
        "swaps": [
            {
                "topology_class": "ingestion",
                "components": [{"kind": "crawl", "server": "app01", "store": "crawl-db"}]
            },
            {
                "topology_class": "query",
                "components": [{"kind": "query", "server": "app01", "store": "property-db"}],
                "timeout_seconds": 300
            }
        ]
    }
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from topswap.adapters import HttpManagedSystem, ManagedSystemAdapter
from topswap.config import get_settings
from topswap.coordinator import SwapCoordinator
from topswap.db import close_db, init_db, save_swap_result
from topswap.errors import SwapError
from topswap.logging import bind_context, configure_from_settings, get_logger, unbind_context
from topswap.models import ComponentSpec, SwapOutcome, SwapResult, TopologyClass, utc_now

logger = get_logger(__name__)

RecordFn = Callable[[SwapResult], Awaitable[Any]]


class ClassSwapConfig(BaseModel):
    """Swap settings for one topology class."""

    topology_class: TopologyClass
    components: list[ComponentSpec] = Field(default_factory=list)
    timeout_seconds: float | None = Field(default=None, ge=0)
    poll_interval_seconds: float | None = Field(default=None, gt=0)


class RunbookConfig(BaseModel):
    """Everything needed to rebuild the topologies of one application."""

    application: str = Field(..., min_length=1)
    swaps: list[ClassSwapConfig] = Field(..., min_length=1)

    @field_validator("swaps")
    @classmethod
    def _unique_classes(cls, swaps: list[ClassSwapConfig]) -> list[ClassSwapConfig]:
        classes = [s.topology_class for s in swaps]
        if len(classes) != len(set(classes)):
            raise ValueError("each topology class may appear only once")
        return swaps

    @classmethod
    def from_file(cls, path: str | Path) -> RunbookConfig:
        """Load a runbook from a JSON file."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


async def _run_one(
    config: RunbookConfig,
    entry: ClassSwapConfig,
    coordinator: SwapCoordinator,
) -> SwapResult:
    try:
        return await coordinator.swap(
            config.application,
            entry.topology_class,
            components=entry.components,
            timeout=entry.timeout_seconds,
            poll_interval=entry.poll_interval_seconds,
        )
    except Exception as exc:
        if isinstance(exc, SwapError) and exc.result is not None:
            return exc.result
        # The topologies of this class are left in an unknown state.
        logger.error(
            "class_swap_crashed",
            topology_class=entry.topology_class.value,
            error=f"{type(exc).__name__}: {exc}",
            exc_info=True,
        )
        return SwapResult(
            application=config.application,
            topology_class=entry.topology_class,
            outcome=SwapOutcome.FAILED,
            error=f"{type(exc).__name__}: {exc}",
            finished_at=utc_now(),
        )


async def run_runbook(
    config: RunbookConfig,
    coordinator: SwapCoordinator,
    record: RecordFn | None = None,
) -> list[SwapResult]:
    """Run one swap per configured class, classes concurrently.

    Every class yields a result. A swap aborted by an error, including one
    outside the swap error taxonomy, contributes a ``failed`` result rather
    than raising, so one class failing never leaves another class's swap
    running unattended.

    Args:
        config: The runbook configuration.
        coordinator: Coordinator bound to the managed system.
        record: Optional coroutine called with each result (e.g. history).

    Returns:
        Results in the order of ``config.swaps``.
    """
    bind_context(application=config.application)
    try:
        logger.info(
            "runbook_started",
            classes=[s.topology_class.value for s in config.swaps],
        )
        results = await asyncio.gather(
            *(_run_one(config, entry, coordinator) for entry in config.swaps)
        )

        if record is not None:
            for result in results:
                await record(result)

        logger.info(
            "runbook_completed",
            outcomes={r.topology_class.value: r.outcome.value for r in results},
            needs_cleanup=[r.topology_class.value for r in results if r.needs_cleanup],
        )
        return list(results)
    finally:
        unbind_context("application")


async def run_runbook_file(
    path: str | Path,
    adapter: ManagedSystemAdapter | None = None,
    *,
    record_history: bool = True,
) -> list[SwapResult]:
    """Load a runbook file and run it with settings from the environment.

    Configures logging from ``TOPSWAP_LOG_LEVEL``/``TOPSWAP_DEBUG``, stores
    every result in the swap history database, and talks to the management
    API at ``TOPSWAP_API_URL`` unless an ``adapter`` is given.
    """
    settings = get_settings()
    configure_from_settings(settings)
    config = RunbookConfig.from_file(path)

    client: HttpManagedSystem | None = None
    if adapter is None:
        client = adapter = HttpManagedSystem()
    try:
        if record_history:
            logger.info("database_init", database_url=settings.database_url)
            await init_db()
        return await run_runbook(
            config,
            SwapCoordinator(adapter, settings),
            record=save_swap_result if record_history else None,
        )
    finally:
        if record_history:
            await close_db()
        if client is not None:
            await client.close()
