"""Topology swap coordinator.

Replaces the active topology of one class with a freshly provisioned one:

1. snapshot the currently active topology (``previous``, possibly none)
2. provision the new topology
3. activate it, which sends ``previous`` into ``draining``
4. wait, bounded by a wall-clock timeout, for ``previous`` to turn ``inactive``
5. remove ``previous``

The application never has zero active topologies of the class, and
``previous`` is removed only after it has been observed ``inactive``.
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from topswap.adapters.base import ManagedSystemAdapter
from topswap.config import Settings, get_settings
from topswap.errors import (
    ActivationError,
    DrainTimeoutError,
    ManagedSystemError,
    RemovalError,
    StatusQueryError,
    SwapError,
)
from topswap.logging import get_logger
from topswap.metrics import (
    record_cleanup_failure,
    record_status_check,
    record_swap,
    track_in_flight,
)
from topswap.models import (
    ComponentSpec,
    SwapOutcome,
    SwapResult,
    Topology,
    TopologyClass,
    TopologyState,
    utc_now,
)

logger = get_logger(__name__)

SnapshotFn = Callable[[str, TopologyClass], Awaitable[Topology | None]]
ProvisionFn = Callable[[str, TopologyClass], Awaitable[Topology]]
ActivateFn = Callable[[Topology], Awaitable[Any]]
StatusFn = Callable[[Topology], Awaitable[TopologyState]]
RemoveFn = Callable[[Topology], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[Any]]
ClockFn = Callable[[], float]


@dataclass
class DrainWait:
    """Outcome of waiting for a topology to drain."""

    checks: int
    gone: bool = False  # the handle stopped resolving instead of reporting inactive


async def wait_for_inactive(
    topology: Topology,
    status: StatusFn,
    *,
    timeout: float,
    poll_interval: float,
    sleep: SleepFn = asyncio.sleep,
    clock: ClockFn = time.monotonic,
) -> DrainWait:
    """Poll ``status`` until the topology is inactive or no longer resolves.

    Checks are always ``poll_interval`` apart, so the last check lands at or
    after the deadline and a timeout is reported up to one interval late.
    A ``ManagedSystemError`` from ``status`` (the system could not answer)
    leaves the state unknown and the wait goes on.

    Raises:
        DrainTimeoutError: If ``timeout`` seconds elapse first.
    """
    log = logger.bind(topology_id=topology.id)
    start = clock()
    checks = 0

    while True:
        checks += 1
        try:
            state = TopologyState(await status(topology))
        except StatusQueryError as exc:
            log.info("drain_poll_not_found", checks=checks, detail=str(exc))
            return DrainWait(checks=checks, gone=True)
        except ManagedSystemError as exc:
            record_status_check(topology.topology_class.value, "error")
            log.warning("drain_poll_failed", checks=checks, error=str(exc))
        else:
            record_status_check(topology.topology_class.value, state.value)
            log.debug("drain_poll", checks=checks, state=state.value)
            if state == TopologyState.INACTIVE:
                return DrainWait(checks=checks)

        if clock() - start >= timeout:
            raise DrainTimeoutError(topology.id, timeout, checks)
        await sleep(poll_interval)


def _finish(
    result: SwapResult, outcome: SwapOutcome, started: float, clock: ClockFn
) -> SwapResult:
    elapsed = max(clock() - started, 0.0)
    result.outcome = outcome
    result.finished_at = utc_now()
    result.duration_ms = int(elapsed * 1000)
    record_swap(result.topology_class.value, outcome.value, elapsed)
    return result


async def swap(
    application: str,
    topology_class: TopologyClass | str,
    *,
    snapshot_active: SnapshotFn,
    provision: ProvisionFn,
    activate: ActivateFn,
    status: StatusFn,
    remove: RemoveFn,
    timeout: float,
    poll_interval: float,
    sleep: SleepFn = asyncio.sleep,
    clock: ClockFn = time.monotonic,
) -> SwapResult:
    """Swap the active topology of ``topology_class`` under ``application``.

    Args:
        application: Name of the owning application (must already exist).
        topology_class: Class of topology being swapped.
        snapshot_active: Returns the active topology of the class, or None.
        provision: Creates the new topology; raises ProvisionError.
        activate: Activates a topology; raises ActivationError.
        status: Returns a topology's state; raises StatusQueryError once the
            topology no longer resolves.
        remove: Destroys an inactive topology; raises RemovalError.
        timeout: Seconds to wait for the previous topology to drain.
        poll_interval: Seconds between status checks.
        sleep: Awaitable sleep used between status checks.
        clock: Monotonic clock used to enforce the timeout.

    Returns:
        The swap result. Drain timeouts and removal failures are reported on
        the result, not raised.

    Raises:
        ProvisionError: If provisioning fails (or ManagedSystemError when the
            system could not be reached). ``previous`` is untouched.
        ActivationError: If activation fails. The new topology is removed on a
            best-effort basis and ``previous`` is untouched.
        ValueError: On invalid arguments.
    """
    if not application:
        raise ValueError("application is required")
    if poll_interval <= 0:
        raise ValueError("poll_interval must be positive")
    if timeout < 0:
        raise ValueError("timeout must not be negative")

    topology_class = TopologyClass(topology_class)
    log = logger.bind(application=application, topology_class=topology_class.value)
    started = clock()
    result = SwapResult(
        application=application,
        topology_class=topology_class,
        outcome=SwapOutcome.FAILED,
    )

    track_in_flight(topology_class.value, 1)
    try:
        try:
            previous = await snapshot_active(application, topology_class)
        except SwapError as exc:
            log.error("snapshot_failed", error=str(exc))
            result.error = str(exc)
            exc.result = _finish(result, SwapOutcome.FAILED, started, clock)
            raise
        result.previous_id = previous.id if previous else None
        log.info("swap_started", previous_id=result.previous_id)

        try:
            new = await provision(application, topology_class)
        except SwapError as exc:
            log.error("provision_failed", error=str(exc))
            result.error = str(exc)
            exc.result = _finish(result, SwapOutcome.FAILED, started, clock)
            raise
        result.new_id = new.id
        log.info("topology_provisioned", new_id=new.id)

        try:
            await activate(new)
        except ActivationError as exc:
            log.error("activation_failed", new_id=new.id, error=str(exc))
            try:
                await remove(new)
            except Exception as cleanup_exc:
                exc.cleanup_error = str(cleanup_exc)
                record_cleanup_failure(topology_class.value, "activation")
                log.warning(
                    "activation_cleanup_failed",
                    new_id=new.id,
                    error=str(cleanup_exc),
                )
            else:
                log.info("unactivated_topology_removed", new_id=new.id)
            result.error = str(exc)
            result.cleanup_error = exc.cleanup_error
            exc.result = _finish(result, SwapOutcome.FAILED, started, clock)
            raise
        log.info("topology_activated", new_id=new.id)

        if previous is None:
            log.info("swap_completed", outcome=SwapOutcome.SUCCEEDED.value, first_setup=True)
            return _finish(result, SwapOutcome.SUCCEEDED, started, clock)

        log.info(
            "drain_wait_started",
            previous_id=previous.id,
            timeout=timeout,
            poll_interval=poll_interval,
        )
        try:
            wait = await wait_for_inactive(
                previous,
                status,
                timeout=timeout,
                poll_interval=poll_interval,
                sleep=sleep,
                clock=clock,
            )
        except DrainTimeoutError as exc:
            result.status_checks = exc.checks
            log.warning(
                "swap_timed_out",
                previous_id=previous.id,
                new_id=new.id,
                checks=exc.checks,
            )
            return _finish(result, SwapOutcome.TIMED_OUT, started, clock)
        except asyncio.CancelledError:
            log.warning("drain_wait_cancelled", previous_id=previous.id, new_id=new.id)
            record_swap(topology_class.value, "cancelled", max(clock() - started, 0.0))
            raise

        result.status_checks = wait.checks
        if wait.gone:
            log.info("previous_topology_gone", previous_id=previous.id)
        else:
            try:
                await remove(previous)
            except RemovalError as exc:
                result.cleanup_error = str(exc)
                record_cleanup_failure(topology_class.value, "drain")
                log.warning("previous_removal_failed", previous_id=previous.id, error=str(exc))
            else:
                result.previous_removed = True
                log.info("previous_topology_removed", previous_id=previous.id)

        log.info(
            "swap_completed",
            outcome=SwapOutcome.SUCCEEDED.value,
            previous_id=previous.id,
            new_id=new.id,
            cleanup_error=result.cleanup_error,
        )
        return _finish(result, SwapOutcome.SUCCEEDED, started, clock)
    finally:
        track_in_flight(topology_class.value, -1)


class SwapCoordinator:
    """Runs swaps against one managed system.

    Swaps for the same (application, class) pair are serialized; swaps for
    different pairs run concurrently.

    Args:
        adapter: The managed system.
        settings: Timeout and poll interval defaults (default: get_settings()).
        sleep: Awaitable sleep used between status checks.
        clock: Monotonic clock used to enforce the timeout.
    """

    def __init__(
        self,
        adapter: ManagedSystemAdapter,
        settings: Settings | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
    ) -> None:
        self._adapter = adapter
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._clock = clock
        self._locks: dict[tuple[str, TopologyClass], asyncio.Lock] = {}

    def _lock_for(self, application: str, topology_class: TopologyClass) -> asyncio.Lock:
        return self._locks.setdefault((application, topology_class), asyncio.Lock())

    def is_swapping(self, application: str, topology_class: TopologyClass | str) -> bool:
        """Whether a swap for this pair is in flight."""
        lock = self._locks.get((application, TopologyClass(topology_class)))
        return lock is not None and lock.locked()

    async def swap(
        self,
        application: str,
        topology_class: TopologyClass | str,
        components: Sequence[ComponentSpec] = (),
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> SwapResult:
        """Swap the active topology of a class, provisioning ``components``.

        See :func:`swap` for the outcome and error contract.
        """
        topology_class = TopologyClass(topology_class)
        if timeout is None:
            timeout = self._settings.drain_timeout_seconds
        if poll_interval is None:
            poll_interval = self._settings.poll_interval_seconds

        async with self._lock_for(application, topology_class):
            return await swap(
                application,
                topology_class,
                snapshot_active=self._adapter.snapshot_active,
                provision=functools.partial(self._adapter.provision, components=list(components)),
                activate=self._adapter.activate,
                status=self._adapter.status,
                remove=self._adapter.remove,
                timeout=timeout,
                poll_interval=poll_interval,
                sleep=self._sleep,
                clock=self._clock,
            )
