"""Error taxonomy for topology swaps.

Provisioning and activation errors abort a swap and reach the caller.
Status-query errors during the drain wait mean the old topology is gone;
managed-system errors there leave its state unknown and the wait goes on.
Removal errors are reported on the result as a cleanup failure.
A drain timeout is reported as the ``timed-out`` outcome.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from topswap.models import SwapResult


class SwapError(Exception):
    """Base exception for swap errors.

    ``result`` is filled in by the coordinator when the error aborts a swap,
    so callers that catch it still get the ``failed`` result record.
    """

    def __init__(self, message: str = "", *, result: SwapResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class ManagedSystemError(SwapError):
    """Raised when the managed system cannot be reached or answers unexpectedly."""

    pass


class ProvisionError(SwapError):
    """Raised when the managed system rejects creating a topology."""

    pass


class ActivationError(SwapError):
    """Raised when the managed system rejects activating a topology.

    ``cleanup_error`` holds the message of a failed best-effort removal of the
    never-activated topology, which then needs manual cleanup.
    """

    def __init__(
        self,
        message: str = "",
        *,
        result: SwapResult | None = None,
        cleanup_error: str | None = None,
    ) -> None:
        super().__init__(message, result=result)
        self.cleanup_error = cleanup_error


class StatusQueryError(SwapError):
    """Raised when a topology handle no longer resolves."""

    pass


class RemovalError(SwapError):
    """Raised when a topology cannot be destroyed (e.g. it is still serving)."""

    pass


class DrainTimeoutError(SwapError):
    """Raised when the previous topology does not drain within the timeout."""

    def __init__(self, topology_id: str, timeout: float, checks: int) -> None:
        super().__init__(
            f"Topology '{topology_id}' did not become inactive within {timeout}s "
            f"({checks} status checks)"
        )
        self.topology_id = topology_id
        self.timeout = timeout
        self.checks = checks
