"""Topology and swap result models."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class TopologyClass(str, Enum):
    """Functional class of a topology under an application."""

    INGESTION = "ingestion"
    QUERY = "query"


class TopologyState(str, Enum):
    """Activation state of a topology."""

    PROVISIONING = "provisioning"
    ACTIVE = "active"
    DRAINING = "draining"
    INACTIVE = "inactive"


class SwapOutcome(str, Enum):
    """Outcome of a swap operation."""

    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed-out"
    FAILED = "failed"


class ComponentSpec(BaseModel):
    """A service component bound into a topology."""

    kind: str = Field(..., description="Component kind, e.g. crawl, query, index, admin")
    server: str = Field(..., description="Server hosting the component")
    store: str | None = Field(
        default=None,
        description="Backing store the component is attached to",
    )


class Topology(BaseModel):
    """Handle to a topology in the managed system."""

    id: str
    application: str
    topology_class: TopologyClass
    state: TopologyState = TopologyState.PROVISIONING
    created_at: datetime = Field(default_factory=utc_now)
    components: list[ComponentSpec] = Field(default_factory=list)


class SwapResult(BaseModel):
    """Result record emitted once per swap."""

    application: str
    topology_class: TopologyClass
    previous_id: str | None = None
    new_id: str | None = None
    outcome: SwapOutcome
    cleanup_error: str | None = None
    error: str | None = Field(default=None, description="Message of the error that aborted the swap")
    previous_removed: bool = False
    status_checks: int = 0
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None
    duration_ms: int | None = None

    @property
    def needs_cleanup(self) -> bool:
        """Whether an operator has to remove a topology by hand."""
        return self.cleanup_error is not None or self.outcome == SwapOutcome.TIMED_OUT
