"""Database models for swap history."""

from datetime import datetime
from uuid import uuid4

from sqlmodel import Field, SQLModel

from topswap.models import SwapOutcome, SwapResult, TopologyClass, utc_now


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


class SwapRecord(SQLModel, table=True):
    """Persisted result of one swap."""

    __tablename__ = "swap_records"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    application: str = Field(index=True)
    topology_class: TopologyClass = Field(index=True)
    previous_id: str | None = Field(default=None)
    new_id: str | None = Field(default=None)
    outcome: SwapOutcome = Field(index=True)
    cleanup_error: str | None = Field(default=None)
    error: str | None = Field(default=None)
    previous_removed: bool = Field(default=False)
    status_checks: int = Field(default=0)
    duration_ms: int | None = Field(default=None)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now, index=True)

    @classmethod
    def from_result(cls, result: SwapResult) -> "SwapRecord":
        """Build a record from a swap result."""
        return cls(**result.model_dump())

    def to_result(self) -> SwapResult:
        """Convert back to a swap result."""
        return SwapResult.model_validate(self.model_dump(exclude={"id", "created_at"}))
