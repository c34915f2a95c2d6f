"""Swap history persistence."""

from sqlmodel import col, select

from topswap.db.engine import get_session
from topswap.db.models import SwapRecord
from topswap.logging import get_logger
from topswap.models import SwapResult, TopologyClass

logger = get_logger(__name__)


async def save_swap_result(result: SwapResult) -> SwapRecord:
    """Persist a swap result and return the stored record."""
    record = SwapRecord.from_result(result)
    async with get_session() as session:
        session.add(record)
    logger.debug("swap_result_saved", record_id=record.id, outcome=result.outcome.value)
    return record


async def list_swap_results(
    application: str | None = None,
    topology_class: TopologyClass | None = None,
    limit: int = 50,
) -> list[SwapRecord]:
    """List stored swap records, newest first."""
    query = select(SwapRecord)
    if application:
        query = query.where(SwapRecord.application == application)
    if topology_class:
        query = query.where(SwapRecord.topology_class == TopologyClass(topology_class))
    query = query.order_by(col(SwapRecord.created_at).desc()).limit(limit)

    async with get_session() as session:
        result = await session.execute(query)
        return list(result.scalars().all())
