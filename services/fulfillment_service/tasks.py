"""Background reconciliation tasks for the fulfillment service."""

from __future__ import annotations

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.fulfillment_service.dependencies import get_order_gateway
from services.fulfillment_service.reconciliation import ReconciliationJobs
from services.fulfillment_service.schemas import RefreshSummary, RepairSummary
from services.fulfillment_service.store import SqlOrderStore

logger = get_logger(__name__)


async def refresh_order_statuses() -> RefreshSummary:
    """Pull live upstream status for the most recent orders."""
    from libs.db.config import AsyncSessionLocal

    async with AsyncSessionLocal() as db:
        jobs = ReconciliationJobs.from_settings(
            get_order_gateway(), SqlOrderStore(db), get_settings()
        )
        summary = await jobs.refresh_recent_statuses()

    if summary.synced or summary.failed:
        logger.info(
            "Refreshed %d order statuses (%d failed)", summary.synced, summary.failed
        )
    return summary


async def repair_on_hold_orders(dry_run: bool = False) -> RepairSummary:
    """Resubmit corrected shipping data for orders stuck on hold upstream."""
    from libs.db.config import AsyncSessionLocal

    async with AsyncSessionLocal() as db:
        jobs = ReconciliationJobs.from_settings(
            get_order_gateway(), SqlOrderStore(db), get_settings()
        )
        return await jobs.repair_on_hold_orders(dry_run=dry_run)
