"""Admin fulfillment router: submission, quote execution, status sync and on-hold repair."""

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.fulfillment_service.dependencies import (
    get_order_gateway,
    get_order_store,
    get_reconciliation_jobs,
)
from services.fulfillment_service.errors import FulfillmentError, NotFoundError
from services.fulfillment_service.gateway import OrderGateway
from services.fulfillment_service.reconciliation import ReconciliationJobs
from services.fulfillment_service.routers._helpers import to_http_exception
from services.fulfillment_service.schemas import (
    OrderSyncResult,
    RefreshSummary,
    RepairSummary,
    SubmissionResponse,
)
from services.fulfillment_service.store import OrderStore
from services.fulfillment_service.submission import execute_quote, submit_order

router = APIRouter(
    prefix="/fulfillment",
    tags=["admin-fulfillment"],
    dependencies=[Depends(require_admin)],
)
logger = get_logger(__name__)


@router.post("/orders/{order_id}/submit", response_model=SubmissionResponse)
async def submit_order_upstream(
    order_id: str,
    gateway: OrderGateway = Depends(get_order_gateway),
    store: OrderStore = Depends(get_order_store),
):
    """Create the upstream quote/order for a local order (mode from settings)."""
    settings = get_settings()
    try:
        order = await store.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        result = await submit_order(
            order,
            gateway=gateway,
            store=store,
            payment_method_id=settings.UPSTREAM_PAYMENT_METHOD_ID,
            default_country=settings.UPSTREAM_DEFAULT_COUNTRY,
        )
    except FulfillmentError as exc:
        raise to_http_exception(exc)

    return SubmissionResponse(
        order_id=order.id,
        mode=result.mode,
        upstream_order_id=order.upstream_order_id,
        upstream_handle=order.upstream_handle,
        upstream_status=order.upstream_status,
        amount=result.amount,
    )


@router.post("/orders/{order_id}/execute-quote", response_model=SubmissionResponse)
async def execute_order_quote(
    order_id: str,
    gateway: OrderGateway = Depends(get_order_gateway),
    store: OrderStore = Depends(get_order_store),
):
    """Convert the order's upstream quote into a firm order."""
    try:
        order = await store.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        result = await execute_quote(order, gateway=gateway, store=store)
    except FulfillmentError as exc:
        raise to_http_exception(exc)

    return SubmissionResponse(
        order_id=order.id,
        mode=result.mode,
        upstream_order_id=order.upstream_order_id,
        upstream_handle=order.upstream_handle,
        upstream_status=order.upstream_status,
        amount=result.amount,
    )


@router.post("/orders/{order_id}/sync-status", response_model=OrderSyncResult)
async def sync_order_status(
    order_id: str,
    jobs: ReconciliationJobs = Depends(get_reconciliation_jobs),
):
    """Pull the live upstream status for one order."""
    try:
        return await jobs.sync_order_by_id(order_id)
    except FulfillmentError as exc:
        raise to_http_exception(exc)


@router.post("/sync-status", response_model=RefreshSummary)
async def sync_recent_order_statuses(
    jobs: ReconciliationJobs = Depends(get_reconciliation_jobs),
):
    """Run the status-refresh job over the recent window now."""
    return await jobs.refresh_recent_statuses()


@router.post("/repair-on-hold", response_model=RepairSummary)
async def repair_on_hold_orders(
    dry_run: bool = Query(True),
    jobs: ReconciliationJobs = Depends(get_reconciliation_jobs),
):
    """Repair orders stuck on hold upstream. Dry run unless dry_run=false."""
    try:
        return await jobs.repair_on_hold_orders(dry_run=dry_run)
    except FulfillmentError as exc:
        raise to_http_exception(exc)
