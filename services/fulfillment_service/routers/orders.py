"""Customer-facing order status, computed from the stored record."""

from fastapi import APIRouter, Depends, HTTPException
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from services.fulfillment_service.dependencies import get_order_store
from services.fulfillment_service.schemas import OrderStatusView
from services.fulfillment_service.status_mapper import describe_status, simplify
from services.fulfillment_service.store import OrderStore

router = APIRouter(prefix="/fulfillment", tags=["fulfillment"])


@router.get("/orders/{order_id}/status", response_model=OrderStatusView)
async def get_order_status(
    order_id: str,
    current_user: AuthUser = Depends(get_current_user),
    store: OrderStore = Depends(get_order_store),
):
    """No upstream call; reflects the last sync."""
    order = await store.get(order_id)
    if order is None or (
        order.customer_ref != current_user.user_id and not current_user.is_admin
    ):
        raise HTTPException(status_code=404, detail="Order not found")

    tracking_numbers = list(order.upstream_tracking_numbers or [])
    return OrderStatusView(
        order_id=order.id,
        status=simplify(order.upstream_status, tracking_numbers),
        message=describe_status(order.upstream_status),
        tracking_numbers=tracking_numbers,
        last_synced_at=order.last_synced_at,
    )
