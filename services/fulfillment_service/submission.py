"""Checkout path: push a paid local order to the upstream API.

Failures are written onto the order and re-raised to the caller. Nothing
here retries: a silent retry of a payment-adjacent POST risks a duplicate
upstream order.
"""

from typing import Optional

from libs.common.logging import get_logger
from services.fulfillment_service import address as address_normalizer
from services.fulfillment_service.errors import (
    ConfigError,
    DuplicateSubmissionError,
    FulfillmentError,
    ValidationError,
)
from services.fulfillment_service.gateway import OrderGateway
from services.fulfillment_service.models import FulfillmentOrder, OrderMode
from services.fulfillment_service.schemas import (
    CreateOrderResult,
    LineItem,
    parse_payload,
)
from services.fulfillment_service.status_mapper import simplify
from services.fulfillment_service.store import OrderStore

logger = get_logger(__name__)


async def submit_order(
    order: FulfillmentOrder,
    *,
    gateway: OrderGateway,
    store: OrderStore,
    payment_method_id: Optional[int],
    mode: Optional[OrderMode] = None,
    default_country: str = address_normalizer.DEFAULT_COUNTRY,
) -> CreateOrderResult:
    """
    Create the upstream quote/order for ``order`` and persist the identifiers.

    Raises:
        DuplicateSubmissionError: order already has an upstream reference
        ConfigError: no payment method configured, or the required shipping
            instruction is missing upstream
        ValidationError: incomplete address or line items (no upstream call)
        FulfillmentError: any upstream failure
    """
    if order.upstream_order_id is not None or order.upstream_handle:
        raise DuplicateSubmissionError(
            f"Order {order.id} was already submitted upstream "
            f"(id={order.upstream_order_id}, handle={order.upstream_handle})"
        )
    if payment_method_id is None:
        raise ConfigError("UPSTREAM_PAYMENT_METHOD_ID is not configured")

    try:
        line_items = [
            parse_payload(LineItem, item, f"line item on order {order.id}")
            for item in (order.line_items or [])
        ]
        upstream_address = address_normalizer.normalize(
            order.shipping_address, default_country=default_country
        )
        instruction = await gateway.get_required_shipping_instruction()
        result = await gateway.create_order(
            line_items,
            upstream_address,
            order.customer_email,
            payment_method_id,
            instruction.id,
            mode,
            customer_reference=order.id,
        )
    except FulfillmentError as exc:
        logger.error("Upstream submission failed for order %s: %s", order.id, exc.message)
        order.record_error(exc.message)
        await store.save(order)
        raise

    order.upstream_mode = result.mode
    if result.upstream_order_id is not None:
        order.bind_upstream_order(result.upstream_order_id, result.transaction_id)
    if result.handle:
        order.upstream_handle = result.handle
    if result.status:
        order.upstream_status = result.status
    order.fulfillment_status = simplify(result.status)
    order.clear_error()
    await store.save(order)

    logger.info(
        "Order %s submitted upstream as %s (id=%s handle=%s)",
        order.id,
        result.mode.value,
        result.upstream_order_id,
        result.handle,
    )
    return result


async def execute_quote(
    order: FulfillmentOrder,
    *,
    gateway: OrderGateway,
    store: OrderStore,
) -> CreateOrderResult:
    """
    Turn a previously submitted quote into a firm upstream order.

    Raises:
        ValidationError: order was not submitted as a quote
        DuplicateSubmissionError: order already has an upstream order id
        FulfillmentError: any upstream failure (recorded on the order)
    """
    if order.upstream_order_id is not None:
        raise DuplicateSubmissionError(
            f"Order {order.id} is already a firm upstream order ({order.upstream_order_id})"
        )
    if order.upstream_mode != OrderMode.QUOTE or not order.upstream_handle:
        raise ValidationError(f"Order {order.id} has no upstream quote to execute")

    quote_handle = order.upstream_handle
    try:
        result = await gateway.execute_quote(quote_handle)
    except FulfillmentError as exc:
        logger.error("Quote execution failed for order %s: %s", order.id, exc.message)
        order.record_error(exc.message)
        await store.save(order)
        raise

    order.upstream_mode = OrderMode.ORDER
    if result.upstream_order_id is not None:
        order.bind_upstream_order(result.upstream_order_id, result.transaction_id)
    if result.handle:
        order.upstream_handle = result.handle
    if result.status:
        order.upstream_status = result.status
    order.fulfillment_status = simplify(result.status)
    order.clear_error()
    await store.save(order)

    logger.info(
        "Order %s quote %s executed (id=%s handle=%s)",
        order.id,
        quote_handle,
        result.upstream_order_id,
        result.handle,
    )
    return result
