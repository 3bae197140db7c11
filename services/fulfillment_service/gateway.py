"""Business-level operations against the upstream fulfillment API.

Provides async methods for:
- Listing payment methods and shipping instructions
- Creating quotes and firm orders (same body, different endpoint)
- Executing quotes and polling asynchronous orders
- Reading a live order snapshot
- Partially updating an existing order
"""

from typing import Any, Iterable, Optional, Sequence

from libs.common.logging import get_logger
from services.fulfillment_service.errors import ConfigError, ValidationError
from services.fulfillment_service.models.enums import OrderMode
from services.fulfillment_service.schemas import (
    CreateOrderResult,
    LineItem,
    OrderStatusSnapshot,
    PaymentMethod,
    PollResult,
    ShippingInstruction,
    UpdateOrderResult,
    UpstreamAddress,
    first_record,
    parse_payload,
)
from services.fulfillment_service.upstream_client import UpstreamClient

logger = get_logger(__name__)

PAYMENT_METHODS_PATH = "/payment-methods"
SHIPPING_INSTRUCTIONS_PATH = "/shipping-instructions"
QUOTE_PATH = "/sales-order-quote"
ORDER_PATH = "/sales-order"
ORDER_DETAIL_PATH = "/sales-order/{order_id}"
EXECUTE_QUOTE_PATH = "/sales-order-quote/execute"
POLL_PATH = "/sales-order/poll"

_CREATE_PATHS = {OrderMode.QUOTE: QUOTE_PATH, OrderMode.ORDER: ORDER_PATH}


class OrderGateway:
    """Upstream order operations built on UpstreamClient."""

    def __init__(
        self,
        client: UpstreamClient,
        *,
        required_shipping_instruction: str,
        default_mode: OrderMode = OrderMode.ORDER,
    ):
        self.client = client
        self.required_shipping_instruction = required_shipping_instruction
        self.default_mode = default_mode

    # =========================================================================
    # Reference data
    # =========================================================================

    async def fetch_payment_methods(self) -> list[PaymentMethod]:
        data = await self.client.request_json("GET", PAYMENT_METHODS_PATH)
        return [
            parse_payload(PaymentMethod, item, f"upstream {PAYMENT_METHODS_PATH}")
            for item in _as_list(data, PAYMENT_METHODS_PATH)
        ]

    async def fetch_shipping_instructions(self) -> list[ShippingInstruction]:
        data = await self.client.request_json("GET", SHIPPING_INSTRUCTIONS_PATH)
        return [
            parse_payload(
                ShippingInstruction, item, f"upstream {SHIPPING_INSTRUCTIONS_PATH}"
            )
            for item in _as_list(data, SHIPPING_INSTRUCTIONS_PATH)
        ]

    def select_required_instruction(
        self,
        instructions: Iterable[ShippingInstruction],
        name: Optional[str] = None,
    ) -> ShippingInstruction:
        """Pick the instruction whose name matches exactly. Never falls back."""
        name = name or self.required_shipping_instruction
        instructions = list(instructions)
        for instruction in instructions:
            if instruction.name == name:
                return instruction
        available = ", ".join(repr(i.name) for i in instructions) or "none"
        raise ConfigError(
            f"Required shipping instruction {name!r} not offered upstream "
            f"(available: {available})"
        )

    async def get_required_shipping_instruction(self) -> ShippingInstruction:
        return self.select_required_instruction(await self.fetch_shipping_instructions())

    # =========================================================================
    # Orders
    # =========================================================================

    async def create_order(
        self,
        line_items: Sequence[LineItem],
        address: UpstreamAddress,
        email: str,
        payment_method_id: int,
        shipping_instruction_id: int,
        mode: Optional[OrderMode] = None,
        *,
        customer_reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CreateOrderResult:
        """
        Submit a quote (non-committing) or a firm order.

        The request body is identical in both modes; only the endpoint
        differs. Never retried: a replayed POST could double-order.

        Raises:
            ValidationError: empty order, missing email, or malformed response
        """
        mode = mode or self.default_mode
        if not line_items:
            raise ValidationError("Cannot submit an order without line items")
        if not email:
            raise ValidationError("Cannot submit an order without a customer email")

        payload: dict[str, Any] = {
            "items": [item.to_payload() for item in line_items],
            "shippingAddress": address.to_payload(),
            "email": email,
            "paymentMethodId": payment_method_id,
            "shippingInstructionId": shipping_instruction_id,
        }
        if customer_reference:
            payload["customerReferenceNumber"] = customer_reference
        if notes:
            payload["notes"] = notes

        path = _CREATE_PATHS[mode]
        logger.info(
            "Creating upstream %s for %s (%d line items)",
            mode.value,
            customer_reference or email,
            len(line_items),
        )
        data = await self.client.request_json("POST", path, json=payload)
        result = self._parse_create(data, path, mode)
        logger.info(
            "Upstream %s created: id=%s handle=%s status=%s amount=%s",
            mode.value,
            result.upstream_order_id,
            result.handle,
            result.status,
            result.amount,
        )
        return result

    async def execute_quote(self, handle: str) -> CreateOrderResult:
        """Convert a previously created quote into a firm order."""
        logger.info("Executing upstream quote %s", handle)
        data = await self.client.request_json(
            "POST", EXECUTE_QUOTE_PATH, json={"handle": handle}
        )
        return self._parse_create(data, EXECUTE_QUOTE_PATH, OrderMode.ORDER)

    async def poll_order(self, handle: str) -> PollResult:
        """Check whether an asynchronous order has been assigned an id yet."""
        data = await self.client.request_json("POST", POLL_PATH, json={"handle": handle})
        return parse_payload(
            PollResult, first_record(data, POLL_PATH), f"upstream {POLL_PATH}"
        )

    async def fetch_status(self, upstream_order_id: int) -> OrderStatusSnapshot:
        """Live snapshot of an upstream order. Touches no local state."""
        path = ORDER_DETAIL_PATH.format(order_id=upstream_order_id)
        data = await self.client.request_json("GET", path)
        return parse_payload(
            OrderStatusSnapshot, first_record(data, path), f"upstream {path}"
        )

    async def update_order(
        self,
        upstream_order_id: int,
        *,
        shipping_address: Optional[UpstreamAddress] = None,
        shipping_instruction_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> UpdateOrderResult:
        """Partial update: only the supplied fields are sent."""
        payload: dict[str, Any] = {}
        if shipping_address is not None:
            payload["shippingAddress"] = shipping_address.to_payload()
        if shipping_instruction_id is not None:
            payload["shippingInstructionId"] = shipping_instruction_id
        if notes:
            payload["orderNotes"] = notes
        if not payload:
            raise ValidationError(
                f"Nothing to update on upstream order {upstream_order_id}"
            )

        path = ORDER_DETAIL_PATH.format(order_id=upstream_order_id)
        logger.info(
            "Updating upstream order %s: %s", upstream_order_id, ", ".join(payload)
        )
        data = await self.client.request_json("PATCH", path, json=payload)
        if data is None:
            return UpdateOrderResult()
        return parse_payload(
            UpdateOrderResult, first_record(data, path), f"upstream {path}"
        )

    @staticmethod
    def _parse_create(data: Any, path: str, mode: OrderMode) -> CreateOrderResult:
        record = first_record(data, path)
        if isinstance(record, dict):
            record = {**record, "mode": mode.value}
        return parse_payload(CreateOrderResult, record, f"upstream {path}")


def _as_list(data: Any, path: str) -> list:
    if not isinstance(data, list):
        raise ValidationError(
            f"Malformed upstream {path}: expected a list", response_data=data
        )
    return data
