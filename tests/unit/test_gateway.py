"""Unit tests for OrderGateway against a fake upstream API."""

from decimal import Decimal

import pytest
from services.fulfillment_service import address
from services.fulfillment_service.errors import ConfigError, ValidationError
from services.fulfillment_service.models import OrderMode
from services.fulfillment_service.schemas import LineItem, ShippingInstruction
from tests.factories import SHIPPING_INSTRUCTIONS, full_address, line_item


def _items():
    return [LineItem.model_validate(line_item())]


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_required_instruction_is_matched_exactly(upstream):
    upstream.add("GET", "/shipping-instructions", (200, SHIPPING_INSTRUCTIONS))
    gateway = upstream.gateway()

    instruction = await gateway.get_required_shipping_instruction()

    assert instruction == ShippingInstruction(id=9, name="Confidential Drop Ship to Customer")


@pytest.mark.unit
def test_missing_instruction_never_falls_back(upstream):
    gateway = upstream.gateway()
    offered = [
        ShippingInstruction(id=7, name="Standard Ground"),
        ShippingInstruction(id=8, name="confidential drop ship to customer"),
    ]

    with pytest.raises(ConfigError) as exc_info:
        gateway.select_required_instruction(offered)

    assert "Standard Ground" in exc_info.value.message
    assert "Confidential Drop Ship to Customer" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payment_methods_are_parsed(upstream):
    upstream.add(
        "GET",
        "/payment-methods",
        (200, [{"id": 3, "title": "Wire", "fee": "0", "feeWaived": "0"}]),
    )
    gateway = upstream.gateway()

    (method,) = await gateway.fetch_payment_methods()

    assert method.id == 3
    assert method.title == "Wire"
    assert method.fee_waived == Decimal("0")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_non_list_reference_data_is_rejected(upstream):
    upstream.add("GET", "/payment-methods", (200, {"id": 3}))
    gateway = upstream.gateway()

    with pytest.raises(ValidationError):
        await gateway.fetch_payment_methods()


# ---------------------------------------------------------------------------
# Order creation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "mode, path",
    [(OrderMode.QUOTE, "/sales-order-quote"), (OrderMode.ORDER, "/sales-order")],
)
async def test_create_order_endpoint_depends_on_mode(upstream, mode, path):
    upstream.add(
        "POST",
        path,
        (200, {"id": 501, "handle": "h-501", "status": "Pending", "amount": "4900.00"}),
    )
    gateway = upstream.gateway()

    result = await gateway.create_order(
        _items(),
        address.normalize(full_address()),
        "jane@example.com",
        3,
        9,
        mode,
        customer_reference="ord-1",
    )

    assert result.mode == mode
    assert result.upstream_order_id == 501
    assert result.amount == Decimal("4900.00")
    (call,) = upstream.calls("POST", path)
    assert upstream.body(call) == {
        "items": [{"id": 4242, "quantity": 2}],
        "shippingAddress": {
            "addressee": "Jane Doe",
            "addr1": "12 Peachtree St",
            "addr2": "Suite 4",
            "city": "Atlanta",
            "state": "GA",
            "zip": "30301",
            "country": "US",
        },
        "email": "jane@example.com",
        "paymentMethodId": 3,
        "shippingInstructionId": 9,
        "customerReferenceNumber": "ord-1",
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_without_items_makes_no_call(upstream):
    gateway = upstream.gateway()

    with pytest.raises(ValidationError):
        await gateway.create_order([], address.normalize(full_address()), "a@b.com", 3, 9)

    assert upstream.requests == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_response_without_reference_is_malformed(upstream):
    upstream.add("POST", "/sales-order", (200, {"status": "Pending", "amount": "1.00"}))
    gateway = upstream.gateway()

    with pytest.raises(ValidationError) as exc_info:
        await gateway.create_order(
            _items(), address.normalize(full_address()), "a@b.com", 3, 9
        )

    assert "Malformed upstream /sales-order" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.unit
async def test_execute_quote_and_poll(upstream):
    upstream.add(
        "POST",
        "/sales-order-quote/execute",
        (200, {"id": 777, "amount": "10.00", "transactionId": "SO-777"}),
    )
    upstream.add(
        "POST",
        "/sales-order/poll",
        (200, [{"handle": "h-1", "syncAttempts": 1, "syncAttemptsRemaining": 4}]),
    )
    gateway = upstream.gateway()

    executed = await gateway.execute_quote("q-1")
    poll = await gateway.poll_order("h-1")

    assert executed.mode == OrderMode.ORDER
    assert executed.transaction_id == "SO-777"
    assert upstream.body(upstream.calls("POST", "/sales-order-quote/execute")[0]) == {
        "handle": "q-1"
    }
    assert poll.upstream_order_id is None
    assert poll.sync_attempts_remaining == 4


# ---------------------------------------------------------------------------
# Status and updates
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_fetch_status_parses_snapshot(upstream):
    upstream.add(
        "GET",
        "/sales-order/1001",
        (
            200,
            [
                {
                    "status": "Partially Fulfilled",
                    "transactionId": "SO-1001",
                    "amount": "4900.00",
                    "trackingNumbers": None,
                    "itemFulfillments": [
                        {
                            "shipDate": "2026-03-02",
                            "shipMethod": "UPS",
                            "trackingNumbers": ["1Z999"],
                        }
                    ],
                    "shippingInstruction": {"id": 9, "name": "Confidential Drop Ship to Customer"},
                }
            ],
        ),
    )
    gateway = upstream.gateway()

    snapshot = await gateway.fetch_status(1001)

    assert snapshot.status == "Partially Fulfilled"
    assert snapshot.tracking_numbers == []
    assert snapshot.fulfillments[0].tracking_numbers == ["1Z999"]
    assert snapshot.shipping_instruction.id == 9


@pytest.mark.asyncio
@pytest.mark.unit
async def test_fetch_status_without_status_is_malformed(upstream):
    upstream.add("GET", "/sales-order/1001", (200, {"transactionId": "SO-1001"}))
    gateway = upstream.gateway()

    with pytest.raises(ValidationError):
        await gateway.fetch_status(1001)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_order_sends_only_supplied_fields(upstream):
    upstream.add("PATCH", "/sales-order/1001", (200, {"status": "Pending Fulfillment"}))
    gateway = upstream.gateway()

    result = await gateway.update_order(1001, shipping_instruction_id=9)

    assert result.status == "Pending Fulfillment"
    (call,) = upstream.calls("PATCH", "/sales-order/1001")
    assert upstream.body(call) == {"shippingInstructionId": 9}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_order_with_nothing_to_send(upstream):
    gateway = upstream.gateway()

    with pytest.raises(ValidationError):
        await gateway.update_order(1001)

    assert upstream.requests == []
