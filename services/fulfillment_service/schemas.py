"""Pydantic schemas for the fulfillment service.

Upstream payloads are camelCase; every upstream response is parsed into one
of the typed results below and a missing required field raises
``errors.ValidationError`` instead of producing a half-filled object.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Type, TypeVar

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from services.fulfillment_service.errors import ValidationError
from services.fulfillment_service.models.enums import (
    CustomerStatus,
    OrderMode,
    RepairOutcome,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


class UpstreamModel(BaseModel):
    """Base for payloads exchanged with the upstream API."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


def parse_payload(model: Type[ModelT], data: Any, source: str) -> ModelT:
    """Validate a payload, failing loudly with a gateway ValidationError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Malformed {source}: {exc.error_count()} error(s); "
            + "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ),
            response_data=data,
        ) from exc


def first_record(data: Any, endpoint: str) -> Any:
    """Some upstream endpoints wrap a single record in a list."""
    if isinstance(data, list):
        if not data:
            raise ValidationError(f"Empty response from {endpoint}", response_data=data)
        return data[0]
    return data


# ============================================================================
# ADDRESSES
# ============================================================================


class AddressInput(BaseModel):
    """Shipping address as the storefront stores it.

    Accepts both the saved-address keys (addressee/addr1/zip) and the
    checkout-form keys (fullName/streetAddress/zipCode).
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    addressee: Optional[str] = Field(
        None, validation_alias=AliasChoices("addressee", "fullName", "full_name")
    )
    attention: Optional[str] = None
    addr1: Optional[str] = Field(
        None, validation_alias=AliasChoices("addr1", "streetAddress", "street_address")
    )
    addr2: Optional[str] = Field(
        None, validation_alias=AliasChoices("addr2", "aptSuite", "apt_suite")
    )
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = Field(
        None, validation_alias=AliasChoices("zip", "zipCode", "zip_code")
    )
    country: Optional[str] = None


class UpstreamAddress(UpstreamModel):
    """Address in the upstream schema. Built only by address.normalize()."""

    addressee: str
    attention: Optional[str] = None
    addr1: str
    addr2: Optional[str] = None
    city: str
    state: str
    zip: str
    country: str

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# REFERENCE DATA
# ============================================================================


class PaymentMethod(UpstreamModel):
    id: int
    title: str
    description: Optional[str] = None
    scope: Optional[str] = None
    fee: Optional[Decimal] = None
    fee_waived: Optional[Decimal] = None


class ShippingInstruction(UpstreamModel):
    id: int
    name: str


# ============================================================================
# ORDERS
# ============================================================================


class LineItem(BaseModel):
    """Storefront line item, as stored on the local order."""

    product_id: int  # upstream inventory id
    sku: str
    name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)
    total: Decimal = Field(..., ge=0)

    def to_payload(self) -> dict:
        return {"id": self.product_id, "quantity": self.quantity}


class UpstreamLineItem(UpstreamModel):
    id: int
    name: Optional[str] = None
    quantity: int
    rate: Optional[Decimal] = None


class CreateOrderResult(UpstreamModel):
    """Answer to a quote or firm-order submission.

    Synchronous firm orders carry an order id; quotes and asynchronous
    orders carry a handle that is polled later.
    """

    mode: OrderMode = OrderMode.ORDER
    upstream_order_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("id", "orderId", "upstream_order_id")
    )
    handle: Optional[str] = None
    status: Optional[str] = None
    amount: Decimal
    transaction_id: Optional[str] = None
    confirmation_number: Optional[str] = None
    quote_expiration: Optional[datetime] = None
    line_items: list[UpstreamLineItem] = []

    @model_validator(mode="after")
    def _require_reference(self):
        if self.upstream_order_id is None and not self.handle:
            raise ValueError("response carries neither an order id nor a handle")
        return self


class ItemFulfillment(UpstreamModel):
    ship_date: Optional[str] = None
    ship_method: Optional[str] = None
    items: list[dict[str, Any]] = []
    tracking_numbers: list[str] = []


class OrderStatusSnapshot(UpstreamModel):
    """Read-only view of an upstream order."""

    status: str
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    transaction_date: Optional[str] = None
    tracking_numbers: list[str] = []
    shipping_address: Optional[dict[str, Any]] = None
    shipping_instruction: Optional[ShippingInstruction] = None
    payment_method: Optional[PaymentMethod] = None
    fulfillments: list[ItemFulfillment] = Field(
        default_factory=list,
        validation_alias=AliasChoices("itemFulfillments", "fulfillments"),
    )

    @model_validator(mode="before")
    @classmethod
    def _null_lists(cls, data: Any) -> Any:
        # upstream sends null instead of [] before anything has shipped
        if isinstance(data, dict):
            data = dict(data)
            for key in ("trackingNumbers", "itemFulfillments"):
                if key in data and data[key] is None:
                    data[key] = []
        return data


class UpdateOrderResult(UpstreamModel):
    status: Optional[str] = None


class PollResult(UpstreamModel):
    upstream_order_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("id", "orderId", "upstream_order_id")
    )
    handle: str
    transaction_id: Optional[str] = None
    confirmation_number: Optional[str] = None
    sync_error: Optional[str] = None
    sync_attempts: int = 0
    sync_attempts_remaining: int = 0


# ============================================================================
# JOB / API RESULTS
# ============================================================================


class OrderSyncResult(BaseModel):
    order_id: str
    synced: bool
    skipped: bool = False
    upstream_order_id: Optional[int] = None
    upstream_status: Optional[str] = None
    customer_status: Optional[CustomerStatus] = None
    tracking_numbers: list[str] = []
    error: Optional[str] = None


class RefreshSummary(BaseModel):
    checked: int = 0
    synced: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[OrderSyncResult] = []


class SubmissionResponse(BaseModel):
    order_id: str
    mode: OrderMode
    upstream_order_id: Optional[int] = None
    upstream_handle: Optional[str] = None
    upstream_status: Optional[str] = None
    amount: Decimal


class OrderStatusView(BaseModel):
    """Customer-facing status, computed from the stored record."""

    order_id: str
    status: CustomerStatus
    message: str
    tracking_numbers: list[str] = []
    last_synced_at: Optional[datetime] = None


class RepairResult(BaseModel):
    order_id: str
    upstream_order_id: Optional[int] = None
    outcome: RepairOutcome
    upstream_status: Optional[str] = None
    missing_fields: list[str] = []
    message: Optional[str] = None


class RepairSummary(BaseModel):
    dry_run: bool = False
    shipping_instruction: Optional[ShippingInstruction] = None
    results: list[RepairResult] = []

    def count(self, outcome: RepairOutcome) -> int:
        return sum(1 for result in self.results if result.outcome == outcome)
