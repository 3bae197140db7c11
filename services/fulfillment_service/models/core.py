"""Fulfillment service models.

FulfillmentOrder is the local record of a storefront order as it moves
through the upstream fulfillment API. The upstream_* columns mirror what
the upstream API last told us, verbatim.
"""

from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.fulfillment_service.errors import UpstreamIdConflictError
from services.fulfillment_service.models.enums import (
    CustomerStatus,
    OrderMode,
    enum_values,
)
from sqlalchemy import BigInteger, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, validates


class FulfillmentOrder(Base):
    """Storefront order plus its upstream correlation and sync state."""

    __tablename__ = "fulfillment_orders"
    __table_args__ = (
        Index("ix_fulfillment_orders_upstream_status", "upstream_status"),
        Index("ix_fulfillment_orders_created_at", "created_at"),
    )

    # Local order id (the storefront's document key)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    customer_ref: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # [{product_id, sku, name, quantity, unit_price, total}]
    line_items: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    shipping_address: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    fulfillment_status: Mapped[Optional[CustomerStatus]] = mapped_column(
        SAEnum(
            CustomerStatus,
            values_callable=enum_values,
            name="fulfillment_customer_status_enum",
        ),
        nullable=True,
    )

    # Upstream correlation
    upstream_mode: Mapped[Optional[OrderMode]] = mapped_column(
        SAEnum(
            OrderMode,
            values_callable=enum_values,
            name="fulfillment_order_mode_enum",
        ),
        nullable=True,
    )
    upstream_handle: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    upstream_order_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, unique=True, nullable=True
    )
    upstream_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )
    upstream_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    upstream_tracking_numbers: Mapped[list] = mapped_column(
        JSONB, default=list, nullable=False
    )
    upstream_fulfillments: Mapped[list] = mapped_column(
        JSONB, default=list, nullable=False
    )
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Last upstream failure, kept for operators
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # On-hold repair bookkeeping
    repair_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address_fixed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    @validates("upstream_order_id")
    def _validate_upstream_order_id(self, key, value):
        # read __dict__ directly so a detached instance never lazy-loads
        current = self.__dict__.get(key)
        if current is not None and value != current:
            raise UpstreamIdConflictError(
                f"Order {self.id} is already bound to upstream order {current}; "
                f"refusing to rebind to {value}"
            )
        return value

    def bind_upstream_order(
        self, upstream_order_id: int, transaction_id: Optional[str] = None
    ) -> None:
        """Attach the upstream id. Rebinding to the same id is a no-op."""
        self.upstream_order_id = upstream_order_id
        if transaction_id:
            self.upstream_transaction_id = transaction_id

    def record_error(self, message: str, at: Optional[datetime] = None) -> None:
        self.error = message
        self.error_at = at or utc_now()
        self.updated_at = self.error_at

    def clear_error(self) -> None:
        self.error = None
        self.error_at = None

    def __repr__(self):
        return f"<FulfillmentOrder {self.id} upstream={self.upstream_order_id}>"
