"""Fulfillment Service models package."""

from services.fulfillment_service.models.core import FulfillmentOrder
from services.fulfillment_service.models.enums import (
    CustomerStatus,
    OrderMode,
    RepairOutcome,
)

__all__ = [
    "CustomerStatus",
    "FulfillmentOrder",
    "OrderMode",
    "RepairOutcome",
]
