"""Upstream order status -> customer-facing status.

Unknown or new upstream statuses fall back to PROCESSING; customers should
never see an alarming state we cannot vouch for.
"""

from typing import Iterable, Optional

from services.fulfillment_service.models.enums import CustomerStatus

_SHIPPED = frozenset({"fulfillment complete", "partially fulfilled", "shipped", "delivered"})
_CANCELLED = frozenset({"cancelled", "canceled", "void", "voided"})
_FAILED = frozenset({"failed", "error", "sync_error", "payment failed"})

_MESSAGES = {
    "awaiting payment": "Payment pending",
    "pending billing": "Payment pending",
    "awaiting shipping instructions": "Awaiting shipping details",
    "pending fulfillment": "Order being prepared",
    "partially fulfilled": "Partially shipped",
    "fulfillment complete": "Order shipped",
    "cancelled": "Order cancelled",
    "on hold - contact desk": "On hold - contact support",
}


def _key(raw_status: Optional[str]) -> str:
    return " ".join((raw_status or "").split()).lower()


def simplify(
    raw_status: Optional[str], tracking_numbers: Optional[Iterable[str]] = None
) -> CustomerStatus:
    """Reduce an upstream status to processing/shipped/cancelled/failed. Never raises."""
    if any(number for number in (tracking_numbers or ())):
        return CustomerStatus.SHIPPED

    key = _key(raw_status)
    if key in _SHIPPED:
        return CustomerStatus.SHIPPED
    if key in _CANCELLED:
        return CustomerStatus.CANCELLED
    if key in _FAILED:
        return CustomerStatus.FAILED
    return CustomerStatus.PROCESSING


def describe_status(raw_status: Optional[str]) -> str:
    """Short human-readable message for an upstream status."""
    if not raw_status:
        return "Order received"
    return _MESSAGES.get(_key(raw_status), raw_status)
