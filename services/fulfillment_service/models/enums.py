"""Enum definitions for fulfillment service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class CustomerStatus(str, enum.Enum):
    """The only states a customer ever sees."""

    PROCESSING = "processing"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"
    FAILED = "failed"


class OrderMode(str, enum.Enum):
    QUOTE = "quote"
    ORDER = "order"


class RepairOutcome(str, enum.Enum):
    REPAIRED = "repaired"
    SKIPPED_INCOMPLETE_ADDRESS = "skipped_incomplete_address"
    REPAIR_FAILED = "repair_failed"
    LOCKED = "locked"
    WOULD_REPAIR = "would_repair"
