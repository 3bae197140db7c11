"""Unit tests for the upstream -> customer status mapping."""

import pytest
from services.fulfillment_service.models import CustomerStatus
from services.fulfillment_service.status_mapper import describe_status, simplify


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Fulfillment Complete", CustomerStatus.SHIPPED),
        ("Partially Fulfilled", CustomerStatus.SHIPPED),
        ("  delivered ", CustomerStatus.SHIPPED),
        ("Cancelled", CustomerStatus.CANCELLED),
        ("Voided", CustomerStatus.CANCELLED),
        ("Payment Failed", CustomerStatus.FAILED),
        ("sync_error", CustomerStatus.FAILED),
        ("Pending Fulfillment", CustomerStatus.PROCESSING),
        ("On Hold - Contact Desk", CustomerStatus.PROCESSING),
        ("Awaiting Payment", CustomerStatus.PROCESSING),
        ("Some Brand New Status", CustomerStatus.PROCESSING),
        ("", CustomerStatus.PROCESSING),
        (None, CustomerStatus.PROCESSING),
    ],
)
def test_simplify_without_tracking(raw, expected):
    assert simplify(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["Pending Fulfillment", "Cancelled", None, "???"])
def test_tracking_number_means_shipped(raw):
    assert simplify(raw, ["1Z999AA10123456784"]) == CustomerStatus.SHIPPED


@pytest.mark.unit
def test_blank_tracking_numbers_are_ignored():
    assert simplify("Pending Fulfillment", ["", None]) == CustomerStatus.PROCESSING


@pytest.mark.unit
def test_describe_status():
    assert describe_status(None) == "Order received"
    assert describe_status("Fulfillment Complete") == "Order shipped"
    assert describe_status("ON HOLD - CONTACT DESK") == "On hold - contact support"
    assert describe_status("Brand New") == "Brand New"
