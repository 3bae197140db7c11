"""
Test data and fakes for the fulfillment service.

Every factory produces a valid, fully-populated FulfillmentOrder that has
not been added to a session. Override any field via kwargs.

Usage:
    order = FulfillmentOrderFactory.create(upstream_order_id=1001)
    store = InMemoryOrderStore([order])
    api = FakeUpstreamAPI()
    api.add("GET", "/sales-order/1001", (200, {"status": "Pending Fulfillment"}))
    gateway = api.gateway()
"""

import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

import httpx
from tenacity import wait_none

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _order_id() -> str:
    return f"ord-{uuid.uuid4().hex[:12]}"


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:8]}@test.com"


def full_address(**overrides) -> dict:
    address = {
        "addressee": "Jane Doe",
        "addr1": "12 Peachtree St",
        "addr2": "Suite 4",
        "city": "Atlanta",
        "state": "ga",
        "zip": "30301",
    }
    address.update(overrides)
    return address


def line_item(**overrides) -> dict:
    item = {
        "product_id": 4242,
        "sku": "AU-1OZ-EAGLE",
        "name": "1 oz Gold Eagle",
        "quantity": 2,
        "unit_price": "2450.00",
        "total": "4900.00",
    }
    item.update(overrides)
    return item


# ---------------------------------------------------------------------------
# Fulfillment Service
# ---------------------------------------------------------------------------


class FulfillmentOrderFactory:
    @staticmethod
    def create(**overrides):
        from services.fulfillment_service.models import FulfillmentOrder

        created_at = overrides.pop("created_at", _now())
        defaults = {
            "id": _order_id(),
            "customer_ref": f"cust-{uuid.uuid4().hex[:8]}",
            "customer_email": _unique_email(),
            "line_items": [line_item()],
            "shipping_address": full_address(),
            "payment_method": "wire",
            "fulfillment_status": None,
            "upstream_mode": None,
            "upstream_handle": None,
            "upstream_order_id": None,
            "upstream_transaction_id": None,
            "upstream_status": None,
            "upstream_tracking_numbers": [],
            "upstream_fulfillments": [],
            "last_synced_at": None,
            "error": None,
            "error_at": None,
            "repair_status": None,
            "address_fixed_at": None,
            "created_at": created_at,
            "updated_at": created_at,
        }
        defaults.update(overrides)
        return FulfillmentOrder(**defaults)

    @staticmethod
    def on_hold(**overrides):
        from libs.common.config import get_settings

        defaults = {
            "upstream_order_id": 2000 + uuid.uuid4().int % 100000,
            "upstream_status": get_settings().ON_HOLD_STATUS,
            "created_at": _now() - timedelta(days=1),
        }
        defaults.update(overrides)
        return FulfillmentOrderFactory.create(**defaults)


class InMemoryOrderStore:
    """OrderStore backed by a dict; records every save."""

    def __init__(self, orders=()):
        self.orders = {order.id: order for order in orders}
        self.saved: list[str] = []

    async def get(self, order_id):
        return self.orders.get(order_id)

    async def list_recent(self, limit):
        ordered = sorted(self.orders.values(), key=lambda o: o.created_at, reverse=True)
        return ordered[:limit]

    async def list_by_upstream_status(self, upstream_status, limit=None):
        matches = sorted(
            (o for o in self.orders.values() if o.upstream_status == upstream_status),
            key=lambda o: o.created_at,
        )
        return matches if limit is None else matches[:limit]

    async def save(self, order):
        self.orders[order.id] = order
        self.saved.append(order.id)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# ---------------------------------------------------------------------------
# Upstream API
# ---------------------------------------------------------------------------

CannedResponse = Union[tuple, Callable[[httpx.Request], httpx.Response], Exception]


class FakeUpstreamAPI:
    """
    In-process upstream API served through httpx.MockTransport.

    Routes map (method, path) to a queue of responses. Each request pops the
    next one; the last response repeats. A response is either a
    ``(status, body)`` tuple, a callable taking the request, or an exception
    to raise. POST /login is answered automatically with token-1, token-2...
    """

    BASE_URL = "https://upstream.test/public/v2"
    EMAIL = "ops@example.com"
    PASSWORD = "s3cret"

    def __init__(self):
        self.routes: dict[tuple[str, str], list[CannedResponse]] = {}
        self.requests: list[httpx.Request] = []
        self.logins = 0
        self.login_response: Optional[CannedResponse] = None

    def add(self, method: str, path: str, *responses: CannedResponse) -> "FakeUpstreamAPI":
        self.routes.setdefault((method.upper(), path), []).extend(responses)
        return self

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len(httpx.URL(self.BASE_URL).path):]
        self.requests.append(request)

        if request.method == "POST" and path == "/login":
            self.logins += 1
            if self.login_response is not None:
                return self._build(self.login_response, request)
            return httpx.Response(200, json={"token": f"token-{self.logins}"})

        queue = self.routes.get((request.method, path))
        if not queue:
            return httpx.Response(404, json={"message": f"No route for {path}"})
        canned = queue.pop(0) if len(queue) > 1 else queue[0]
        return self._build(canned, request)

    @staticmethod
    def _build(canned: CannedResponse, request: httpx.Request) -> httpx.Response:
        if isinstance(canned, Exception):
            raise canned
        if callable(canned):
            return canned(request)
        status_code, body = canned
        if body is None:
            return httpx.Response(status_code)
        if isinstance(body, str):
            return httpx.Response(status_code, text=body)
        return httpx.Response(status_code, json=body)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> list:
        """Non-login requests, optionally filtered."""
        prefix = httpx.URL(self.BASE_URL).path
        selected = []
        for request in self.requests:
            request_path = request.url.path[len(prefix):]
            if request_path == "/login":
                continue
            if method and request.method != method.upper():
                continue
            if path and request_path != path:
                continue
            selected.append(request)
        return selected

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)

    # -- component builders -------------------------------------------------

    def token_cache(self, **overrides):
        from services.fulfillment_service.token_cache import TokenCache

        kwargs = {"transport": self.transport}
        kwargs.update(overrides)
        email = kwargs.pop("email", self.EMAIL)
        password = kwargs.pop("password", self.PASSWORD)
        return TokenCache(self.BASE_URL, email, password, **kwargs)

    def client(self, token_cache=None, **overrides):
        from services.fulfillment_service.upstream_client import UpstreamClient

        kwargs = {"transport": self.transport, "retry_wait": wait_none()}
        kwargs.update(overrides)
        return UpstreamClient(token_cache or self.token_cache(), **kwargs)

    def gateway(self, **overrides):
        from libs.common.config import get_settings
        from services.fulfillment_service.gateway import OrderGateway

        kwargs = {
            "required_shipping_instruction": get_settings().UPSTREAM_REQUIRED_SHIPPING_INSTRUCTION
        }
        kwargs.update(overrides)
        return OrderGateway(self.client(), **kwargs)


SHIPPING_INSTRUCTIONS = [
    {"id": 7, "name": "Standard Ground"},
    {"id": 9, "name": "Confidential Drop Ship to Customer"},
    {"id": 11, "name": "Hold at Depository"},
]
