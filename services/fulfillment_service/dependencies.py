"""Process-wide construction of the upstream gateway.

The TokenCache is built once per process and handed to every component by
reference, which is what keeps logins single-flight across callers.
"""

from datetime import timedelta
from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Depends
from libs.common.config import Settings, get_settings
from services.fulfillment_service.errors import ConfigError
from services.fulfillment_service.gateway import OrderGateway
from services.fulfillment_service.models import OrderMode
from services.fulfillment_service.reconciliation import ReconciliationJobs
from services.fulfillment_service.store import SqlOrderStore
from services.fulfillment_service.token_cache import TokenCache
from services.fulfillment_service.upstream_client import UpstreamClient


def require_upstream_credentials(settings: Settings) -> None:
    """Fail fast at startup rather than on the first upstream call."""
    if not settings.upstream_credentials_configured:
        raise ConfigError(
            "UPSTREAM_EMAIL and UPSTREAM_PASSWORD must be set to talk to the upstream API"
        )


@lru_cache
def get_token_cache() -> TokenCache:
    settings = get_settings()
    return TokenCache(
        settings.UPSTREAM_API_URL,
        settings.UPSTREAM_EMAIL,
        settings.UPSTREAM_PASSWORD,
        ttl=timedelta(hours=settings.UPSTREAM_TOKEN_TTL_HOURS),
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
    )


@lru_cache
def get_upstream_client() -> UpstreamClient:
    settings = get_settings()
    return UpstreamClient(
        get_token_cache(),
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        transient_retries=settings.UPSTREAM_TRANSIENT_RETRIES,
    )


@lru_cache
def get_order_gateway() -> OrderGateway:
    settings = get_settings()
    return OrderGateway(
        get_upstream_client(),
        required_shipping_instruction=settings.UPSTREAM_REQUIRED_SHIPPING_INSTRUCTION,
        default_mode=OrderMode.QUOTE if settings.UPSTREAM_QUOTE_MODE else OrderMode.ORDER,
    )


async def get_order_store() -> AsyncGenerator[SqlOrderStore, None]:
    """FastAPI dependency yielding a store bound to a fresh DB session."""
    from libs.db.config import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        yield SqlOrderStore(session)


def get_reconciliation_jobs(
    gateway: OrderGateway = Depends(get_order_gateway),
    store: SqlOrderStore = Depends(get_order_store),
) -> ReconciliationJobs:
    return ReconciliationJobs.from_settings(gateway, store, get_settings())
