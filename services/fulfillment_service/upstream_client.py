"""Authenticated transport for the upstream fulfillment API."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from libs.common.logging import get_logger
from services.fulfillment_service.errors import (
    TransientError,
    ValidationError,
    classify_response,
)
from services.fulfillment_service.token_cache import SessionToken, TokenCache
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

logger = get_logger(__name__)

# Only these are retried on TransientError; a repeated POST could create a
# second upstream order.
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


class UpstreamClient:
    """Attaches the cached bearer token to every call.

    A 401 clears the token, logs in again and replays the call exactly once.
    Every other non-2xx response raises the matching FulfillmentError.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        *,
        timeout: float = 30.0,
        transient_retries: int = 2,
        retry_wait: Optional[wait_base] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_cache = token_cache
        self.base_url = token_cache.base_url
        self.timeout = timeout
        self.transient_retries = max(transient_retries, 0)
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        method = method.upper()
        if method not in IDEMPOTENT_METHODS or not self.transient_retries:
            return await self._authorized_request(method, path, json=json, params=params)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.transient_retries + 1),
            wait=self._retry_wait,
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        ):
            with attempt:
                return await self._authorized_request(
                    method, path, json=json, params=params
                )

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Like request(), but returns the decoded JSON body."""
        response = await self.request(method, path, json=json, params=params)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ValidationError(
                f"Upstream {method} {path} returned a non-JSON body",
                status_code=response.status_code,
                response_data=response.text,
            ) from exc

    async def _authorized_request(
        self,
        method: str,
        path: str,
        *,
        json: Any,
        params: Optional[dict],
    ) -> httpx.Response:
        token = await self.token_cache.get_token()
        response = await self._send(method, path, token, json=json, params=params)

        if response.status_code == 401:
            logger.warning(
                "Upstream %s %s returned 401; refreshing token and retrying once",
                method,
                path,
            )
            self.token_cache.clear_token()
            token = await self.token_cache.get_token()
            response = await self._send(method, path, token, json=json, params=params)

        if not response.is_success:
            raise self._failure(method, path, response)
        return response

    async def _send(
        self,
        method: str,
        path: str,
        token: SessionToken,
        *,
        json: Any,
        params: Optional[dict],
    ) -> httpx.Response:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token.value}",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                return await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=headers,
                    json=json,
                    params=params,
                )
        except httpx.TimeoutException as exc:
            raise TransientError(f"Upstream {method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Upstream {method} {path} failed: {exc}") from exc

    @staticmethod
    def _failure(method: str, path: str, response: httpx.Response):
        try:
            body = response.json()
        except ValueError:
            body = None
        error = classify_response(response.status_code, body, response.text)
        logger.error(
            "Upstream %s %s failed: %s - %s",
            method,
            path,
            response.status_code,
            response.text,
        )
        return error
