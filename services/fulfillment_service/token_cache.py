"""Upstream session token cache with single-flight login.

One TokenCache is built per process (see ``dependencies.get_token_cache``)
and shared by every component that talks to the upstream API. Concurrent
callers that find no valid token all await the same in-flight login task,
so at most one login request is outstanding at any time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.fulfillment_service.errors import (
    AuthError,
    ConfigError,
    TransientError,
)

logger = get_logger(__name__)

LOGIN_PATH = "/login"
DEFAULT_TOKEN_TTL = timedelta(hours=23)


@dataclass(frozen=True)
class SessionToken:
    """Opaque upstream credential plus the instant we stop trusting it."""

    value: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at

    def __repr__(self) -> str:
        return f"<SessionToken expires_at={self.expires_at.isoformat()}>"


class TokenCache:
    """Holds the current upstream token and deduplicates logins."""

    def __init__(
        self,
        base_url: str,
        email: Optional[str],
        password: Optional[str],
        *,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.base_url = base_url.rstrip("/")
        self._email = email
        self._password = password
        self._ttl = ttl
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._token: Optional[SessionToken] = None
        self._login_task: Optional[asyncio.Task] = None

    @property
    def credentials_configured(self) -> bool:
        return bool(self._email and self._password)

    async def get_token(self) -> SessionToken:
        """Return a valid token, logging in at most once for all waiters."""
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token

        if not self.credentials_configured:
            raise ConfigError(
                "Missing UPSTREAM_EMAIL or UPSTREAM_PASSWORD; cannot log in to the upstream API"
            )

        if self._login_task is None:
            self._login_task = asyncio.ensure_future(self._login())
            self._login_task.add_done_callback(self._forget_login_task)
        else:
            logger.debug("Waiting for in-flight upstream login")

        # shield: one cancelled waiter must not cancel the login for the rest
        return await asyncio.shield(self._login_task)

    def clear_token(self) -> None:
        """Drop the cached token; the next get_token() logs in again."""
        self._token = None

    def _forget_login_task(self, task: asyncio.Task) -> None:
        if self._login_task is task:
            self._login_task = None

    async def _login(self) -> SessionToken:
        logger.info("Logging in to upstream API")
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}{LOGIN_PATH}",
                    json={"email": self._email, "password": self._password},
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise TransientError(f"Upstream login timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Upstream login failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Upstream login failed: %s - %s", response.status_code, response.text
            )
            error_cls = (
                TransientError
                if response.status_code == 429 or response.status_code >= 500
                else AuthError
            )
            raise error_cls(
                f"Login failed: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise AuthError("Login response was not valid JSON") from exc

        value = data.get("token") if isinstance(data, dict) else None
        if not isinstance(value, str) or not value:
            raise AuthError("No token received from upstream API")

        token = SessionToken(value=value, expires_at=self._clock() + self._ttl)
        self._token = token
        logger.info("Logged in to upstream API; token valid until %s", token.expires_at)
        return token
