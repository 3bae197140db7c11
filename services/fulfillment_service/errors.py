"""Error taxonomy for the upstream fulfillment gateway.

Callers branch on the class, never on the message:

- ConfigError: credentials missing. Fatal, never retried.
- AuthError: login rejected, or a request still unauthorized after the
  single re-login.
- TransientError: timeouts, connection failures, 429 and 5xx.
- ValidationError: bad local data or a malformed upstream body.
- LockedError: the upstream order is locked. Needs a human, not a retry.
- NotFoundError: unknown upstream id.
- UpstreamError: any other non-2xx response.
"""

from typing import Any, Iterable, Optional

LOCK_MARKERS = ("lock",)


class FulfillmentError(Exception):
    """Base exception for gateway errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data
        super().__init__(message)


class ConfigError(FulfillmentError):
    pass


class AuthError(FulfillmentError):
    pass


class TransientError(FulfillmentError):
    pass


class ValidationError(FulfillmentError):
    pass


class AddressValidationError(ValidationError):
    """Address is missing required fields. Lists every one of them."""

    def __init__(self, missing_fields: Iterable[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Incomplete shipping address, missing: " + ", ".join(self.missing_fields)
        )


class LockedError(FulfillmentError):
    pass


class NotFoundError(FulfillmentError):
    pass


class UpstreamError(FulfillmentError):
    pass


class DuplicateSubmissionError(FulfillmentError):
    """Local order already carries an upstream order id."""


class UpstreamIdConflictError(FulfillmentError):
    """Attempt to replace an already-assigned upstream order id."""


def looks_locked(status_code: Optional[int], text: Optional[str]) -> bool:
    """Best-effort lock detection.

    The upstream API documents no lock signal. A 403, or any text mentioning
    a lock, is treated as one. A miss only downgrades the error to a plain
    failure, so this must not be relied on for anything but reporting.
    """
    if status_code == 403:
        return True
    lowered = (text or "").lower()
    return any(marker in lowered for marker in LOCK_MARKERS)


def classify_response(status_code: int, body: Any, text: str) -> FulfillmentError:
    """Map a non-2xx upstream response onto the error taxonomy."""
    message = _upstream_message(body) or text or f"HTTP {status_code}"
    detail = f"Upstream API request failed: {status_code} - {message}"

    if status_code == 401:
        return AuthError(detail, status_code, body)
    if status_code < 500 and looks_locked(status_code, f"{message} {text}"):
        return LockedError(detail, status_code, body)
    if status_code == 404:
        return NotFoundError(detail, status_code, body)
    if status_code in (400, 422):
        return ValidationError(detail, status_code, body)
    if status_code == 429 or status_code >= 500:
        return TransientError(detail, status_code, body)
    return UpstreamError(detail, status_code, body)


def _upstream_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None
