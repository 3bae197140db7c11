"""Shared helpers for fulfillment routers."""

from fastapi import HTTPException, status
from services.fulfillment_service.errors import (
    AuthError,
    ConfigError,
    DuplicateSubmissionError,
    FulfillmentError,
    LockedError,
    NotFoundError,
    TransientError,
    ValidationError,
)

_STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateSubmissionError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (LockedError, status.HTTP_423_LOCKED),
    (TransientError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (AuthError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(exc: FulfillmentError) -> HTTPException:
    """Translate a gateway error into the response the caller sees."""
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            break
    else:
        status_code = status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=status_code, detail=exc.message)
