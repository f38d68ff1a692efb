# backend/api_errors.py

"""
API ERROR NORMALIZATION

Every error leaves the API as:
    {"error": {"code": "...", "message": "..."}}

Domain errors map to status codes here, so views can let service
exceptions propagate instead of translating them one by one.
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from common.exceptions import (
    ConflictError,
    DependencyError,
    DomainError,
    NotFoundError,
    StateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DOMAIN_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StateError, status.HTTP_409_CONFLICT),
    (DependencyError, status.HTTP_502_BAD_GATEWAY),
)


def error_response(*, code: str, message: str, http_status: int, details=None):
    body = {"error": {"code": code, "message": message}}
    if details is not None:
        body["error"]["details"] = details
    return Response(body, status=http_status)


def _status_for(exc: DomainError) -> int:
    for exc_type, http_status in DOMAIN_STATUS:
        if isinstance(exc, exc_type):
            return http_status
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def domain_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        http_status = _status_for(exc)
        if http_status >= 500:
            logger.error(
                "Domain error at API boundary",
                extra={"error_code": exc.code, "error": str(exc)},
            )
        return error_response(code=exc.code, message=str(exc), http_status=http_status)

    response = exception_handler(exc, context)
    if response is None:
        return None

    code = getattr(exc, "default_code", None) or "ERROR"
    detail = response.data
    if isinstance(detail, dict) and set(detail) == {"detail"}:
        return error_response(
            code=str(getattr(detail["detail"], "code", code)).upper(),
            message=str(detail["detail"]),
            http_status=response.status_code,
        )

    return error_response(
        code=str(code).upper(),
        message="Request validation failed",
        http_status=response.status_code,
        details=detail,
    )
