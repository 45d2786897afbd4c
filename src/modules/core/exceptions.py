"""DRF exception handler producing one error format for every failure.

Domain exceptions (``shared.domain.exceptions``) are mapped by category:

==========================  ======
``DomainValidationError``   400
``ForbiddenError``          403
``NotFoundError``           404
``ConcurrencyConflict``     409
==========================  ======

Pydantic DTO validation errors are rendered as 400 too.  Anything else is
left to DRF (and ultimately to Django's 500 handling).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from shared.domain.exceptions import (
    ConcurrencyConflict,
    DomainError,
    DomainValidationError,
    ForbiddenError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)

_DOMAIN_STATUS = (
    (ConcurrencyConflict, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (DomainValidationError, status.HTTP_400_BAD_REQUEST),
)


def domain_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    if isinstance(exc, DomainError):
        return _domain_response(exc)
    if isinstance(exc, PydanticValidationError):
        return _pydantic_response(exc)

    response = exception_handler(exc, context)
    if response is None:
        return None

    error_type = (
        "validation_error"
        if isinstance(exc, exceptions.ValidationError)
        else "client_error"
    )
    response.data = {
        "type": error_type,
        "errors": _flatten(response.data, getattr(exc, "default_code", "error")),
    }
    return response


def _domain_response(exc: DomainError) -> Response:
    http_status = status.HTTP_400_BAD_REQUEST
    for exc_class, mapped in _DOMAIN_STATUS:
        if isinstance(exc, exc_class):
            http_status = mapped
            break

    logger.info(
        "api.domain_error",
        error=exc.__class__.__name__,
        status_code=http_status,
        detail=str(exc),
    )
    body: Dict[str, Any] = {
        "type": exc.code,
        "errors": [{"code": exc.__class__.__name__, "detail": str(exc), "attr": None}],
    }
    extra = getattr(exc, "context", None)
    if extra:
        body["context"] = extra
    return Response(body, status=http_status)


def _pydantic_response(exc: PydanticValidationError) -> Response:
    errors = [
        {
            "code": error["type"],
            "detail": error["msg"],
            "attr": ".".join(str(part) for part in error["loc"]) or None,
        }
        for error in exc.errors()
    ]
    return Response(
        {"type": "validation_error", "errors": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _flatten(data: Any, default_code: str, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        if set(data) == {"detail"}:
            return _flatten(data["detail"], default_code, attr)
        errors: List[Dict[str, Any]] = []
        for key, value in data.items():
            nested = key if attr is None else f"{attr}.{key}"
            errors.extend(_flatten(value, default_code, nested))
        return errors
    if isinstance(data, list):
        errors = []
        for item in data:
            errors.extend(_flatten(item, default_code, attr))
        return errors
    code = getattr(data, "code", None) or default_code
    return [{"code": code, "detail": str(data), "attr": attr}]
