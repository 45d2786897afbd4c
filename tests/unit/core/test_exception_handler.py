"""Unit tests for the project exception handler."""

from __future__ import annotations

import pytest
from pydantic import BaseModel, Field, ValidationError
from rest_framework import exceptions

from modules.core.exceptions import domain_exception_handler
from modules.orders.exceptions import InvalidTransition, OrderNotFound, StaleOrderVersion
from modules.promotions.exceptions import CodeBlockedByPromotion

pytestmark = pytest.mark.unit


class _Payload(BaseModel):
    quantity: int = Field(ge=1)


class TestDomainErrors:
    @pytest.mark.parametrize(
        ("exc", "status_code", "error_type"),
        [
            (InvalidTransition("PENDING", "DELIVERED"), 400, "validation_error"),
            (OrderNotFound("Order x not found."), 404, "not_found"),
            (StaleOrderVersion("x", 3), 409, "concurrency_conflict"),
            (CodeBlockedByPromotion("blocked"), 403, "forbidden"),
        ],
    )
    def test_status_and_body(self, exc, status_code, error_type):
        response = domain_exception_handler(exc, {})

        assert response.status_code == status_code
        assert response.data["type"] == error_type
        assert response.data["errors"] == [
            {"code": exc.__class__.__name__, "detail": str(exc), "attr": None}
        ]

    def test_context_included_when_present(self):
        exc = CodeBlockedByPromotion("blocked", context={"reason": "LIQUIDATION"})
        response = domain_exception_handler(exc, {})
        assert response.data["context"] == {"reason": "LIQUIDATION"}


class TestFrameworkErrors:
    def test_pydantic_error_is_400_with_attr(self):
        with pytest.raises(ValidationError) as exc_info:
            _Payload(quantity=0)

        response = domain_exception_handler(exc_info.value, {})

        assert response.status_code == 400
        assert response.data["type"] == "validation_error"
        assert response.data["errors"][0]["attr"] == "quantity"

    def test_drf_validation_errors_flattened(self):
        exc = exceptions.ValidationError({"lines": [{"quantity": ["Too small."]}]})

        response = domain_exception_handler(exc, {})

        assert response.status_code == 400
        assert response.data == {
            "type": "validation_error",
            "errors": [{"code": "invalid", "detail": "Too small.", "attr": "lines.quantity"}],
        }

    def test_not_authenticated_is_client_error(self):
        response = domain_exception_handler(exceptions.NotAuthenticated(), {})

        assert response.status_code == 401
        assert response.data["type"] == "client_error"
        assert response.data["errors"][0]["code"] == "not_authenticated"

    def test_unknown_exception_left_to_django(self):
        assert domain_exception_handler(RuntimeError("boom"), {}) is None
