"""Payment URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.payments.views import PaymentGatewayViewSet

router = DefaultRouter(trailing_slash=True)
router.register("payment-gateways", PaymentGatewayViewSet, basename="payment-gateway")

urlpatterns = router.urls
