"""Order URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.orders.views import CheckoutViewSet, CmsOrderViewSet

router = DefaultRouter(trailing_slash=True)
router.register("orders", CheckoutViewSet, basename="checkout")
router.register("cms/orders", CmsOrderViewSet, basename="cms-order")

urlpatterns = router.urls
