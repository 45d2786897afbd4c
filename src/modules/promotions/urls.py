"""Promotion URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.promotions.views import PromotionalCodeViewSet, PromotionViewSet

router = DefaultRouter(trailing_slash=True)
router.register("promotional-codes", PromotionalCodeViewSet, basename="promotional-code")
router.register("promotions", PromotionViewSet, basename="promotion")

urlpatterns = router.urls
