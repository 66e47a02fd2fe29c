"""Exchange rate URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.rates.views import RateViewSet

router = DefaultRouter(trailing_slash=True)
router.register("rates", RateViewSet, basename="rate")

urlpatterns = router.urls
