"""Account URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.accounts.views import AccountViewSet, SavedBankAccountViewSet

router = DefaultRouter(trailing_slash=True)
router.register("accounts", AccountViewSet, basename="account")
router.register("saved-accounts", SavedBankAccountViewSet, basename="saved-account")

urlpatterns = router.urls
