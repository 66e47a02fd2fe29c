"""Unit tests for resolving request users into actors."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from django.contrib.auth.models import AnonymousUser

from modules.accounts.identity import actor_from_request, resolve_actor
from modules.accounts.models import UserProfile
from modules.core.authentication import Auth0User
from modules.core.authorization import Role

pytestmark = pytest.mark.unit


class TestResolveActor:
    def test_anonymous(self):
        assert resolve_actor(AnonymousUser()) is None
        assert resolve_actor(None) is None

    def test_django_user(self, customer_user):
        actor = resolve_actor(customer_user)
        assert actor.id == str(customer_user.pk)
        assert actor.role == Role.CUSTOMER
        assert actor.display_name == "María Pérez"

    def test_staff_is_admin(self, admin_user):
        actor = resolve_actor(admin_user)
        assert actor.is_admin
        assert actor.display_name == "operador"

    def test_auth0_user(self):
        user = Auth0User(
            {"sub": "auth0|abc", "email": "x@example.com", "permissions": ["admin"]}
        )
        actor = resolve_actor(user)
        assert actor.id == "auth0|abc"
        assert actor.is_admin
        assert actor.display_name == "x@example.com"

    def test_profile_overrides_token(self, customer_user):
        UserProfile.objects.create(
            uid=str(customer_user.pk), role=Role.ADMIN, full_name="María P."
        )
        actor = resolve_actor(customer_user)
        assert actor.is_admin
        assert actor.display_name == "María P."

    def test_profile_can_demote_staff(self, admin_user):
        UserProfile.objects.create(uid=str(admin_user.pk), role=Role.CUSTOMER)
        assert resolve_actor(admin_user).role == Role.CUSTOMER


class TestActorFromRequest:
    def test_cached_on_request(self, customer_user, django_assert_num_queries):
        request = SimpleNamespace(user=customer_user)
        first = actor_from_request(request)
        with django_assert_num_queries(0):
            assert actor_from_request(request) is first
