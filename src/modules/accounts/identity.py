"""Resolve the authenticated request user into an ``Actor``.

Two kinds of users reach the API:

- ``Auth0User`` (production): ``sub`` is the identity id; the roles claim
  marks admins.
- Django ``User`` (SimpleJWT, local development and tests): ``str(pk)``
  is the identity id; ``is_staff`` marks admins.

When a ``UserProfile`` exists for the identity, its role and display data
win over the token, so ``set_admin_role`` takes effect without reissuing
tokens.
"""

from __future__ import annotations

from typing import Any, Optional

from modules.accounts.models import UserProfile
from modules.core.authentication import Auth0User
from modules.core.authorization import Actor, Role


def _base_actor(user: Any) -> Actor:
    if isinstance(user, Auth0User):
        return Actor(
            id=user.sub,
            role=Role.ADMIN if user.has_admin_claim else Role.CUSTOMER,
            display_name=user.name or user.email or user.sub,
            email=user.email,
        )
    full_name = user.get_full_name() if hasattr(user, "get_full_name") else ""
    return Actor(
        id=str(user.pk),
        role=Role.ADMIN if getattr(user, "is_staff", False) else Role.CUSTOMER,
        display_name=full_name or user.get_username(),
        email=getattr(user, "email", "") or "",
    )


def resolve_actor(user: Any) -> Optional[Actor]:
    """Return the caller as an ``Actor``, or ``None`` when anonymous."""
    if user is None or not getattr(user, "is_authenticated", False):
        return None

    actor = _base_actor(user)
    profile = UserProfile.objects.filter(uid=actor.id).first()
    if profile is None:
        return actor
    return Actor(
        id=actor.id,
        role=profile.role,
        display_name=profile.full_name or actor.display_name,
        email=profile.email or actor.email,
    )


def actor_from_request(request: Any) -> Optional[Actor]:
    """Resolve once per request and cache the result on the request."""
    cached = getattr(request, "_remesas_actor", None)
    if cached is not None:
        return cached
    actor = resolve_actor(getattr(request, "user", None))
    request._remesas_actor = actor
    return actor
