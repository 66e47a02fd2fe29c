"""Identity-provider (Auth0) bearer token authentication for DRF.

Customers and operators sign in with the external identity provider; the
API only verifies the ID/access token it issued.  Verification is RS256
against the tenant's JWKS, fetched lazily and cached by ``PyJWKClient``.

Rules:
* Fail closed: a token that claims the tenant as issuer but does not
  verify is a 401, never a fallback to another backend.
* ``algorithms`` comes from settings, never from the token header.
* Audience and issuer are always checked.
* Tokens from any other issuer are left to the next backend (SimpleJWT,
  used for local development and tests).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import jwt as pyjwt
import structlog
from django.conf import settings
from jwt import PyJWKClient
from jwt.exceptions import PyJWTError
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

logger = structlog.get_logger(__name__)

# One JWKS client per URL for the process; DRF builds a new authenticator
# per request.
_jwks_clients: dict[str, PyJWKClient] = {}


@dataclass(frozen=True)
class IdentityProviderSettings:
    domain: str = ""
    audience: str = ""
    algorithm: str = "RS256"
    roles_claim: str = ""
    jwks_cache_seconds: int = 300

    @classmethod
    def from_settings(cls) -> "IdentityProviderSettings":
        return cls(
            domain=settings.AUTH0_DOMAIN,
            audience=settings.AUTH0_AUDIENCE,
            algorithm=settings.AUTH0_ALGORITHM,
            roles_claim=settings.AUTH0_ROLES_CLAIM,
            jwks_cache_seconds=settings.AUTH0_JWKS_CACHE_SECONDS,
        )

    @property
    def issuer(self) -> str:
        return f"https://{self.domain}/" if self.domain else ""

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}.well-known/jwks.json" if self.domain else ""

    @property
    def enabled(self) -> bool:
        return bool(self.domain and self.audience)


class Auth0User:
    """Request user backed only by verified token claims (no ``auth.User`` row)."""

    is_authenticated = True
    is_active = True

    def __init__(self, payload: dict, roles_claim: Optional[str] = None) -> None:
        claim = roles_claim if roles_claim is not None else settings.AUTH0_ROLES_CLAIM
        self.payload = payload
        self.sub: str = payload.get("sub", "")
        self.email: str = payload.get("email", "")
        self.name: str = payload.get("name", "")
        self.permissions: list[str] = list(payload.get("permissions", []))
        self.roles: list[str] = list(payload.get(claim, [])) if claim else []

    @property
    def has_admin_claim(self) -> bool:
        return "admin" in self.roles or "admin" in self.permissions

    def __str__(self) -> str:  # pragma: no cover
        return self.sub


class Auth0JSONWebTokenAuthentication(BaseAuthentication):
    keyword = "Bearer"

    def __init__(
        self,
        provider: Optional[IdentityProviderSettings] = None,
        jwks_client: Optional[Any] = None,
    ) -> None:
        self._provider = provider
        self._jwks_client = jwks_client

    @property
    def provider(self) -> IdentityProviderSettings:
        if self._provider is None:
            self._provider = IdentityProviderSettings.from_settings()
        return self._provider

    def authenticate(self, request):
        """``(Auth0User, token)``, or ``None`` when the token is not ours."""
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not header or not self.provider.enabled:
            return None

        token = self._bearer_token(header)
        if self._unverified_issuer(token) != self.provider.issuer:
            return None

        user = Auth0User(self._verify(token), self.provider.roles_claim)
        logger.info("auth.authenticated", sub=user.sub, admin_claim=user.has_admin_claim)
        return (user, token)

    def authenticate_header(self, request):
        return f'{self.keyword} realm="api"'

    def _bearer_token(self, header: str) -> str:
        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != self.keyword.lower():
            raise AuthenticationFailed("Invalid Authorization header format.")
        return parts[1]

    @staticmethod
    def _unverified_issuer(token: str) -> Optional[str]:
        try:
            claims = pyjwt.decode(token, options={"verify_signature": False})
        except PyJWTError:
            return None
        return claims.get("iss")

    def _signing_keys(self) -> Any:
        if self._jwks_client is None:
            url = self.provider.jwks_url
            if url not in _jwks_clients:
                _jwks_clients[url] = PyJWKClient(
                    url, cache_jwk_set=True, lifespan=self.provider.jwks_cache_seconds
                )
            self._jwks_client = _jwks_clients[url]
        return self._jwks_client

    def _verify(self, token: str) -> dict:
        try:
            signing_key = self._signing_keys().get_signing_key_from_jwt(token)
            return pyjwt.decode(
                token,
                signing_key.key,
                algorithms=[self.provider.algorithm],
                audience=self.provider.audience,
                issuer=self.provider.issuer,
            )
        except PyJWTError as exc:
            logger.warning("auth.token_rejected", reason=str(exc))
            raise AuthenticationFailed("Token validation failed.") from exc
