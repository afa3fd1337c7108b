"""
knotulus_api.auth.deps

FastAPI dependencies for authentication and authorization.

Responsibilities:
- Let public endpoints through without looking at credentials.
- Convert a bearer token into a typed `Principal` (fail closed on bad tokens).
- Enforce the admin flag and per-endpoint ownership predicates.
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from knotulus_api.api.deps import settings_dep
from knotulus_api.auth.jwt import JwtConfig, JwtValidationError, TokenVerifier
from knotulus_api.auth.models import Principal
from knotulus_api.auth.ownership import owner_field
from knotulus_api.errors import AuthenticationError, AuthorizationError
from knotulus_api.observability.logging import get_logger
from knotulus_api.policy import AuthTier, SecurityPolicy, get_policy
from knotulus_api.settings import Settings

log = get_logger(__name__)

_bearer = HTTPBearer(auto_error=False)

# (claims, request) -> True, or an awaitable of it. Anything else denies; a string
# result becomes the 403 message.
OwnershipPredicate = Callable[[Mapping[str, Any], Request], Any]


def token_verifier(settings: Settings = Depends(settings_dep)) -> TokenVerifier:
    return TokenVerifier(JwtConfig.from_settings(settings))


class AuthGate:
    """
    Route guard. Resolves to the caller's Principal, or None for anonymous
    callers of endpoints that do not require authentication.

    `allow_anonymous` gates never read the Authorization header, so a stale
    browser token cannot lock a caller out of a public endpoint. `endpoint`
    names the quota bucket used for headers on rejected requests.
    """

    def __init__(
        self,
        *,
        required: bool = True,
        admin_only: bool = False,
        ownership: OwnershipPredicate | None = None,
        allow_anonymous: bool = False,
        endpoint: str | None = None,
    ) -> None:
        self.required = required
        self.allow_anonymous = allow_anonymous
        self.endpoint = endpoint
        self.admin_only = admin_only
        self.ownership = ownership

    async def __call__(
        self,
        request: Request,
        creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
        verifier: TokenVerifier = Depends(token_verifier),
    ) -> Principal | None:
        # CORS preflight carries no credentials or body.
        if request.method == "OPTIONS":
            return None
        request.state.quota_endpoint = self.endpoint
        if self.allow_anonymous:
            return None

        token = creds.credentials if creds is not None else ""
        if not token:
            if self.required:
                raise AuthenticationError("Authentication required")
            return None

        try:
            claims = verifier.verify(token)
        except JwtValidationError as e:
            log.warning("token_rejected", reason=str(e))
            raise AuthenticationError("Invalid authentication token") from e

        principal = Principal.from_claims(claims)
        if not principal.subject:
            raise AuthenticationError("Invalid authentication token")
        structlog.contextvars.bind_contextvars(subject=principal.subject)
        request.state.principal = principal

        if self.admin_only and not principal.is_admin:
            log.warning("admin_required")
            raise AuthorizationError("Admin access required")

        if self.ownership is not None:
            verdict = self.ownership(claims, request)
            if inspect.isawaitable(verdict):
                verdict = await verdict
            if verdict is not True:
                log.warning("ownership_denied")
                message = verdict if isinstance(verdict, str) and verdict else "Access denied"
                raise AuthorizationError(message)

        return principal


def gate_for(
    endpoint: str,
    *,
    ownership: OwnershipPredicate | None = None,
    policy: SecurityPolicy | None = None,
) -> AuthGate:
    """
    Build the gate an endpoint's policy tier calls for. Own-data endpoints get
    an ownership check on `userId` unless a predicate is supplied.
    """

    policy = policy or get_policy()
    tier = policy.tier(endpoint)
    if ownership is None and endpoint in policy.own_data_only:
        ownership = owner_field("userId")
    return AuthGate(
        required=tier is not AuthTier.public,
        allow_anonymous=tier is AuthTier.public,
        admin_only=tier is AuthTier.admin,
        ownership=ownership,
        endpoint=endpoint,
    )


# --- Module Notes -----------------------------------------------------------
# No `from __future__ import annotations` here: FastAPI resolves the signature of
# `AuthGate.__call__` without module globals, so annotations must be real types.
# The rate-limit guard depends on the route's gate, so rejected callers never
# consume quota or reach the store.
