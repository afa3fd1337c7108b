"""
knotulus_api.ratelimit.deps

FastAPI guard applying per-endpoint quotas.

Responsibilities:
- Key callers by principal subject, falling back to client IP.
- Reject over-quota callers with RateLimitedError (429 + Retry-After).
- Publish quota headers on admitted responses; bypassed admins get read-only ones.
"""

from __future__ import annotations

from fastapi import Depends, Request, Response

from knotulus_api.api.deps import settings_dep
from knotulus_api.auth.deps import AuthGate
from knotulus_api.auth.models import Principal
from knotulus_api.errors import RateLimitedError
from knotulus_api.ratelimit.limiter import Admission, RateLimiter
from knotulus_api.settings import Settings


def rate_limiter_from_app(request: Request) -> RateLimiter:
    # Created on app startup in `knotulus_api.api.app.create_app`.
    return request.app.state.rate_limiter  # type: ignore[attr-defined]


def client_key(request: Request, principal: Principal | None) -> str:
    if principal is not None:
        return principal.subject
    return request.client.host if request.client is not None else "unknown"


def rate_limit(endpoint: str, gate: AuthGate):
    """
    Build the guard for `endpoint`. It depends on `gate`, so authentication
    always completes before any quota is consumed.
    """

    async def _guard(
        request: Request,
        response: Response,
        principal: Principal | None = Depends(gate),
        limiter: RateLimiter = Depends(rate_limiter_from_app),
        settings: Settings = Depends(settings_dep),
    ) -> Admission | None:
        if request.method == "OPTIONS":
            return None
        role = principal.quota_role if principal is not None else "user"
        key = client_key(request, principal)
        if principal is not None and principal.is_admin and settings.admin_rate_limit_bypass:
            standing = await limiter.peek(key, endpoint, role)
            request.state.rate_limit = standing
            response.headers.update(standing.headers())
            return None

        admission = await limiter.admit(key, endpoint, role)
        request.state.rate_limit = admission
        if not admission.allowed:
            raise RateLimitedError(
                f"Rate limit exceeded. Try again in {admission.retry_after_seconds} seconds.",
                retry_after_seconds=admission.retry_after_seconds,
            )
        response.headers.update(admission.headers())
        return admission

    return _guard
