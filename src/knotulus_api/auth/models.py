"""
knotulus_api.auth.models

Auth domain models.

Responsibilities:
- Define the authenticated identity type (`Principal`) injected into endpoints.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity. Lives for one request; never persisted.
    """

    subject: str
    is_admin: bool = False
    claims: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> Principal:
        # Only a literal `true` admin claim counts; "true"/1 do not.
        return cls(
            subject=str(claims.get("sub", "")),
            is_admin=claims.get("admin") is True,
            claims=dict(claims),
        )

    @property
    def role(self) -> str:
        if self.is_admin:
            return "admin"
        if self.claims.get("email_verified") is True:
            return "verified_user"
        return "unverified_user"

    @property
    def quota_role(self) -> str:
        # Quota tables are keyed by "admin" / "user" only.
        return "admin" if self.is_admin else "user"


# --- Module Notes -----------------------------------------------------------
# Keep this model minimal; it is used across API, services, and the rate limiter.
