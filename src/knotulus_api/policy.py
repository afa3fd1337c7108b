"""
knotulus_api.policy

Declarative security policy for the API.

Responsibilities:
- Roles and their permissions.
- Endpoint auth tiers (public / user / admin).
- Per-role, per-endpoint request quotas (requests per minute).
- Sensitive and admin-only response fields.
- Allowed cross-origin hosts.

The table is data only. It is built once per process (`get_policy`) and shared
read-only by the auth gate, the rate limiter, the sanitizer and CORS setup.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType


class AuthTier(enum.StrEnum):
    public = "public"
    user = "user"
    admin = "admin"


class Endpoint(enum.StrEnum):
    # Values double as rate-limit bucket names and log fields.
    join_waitlist = "join-waitlist"
    list_users = "list-users"
    delete_user = "delete-user"
    save_shop_credential = "save-shop-credential"
    fetch_financial_summary = "fetch-financial-summary"


DEFAULT_QUOTA_KEY = "default"


@dataclass(frozen=True, slots=True)
class RoleDefinition:
    permissions: frozenset[str]
    description: str


@dataclass(frozen=True, slots=True)
class CorsPolicy:
    allowed_origins: tuple[str, ...]
    allowed_methods: tuple[str, ...]
    allowed_headers: tuple[str, ...]
    max_age: int


@dataclass(frozen=True, slots=True)
class SecurityPolicy:
    roles: Mapping[str, RoleDefinition]
    endpoint_tiers: Mapping[str, AuthTier]
    # role -> endpoint -> requests per minute; each role table carries a "default".
    quotas: Mapping[str, Mapping[str, int]]
    # Endpoints whose requests name a resource owner that must match the caller.
    own_data_only: frozenset[str]
    sensitive_fields: tuple[str, ...]
    admin_only_fields: tuple[str, ...]
    cors: CorsPolicy
    default_quota_role: str = field(default="user")

    def tier(self, endpoint: str) -> AuthTier:
        # Unknown endpoints are never public.
        return self.endpoint_tiers.get(endpoint, AuthTier.user)

    def quota(self, role: str, endpoint: str) -> int:
        table = self.quotas.get(role) or self.quotas[self.default_quota_role]
        return table.get(endpoint, table[DEFAULT_QUOTA_KEY])

    def permissions(self, role: str) -> frozenset[str]:
        definition = self.roles.get(role)
        return definition.permissions if definition is not None else frozenset()


def _freeze(table: dict[str, dict[str, int]]) -> Mapping[str, Mapping[str, int]]:
    return MappingProxyType({k: MappingProxyType(dict(v)) for k, v in table.items()})


def build_default_policy() -> SecurityPolicy:
    roles = {
        "admin": RoleDefinition(
            permissions=frozenset(
                {"read:all_users", "write:all_users", "delete:all_users", "read:system_metrics"}
            ),
            description="Full system access",
        ),
        "verified_user": RoleDefinition(
            permissions=frozenset({"read:own_data", "write:own_data", "read:public_leaderboard"}),
            description="Authenticated user with verified email",
        ),
        "unverified_user": RoleDefinition(
            permissions=frozenset(
                {"read:own_data", "write:own_profile", "read:public_leaderboard"}
            ),
            description="New user awaiting email verification",
        ),
    }
    tiers = {
        Endpoint.join_waitlist: AuthTier.public,
        Endpoint.save_shop_credential: AuthTier.user,
        Endpoint.fetch_financial_summary: AuthTier.user,
        Endpoint.list_users: AuthTier.admin,
        Endpoint.delete_user: AuthTier.admin,
    }
    quotas = {
        "user": {
            Endpoint.join_waitlist: 5,
            Endpoint.save_shop_credential: 10,
            Endpoint.fetch_financial_summary: 30,
            DEFAULT_QUOTA_KEY: 20,
        },
        "admin": {
            Endpoint.list_users: 100,
            Endpoint.delete_user: 50,
            DEFAULT_QUOTA_KEY: 200,
        },
    }
    return SecurityPolicy(
        roles=MappingProxyType(roles),
        endpoint_tiers=MappingProxyType({str(k): v for k, v in tiers.items()}),
        quotas=_freeze({role: {str(k): v for k, v in t.items()} for role, t in quotas.items()}),
        own_data_only=frozenset({Endpoint.save_shop_credential, Endpoint.fetch_financial_summary}),
        sensitive_fields=("accessToken", "password", "secretKey", "privateKey"),
        admin_only_fields=("createdAt", "lastLogin", "ipAddress", "userAgent"),
        cors=CorsPolicy(
            allowed_origins=(
                "https://knotulus-test2.web.app",
                "http://127.0.0.1:5002",
                "http://localhost:3000",
                "https://knotulus.com",
            ),
            allowed_methods=("GET", "POST", "PUT", "DELETE", "OPTIONS"),
            allowed_headers=("Content-Type", "Authorization", "X-Requested-With"),
            max_age=3600,
        ),
    )


@lru_cache(maxsize=1)
def get_policy() -> SecurityPolicy:
    return build_default_policy()
