from __future__ import annotations

import dataclasses

import pytest

from knotulus_api.auth.models import Principal
from knotulus_api.auth.ownership import is_owner
from knotulus_api.policy import AuthTier, Endpoint, get_policy
from knotulus_api.sanitizer import sanitize, sanitize_list


def test_quota_lookup_falls_back_to_role_default() -> None:
    policy = get_policy()
    assert policy.quota("user", Endpoint.join_waitlist) == 5
    assert policy.quota("user", Endpoint.fetch_financial_summary) == 30
    assert policy.quota("user", Endpoint.list_users) == 20
    assert policy.quota("admin", Endpoint.delete_user) == 50
    assert policy.quota("admin", Endpoint.join_waitlist) == 200
    # Unknown roles use the user table.
    assert policy.quota("auditor", Endpoint.save_shop_credential) == 10


def test_endpoint_tiers() -> None:
    policy = get_policy()
    assert policy.tier(Endpoint.join_waitlist) is AuthTier.public
    assert policy.tier(Endpoint.save_shop_credential) is AuthTier.user
    assert policy.tier(Endpoint.list_users) is AuthTier.admin
    assert policy.tier("not-registered") is AuthTier.user


def test_role_permissions() -> None:
    policy = get_policy()
    assert "delete:all_users" in policy.permissions("admin")
    assert "write:own_data" in policy.permissions("verified_user")
    assert "write:own_data" not in policy.permissions("unverified_user")
    assert policy.permissions("nobody") == frozenset()


def test_policy_is_immutable() -> None:
    policy = get_policy()
    with pytest.raises(dataclasses.FrozenInstanceError):
        policy.sensitive_fields = ()  # type: ignore[misc]
    with pytest.raises(TypeError):
        policy.quotas["user"]["join-waitlist"] = 1000  # type: ignore[index]


def test_sanitize_strips_by_role() -> None:
    record = {"password": "x", "createdAt": "t", "name": "n"}
    assert sanitize(record, is_admin=False) == {"name": "n"}
    assert sanitize(record, is_admin=True) == {"createdAt": "t", "name": "n"}
    # Input is left untouched.
    assert record == {"password": "x", "createdAt": "t", "name": "n"}


def test_sanitize_always_drops_secrets_and_tolerates_missing_fields() -> None:
    record = {
        "id": "u1",
        "accessToken": "shpat_123",
        "secretKey": "s",
        "privateKey": "p",
        "ipAddress": "10.0.0.1",
    }
    assert sanitize(record, is_admin=True) == {"id": "u1", "ipAddress": "10.0.0.1"}
    assert sanitize({"id": "u2"}, is_admin=False) == {"id": "u2"}
    assert sanitize(None) is None


def test_sanitize_list() -> None:
    users = [{"id": "a", "lastLogin": "x"}, {"id": "b", "userAgent": "ua", "password": "p"}]
    assert sanitize_list(users, is_admin=False) == [{"id": "a"}, {"id": "b"}]
    assert sanitize_list(users, is_admin=True) == [
        {"id": "a", "lastLogin": "x"},
        {"id": "b", "userAgent": "ua"},
    ]


def test_is_owner() -> None:
    alice = Principal(subject="A", is_admin=False)
    admin = Principal(subject="A", is_admin=True)
    assert is_owner(alice, "A") is True
    assert is_owner(alice, "B") is False
    assert is_owner(alice, None) is False
    assert is_owner(admin, "B") is True
    assert is_owner(admin, None) is True


def test_principal_from_claims() -> None:
    p = Principal.from_claims({"sub": "u1", "admin": "true", "email_verified": True})
    assert p.subject == "u1"
    assert p.is_admin is False
    assert p.role == "verified_user"
    assert p.quota_role == "user"

    admin = Principal.from_claims({"sub": "u2", "admin": True})
    assert admin.role == "admin"
    assert admin.quota_role == "admin"
