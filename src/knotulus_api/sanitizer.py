"""
knotulus_api.sanitizer

Outbound record sanitization.

Responsibilities:
- Strip sensitive fields from every record, for every caller.
- Strip admin-only fields unless the caller is an admin.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from knotulus_api.policy import SecurityPolicy, get_policy


def sanitize(
    record: Mapping[str, Any] | None,
    is_admin: bool = False,
    *,
    policy: SecurityPolicy | None = None,
) -> dict[str, Any] | None:
    if record is None:
        return None
    policy = policy or get_policy()

    # Shallow copy: callers may keep using the original record.
    sanitized = dict(record)
    for name in policy.sensitive_fields:
        sanitized.pop(name, None)
    if not is_admin:
        for name in policy.admin_only_fields:
            sanitized.pop(name, None)
    return sanitized


def sanitize_list(
    records: Iterable[Mapping[str, Any]],
    is_admin: bool = False,
    *,
    policy: SecurityPolicy | None = None,
) -> list[dict[str, Any] | None]:
    return [sanitize(r, is_admin, policy=policy) for r in records]
