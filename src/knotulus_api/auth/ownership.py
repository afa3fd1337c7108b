"""
knotulus_api.auth.ownership

Resource ownership checks.

Responsibilities:
- `is_owner`: a principal owns a resource if it is the owner or an admin.
- `owner_field`: build an AuthGate predicate that reads the owner id from the request.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from starlette.requests import Request

from knotulus_api.auth.models import Principal
from knotulus_api.errors import ValidationError


def is_owner(principal: Principal, resource_owner_id: str | None) -> bool:
    if principal.is_admin:
        return True
    return bool(resource_owner_id) and principal.subject == resource_owner_id


async def _requested_owner_id(request: Request, field: str) -> Any:
    value: Any = None
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        body = await request.body()
        if body:
            try:
                payload = json.loads(body)
            except ValueError as e:
                raise ValidationError("Request body must be valid JSON") from e
            if isinstance(payload, dict):
                value = payload.get(field)
    return value or request.query_params.get(field)


def owner_field(field: str = "userId", message: str | None = None):
    """
    Predicate for `AuthGate(ownership=...)`: the caller must own the resource
    named by `field` (JSON body first, then query string).
    """

    async def _predicate(claims: Mapping[str, Any], request: Request) -> bool | str:
        owner_id = await _requested_owner_id(request, field)
        if not isinstance(owner_id, str) or not owner_id:
            raise ValidationError(f"Missing or invalid required parameters: {field}")
        if is_owner(Principal.from_claims(claims), owner_id):
            return True
        return message or False

    return _predicate
