"""
knotulus_api.api.routers.users

Admin-only user management.

Responsibilities:
- List users newest-first, sanitized for the caller.
- Delete a user together with its stored shop credentials.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knotulus_api.api.deps import db_session
from knotulus_api.api.schemas import DeleteUserRequest, ListUsersResponse, SuccessResponse
from knotulus_api.auth.deps import gate_for
from knotulus_api.auth.models import Principal
from knotulus_api.db.repositories.users import UserRepo
from knotulus_api.errors import StoreError
from knotulus_api.observability.logging import get_logger
from knotulus_api.policy import Endpoint
from knotulus_api.ratelimit.deps import rate_limit
from knotulus_api.sanitizer import sanitize_list

log = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["users"])

list_users_gate = gate_for(Endpoint.list_users)
delete_user_gate = gate_for(Endpoint.delete_user)


@router.get(
    "/list-users",
    response_model=ListUsersResponse,
    dependencies=[Depends(rate_limit(Endpoint.list_users, list_users_gate))],
)
async def list_users(
    principal: Principal = Depends(list_users_gate),
    session: AsyncSession = Depends(db_session),
) -> ListUsersResponse:
    try:
        users = await UserRepo(session).list_newest_first()
    except SQLAlchemyError as e:
        log.exception("list_users_failed")
        raise StoreError("Error getting users.") from e

    records = sanitize_list((u.to_record() for u in users), principal.is_admin)
    return ListUsersResponse(users=records)


@router.post(
    "/delete-user",
    response_model=SuccessResponse,
    dependencies=[Depends(rate_limit(Endpoint.delete_user, delete_user_gate))],
)
async def delete_user(
    body: DeleteUserRequest,
    principal: Principal = Depends(delete_user_gate),
    session: AsyncSession = Depends(db_session),
) -> SuccessResponse:
    try:
        existed = await UserRepo(session).delete(body.user_id)
        await session.commit()
    except SQLAlchemyError as e:
        log.exception("delete_user_failed", user_id=body.user_id)
        raise StoreError("Error deleting user.") from e

    log.info("user_deleted", user_id=body.user_id, existed=existed, actor=principal.subject)
    return SuccessResponse()
