"""
knotulus_api.api.routers.waitlist

Public waitlist signup.

Responsibilities:
- Create a user entry for a new email.
- For a known email, update the stored name and return the existing id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knotulus_api.api.deps import db_session
from knotulus_api.api.schemas import JoinWaitlistRequest, JoinWaitlistResponse
from knotulus_api.auth.deps import gate_for
from knotulus_api.db.models import User
from knotulus_api.db.repositories.users import UserRepo
from knotulus_api.errors import StoreError
from knotulus_api.observability.logging import get_logger
from knotulus_api.policy import Endpoint
from knotulus_api.ratelimit.deps import rate_limit

log = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["waitlist"])

join_waitlist_gate = gate_for(Endpoint.join_waitlist)


async def _rename_existing(users: UserRepo, user: User, name: str) -> JoinWaitlistResponse:
    await users.rename(user, name)
    log.info("waitlist_user_updated", user_id=user.id)
    return JoinWaitlistResponse(user_id=user.id, exists=True, message=f"Welcome again, {name}!")


@router.post(
    "/join-waitlist",
    response_model=JoinWaitlistResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit(Endpoint.join_waitlist, join_waitlist_gate))],
)
async def join_waitlist(
    body: JoinWaitlistRequest,
    session: AsyncSession = Depends(db_session),
) -> JoinWaitlistResponse:
    users = UserRepo(session)
    try:
        existing = await users.find_by_email(body.email)
        if existing is not None:
            resp = await _rename_existing(users, existing, body.name)
            await session.commit()
            return resp

        try:
            user = await users.create(name=body.name, email=body.email)
            await session.commit()
        except IntegrityError:
            # A concurrent signup inserted the same email first.
            await session.rollback()
            existing = await users.find_by_email(body.email)
            if existing is None:
                raise
            resp = await _rename_existing(users, existing, body.name)
            await session.commit()
            return resp
    except SQLAlchemyError as e:
        log.exception("waitlist_store_failed")
        raise StoreError("Error adding user to waitlist.") from e

    log.info("waitlist_user_created", user_id=user.id)
    return JoinWaitlistResponse(user_id=user.id)
