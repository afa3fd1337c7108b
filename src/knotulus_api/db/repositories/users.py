"""
knotulus_api.db.repositories.users

Waitlist user persistence. Callers own the transaction and commit.
"""

from __future__ import annotations

from sqlalchemy import delete, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from knotulus_api.db.models import ShopCredential, User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email).limit(1)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(self, *, name: str, email: str) -> User:
        user = User(name=name, email=email)
        self._session.add(user)
        await self._session.flush()
        return user

    async def rename(self, user: User, name: str) -> User:
        user.name = name
        await self._session.flush()
        return user

    async def list_newest_first(self) -> list[User]:
        stmt = select(User).order_by(desc(User.created_at))
        return list((await self._session.execute(stmt)).scalars().all())

    async def delete(self, user_id: str) -> bool:
        # Deleting an unknown id is not an error; the return value says whether a row existed.
        await self._session.execute(delete(ShopCredential).where(ShopCredential.owner_id == user_id))
        result = await self._session.execute(delete(User).where(User.id == user_id))
        return bool(result.rowcount)
