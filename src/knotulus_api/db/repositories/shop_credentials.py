"""
knotulus_api.db.repositories.shop_credentials

Repository for `ShopCredential` entities.

Responsibilities:
- Upsert and fetch access tokens keyed by (owner id, shop name).

Callers must have passed the ownership check for `owner_id` first; this layer
does no authorization of its own.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from knotulus_api.db.models import ShopCredential, utcnow


class ShopCredentialRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, *, owner_id: str, shop_name: str) -> ShopCredential | None:
        return await self._session.get(ShopCredential, (owner_id, shop_name))

    async def save(self, *, owner_id: str, shop_name: str, access_token: str) -> ShopCredential:
        # Re-saving a shop replaces the token and restarts createdAt.
        cred = await self.get(owner_id=owner_id, shop_name=shop_name)
        if cred is None:
            cred = ShopCredential(owner_id=owner_id, shop_name=shop_name, access_token=access_token)
            self._session.add(cred)
        else:
            cred.access_token = access_token
            cred.created_at = utcnow()
        await self._session.flush()
        return cred


# --- Module Notes -----------------------------------------------------------
# Tokens are stored as given. Encrypting them at rest belongs here if required.
