"""
knotulus_api.db.models

Persistence schema.

Responsibilities:
- User: waitlist/user entries, unique by email.
- ShopCredential: per-user, per-shop commerce access tokens.

`to_record` renders the camelCase document shape clients see; records always go
through `knotulus_api.sanitizer` before leaving the service.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from knotulus_api.db.base import Base


def utcnow() -> datetime:
    # Naive UTC timestamps; serialized with a trailing "Z".
    return datetime.utcnow()


def _new_id() -> str:
    return uuid.uuid4().hex


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() + "Z" if value is not None else None


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "createdAt": _iso(self.created_at),
        }


class ShopCredential(Base):
    __tablename__ = "shop_credentials"

    # Token subject, not necessarily a `users` row (waitlist ids differ from auth ids).
    owner_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    shop_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
