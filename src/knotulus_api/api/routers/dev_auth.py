"""
knotulus_api.api.routers.dev_auth

Dev-only token minting.

Responsibilities:
- Sign identity tokens with the service secret so local browsers and tests can
  call protected endpoints without the external identity provider.
- Hide the route in prod.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_404_NOT_FOUND

from knotulus_api.api.deps import settings_dep
from knotulus_api.auth.jwt import JwtConfig, issue_token
from knotulus_api.settings import Settings

router = APIRouter(prefix="/v1/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=128)
    admin: bool = False
    email: str | None = Field(default=None, max_length=320)
    email_verified: bool = False
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


class DevTokenResponse(BaseModel):
    id_token: str
    token_type: str = "bearer"


@router.post("/token", response_model=DevTokenResponse)
async def mint_dev_token(
    body: DevTokenRequest,
    settings: Settings = Depends(settings_dep),
) -> DevTokenResponse:
    # Stand-in for the identity provider; never exposed in prod.
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")

    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=body.subject,
        admin=body.admin,
        email=body.email,
        email_verified=body.email_verified,
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    return DevTokenResponse(id_token=token)
