"""
knotulus_api.api.routers.shops

Ownership-scoped shop endpoints.

Responsibilities:
- Save a shop access token for the caller's own account (admins: any account).
- Proxy a financial summary for a saved shop, reading the token server-side.

The access token only ever travels client -> store -> commerce API; no response
contains it.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knotulus_api.api.deps import commerce_http, db_session, settings_dep
from knotulus_api.api.schemas import (
    FinancialSummaryRequest,
    FinancialSummaryResponse,
    SaveShopCredentialRequest,
    SuccessResponse,
)
from knotulus_api.auth.deps import gate_for
from knotulus_api.auth.ownership import owner_field
from knotulus_api.commerce.client import CommerceClient
from knotulus_api.db.repositories.shop_credentials import ShopCredentialRepo
from knotulus_api.errors import AuthenticationError, StoreError, UpstreamError
from knotulus_api.observability.logging import get_logger
from knotulus_api.policy import Endpoint
from knotulus_api.ratelimit.deps import rate_limit
from knotulus_api.services.financial_summary import FinancialSummaryService
from knotulus_api.settings import Settings

log = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["shops"])

save_credential_gate = gate_for(
    Endpoint.save_shop_credential,
    ownership=owner_field("userId", "You can only save credentials for your own account"),
)
financial_summary_gate = gate_for(
    Endpoint.fetch_financial_summary,
    ownership=owner_field("userId", "You can only access your own financial data"),
)


@router.post(
    "/save-shop-credential",
    response_model=SuccessResponse,
    dependencies=[Depends(rate_limit(Endpoint.save_shop_credential, save_credential_gate))],
)
async def save_shop_credential(
    body: SaveShopCredentialRequest,
    session: AsyncSession = Depends(db_session),
) -> SuccessResponse:
    try:
        await ShopCredentialRepo(session).save(
            owner_id=body.user_id,
            shop_name=body.shop_name,
            access_token=body.access_token,
        )
        await session.commit()
    except SQLAlchemyError as e:
        log.exception("save_shop_credential_failed", user_id=body.user_id, shop=body.shop_name)
        raise StoreError("Error saving Shopify credentials.") from e

    log.info("shop_credential_saved", user_id=body.user_id, shop=body.shop_name)
    return SuccessResponse()


@router.post(
    "/fetch-financial-summary",
    response_model=FinancialSummaryResponse,
    dependencies=[Depends(rate_limit(Endpoint.fetch_financial_summary, financial_summary_gate))],
)
async def fetch_financial_summary(
    body: FinancialSummaryRequest,
    session: AsyncSession = Depends(db_session),
    http: httpx.AsyncClient = Depends(commerce_http),
    settings: Settings = Depends(settings_dep),
) -> FinancialSummaryResponse:
    try:
        cred = await ShopCredentialRepo(session).get(owner_id=body.user_id, shop_name=body.shop_name)
    except SQLAlchemyError as e:
        log.exception("shop_credential_lookup_failed", user_id=body.user_id, shop=body.shop_name)
        raise StoreError("Internal server error while fetching financial summary.") from e

    if cred is None:
        raise AuthenticationError(
            "Shop not found for this user. Please add your shop credentials."
        )
    if not cred.access_token:
        raise AuthenticationError(
            "Access token not found. Please add your shop credentials again."
        )

    client = CommerceClient(
        http=http,
        shop_name=body.shop_name,
        access_token=cred.access_token,
        api_version=settings.commerce_api_version,
    )
    try:
        summary = await FinancialSummaryService(client).summarize(body.period)
    except UpstreamError as e:
        log.warning(
            "financial_summary_failed",
            user_id=body.user_id,
            shop=body.shop_name,
            upstream_status=e.status,
            error=e.message,
        )
        if e.token_invalid:
            raise UpstreamError(
                "Shopify token is invalid. Please check your credentials.", status=e.status
            ) from e
        raise UpstreamError(
            "Internal server error while fetching financial summary.", status=e.status
        ) from e

    return FinancialSummaryResponse(data=summary)
