"""
knotulus_api.api.routers.health

Liveness and readiness probes. Neither is authenticated nor rate limited.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knotulus_api import __version__
from knotulus_api.api.deps import db_session
from knotulus_api.errors import StoreError
from knotulus_api.observability.logging import get_logger

log = get_logger(__name__)

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request) -> dict[str, str]:
    return {
        "status": "ok",
        "service": request.app.state.settings.service_name,
        "version": __version__,
    }


@router.get("/readyz")
async def readyz(
    request: Request, session: AsyncSession = Depends(db_session)
) -> dict[str, str | int]:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        log.warning("store_not_ready", error=str(e))
        raise StoreError("Store unavailable") from e
    return {
        "status": "ready",
        "rateLimitWindows": len(request.app.state.rate_limiter),
    }
