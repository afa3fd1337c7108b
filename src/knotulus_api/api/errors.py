"""
knotulus_api.api.errors

Exception handlers rendering every failure as `{"success": false, "error": ...}`.

Responsibilities:
- Map `ApiError` subclasses to their status codes.
- Render request-model validation failures as 400 with the offending fields.
- Render anything unexpected as a logged JSON 500.
- Attach quota headers to error responses: the admission already made for the
  request, or the caller's current standing when a guard rejected it first.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from knotulus_api.errors import ApiError, RateLimitedError
from knotulus_api.observability.logging import get_logger
from knotulus_api.ratelimit.deps import client_key

log = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error."


async def _rate_limit_headers(request: Request) -> dict[str, str]:
    admission = getattr(request.state, "rate_limit", None)
    if admission is None:
        endpoint = getattr(request.state, "quota_endpoint", None)
        limiter = getattr(request.app.state, "rate_limiter", None)
        if endpoint is None or limiter is None:
            return {}
        principal = getattr(request.state, "principal", None)
        role = principal.quota_role if principal is not None else "user"
        admission = await limiter.peek(client_key(request, principal), endpoint, role)
    return admission.headers()


async def error_response(
    request: Request, status_code: int, message: str, **extra: Any
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": message, **extra}
    headers = await _rate_limit_headers(request)
    return JSONResponse(body, status_code=status_code, headers=headers)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if isinstance(exc, RateLimitedError):
        return await error_response(
            request, exc.status_code, exc.message, retryAfter=exc.retry_after_seconds
        )
    return await error_response(request, exc.status_code, exc.message)


def _field_name(loc: tuple[Any, ...]) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query")]
    return ".".join(parts)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    log.info("request_invalid", errors=[{"loc": e.get("loc"), "type": e.get("type")} for e in errors])
    if any(e.get("type") == "json_invalid" for e in errors):
        return await error_response(request, 400, "Request body must be valid JSON")
    fields = sorted({_field_name(tuple(e.get("loc", ()))) for e in errors} - {""})
    message = "Missing or invalid required parameters"
    if fields:
        message = f"{message}: {', '.join(fields)}"
    return await error_response(request, 400, message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == 405:
        # Method mismatches get a bare text body.
        allowed = (exc.headers or {}).get("Allow", "POST").split(",")[0].strip()
        return PlainTextResponse(f"Please send a {allowed} request", status_code=400)
    return await error_response(request, exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception(
        "unhandled_error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
    )
    return await error_response(request, 500, INTERNAL_ERROR_MESSAGE)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)


# --- Module Notes -----------------------------------------------------------
# Starlette runs the `Exception` handler in its outermost middleware, outside
# CORS and request context, and re-raises afterwards so the server still sees
# the failure. Clients get the JSON body either way.
