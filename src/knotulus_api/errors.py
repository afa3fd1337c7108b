"""
knotulus_api.errors

Error taxonomy shared by guards, services and routers.

Every error carries the client-safe message and the HTTP status it maps to.
Internal detail (upstream bodies, driver errors) goes to the logs and the
exception chain, never into `message`.
"""

from __future__ import annotations


class ApiError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    status_code = 400


class AuthenticationError(ApiError):
    status_code = 401


class AuthorizationError(ApiError):
    status_code = 403


class RateLimitedError(ApiError):
    status_code = 429

    def __init__(self, message: str, *, retry_after_seconds: int) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class StoreError(ApiError):
    status_code = 500


class UpstreamError(ApiError):
    """
    Commerce API (or other upstream) failure.

    `status` is the upstream HTTP status, or None for timeouts and transport
    failures. An upstream 401 means the stored access token was rejected.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.status_code = 401 if self.token_invalid else 500

    @property
    def token_invalid(self) -> bool:
        return self.status == 401
