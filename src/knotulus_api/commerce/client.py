"""
knotulus_api.commerce.client

HTTP client for the commerce Admin API.

Responsibilities:
- Authenticate with the shop's stored access token.
- Fetch time-windowed orders and resource counts.
- Turn any non-2xx, timeout or transport failure into `UpstreamError`.

Calls are single-shot (no retries); the timeout comes from the injected
`httpx.AsyncClient`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from knotulus_api.errors import UpstreamError
from knotulus_api.observability.logging import get_logger

log = get_logger(__name__)

# Single page only: windows with more orders than this are undercounted.
ORDER_PAGE_LIMIT = 250


class CommerceClient:
    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        shop_name: str,
        access_token: str,
        api_version: str = "2024-04",
    ) -> None:
        self._http = http
        self._shop_name = shop_name
        self._access_token = access_token
        self._base_url = f"https://{shop_name}/admin/api/{api_version}"

    def _headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self._access_token,
            "Content-Type": "application/json",
        }

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self._base_url}/{path}"
        try:
            r = await self._http.get(url, params=params, headers=self._headers())
        except httpx.TimeoutException as e:
            log.warning("upstream_timeout", shop=self._shop_name, path=path)
            raise UpstreamError("Commerce API request timed out") from e
        except httpx.HTTPError as e:
            log.warning("upstream_unreachable", shop=self._shop_name, path=path, error=str(e))
            raise UpstreamError("Commerce API request failed") from e

        if r.is_error:
            # Upstream bodies are logged for diagnosis, never returned to clients.
            log.warning(
                "upstream_error",
                shop=self._shop_name,
                path=path,
                status=r.status_code,
                body=r.text[:500],
            )
            raise UpstreamError(
                f"Commerce API request failed with status {r.status_code}",
                status=r.status_code,
            )
        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamError("Commerce API returned malformed JSON", status=r.status_code) from e
        if not isinstance(data, dict):
            log.warning("upstream_unexpected_payload", shop=self._shop_name, path=path)
            raise UpstreamError("Commerce API returned an unexpected payload", status=r.status_code)
        return data

    async def list_orders(
        self, *, created_at_min: datetime, created_at_max: datetime
    ) -> list[dict[str, Any]]:
        data = await self._get(
            "orders.json",
            params={
                "created_at_min": created_at_min.isoformat(),
                "created_at_max": created_at_max.isoformat(),
                "status": "any",
                "limit": ORDER_PAGE_LIMIT,
            },
        )
        orders = data.get("orders") or []
        if not isinstance(orders, list) or not all(isinstance(o, dict) for o in orders):
            raise UpstreamError("Commerce API returned malformed orders")
        return orders

    async def count(self, resource: str) -> int:
        data = await self._get(f"{resource}/count.json")
        count = data.get("count", 0)
        # bool is an int subclass; neither it nor a string is a count.
        if isinstance(count, bool) or not isinstance(count, int):
            raise UpstreamError(f"Commerce API returned a malformed {resource} count")
        return count
