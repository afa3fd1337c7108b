from __future__ import annotations

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from knotulus_api.commerce.client import ORDER_PAGE_LIMIT, CommerceClient
from knotulus_api.errors import UpstreamError
from knotulus_api.services.financial_summary import (
    FinancialSummaryService,
    ValuationDirection,
    growth_rate,
    period_windows,
    revenue,
)

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=UTC)


def _orders(*totals: str) -> list[dict[str, str]]:
    return [{"id": str(i), "total_price": t} for i, t in enumerate(totals)]


async def _summarize(commerce, period_days: int = 10):
    async with commerce.client() as http:
        client = CommerceClient(http=http, shop_name="demo.myshopify.com", access_token="shpat_x")
        return await FinancialSummaryService(client).summarize(period_days, now=NOW)


def test_period_windows_do_not_overlap() -> None:
    (p1_start, p1_end), (p2_start, p2_end) = period_windows(7, NOW)
    assert p2_end == NOW
    assert p2_start == NOW - timedelta(days=7)
    assert p1_end == NOW - timedelta(days=8)
    assert p1_start == NOW - timedelta(days=15)
    assert p1_end < p2_start


def test_growth_rate_formatting() -> None:
    assert growth_rate(100.0, 120.0) == "20.00%"
    assert growth_rate(200.0, 150.0) == "-25.00%"
    assert growth_rate(0.0, 50.0) == "N/A"


@pytest.mark.asyncio
async def test_summary_positive_growth(commerce) -> None:
    commerce.orders_period2 = _orders("70.00", "50.00")
    commerce.orders_period1 = _orders("100.00")
    commerce.customer_count = 12
    commerce.product_count = 4

    summary = await _summarize(commerce)

    assert summary.total_revenue_period2 == pytest.approx(120.0)
    assert summary.order_count == 2
    assert summary.customer_count == 12
    assert summary.product_count == 4
    assert summary.revenue_growth_rate_percent == "20.00%"
    assert summary.profit_estimate == pytest.approx(84.0)
    assert summary.valuation_direction is ValuationDirection.positive


@pytest.mark.asyncio
async def test_summary_without_prior_revenue_reports_na(commerce) -> None:
    commerce.orders_period2 = _orders("25.50")

    summary = await _summarize(commerce)

    assert summary.revenue_growth_rate_percent == "N/A"
    assert summary.valuation_direction is ValuationDirection.positive


@pytest.mark.asyncio
async def test_summary_flat_and_negative(commerce) -> None:
    summary = await _summarize(commerce)
    assert summary.revenue_growth_rate_percent == "N/A"
    assert summary.valuation_direction is ValuationDirection.neutral
    assert summary.profit_estimate == 0

    commerce.requests.clear()
    commerce.orders_period2 = _orders("40")
    commerce.orders_period1 = _orders("80")
    summary = await _summarize(commerce)
    assert summary.revenue_growth_rate_percent == "-50.00%"
    assert summary.valuation_direction is ValuationDirection.negative


@pytest.mark.asyncio
async def test_upstream_requests_are_authenticated_and_capped(commerce) -> None:
    await _summarize(commerce, period_days=3)

    paths = [r.url.path for r in commerce.requests]
    assert paths == [
        "/admin/api/2024-04/orders.json",
        "/admin/api/2024-04/orders.json",
        "/admin/api/2024-04/customers/count.json",
        "/admin/api/2024-04/products/count.json",
    ]
    first = commerce.requests[0]
    assert first.url.host == "demo.myshopify.com"
    assert first.headers["X-Shopify-Access-Token"] == "shpat_x"
    assert first.url.params["limit"] == str(ORDER_PAGE_LIMIT)
    assert first.url.params["status"] == "any"
    assert first.url.params["created_at_max"] == NOW.isoformat()


@pytest.mark.asyncio
async def test_upstream_401_is_flagged_as_invalid_token(commerce) -> None:
    commerce.failures["/orders.json"] = 401

    with pytest.raises(UpstreamError) as ei:
        await _summarize(commerce)

    assert ei.value.token_invalid
    assert ei.value.status_code == 401
    # Aborted after the first failure.
    assert len(commerce.requests) == 1


@pytest.mark.asyncio
async def test_other_upstream_failures_abort_with_500(commerce) -> None:
    commerce.failures["/products/count.json"] = 503

    with pytest.raises(UpstreamError) as ei:
        await _summarize(commerce)

    assert not ei.value.token_invalid
    assert ei.value.status == 503
    assert ei.value.status_code == 500


@pytest.mark.asyncio
async def test_timeout_is_an_upstream_failure() -> None:
    def _timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(_timeout)) as http:
        client = CommerceClient(http=http, shop_name="slow.myshopify.com", access_token="t")
        with pytest.raises(UpstreamError) as ei:
            await FinancialSummaryService(client).summarize(10, now=NOW)

    assert ei.value.status is None
    assert ei.value.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path, payload",
    [
        ("/orders.json", [{"total_price": "10.00"}]),
        ("/orders.json", {"orders": "none"}),
        ("/customers/count.json", {"count": "many"}),
    ],
)
async def test_malformed_upstream_payloads_are_upstream_failures(path, payload) -> None:
    def _handle(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(path):
            return httpx.Response(200, json=payload)
        if request.url.path.endswith("/orders.json"):
            return httpx.Response(200, json={"orders": []})
        return httpx.Response(200, json={"count": 1})

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handle)) as http:
        client = CommerceClient(http=http, shop_name="odd.myshopify.com", access_token="t")
        with pytest.raises(UpstreamError) as ei:
            await FinancialSummaryService(client).summarize(10, now=NOW)

    assert not ei.value.token_invalid
    assert ei.value.status_code == 500


def test_non_numeric_order_total_is_an_upstream_failure() -> None:
    with pytest.raises(UpstreamError):
        revenue([{"total_price": "n/a"}])
    assert revenue([{"total_price": None}, {"total_price": "2.50"}]) == pytest.approx(2.5)
