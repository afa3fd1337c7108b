"""
knotulus_api.services.financial_summary

Financial summary for a shop over two consecutive periods.

Responsibilities:
- Fetch orders for the current period and the one before it.
- Compute revenue, growth rate, a fixed-margin profit estimate and a direction.
- Fetch customer and product counts.

Any upstream failure aborts the summary; there are no partial results.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from knotulus_api.commerce.client import CommerceClient
from knotulus_api.errors import UpstreamError
from knotulus_api.observability.logging import get_logger

log = get_logger(__name__)

# Business assumption, not derived from shop data.
PROFIT_MARGIN = 0.70
GROWTH_NOT_AVAILABLE = "N/A"


class ValuationDirection(enum.StrEnum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"


class FinancialSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    total_revenue_period2: float
    order_count: int
    customer_count: int
    product_count: int
    revenue_growth_rate_percent: str
    profit_estimate: float
    valuation_direction: ValuationDirection


def period_windows(
    period_days: int, now: datetime
) -> tuple[tuple[datetime, datetime], tuple[datetime, datetime]]:
    """
    Returns (period1, period2) as (start, end) pairs. period2 ends now; period1
    ends one day before period2 starts, so the windows never overlap.
    """

    period = timedelta(days=period_days)
    one_day = timedelta(days=1)
    period2 = (now - period, now)
    period1 = (now - 2 * period - one_day, now - period - one_day)
    return period1, period2


def revenue(orders: Iterable[dict[str, Any]]) -> float:
    try:
        return sum(float(o.get("total_price") or 0) for o in orders)
    except (TypeError, ValueError) as e:
        raise UpstreamError("Commerce API returned an order with a non-numeric total_price") from e


def growth_rate(revenue_period1: float, revenue_period2: float) -> str:
    if revenue_period1 > 0:
        return f"{(revenue_period2 - revenue_period1) / revenue_period1 * 100:.2f}%"
    return GROWTH_NOT_AVAILABLE


def direction(revenue_period1: float, revenue_period2: float) -> ValuationDirection:
    change = revenue_period2 - revenue_period1
    if change > 0:
        return ValuationDirection.positive
    if change < 0:
        return ValuationDirection.negative
    return ValuationDirection.neutral


class FinancialSummaryService:
    def __init__(self, client: CommerceClient) -> None:
        self._client = client

    async def summarize(self, period_days: int, *, now: datetime | None = None) -> FinancialSummary:
        now = now or datetime.now(tz=UTC)
        (p1_start, p1_end), (p2_start, p2_end) = period_windows(period_days, now)

        orders_p2 = await self._client.list_orders(created_at_min=p2_start, created_at_max=p2_end)
        orders_p1 = await self._client.list_orders(created_at_min=p1_start, created_at_max=p1_end)
        customer_count = await self._client.count("customers")
        product_count = await self._client.count("products")

        rev1 = revenue(orders_p1)
        rev2 = revenue(orders_p2)
        summary = FinancialSummary(
            total_revenue_period2=rev2,
            order_count=len(orders_p2),
            customer_count=customer_count,
            product_count=product_count,
            revenue_growth_rate_percent=growth_rate(rev1, rev2),
            profit_estimate=rev2 * PROFIT_MARGIN,
            valuation_direction=direction(rev1, rev2),
        )
        log.info(
            "financial_summary_computed",
            period_days=period_days,
            order_count=summary.order_count,
            direction=summary.valuation_direction.value,
        )
        return summary


# --- Module Notes -----------------------------------------------------------
# Orders come from a single upstream page (`commerce.client.ORDER_PAGE_LIMIT`), so
# revenue is undercounted for windows with more orders than the page holds.
