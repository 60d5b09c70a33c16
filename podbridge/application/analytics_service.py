"""Analytics application service.

Maintains the daily and monthly order aggregates of each merchant. An order
is counted when it is dispatched to the POD partner and stamped with its
fulfillment time when the partner ships it.
"""

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from podbridge.domain.entities import AnalyticsAggregate, OrderRecord, now_ts
from podbridge.infrastructure.config import settings
from podbridge.infrastructure.repositories import AnalyticsRepository

logger = structlog.get_logger()

PERIODS = ("daily", "monthly")


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown merchant timezone, using UTC", timezone=tz_name)
        return ZoneInfo("UTC")


def bucket_ids(tz_name: str, at: float | None = None) -> dict[str, str]:
    """Compute the daily and monthly bucket ids for a moment.

    Args:
        tz_name: IANA timezone of the merchant.
        at: Unix time, defaults to now.

    Returns:
        ``{"daily": <day start>, "monthly": <month start>}`` as unix-second
        strings in the merchant's timezone.
    """
    moment = datetime.fromtimestamp(at if at is not None else now_ts(), tz=timezone.utc)
    local = moment.astimezone(_zone(tz_name))
    day_start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = day_start.replace(day=1)
    return {
        "daily": str(int(day_start.timestamp())),
        "monthly": str(int(month_start.timestamp())),
    }


def shipping_cost(order: OrderRecord) -> Decimal:
    """Shipping charged to the merchant, including the flat surcharge."""
    return order.shipping_rate + settings.usage_surcharge


class AnalyticsService:
    """Application service for merchant order analytics."""

    def __init__(self, analytics_repo: AnalyticsRepository | None = None) -> None:
        self.analytics_repo = analytics_repo or AnalyticsRepository()

    async def _load(self, domain: str, period: str, bucket_id: str, tz_name: str) -> AnalyticsAggregate:
        aggregate = await self.analytics_repo.get(domain, period, bucket_id)
        if aggregate is None:
            aggregate = AnalyticsAggregate(id=bucket_id, timezone=tz_name)
        return aggregate

    async def record_order(self, order: OrderRecord) -> dict[str, str]:
        """Count a dispatched order in the current daily and monthly buckets.

        Returns:
            The bucket ids the order was counted in.
        """
        buckets = bucket_ids(order.timezone)

        for period in PERIODS:
            aggregate = await self._load(order.domain, period, buckets[period], order.timezone)
            aggregate.add_order(order, shipping_cost(order))
            await self.analytics_repo.save(order.domain, period, aggregate)

        logger.info(
            "Order recorded in analytics",
            domain=order.domain,
            order_id=order.id,
            buckets=buckets,
            revenue=str(order.total_price),
        )
        return buckets

    async def record_fulfillment(self, order: OrderRecord, fulfilled_at: float | None = None) -> None:
        """Stamp the fulfillment time on the order's analytics entries.

        Uses the buckets saved on the order at dispatch and falls back to the
        current buckets for orders dispatched before they were tracked.
        """
        fulfilled_at = fulfilled_at if fulfilled_at is not None else now_ts()
        buckets = order.analytics_buckets or bucket_ids(order.timezone)

        for period in PERIODS:
            bucket_id = buckets.get(period)
            if not bucket_id:
                continue
            aggregate = await self.analytics_repo.get(order.domain, period, bucket_id)
            if aggregate is None or not aggregate.mark_fulfilled(order.id, fulfilled_at):
                logger.warning(
                    "Order not found in analytics bucket",
                    domain=order.domain,
                    order_id=order.id,
                    period=period,
                    bucket_id=bucket_id,
                )
                continue
            await self.analytics_repo.save(order.domain, period, aggregate)
