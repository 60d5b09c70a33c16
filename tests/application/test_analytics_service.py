"""Tests for merchant order analytics."""

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from podbridge.application.analytics_service import AnalyticsService, bucket_ids, shipping_cost
from podbridge.infrastructure.repositories import AnalyticsRepository

DOMAIN = "acme.myshopify.com"


class TestBucketIds:
    def test_buckets_start_at_local_midnight(self) -> None:
        # 2024-03-15 03:30 UTC is still March 14th in Chicago
        at = datetime(2024, 3, 15, 3, 30, tzinfo=ZoneInfo("UTC")).timestamp()

        buckets = bucket_ids("America/Chicago", at)

        day = datetime(2024, 3, 14, tzinfo=ZoneInfo("America/Chicago"))
        month = datetime(2024, 3, 1, tzinfo=ZoneInfo("America/Chicago"))
        assert buckets == {"daily": str(int(day.timestamp())), "monthly": str(int(month.timestamp()))}

    def test_unknown_timezone_falls_back_to_utc(self) -> None:
        at = datetime(2024, 3, 15, 3, 30, tzinfo=ZoneInfo("UTC")).timestamp()
        assert bucket_ids("Mars/Olympus_Mons", at) == bucket_ids("UTC", at)


def test_shipping_cost_includes_surcharge(make_order) -> None:
    assert shipping_cost(make_order()) == Decimal("7.00")


class TestAnalyticsService:
    @pytest.fixture
    def repo(self, store) -> AnalyticsRepository:
        return AnalyticsRepository(store)

    @pytest.fixture
    def service(self, repo) -> AnalyticsService:
        return AnalyticsService(repo)

    @pytest.mark.asyncio
    async def test_orders_accumulate_in_bucket(self, service, repo, make_order) -> None:
        buckets = await service.record_order(make_order("1"))
        await service.record_order(make_order("2"))

        monthly = await repo.get(DOMAIN, "monthly", buckets["monthly"])
        assert monthly.total_orders == 2
        assert monthly.top_sellers == {"Classic Tee": 4}
        assert monthly.timezone == "America/Chicago"

    @pytest.mark.asyncio
    async def test_record_fulfillment(self, service, repo, make_order) -> None:
        order = make_order()
        order.analytics_buckets = await service.record_order(order)

        await service.record_fulfillment(order, fulfilled_at=4_000_000_000.0)

        daily = await repo.get(DOMAIN, "daily", order.analytics_buckets["daily"])
        assert daily.orders[0].fulfilled_date == 4_000_000_000.0
        assert daily.orders[0].fulfilled_time > 0

    @pytest.mark.asyncio
    async def test_fulfillment_of_uncounted_order_is_ignored(self, service, repo, make_order) -> None:
        order = make_order()
        order.analytics_buckets = {"daily": "1700000000", "monthly": "1698796800"}

        await service.record_fulfillment(order)

        assert await repo.get(DOMAIN, "daily", "1700000000") is None
