"""Tests for the store order service."""

from unittest.mock import AsyncMock

import pytest

from podbridge.application.dispatch_service import DispatchOutcome, DispatchResult
from podbridge.application.order_service import OrderPage, OrderService
from podbridge.domain.exceptions import OrderNotCancellableError, OrderNotFoundError
from podbridge.domain.state_machines import FulfillmentStatus
from podbridge.infrastructure.repositories import OrderRepository
from podbridge.infrastructure.shopify_client import FulfillmentOrder, ShopifyClientError

DOMAIN = "acme.myshopify.com"


def fo(fo_id: str, request_status: str) -> FulfillmentOrder:
    return FulfillmentOrder(
        id=fo_id,
        order_id="1001",
        assigned_location_id="555",
        request_status=request_status,
        status="open",
    )


@pytest.fixture
def order_repo(store) -> OrderRepository:
    return OrderRepository(store)


@pytest.fixture
def dispatch_service() -> AsyncMock:
    service = AsyncMock()
    service.dispatch.return_value = DispatchResult(outcome=DispatchOutcome.DISPATCHED)
    return service


@pytest.fixture
def service(order_repo, dispatch_service, clients, cipher) -> OrderService:
    return OrderService(
        order_repo=order_repo,
        dispatch_service=dispatch_service,
        clients=clients,
        cipher=cipher,
    )


@pytest.fixture
def seeded(make_order):
    """Five orders created 100 seconds apart, ids 1..5."""

    async def _seed(repo: OrderRepository) -> None:
        for n in range(1, 6):
            await repo.create(make_order(str(n), created_at=1000.0 + n * 100))

    return _seed


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, service, order_repo, seeded) -> None:
        await seeded(order_repo)

        orders = await service.list_orders(DOMAIN)

        assert [o["id"] for o in orders] == ["5", "4", "3", "2", "1"]

    @pytest.mark.asyncio
    async def test_get_order(self, service, order_repo, make_order) -> None:
        await order_repo.create(make_order())

        doc = await service.get_order(DOMAIN, "1001")

        assert doc["id"] == "1001"
        assert doc["fulfillment_status"] == "DEACTIVE"

    @pytest.mark.asyncio
    async def test_get_missing_order(self, service) -> None:
        with pytest.raises(OrderNotFoundError):
            await service.get_order(DOMAIN, "404")


class TestPaging:
    @pytest.mark.asyncio
    async def test_next_page(self, service, order_repo, seeded) -> None:
        await seeded(order_repo)

        page = await service.next_page(DOMAIN, 1400.0, page_size=2)

        assert [o["id"] for o in page.orders] == ["3", "2"]
        assert page.first_cursor == 1300.0
        assert page.last_cursor == 1200.0

    @pytest.mark.asyncio
    async def test_previous_page_is_nearest_newer(self, service, order_repo, seeded) -> None:
        """Going back returns the page just above the cursor, still newest first."""
        await seeded(order_repo)

        page = await service.previous_page(DOMAIN, 1200.0, page_size=2)

        assert [o["id"] for o in page.orders] == ["4", "3"]

    @pytest.mark.asyncio
    async def test_empty_page(self, service, order_repo, seeded) -> None:
        await seeded(order_repo)

        page = await service.next_page(DOMAIN, 1000.0)

        assert page == OrderPage()


class TestDeleteOrders:
    @pytest.mark.asyncio
    async def test_reports_deleted_and_missing(self, service, order_repo, make_order) -> None:
        await order_repo.create(make_order("1"))
        await order_repo.create(make_order("2"))

        result = await service.delete_orders(DOMAIN, ["1", "2", "9"])

        assert result.deleted == ["1", "2"]
        assert result.missing == ["9"]
        assert await order_repo.list_all(DOMAIN) == []


class TestCancelOrder:
    @pytest.mark.asyncio
    async def test_cancels_open_order(self, service, order_repo, make_order, clients) -> None:
        await order_repo.create(make_order())

        record = await service.cancel_order(DOMAIN, "1001", "customer changed mind")

        assert record.fulfillment_status == FulfillmentStatus.CANCELLED
        assert record.status_history[-1].actor == "merchant"
        clients.for_shop.assert_not_called()
        stored = await order_repo.get(DOMAIN, "1001")
        assert stored.fulfillment_status == FulfillmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_accepts_merchant_cancellation_request(self, service, order_repo, make_order, merchant_client) -> None:
        order = make_order()
        order.mark_dispatched("9001", "fo-1")
        await order_repo.create(order)
        merchant_client.get_fulfillment_orders.return_value = [fo("fo-1", "cancellation_requested")]

        record = await service.cancel_order(DOMAIN, "1001")

        merchant_client.accept_cancellation_request.assert_awaited_once_with("fo-1")
        assert record.fulfillment_status == FulfillmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_pending_order_without_cancellation_request(self, service, order_repo, make_order, merchant_client) -> None:
        """An accepted fulfillment order is left alone and the record is cancelled."""
        order = make_order()
        order.mark_dispatched("9001", "fo-1")
        await order_repo.create(order)
        merchant_client.get_fulfillment_orders.return_value = [fo("fo-1", "accepted")]
        merchant_client.accept_cancellation_request.side_effect = ShopifyClientError("acme", "not requested", 422)

        record = await service.cancel_order(DOMAIN, "1001")

        merchant_client.accept_cancellation_request.assert_not_awaited()
        assert record.fulfillment_status == FulfillmentStatus.CANCELLED
        stored = await order_repo.get(DOMAIN, "1001")
        assert stored.fulfillment_status == FulfillmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_rejected_cancellation_still_cancels(self, service, order_repo, make_order, merchant_client) -> None:
        order = make_order()
        order.mark_dispatched("9001", "fo-1")
        await order_repo.create(order)
        merchant_client.get_fulfillment_orders.return_value = [fo("fo-1", "cancellation_requested")]
        merchant_client.accept_cancellation_request.side_effect = ShopifyClientError("acme", "rejected", 422)

        await service.cancel_order(DOMAIN, "1001")

        stored = await order_repo.get(DOMAIN, "1001")
        assert stored.fulfillment_status == FulfillmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_lookup_failure_still_cancels(self, service, order_repo, make_order, merchant_client) -> None:
        order = make_order()
        order.mark_dispatched("9001", "fo-1")
        await order_repo.create(order)
        merchant_client.get_fulfillment_orders.side_effect = ShopifyClientError("acme", "boom", 503)

        record = await service.cancel_order(DOMAIN, "1001")

        assert record.fulfillment_status == FulfillmentStatus.CANCELLED
        merchant_client.accept_cancellation_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_completed_order_not_cancellable(self, service, order_repo, make_order) -> None:
        order = make_order()
        order.mark_dispatched("9001", "fo-1")
        order.activate()
        await order_repo.create(order)

        with pytest.raises(OrderNotCancellableError):
            await service.cancel_order(DOMAIN, "1001")

    @pytest.mark.asyncio
    async def test_missing_order(self, service) -> None:
        with pytest.raises(OrderNotFoundError):
            await service.cancel_order(DOMAIN, "404")


@pytest.mark.asyncio
async def test_charge_and_fulfill_runs_dispatch(service, dispatch_service) -> None:
    result = await service.charge_and_fulfill(DOMAIN, "1001")

    assert result.outcome == DispatchOutcome.DISPATCHED
    dispatch_service.dispatch.assert_awaited_once_with(DOMAIN, "1001")
