"""Tests for Pub/Sub push endpoints."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from podbridge.api import pubsub
from podbridge.application.analytics_service import AnalyticsService
from podbridge.application.completion_service import CompletionService
from podbridge.application.intake_service import IntakeService
from podbridge.application.merchant_service import MerchantService
from podbridge.domain.state_machines import FulfillmentStatus
from podbridge.infrastructure.config import settings
from podbridge.infrastructure.repositories import (
    AnalyticsRepository,
    MerchantRepository,
    OrderRepository,
)
from podbridge.infrastructure.shopify_client import Fulfillment, ShopifyClientError
from podbridge.main import app


ORDER_EVENT = {
    "id": 1001,
    "order_number": 1001,
    "email": "ada@example.com",
    "order_status_url": "https://acme.myshopify.com/1/orders/abc",
    "line_items": [
        {"product_id": "p-1", "variant_id": "mv-1", "title": "Classic Tee", "quantity": 2, "price": "25.00"}
    ],
    "shipping_address": {"address1": "1 Analytical Way", "city": "Fayetteville", "zip": "72701"},
}


POD_ORDER = {
    "id": 9001,
    "tags": "acme.myshopify.com, 1001",
    "fulfillments": [{"tracking_number": "9400", "tracking_url": "https://track/9400", "tracking_company": "USPS"}],
}


@pytest.fixture(autouse=True)
def services(store, clients, cipher, dispatch_service, monkeypatch) -> None:
    """Route the endpoints to services over the test store."""
    shipengine = AsyncMock()
    shipengine.quote.return_value = Decimal("6.25")
    intake = IntakeService(
        merchant_repo=MerchantRepository(store),
        order_repo=OrderRepository(store),
        clients=clients,
        shipengine=shipengine,
    )
    completion = CompletionService(
        order_repo=OrderRepository(store),
        clients=clients,
        analytics=AnalyticsService(AnalyticsRepository(store)),
        cipher=cipher,
    )
    merchants = MerchantService(merchant_repo=MerchantRepository(store))
    app.dependency_overrides[pubsub.get_intake] = lambda: intake
    app.dependency_overrides[pubsub.get_completion] = lambda: completion
    app.dependency_overrides[pubsub.get_merchants] = lambda: merchants
    monkeypatch.setattr(pubsub, "get_dispatch_service", lambda request_id=None: dispatch_service)


class TestAuth:
    def test_requires_verification_token(self, client: TestClient, push_envelope) -> None:
        response = client.post("/pubsub/pod-order-complete", json=push_envelope(ORDER_EVENT))

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_VERIFICATION_TOKEN"

    def test_wrong_token(self, client: TestClient, push_envelope) -> None:
        response = client.post(
            "/pubsub/pod-order-complete",
            params={"token": "nope"},
            json=push_envelope(ORDER_EVENT),
        )
        assert response.status_code == 401


def test_unknown_topic(client: TestClient, token, push_envelope) -> None:
    response = client.post("/pubsub/unknown", params=token, json=push_envelope({}))

    assert response.status_code == 404
    assert response.json()["error_code"] == "UNKNOWN_TOPIC"


def test_malformed_message_is_acknowledged(client: TestClient, token) -> None:
    """Undecodable data is acked so it is not redelivered."""
    response = client.post(
        "/pubsub/pod-order-complete",
        params=token,
        json={"message": {"data": "not base64!!", "messageId": "m-1"}},
    )

    assert response.status_code == 200
    assert response.json() == {"status": "skipped", "reason": "MALFORMED_MESSAGE", "order_id": None}


def test_non_object_payload_is_acknowledged(client: TestClient, token, push_envelope) -> None:
    response = client.post("/pubsub/pod-fulfilled", params=token, json=push_envelope([1, 2]))

    assert response.json()["reason"] == "MALFORMED_MESSAGE"


class TestOrderComplete:
    def test_takes_in_and_dispatches(
        self, client: TestClient, token, push_envelope, installed, stored_order, pod_client
    ) -> None:
        response = client.post("/pubsub/pod-order-complete", params=token, json=push_envelope(ORDER_EVENT))

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        assert response.json()["order_id"] == "1001"

        record = stored_order("1001")
        assert record.pod_created is True
        assert record.fulfillment_status == FulfillmentStatus.PENDING
        pod_client.create_order.assert_awaited_once()

    def test_dispatch_can_be_left_to_trigger(
        self, client: TestClient, token, push_envelope, installed, stored_order, pod_client, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings, "dispatch_on_create", False)

        response = client.post("/pubsub/pod-order-complete", params=token, json=push_envelope(ORDER_EVENT))

        assert response.json()["status"] == "processed"
        assert stored_order("1001").fulfillment_status == FulfillmentStatus.DEACTIVE
        pod_client.create_order.assert_not_awaited()

    def test_redelivery_is_skipped(self, client: TestClient, token, push_envelope, installed, pod_client) -> None:
        client.post("/pubsub/pod-order-complete", params=token, json=push_envelope(ORDER_EVENT))
        response = client.post("/pubsub/pod-order-complete", params=token, json=push_envelope(ORDER_EVENT))

        assert response.status_code == 200
        assert response.json()["reason"] == "ALREADY_EXISTS"
        assert pod_client.create_order.await_count == 1

    def test_unknown_merchant_is_skipped(self, client: TestClient, token, push_envelope) -> None:
        response = client.post("/pubsub/pod-order-complete", params=token, json=push_envelope(ORDER_EVENT))

        assert response.status_code == 200
        assert response.json() == {"status": "skipped", "reason": "MERCHANT_NOT_FOUND", "order_id": "1001"}


class TestFulfilled:
    def test_completes_order(
        self, client: TestClient, token, push_envelope, seed_order, make_order, stored_order, merchant_client
    ) -> None:
        order = make_order()
        order.mark_dispatched("9001", "fo-1")
        seed_order(order)
        merchant_client.create_fulfillment.return_value = Fulfillment(id="f-1", location_id="555", status="success")

        response = client.post("/pubsub/pod-fulfilled", params=token, json=push_envelope(POD_ORDER))

        assert response.json() == {"status": "processed", "reason": None, "order_id": "1001"}
        assert stored_order("1001").fulfillment_status == FulfillmentStatus.ACTIVE

    def test_unknown_order_is_skipped(self, client: TestClient, token, push_envelope) -> None:
        response = client.post("/pubsub/pod-fulfilled", params=token, json=push_envelope(POD_ORDER))

        assert response.status_code == 200
        assert response.json()["reason"] == "ORDER_NOT_FOUND"

    def test_shopify_failure_is_redelivered(
        self, client: TestClient, token, push_envelope, seed_order, make_order, merchant_client
    ) -> None:
        """A failed fulfillment returns 500 so the push is retried."""
        order = make_order()
        order.mark_dispatched("9001", "fo-1")
        seed_order(order)
        merchant_client.create_fulfillment.side_effect = ShopifyClientError("acme", "boom", 502)

        response = client.post("/pubsub/pod-fulfilled", params=token, json=push_envelope(POD_ORDER))

        assert response.status_code == 500
        assert response.json()["error_code"] == "INTERNAL_ERROR"


class TestShopUpdate:
    def test_maps_custom_domain(self, client: TestClient, token, push_envelope, seed_merchant, make_merchant, store) -> None:
        seed_merchant(make_merchant())
        shop = {"id": 1, "myshopify_domain": "acme.myshopify.com", "domain": "shop.acme.dev"}

        response = client.post("/pubsub/shop-update", params=token, json=push_envelope(shop))

        assert response.json()["status"] == "processed"
        assert asyncio.run(MerchantRepository(store).lookup_domain("shop.acme.dev")) == "acme.myshopify.com"

    def test_no_custom_domain(self, client: TestClient, token, push_envelope) -> None:
        shop = {"myshopify_domain": "acme.myshopify.com", "domain": "acme.myshopify.com"}

        response = client.post("/pubsub/shop-update", params=token, json=push_envelope(shop))

        assert response.json() == {"status": "skipped", "reason": "NO_CUSTOM_DOMAIN", "order_id": None}
