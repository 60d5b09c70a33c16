"""Shared fixtures for all tests."""

from decimal import Decimal
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from podbridge.domain.entities import (
    Address,
    Customer,
    LineItem,
    MerchantOrder,
    MerchantRecord,
    OrderRecord,
    PodLineItem,
)
from podbridge.infrastructure.document_store import InMemoryDocumentStore, reset_document_store
from podbridge.infrastructure.encryption import TokenCipher


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Fresh in-memory document store installed as the process store."""
    fresh = InMemoryDocumentStore()
    reset_document_store(fresh)
    yield fresh
    reset_document_store()


@pytest.fixture
def cipher() -> TokenCipher:
    return TokenCipher()


@pytest.fixture
def address() -> Address:
    return Address(
        first_name="Ada",
        last_name="Lovelace",
        address1="1 Analytical Way",
        city="Fayetteville",
        province="Arkansas",
        province_code="AR",
        zip="72701",
        country="United States",
        country_code="US",
    )


@pytest.fixture
def make_pod_item() -> Callable[..., PodLineItem]:
    def _make(
        cost: str = "10.00",
        quantity: int = 1,
        pod_variant_id: str = "pv-1",
        merchant_variant_id: str = "mv-1",
        type: str = "T-Shirt",
        weight: int = 85,
    ) -> PodLineItem:
        return PodLineItem(
            pod_variant_id=pod_variant_id,
            merchant_variant_id=merchant_variant_id,
            quantity=quantity,
            weight=weight,
            cost=Decimal(cost),
            price=Decimal(cost) * Decimal("2.5"),
            type=type,
            title="Classic Tee",
        )

    return _make


@pytest.fixture
def make_order(
    cipher: TokenCipher, address: Address, make_pod_item: Callable[..., PodLineItem]
) -> Callable[..., OrderRecord]:
    """Factory for order records of ``acme.myshopify.com``."""

    def _make(order_id: str = "1001", **overrides: Any) -> OrderRecord:
        fields: dict[str, Any] = {
            "id": order_id,
            "domain": "acme.myshopify.com",
            "myshopify_domain": "acme.myshopify.com",
            "timezone": "America/Chicago",
            "access_token": cipher.encrypt("shpat_merchant"),
            "location_id": "555",
            "merchant_order": MerchantOrder(
                order_id=order_id,
                order_number="1001",
                line_items=[
                    LineItem(
                        product_id="p-1",
                        variant_id="mv-1",
                        title="Classic Tee",
                        quantity=2,
                        price=Decimal("25.00"),
                    )
                ],
            ),
            "customer": Customer(email="ada@example.com", id="c-1", shipping_address=address),
            "pod_line_items": [
                make_pod_item(cost="10.00", quantity=2),
                make_pod_item(cost="12.50", quantity=1, pod_variant_id="pv-2", merchant_variant_id="mv-2"),
            ],
            "shipping_rate": Decimal("5.00"),
            "pod_order_payload": {"line_items": [], "tags": f"acme.myshopify.com, {order_id}"},
        }
        fields.update(overrides)
        return OrderRecord(**fields)

    return _make


@pytest.fixture
def make_merchant(cipher: TokenCipher) -> Callable[..., MerchantRecord]:
    def _make(domain: str = "acme.myshopify.com", **overrides: Any) -> MerchantRecord:
        fields: dict[str, Any] = {
            "myshopify_domain": domain,
            "access_token": cipher.encrypt("shpat_merchant"),
            "location_id": "555",
            "fulfillment_service_id": "777",
            "timezone": "America/Chicago",
            "shop_name": "Acme",
        }
        fields.update(overrides)
        return MerchantRecord(**fields)

    return _make


@pytest.fixture
def merchant_client() -> AsyncMock:
    """Shopify client of the merchant store."""
    client = AsyncMock()
    client.get_fulfillment_orders.return_value = []
    return client


@pytest.fixture
def pod_client() -> AsyncMock:
    """Shopify client of the POD partner store."""
    client = AsyncMock()
    client.create_order.return_value = {"id": 9001}
    client.create_customer.return_value = "c-1"
    return client


@pytest.fixture
def clients(merchant_client: AsyncMock, pod_client: AsyncMock) -> MagicMock:
    """Client factory handing out the fake merchant and POD clients."""
    factory = MagicMock()
    factory.for_shop.return_value = merchant_client
    factory.for_pod_store.return_value = pod_client
    return factory
