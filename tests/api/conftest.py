"""Shared fixtures for API tests."""

import asyncio
import base64
import json
from decimal import Decimal
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from podbridge.application.analytics_service import AnalyticsService
from podbridge.application.billing_service import UsageDecision
from podbridge.application.dispatch_service import DispatchService
from podbridge.domain.entities import MerchantRecord, OrderRecord
from podbridge.infrastructure.config import settings
from podbridge.infrastructure.document_store import PRODUCTS, subcollection
from podbridge.infrastructure.repositories import (
    AnalyticsRepository,
    MerchantRepository,
    OrderRepository,
)
from podbridge.main import app


@pytest.fixture
def client(store) -> TestClient:
    """Create test client without authentication."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(store) -> TestClient:
    """Create test client with valid API key authentication."""
    yield TestClient(
        app,
        headers={"Authorization": f"Bearer {settings.podbridge_api_key}"},
    )
    app.dependency_overrides.clear()


@pytest.fixture
def token() -> dict[str, str]:
    """Query parameters authenticating an event delivery."""
    return {"token": settings.pubsub_verification_token}


@pytest.fixture
def usage_gate() -> AsyncMock:
    gate = AsyncMock()
    gate.evaluate.return_value = UsageDecision(created_record=True, cost=Decimal("39.50"))
    return gate


@pytest.fixture
def dispatch_service(store, clients, usage_gate, cipher) -> DispatchService:
    """Dispatch service over the test store and fake Shopify clients."""
    return DispatchService(
        order_repo=OrderRepository(store),
        merchant_repo=MerchantRepository(store),
        clients=clients,
        usage_gate=usage_gate,
        analytics=AnalyticsService(AnalyticsRepository(store)),
        cipher=cipher,
    )


@pytest.fixture
def push_envelope() -> Callable[..., dict[str, Any]]:
    """Factory for Pub/Sub push bodies carrying a JSON payload."""

    def _make(payload: Any, message_id: str = "m-1") -> dict[str, Any]:
        data = base64.b64encode(json.dumps(payload).encode()).decode()
        return {
            "message": {"data": data, "messageId": message_id, "attributes": {}},
            "subscription": "projects/podbridge/subscriptions/test",
        }

    return _make


@pytest.fixture
def seed_order(store) -> Callable[[OrderRecord], None]:
    """Persist an order record before a request."""

    def _seed(record: OrderRecord) -> None:
        asyncio.run(OrderRepository(store).create(record))

    return _seed


@pytest.fixture
def seed_merchant(store) -> Callable[[MerchantRecord], None]:
    """Persist a merchant and map its domain."""

    def _seed(merchant: MerchantRecord) -> None:
        repo = MerchantRepository(store)
        asyncio.run(repo.save(merchant))
        asyncio.run(repo.map_domain(merchant.myshopify_domain, merchant.myshopify_domain))

    return _seed


@pytest.fixture
def stored_order(store) -> Callable[..., OrderRecord | None]:
    """Read an order record back after a request."""

    def _get(order_id: str, domain: str = "acme.myshopify.com") -> OrderRecord | None:
        return asyncio.run(OrderRepository(store).get(domain, order_id))

    return _get


@pytest.fixture
def installed(store, seed_merchant, make_merchant) -> None:
    """Merchant installed with one black tee product."""
    seed_merchant(make_merchant())
    asyncio.run(
        store.set(
            subcollection("acme.myshopify.com", PRODUCTS),
            "p-1",
            {
                "id": "p-1",
                "title": "Classic Tee",
                "type": "T-Shirt",
                "merged_variants": [
                    {"merchant_variants_id": "mv-1", "pod_variants_id": "pv-1", "SKU": "TEE-BLK-M", "cost": "9.50"}
                ],
            },
        )
    )
