"""Typed repositories over the document store.

Each repository maps one document layout to its domain entity.
"""

from typing import Any

from podbridge.domain.entities import (
    AnalyticsAggregate,
    MerchantRecord,
    OrderRecord,
    ProductRecord,
    now_ts,
)
from podbridge.infrastructure.document_store import (
    DAILY_ANALYTICS,
    DOMAIN_MAP,
    MERCHANTS,
    MONTHLY_ANALYTICS,
    ORDERS,
    PRODUCTS,
    DocumentStore,
    PageDirection,
    get_document_store,
    subcollection,
)


# ============================================================================
# Merchant Repository
# ============================================================================


class MerchantRepository:
    """Merchant documents and the domain map."""

    def __init__(self, store: DocumentStore | None = None) -> None:
        self.store = store or get_document_store()

    async def get(self, myshopify_domain: str) -> MerchantRecord | None:
        data = await self.store.get(MERCHANTS, myshopify_domain)
        return MerchantRecord.from_document(data) if data else None

    async def save(self, merchant: MerchantRecord) -> None:
        await self.store.set(MERCHANTS, merchant.myshopify_domain, merchant.to_document())

    async def update(self, myshopify_domain: str, fields: dict[str, Any]) -> bool:
        return await self.store.update(MERCHANTS, myshopify_domain, fields)

    async def delete(self, myshopify_domain: str) -> bool:
        return await self.store.delete(MERCHANTS, myshopify_domain)

    async def lookup_domain(self, domain: str) -> str | None:
        """Resolve a primary or custom domain to its ``myshopify_domain``."""
        data = await self.store.get(DOMAIN_MAP, domain)
        if not data:
            return None
        return data.get("myshopify_domain") or None

    async def map_domain(self, domain: str, myshopify_domain: str, custom_domain: str = "") -> None:
        await self.store.set(
            DOMAIN_MAP,
            domain,
            {
                "id": domain,
                "myshopify_domain": myshopify_domain,
                "custom_domain": custom_domain,
                "created_at": now_ts(),
            },
        )


# ============================================================================
# Order Repository
# ============================================================================


class OrderRepository:
    """Order records under ``shopify_pod/{domain}/orders``."""

    def __init__(self, store: DocumentStore | None = None) -> None:
        self.store = store or get_document_store()

    async def get(self, domain: str, order_id: str) -> OrderRecord | None:
        data = await self.store.get(subcollection(domain, ORDERS), str(order_id))
        return OrderRecord.from_document(data) if data else None

    async def get_raw(self, domain: str, order_id: str) -> dict[str, Any] | None:
        return await self.store.get(subcollection(domain, ORDERS), str(order_id))

    async def create(self, record: OrderRecord) -> bool:
        """Insert a new record. Returns False if one already exists."""
        return await self.store.create(
            subcollection(record.domain, ORDERS), record.id, record.to_document()
        )

    async def save(self, record: OrderRecord) -> None:
        await self.store.set(subcollection(record.domain, ORDERS), record.id, record.to_document())

    async def delete(self, domain: str, order_id: str) -> bool:
        return await self.store.delete(subcollection(domain, ORDERS), str(order_id))

    async def list_all(self, domain: str) -> list[dict[str, Any]]:
        return await self.store.scan(subcollection(domain, ORDERS))

    async def page(
        self,
        domain: str,
        cursor: float,
        direction: PageDirection,
        limit: int,
    ) -> list[dict[str, Any]]:
        return await self.store.page(subcollection(domain, ORDERS), cursor, direction, limit)


# ============================================================================
# Product Repository
# ============================================================================


class ProductRepository:
    """Generated products under ``shopify_pod/{domain}/products``."""

    def __init__(self, store: DocumentStore | None = None) -> None:
        self.store = store or get_document_store()

    async def get(self, domain: str, product_id: str) -> ProductRecord | None:
        data = await self.store.get(subcollection(domain, PRODUCTS), str(product_id))
        if not data:
            return None
        data.setdefault("id", str(product_id))
        return ProductRecord.from_document(data)


# ============================================================================
# Analytics Repository
# ============================================================================


ANALYTICS_COLLECTIONS = {"daily": DAILY_ANALYTICS, "monthly": MONTHLY_ANALYTICS}


class AnalyticsRepository:
    """Daily and monthly aggregates of a merchant."""

    def __init__(self, store: DocumentStore | None = None) -> None:
        self.store = store or get_document_store()

    async def get(self, domain: str, period: str, bucket_id: str) -> AnalyticsAggregate | None:
        data = await self.store.get(subcollection(domain, ANALYTICS_COLLECTIONS[period]), bucket_id)
        return AnalyticsAggregate.from_document(data) if data else None

    async def save(self, domain: str, period: str, aggregate: AnalyticsAggregate) -> None:
        await self.store.set(
            subcollection(domain, ANALYTICS_COLLECTIONS[period]),
            aggregate.id,
            aggregate.to_document(),
        )
