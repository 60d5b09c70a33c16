"""Store order application service.

Backs the merchant dashboard's order views:
- Listing, fetching and deleting order records
- Cursor pagination by creation time
- Cancelling an order
- Charging and fulfilling an order by hand
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from podbridge.application.dispatch_service import DispatchResult, DispatchService
from podbridge.application.fulfillment_orders import release_fulfillment_order
from podbridge.domain.entities import OrderRecord
from podbridge.domain.exceptions import OrderNotCancellableError, OrderNotFoundError
from podbridge.infrastructure.config import settings
from podbridge.infrastructure.encryption import TokenCipher, TokenDecryptionError, get_token_cipher
from podbridge.infrastructure.repositories import OrderRepository
from podbridge.infrastructure.shopify_client import ShopifyClientFactory, get_shopify_clients, shop_name

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class OrderPage:
    """A page of order documents, newest first."""

    orders: list[dict[str, Any]] = field(default_factory=list)
    first_cursor: float | None = None
    last_cursor: float | None = None

    @classmethod
    def from_documents(cls, docs: list[dict[str, Any]]) -> "OrderPage":
        if not docs:
            return cls()
        return cls(
            orders=docs,
            first_cursor=float(docs[0].get("created_at") or 0),
            last_cursor=float(docs[-1].get("created_at") or 0),
        )


@dataclass
class DeleteOrdersResult:
    """Result of deleting orders."""

    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


# ============================================================================
# Order Service
# ============================================================================


class OrderService:
    """Application service for a merchant's stored orders."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        dispatch_service: DispatchService | None = None,
        clients: ShopifyClientFactory | None = None,
        cipher: TokenCipher | None = None,
        request_id: str | None = None,
    ) -> None:
        self.order_repo = order_repo or OrderRepository()
        self.clients = clients or get_shopify_clients()
        self.cipher = cipher or get_token_cipher()
        self.dispatch_service = dispatch_service or DispatchService(
            order_repo=self.order_repo, clients=self.clients, cipher=self.cipher
        )
        self.request_id = request_id

    async def list_orders(self, domain: str) -> list[dict[str, Any]]:
        """All order documents of a merchant, newest first."""
        return await self.order_repo.list_all(domain)

    async def get_order(self, domain: str, order_id: str) -> dict[str, Any]:
        """Get one order document.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        data = await self.order_repo.get_raw(domain, order_id)
        if data is None:
            raise OrderNotFoundError(domain, order_id)
        return data

    async def delete_orders(self, domain: str, order_ids: list[str]) -> DeleteOrdersResult:
        """Delete one or more orders. Unknown ids are reported, not raised."""
        result = DeleteOrdersResult()
        for order_id in order_ids:
            if await self.order_repo.delete(domain, order_id):
                result.deleted.append(order_id)
            else:
                result.missing.append(order_id)
        logger.info(
            "Orders deleted",
            domain=domain,
            deleted=len(result.deleted),
            missing=len(result.missing),
            request_id=self.request_id,
        )
        return result

    async def next_page(self, domain: str, last_seconds: float, page_size: int | None = None) -> OrderPage:
        """Orders created before ``last_seconds``."""
        docs = await self.order_repo.page(
            domain, last_seconds, "next", page_size or settings.order_page_size
        )
        return OrderPage.from_documents(docs)

    async def previous_page(
        self, domain: str, first_seconds: float, page_size: int | None = None
    ) -> OrderPage:
        """Orders created after ``first_seconds``, nearest first page."""
        docs = await self.order_repo.page(
            domain, first_seconds, "prev", page_size or settings.order_page_size
        )
        return OrderPage.from_documents(docs)

    async def cancel_order(self, domain: str, order_id: str, reason: str = "cancelled by merchant") -> OrderRecord:
        """Cancel an order that has not been completed.

        When the order holds a fulfillment-order id and the merchant has asked
        to cancel it, that cancellation request is accepted. The record is
        cancelled either way.

        Raises:
            OrderNotFoundError: If the order does not exist.
            OrderNotCancellableError: If the order is ACTIVE or CANCELLED.
        """
        record = await self.order_repo.get(domain, order_id)
        if record is None:
            raise OrderNotFoundError(domain, order_id)

        if not record.fulfillment_status.is_cancellable():
            raise OrderNotCancellableError(order_id, record.fulfillment_status.value)

        action = "none"
        if record.fulfillment_id:
            action = await self._release_fulfillment_order(record)

        record.cancel(reason, cancelled_by="merchant")
        await self.order_repo.save(record)
        logger.info(
            "Order cancelled",
            domain=domain,
            order_id=order_id,
            fulfillment_action=action,
            request_id=self.request_id,
        )
        return record

    async def _release_fulfillment_order(self, record: OrderRecord) -> str:
        try:
            token = self.cipher.decrypt(record.access_token)
        except TokenDecryptionError:
            logger.warning("Access token unreadable, cancelling locally", order_id=record.id)
            return "failed"
        client = self.clients.for_shop(shop_name(record.myshopify_domain), token)
        return await release_fulfillment_order(client, record.merchant_order.order_id, record.fulfillment_id)

    async def charge_and_fulfill(self, domain: str, order_id: str) -> DispatchResult:
        """Run dispatch for an order on demand."""
        logger.info("Manual charge and fulfill", domain=domain, order_id=order_id)
        return await self.dispatch_service.dispatch(domain, order_id)


def get_order_service(request_id: str | None = None) -> OrderService:
    """Get order service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        OrderService instance.
    """
    return OrderService(request_id=request_id)
