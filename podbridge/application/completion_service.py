"""Fulfillment completion application service.

When the POD partner ships an order, fulfills the matching merchant order,
attaches tracking and finalizes the record.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from podbridge.application.analytics_service import AnalyticsService
from podbridge.application.fulfillment_orders import find_fulfillment_order_id
from podbridge.domain.entities import OrderRecord
from podbridge.domain.state_machines import FulfillmentStatus
from podbridge.infrastructure.encryption import TokenCipher, TokenDecryptionError, get_token_cipher
from podbridge.infrastructure.repositories import OrderRepository
from podbridge.infrastructure.shopify_client import (
    ShopifyClientError,
    ShopifyClientFactory,
    get_shopify_clients,
    shop_name,
)

logger = structlog.get_logger()


# ============================================================================
# Tag Parsing
# ============================================================================


@dataclass(frozen=True)
class OrderReference:
    """Merchant order a POD order was placed for."""

    id: str
    domain: str

    @property
    def is_complete(self) -> bool:
        return bool(self.id and self.domain)


def parse_order_tags(tags: str) -> OrderReference:
    """Extract the merchant domain and order id from POD order tags.

    A token containing ``myshopify`` or a dot is the domain, an all-digit
    token is the order id; anything else is ignored.

    Example:
        >>> parse_order_tags("123456, mystore.myshopify.com")
        OrderReference(id='123456', domain='mystore.myshopify.com')
    """
    order_id = ""
    domain = ""
    for token in (tags or "").split(","):
        token = token.strip()
        if not token:
            continue
        if "myshopify" in token or "." in token:
            domain = token
        elif token.isdigit():
            order_id = token
    return OrderReference(id=order_id, domain=domain)


@dataclass
class TrackingInfo:
    number: str = ""
    url: str = ""
    company: str = ""

    @property
    def present(self) -> bool:
        return bool(self.number or self.url)

    @classmethod
    def from_pod_order(cls, pod_order: dict[str, Any]) -> "TrackingInfo":
        """Tracking of the first fulfillment of a POD order."""
        fulfillments = pod_order.get("fulfillments") or []
        if not fulfillments:
            return cls()
        first = fulfillments[0] or {}
        return cls(
            number=first.get("tracking_number") or "",
            url=first.get("tracking_url") or "",
            company=first.get("tracking_company") or "",
        )


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class CompletionResult:
    """Result of completing an order."""

    record: OrderRecord | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None


# ============================================================================
# Completion Service
# ============================================================================


class CompletionService:
    """Application service for fulfillment completion."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        clients: ShopifyClientFactory | None = None,
        analytics: AnalyticsService | None = None,
        cipher: TokenCipher | None = None,
        request_id: str | None = None,
    ) -> None:
        self.order_repo = order_repo or OrderRepository()
        self.clients = clients or get_shopify_clients()
        self.analytics = analytics or AnalyticsService()
        self.cipher = cipher or get_token_cipher()
        self.request_id = request_id

    async def complete(self, pod_order: dict[str, Any]) -> CompletionResult:
        """Complete the merchant order of a shipped POD order.

        Args:
            pod_order: POD store order payload from the fulfillment webhook.

        Returns:
            CompletionResult with the updated record. Missing or already
            completed records are skipped without error.
        """
        ref = parse_order_tags(pod_order.get("tags") or "")
        log = logger.bind(domain=ref.domain, order_id=ref.id, request_id=self.request_id)
        if not ref.is_complete:
            log.warning("POD order tags do not reference a merchant order", tags=pod_order.get("tags"))
            return CompletionResult(success=False, error="Unreadable order tags", error_code="BAD_TAGS")

        record = await self.order_repo.get(ref.domain, ref.id)
        if record is None:
            log.warning("Order not found for completion")
            return CompletionResult(success=False, error="Order not found", error_code="ORDER_NOT_FOUND")

        if record.fulfillment_status == FulfillmentStatus.ACTIVE:
            log.info("Order already completed")
            return CompletionResult(record=record)

        if record.fulfillment_status != FulfillmentStatus.PENDING:
            log.info("Order not awaiting fulfillment", status=record.fulfillment_status.value)
            return CompletionResult(
                record=record,
                success=False,
                error=f"Order is {record.fulfillment_status.value}",
                error_code="NOT_PENDING",
            )

        tracking = TrackingInfo.from_pod_order(pod_order)

        if record.is_wholesale:
            record.record_tracking(tracking.number or tracking.url, tracking.url, tracking.company)
            record.activate()
        else:
            fulfillment_order_id = await self._fulfill_merchant_order(record, tracking)
            record.record_tracking(tracking.number or tracking.url, tracking.url, tracking.company)
            if fulfillment_order_id:
                record.activate(fulfillment_order_id)
            else:
                record.cancel("no fulfillment order to fulfill")

        await self.order_repo.save(record)
        if record.fulfillment_status == FulfillmentStatus.ACTIVE:
            await self.analytics.record_fulfillment(record)

        log.info(
            "Order completed",
            status=record.fulfillment_status.value,
            tracking_number=record.tracking_number,
        )
        return CompletionResult(record=record)

    async def _fulfill_merchant_order(self, record: OrderRecord, tracking: TrackingInfo) -> str:
        """Fulfill the merchant order and attach tracking.

        Returns:
            The fulfillment-order id used, or empty if none could be resolved.

        A fulfillment order the merchant store rejects (4xx) counts as
        unresolved.

        Raises:
            ShopifyClientError: On transport errors or 5xx responses while
                fulfilling, or if attaching tracking fails, so the event is
                redelivered.
        """
        try:
            token = self.cipher.decrypt(record.access_token)
        except TokenDecryptionError:
            return ""
        client = self.clients.for_shop(shop_name(record.myshopify_domain), token)

        fulfillment_order_id = record.fulfillment_id or await find_fulfillment_order_id(
            client, record.merchant_order.order_id, record.location_id
        )
        if not fulfillment_order_id:
            return ""

        try:
            fulfillment = await client.create_fulfillment(fulfillment_order_id)
        except ShopifyClientError as e:
            if e.status_code is None or e.status_code >= 500:
                raise
            logger.warning(
                "Fulfillment order rejected",
                order_id=record.id,
                fulfillment_order_id=fulfillment_order_id,
                status_code=e.status_code,
            )
            return ""
        if fulfillment.location_id and fulfillment.location_id != record.location_id:
            logger.warning(
                "Fulfillment created at another location",
                order_id=record.id,
                fulfillment_id=fulfillment.id,
                location_id=fulfillment.location_id,
            )
            return ""

        if tracking.present:
            await client.update_tracking(fulfillment.id, tracking.company, tracking.number, tracking.url)
        return fulfillment_order_id


def get_completion_service(request_id: str | None = None) -> CompletionService:
    """Get completion service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        CompletionService instance.
    """
    return CompletionService(request_id=request_id)
