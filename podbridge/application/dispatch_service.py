"""POD order dispatch application service.

Places a persisted order with the POD partner:
- Charging usage through the usage gate
- Creating the order on the POD store
- Accepting the merchant's fulfillment request for our location
- Counting the order in analytics

The same code path serves the order-created trigger and the manual
charge-and-fulfill endpoint, so both produce the same result for the same
stored state.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from podbridge.application.analytics_service import AnalyticsService
from podbridge.application.billing_service import UsageDecision, UsageGate
from podbridge.application.fulfillment_orders import (
    FulfillmentResolution,
    resolve_fulfillment_order,
)
from podbridge.domain.entities import OrderRecord
from podbridge.domain.exceptions import MerchantNotFoundError
from podbridge.infrastructure.encryption import TokenCipher, TokenDecryptionError, get_token_cipher
from podbridge.infrastructure.repositories import MerchantRepository, OrderRepository
from podbridge.infrastructure.shopify_client import (
    ShopifyClientError,
    ShopifyClientFactory,
    get_shopify_clients,
    shop_name,
)

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


class DispatchOutcome(str, Enum):
    """How a dispatch attempt ended."""

    DISPATCHED = "dispatched"
    ALREADY_DISPATCHED = "already_dispatched"
    NOT_DISPATCHABLE = "not_dispatchable"
    BILLING_BLOCKED = "billing_blocked"
    POD_ORDER_FAILED = "pod_order_failed"
    NOT_FOUND = "not_found"


@dataclass
class DispatchResult:
    """Result of dispatching an order."""

    outcome: DispatchOutcome
    record: OrderRecord | None = None
    decision: UsageDecision | None = None
    resolution: FulfillmentResolution | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None


# ============================================================================
# Dispatch Service
# ============================================================================


class DispatchService:
    """Application service for POD order dispatch."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        merchant_repo: MerchantRepository | None = None,
        clients: ShopifyClientFactory | None = None,
        usage_gate: UsageGate | None = None,
        analytics: AnalyticsService | None = None,
        cipher: TokenCipher | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            order_repo: Order records.
            merchant_repo: Merchant documents.
            clients: Shopify client factory.
            usage_gate: Usage billing gate.
            analytics: Analytics service.
            cipher: Access token cipher.
            request_id: Request ID for correlation.
        """
        self.order_repo = order_repo or OrderRepository()
        self.merchant_repo = merchant_repo or MerchantRepository()
        self.clients = clients or get_shopify_clients()
        self.cipher = cipher or get_token_cipher()
        self.usage_gate = usage_gate or UsageGate(self.clients, self.cipher)
        self.analytics = analytics or AnalyticsService()
        self.request_id = request_id

    async def dispatch(self, domain: str, order_id: str) -> DispatchResult:
        """Charge and place an order with the POD partner.

        Args:
            domain: Merchant domain.
            order_id: Merchant order id.

        Returns:
            DispatchResult describing how far the order got.
        """
        log = logger.bind(domain=domain, order_id=order_id, request_id=self.request_id)

        record = await self.order_repo.get(domain, order_id)
        if record is None:
            log.warning("Order not found for dispatch")
            return DispatchResult(
                outcome=DispatchOutcome.NOT_FOUND,
                success=False,
                error=f"Order not found: {order_id}",
                error_code="ORDER_NOT_FOUND",
            )

        if record.pod_created:
            log.info("POD order already created")
            return DispatchResult(outcome=DispatchOutcome.ALREADY_DISPATCHED, record=record)

        if not record.fulfillment_status.is_dispatchable():
            log.info("Order not dispatchable", status=record.fulfillment_status.value)
            return DispatchResult(
                outcome=DispatchOutcome.NOT_DISPATCHABLE,
                record=record,
                success=False,
                error=f"Order is {record.fulfillment_status.value}",
                error_code="NOT_DISPATCHABLE",
            )

        shop = shop_name(record.myshopify_domain)

        # Usage gate
        decision = await self.usage_gate.evaluate(
            shop,
            record.access_token,
            record.pod_line_items,
            record.shipping_rate,
            record.is_wholesale,
            description=f"Order {record.merchant_order.order_number or record.id}",
        )
        if not decision.allows_fulfillment:
            record.block_for_billing(decision.reason)
            await self.order_repo.save(record)
            log.warning(
                "Order blocked by usage gate",
                capacity_reached=decision.capacity_reached,
                created_record=decision.created_record,
                cost=str(decision.cost),
            )
            return DispatchResult(
                outcome=DispatchOutcome.BILLING_BLOCKED,
                record=record,
                decision=decision,
                success=False,
                error=decision.reason,
                error_code="BILLING_BLOCKED",
            )

        # POD order
        try:
            pod_order = await self.clients.for_pod_store().create_order(record.pod_order_payload)
        except ShopifyClientError as e:
            log.error("POD order creation failed", error=e.message, status_code=e.status_code)
            pod_order = {}
        pod_order_id = str(pod_order.get("id") or "")
        if not pod_order_id:
            return DispatchResult(
                outcome=DispatchOutcome.POD_ORDER_FAILED,
                record=record,
                decision=decision,
                success=False,
                error="POD order was not created",
                error_code="POD_ORDER_FAILED",
            )

        # Merchant fulfillment order
        resolution = FulfillmentResolution()
        if not record.is_wholesale:
            resolution = await self._resolve(record)

        reason = "pod order created"
        if resolution.action == "cancellation_accepted":
            reason = "pod order created; merchant cancellation request accepted"
        record.mark_dispatched(pod_order_id, resolution.fulfillment_id, reason=reason)
        await self.order_repo.save(record)

        record.analytics_buckets = await self.analytics.record_order(record)
        await self.order_repo.save(record)

        log.info(
            "Order dispatched",
            pod_order_id=pod_order_id,
            fulfillment_id=resolution.fulfillment_id,
            fulfillment_action=resolution.action,
            cost=str(decision.cost),
        )
        return DispatchResult(
            outcome=DispatchOutcome.DISPATCHED,
            record=record,
            decision=decision,
            resolution=resolution,
        )

    async def _resolve(self, record: OrderRecord) -> FulfillmentResolution:
        try:
            token = self.cipher.decrypt(record.access_token)
        except TokenDecryptionError:
            return FulfillmentResolution(action="failed")
        client = self.clients.for_shop(shop_name(record.myshopify_domain), token)
        return await resolve_fulfillment_order(client, record.merchant_order.order_id, record.location_id)

    async def handle_fulfillment_order_notification(
        self,
        shop: str,
        order_id: str,
        location_id: str | None = None,
    ) -> FulfillmentResolution:
        """Handle a fulfillment-order notification from a merchant store.

        Runs the fulfillment-order resolution for the order and stores the
        resolved id on a dispatched record that has none yet.

        Raises:
            MerchantNotFoundError: If the shop is not installed.
        """
        myshopify_domain = shop if "." in shop else f"{shop}.myshopify.com"
        merchant = await self.merchant_repo.get(myshopify_domain)
        if merchant is None:
            raise MerchantNotFoundError(myshopify_domain)

        try:
            token = self.cipher.decrypt(merchant.access_token)
        except TokenDecryptionError:
            return FulfillmentResolution(action="failed")

        client = self.clients.for_shop(shop_name(myshopify_domain), token)
        resolution = await resolve_fulfillment_order(
            client, str(order_id), str(location_id or merchant.location_id)
        )

        record = await self.order_repo.get(myshopify_domain, str(order_id))
        if record is not None and record.pod_created and not record.fulfillment_id and resolution.resolved:
            record.fulfillment_id = resolution.fulfillment_id
            await self.order_repo.save(record)

        logger.info(
            "Fulfillment order notification handled",
            domain=myshopify_domain,
            order_id=order_id,
            fulfillment_id=resolution.fulfillment_id,
            action=resolution.action,
        )
        return resolution


def get_dispatch_service(request_id: str | None = None) -> DispatchService:
    """Get dispatch service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        DispatchService instance.
    """
    return DispatchService(request_id=request_id)
