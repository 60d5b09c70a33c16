"""Usage billing application service.

The usage gate decides whether a merchant's metered plan still has room for
an order and, if so, records the usage charge on the merchant's app
subscription. The ledger lives in Shopify; it is read, checked and written
without a lock, so two concurrent orders of one merchant can both pass the
check.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import structlog

from podbridge.domain.entities import PodLineItem
from podbridge.infrastructure.config import settings
from podbridge.infrastructure.encryption import TokenCipher, TokenDecryptionError, get_token_cipher
from podbridge.infrastructure.shopify_client import (
    AppSubscription,
    ShopifyClientError,
    ShopifyClientFactory,
    get_shopify_clients,
    UsageLineItem,
)

logger = structlog.get_logger()

CURRENT_USAGE_TERMS = (
    "Usage charges apply per item sold that is generated using the mockup from the app, "
    "starting at $11."
)
# Terms of subscriptions created before the current pricing
LEGACY_USAGE_TERMS = "Between $10.50 and 16.75 per mockup\n"

ALLOWED_USAGE_TERMS = frozenset({CURRENT_USAGE_TERMS, LEGACY_USAGE_TERMS})

CENTS = Decimal("0.01")


# ============================================================================
# Cost Calculation
# ============================================================================


def calculate_total_cost(
    pod_line_items: Iterable[PodLineItem],
    shipping_rate: Decimal,
    is_wholesale: bool = False,
) -> Decimal:
    """Compute the usage charge for an order.

    Item cost plus shipping plus the flat surcharge. Wholesale orders of at
    least ``wholesale_discount_threshold`` units get the wholesale discount.

    Example:
        >>> calculate_total_cost([item(cost=10, qty=2)], Decimal("5"))
        Decimal('27.00')
    """
    items = list(pod_line_items)
    cost = sum((li.line_cost for li in items), Decimal("0"))
    total = cost + shipping_rate + settings.usage_surcharge

    if is_wholesale:
        quantity = sum(li.quantity for li in items)
        if quantity >= settings.wholesale_discount_threshold:
            total *= settings.wholesale_discount_multiplier

    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def find_usage_line_item(subscriptions: Iterable[AppSubscription]) -> UsageLineItem | None:
    """Find the metered line item of the usage plan."""
    for subscription in subscriptions:
        if subscription.name != settings.usage_plan_name:
            continue
        for line_item in subscription.line_items:
            if line_item.terms in ALLOWED_USAGE_TERMS:
                return line_item
    return None


# ============================================================================
# Usage Gate
# ============================================================================


@dataclass
class UsageDecision:
    """Outcome of a usage gate evaluation.

    Fulfillment may proceed only when ``allows_fulfillment`` is true.
    """

    capacity_reached: bool = False
    created_record: bool = False
    cost: Decimal = Decimal("0")
    usage_record_id: str | None = None
    error: str | None = None

    @property
    def allows_fulfillment(self) -> bool:
        return not self.capacity_reached and self.created_record

    @property
    def reason(self) -> str:
        if self.capacity_reached:
            return "usage capacity reached"
        if self.error:
            return f"usage charge failed: {self.error}"
        return "no usage charge recorded"


class UsageGate:
    """Checks metered capacity and records usage charges."""

    def __init__(
        self,
        clients: ShopifyClientFactory | None = None,
        cipher: TokenCipher | None = None,
    ) -> None:
        self.clients = clients or get_shopify_clients()
        self.cipher = cipher or get_token_cipher()

    async def evaluate(
        self,
        shop: str,
        access_token: str,
        pod_line_items: list[PodLineItem],
        shipping_rate: Decimal,
        is_wholesale: bool = False,
        description: str | None = None,
    ) -> UsageDecision:
        """Evaluate the gate for an order and charge it if there is room.

        Args:
            shop: Merchant shop handle.
            access_token: Encrypted merchant access token.
            pod_line_items: Resolved POD items of the order.
            shipping_rate: Quoted shipping rate.
            is_wholesale: Whether the order is a wholesale order.
            description: Usage record description shown to the merchant.

        Returns:
            UsageDecision. Billing errors never raise; they produce a
            decision that blocks fulfillment.
        """
        cost = calculate_total_cost(pod_line_items, shipping_rate, is_wholesale)
        decision = UsageDecision(cost=cost)

        try:
            token = self.cipher.decrypt(access_token)
        except TokenDecryptionError as e:
            decision.error = str(e)
            return decision

        client = self.clients.for_shop(shop, token)
        try:
            subscriptions = await client.get_active_subscriptions()
        except ShopifyClientError as e:
            logger.error("Failed to fetch app subscriptions", shop=shop, error=e.message)
            decision.error = e.message
            return decision

        line_item = find_usage_line_item(subscriptions)
        if line_item is None:
            logger.warning("No usage line item found", shop=shop, plan=settings.usage_plan_name)
            return decision

        if line_item.balance_used + cost > line_item.capped_amount:
            logger.warning(
                "Usage capacity reached",
                shop=shop,
                balance_used=str(line_item.balance_used),
                capped_amount=str(line_item.capped_amount),
                cost=str(cost),
            )
            decision.capacity_reached = True
            return decision

        try:
            record_id = await client.create_usage_record(
                line_item.id,
                cost,
                description or f"POD order: {len(pod_line_items)} item(s)",
            )
        except ShopifyClientError as e:
            logger.error("Failed to create usage record", shop=shop, error=e.message)
            decision.error = e.message
            return decision

        if record_id is None:
            decision.error = "usage record rejected"
            return decision

        decision.created_record = True
        decision.usage_record_id = record_id
        logger.info("Usage charge recorded", shop=shop, cost=str(cost), usage_record_id=record_id)
        return decision
