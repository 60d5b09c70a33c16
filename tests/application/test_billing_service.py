"""Tests for the usage billing gate."""

from decimal import Decimal

import pytest

from podbridge.application.billing_service import (
    CURRENT_USAGE_TERMS,
    LEGACY_USAGE_TERMS,
    UsageGate,
    calculate_total_cost,
    find_usage_line_item,
)
from podbridge.infrastructure.shopify_client import (
    AppSubscription,
    ShopifyClientError,
    UsageLineItem,
)


def usage_plan(balance_used: str, capped_amount: str, terms: str = CURRENT_USAGE_TERMS) -> list[AppSubscription]:
    return [
        AppSubscription(
            id="gid://shopify/AppSubscription/1",
            name="Pay As You Go",
            line_items=[
                UsageLineItem(
                    id="gid://shopify/AppSubscriptionLineItem/1",
                    terms=terms,
                    balance_used=Decimal(balance_used),
                    capped_amount=Decimal(capped_amount),
                )
            ],
        )
    ]


# ============================================================================
# Cost Calculation Tests
# ============================================================================


class TestCalculateTotalCost:
    def test_items_plus_shipping_plus_surcharge(self, make_pod_item) -> None:
        items = [make_pod_item(cost="10.00", quantity=2), make_pod_item(cost="12.50")]
        assert calculate_total_cost(items, Decimal("5.00")) == Decimal("39.50")

    def test_wholesale_discount_at_threshold(self, make_pod_item) -> None:
        """Wholesale orders of 25 units or more get 5% off."""
        items = [make_pod_item(cost="10.00", quantity=30)]
        # (300 + 5 + 2) * 0.95
        assert calculate_total_cost(items, Decimal("5.00"), is_wholesale=True) == Decimal("291.65")

    def test_small_wholesale_pays_full_cost(self, make_pod_item) -> None:
        items = [make_pod_item(cost="10.00", quantity=24)]
        assert calculate_total_cost(items, Decimal("5.00"), is_wholesale=True) == Decimal("247.00")

    def test_discount_ignored_for_retail(self, make_pod_item) -> None:
        items = [make_pod_item(cost="10.00", quantity=30)]
        assert calculate_total_cost(items, Decimal("5.00")) == Decimal("307.00")


class TestFindUsageLineItem:
    def test_matches_current_terms(self) -> None:
        line_item = find_usage_line_item(usage_plan("0", "100"))
        assert line_item is not None

    def test_matches_legacy_terms(self) -> None:
        line_item = find_usage_line_item(usage_plan("0", "100", terms=LEGACY_USAGE_TERMS))
        assert line_item is not None

    def test_ignores_unknown_terms(self) -> None:
        assert find_usage_line_item(usage_plan("0", "100", terms="Something else")) is None

    def test_ignores_other_plans(self) -> None:
        subscriptions = usage_plan("0", "100")
        subscriptions[0].name = "Pro"
        assert find_usage_line_item(subscriptions) is None


# ============================================================================
# Usage Gate Tests
# ============================================================================


class TestUsageGate:
    @pytest.fixture
    def gate(self, clients, cipher) -> UsageGate:
        return UsageGate(clients=clients, cipher=cipher)

    @pytest.fixture
    def items(self, make_pod_item):
        # 43 + 5 shipping + 2 surcharge = 50
        return [make_pod_item(cost="43.00", quantity=1)]

    @pytest.mark.asyncio
    async def test_charges_when_capacity_left(self, gate, items, merchant_client, cipher) -> None:
        """capped 5000, used 100, increment 50 -> charged."""
        merchant_client.get_active_subscriptions.return_value = usage_plan("100", "5000")
        merchant_client.create_usage_record.return_value = "gid://shopify/AppUsageRecord/1"

        decision = await gate.evaluate("acme", cipher.encrypt("shpat_merchant"), items, Decimal("5.00"))

        assert decision.capacity_reached is False
        assert decision.created_record is True
        assert decision.allows_fulfillment is True
        assert decision.cost == Decimal("50.00")
        args = merchant_client.create_usage_record.await_args.args
        assert args[0] == "gid://shopify/AppSubscriptionLineItem/1"
        assert args[1] == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_uses_decrypted_token(self, gate, items, clients, merchant_client, cipher) -> None:
        merchant_client.get_active_subscriptions.return_value = usage_plan("0", "5000")
        merchant_client.create_usage_record.return_value = "rec-1"

        await gate.evaluate("acme", cipher.encrypt("shpat_merchant"), items, Decimal("5.00"))

        clients.for_shop.assert_called_once_with("acme", "shpat_merchant")

    @pytest.mark.asyncio
    async def test_capacity_reached(self, gate, items, merchant_client, cipher) -> None:
        """capped 5000, used 4980, increment 50 -> blocked, nothing charged."""
        merchant_client.get_active_subscriptions.return_value = usage_plan("4980", "5000")

        decision = await gate.evaluate("acme", cipher.encrypt("shpat_merchant"), items, Decimal("5.00"))

        assert decision.capacity_reached is True
        assert decision.created_record is False
        assert decision.allows_fulfillment is False
        merchant_client.create_usage_record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exactly_at_cap_is_allowed(self, gate, items, merchant_client, cipher) -> None:
        merchant_client.get_active_subscriptions.return_value = usage_plan("4950", "5000")
        merchant_client.create_usage_record.return_value = "rec-1"

        decision = await gate.evaluate("acme", cipher.encrypt("shpat_merchant"), items, Decimal("5.00"))

        assert decision.capacity_reached is False
        assert decision.created_record is True

    @pytest.mark.asyncio
    async def test_no_usage_plan_is_not_capacity(self, gate, items, merchant_client, cipher) -> None:
        """Missing plan reports no capacity problem and no charge."""
        merchant_client.get_active_subscriptions.return_value = []

        decision = await gate.evaluate("acme", cipher.encrypt("shpat_merchant"), items, Decimal("5.00"))

        assert decision.capacity_reached is False
        assert decision.created_record is False
        assert decision.error is None
        assert decision.allows_fulfillment is False

    @pytest.mark.asyncio
    async def test_billing_api_failure(self, gate, items, merchant_client, cipher) -> None:
        merchant_client.get_active_subscriptions.return_value = usage_plan("0", "5000")
        merchant_client.create_usage_record.side_effect = ShopifyClientError("acme", "timeout")

        decision = await gate.evaluate("acme", cipher.encrypt("shpat_merchant"), items, Decimal("5.00"))

        assert decision.capacity_reached is False
        assert decision.created_record is False
        assert decision.error == "timeout"

    @pytest.mark.asyncio
    async def test_rejected_usage_record(self, gate, items, merchant_client, cipher) -> None:
        merchant_client.get_active_subscriptions.return_value = usage_plan("0", "5000")
        merchant_client.create_usage_record.return_value = None

        decision = await gate.evaluate("acme", cipher.encrypt("shpat_merchant"), items, Decimal("5.00"))

        assert decision.created_record is False
        assert "rejected" in decision.reason

    @pytest.mark.asyncio
    async def test_undecryptable_token(self, gate, items, clients) -> None:
        decision = await gate.evaluate("acme", "not-a-token", items, Decimal("5.00"))

        assert decision.created_record is False
        assert decision.error is not None
        clients.for_shop.assert_not_called()
