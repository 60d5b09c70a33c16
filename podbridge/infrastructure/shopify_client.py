"""Shopify Admin API client.

Thin wrapper over the REST and GraphQL Admin APIs. The same client talks to
merchant stores (fulfillment orders, fulfillments, billing) and to the POD
partner store (orders, customers).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx
import structlog

from podbridge.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Response Types
# ============================================================================


class ShopifyClientError(Exception):
    """Error from a Shopify API call."""

    def __init__(self, shop: str, message: str, status_code: int | None = None) -> None:
        self.shop = shop
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{shop}] {message}")


@dataclass
class FulfillmentOrder:
    """A fulfillment order assigned to a location."""

    id: str
    order_id: str
    assigned_location_id: str
    request_status: str
    status: str

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "FulfillmentOrder":
        """Create from API response data."""
        return cls(
            id=str(data["id"]),
            order_id=str(data.get("order_id", "")),
            assigned_location_id=str(data.get("assigned_location_id", "")),
            request_status=data.get("request_status", ""),
            status=data.get("status", ""),
        )


@dataclass
class Fulfillment:
    """A fulfillment created on a merchant order."""

    id: str
    location_id: str
    status: str

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Fulfillment":
        """Create from API response data."""
        return cls(
            id=str(data["id"]),
            location_id=str(data.get("location_id", "")),
            status=data.get("status", ""),
        )


@dataclass
class UsageLineItem:
    """Usage-priced line item of an app subscription."""

    id: str
    terms: str
    balance_used: Decimal
    capped_amount: Decimal


@dataclass
class AppSubscription:
    """Active app subscription with its usage line items."""

    id: str
    name: str
    line_items: list[UsageLineItem]

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "AppSubscription":
        """Create from a GraphQL ``activeSubscriptions`` node."""
        line_items = []
        for item in data.get("lineItems", []):
            pricing = (item.get("plan") or {}).get("pricingDetails") or {}
            if pricing.get("__typename") != "AppUsagePricing":
                continue
            line_items.append(
                UsageLineItem(
                    id=item["id"],
                    terms=pricing.get("terms", ""),
                    balance_used=Decimal(str(pricing["balanceUsed"]["amount"])),
                    capped_amount=Decimal(str(pricing["cappedAmount"]["amount"])),
                )
            )
        return cls(id=data.get("id", ""), name=data.get("name", ""), line_items=line_items)


# ============================================================================
# GraphQL Documents
# ============================================================================


ACTIVE_SUBSCRIPTIONS_QUERY = """
query appSubscription {
    currentAppInstallation {
        activeSubscriptions {
            id
            name
            lineItems {
                id
                plan {
                    pricingDetails {
                        __typename
                        ... on AppUsagePricing {
                            terms
                            balanceUsed { amount }
                            cappedAmount { amount }
                        }
                    }
                }
            }
        }
    }
}
"""

USAGE_RECORD_CREATE_MUTATION = """
mutation appUsageRecordCreate(
    $description: String!,
    $price: MoneyInput!,
    $subscriptionLineItemId: ID!
) {
    appUsageRecordCreate(
        description: $description,
        price: $price,
        subscriptionLineItemId: $subscriptionLineItemId
    ) {
        appUsageRecord { id }
        userErrors { field message }
    }
}
"""


# ============================================================================
# Shopify HTTP Client
# ============================================================================


def shop_name(domain: str) -> str:
    """Get the shop handle from a ``*.myshopify.com`` domain."""
    return domain.split(".")[0]


class ShopifyClient:
    """HTTP client for a single Shopify store."""

    def __init__(
        self,
        shop: str,
        access_token: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Shopify client.

        Args:
            shop: Shop handle (the part before ``.myshopify.com``).
            access_token: Plaintext Admin API access token.
            timeout: Request timeout in seconds.
            transport: Optional transport override (used in tests).
        """
        self.shop = shop
        self.access_token = access_token
        self.timeout = timeout or settings.shopify_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return f"https://{self.shop}.myshopify.com/admin/api/{settings.shopify_api_version}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "X-Shopify-Access-Token": self.access_token,
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a REST request and return the decoded body.

        Raises:
            ShopifyClientError: On transport errors or non-2xx responses.
        """
        try:
            client = await self._get_client()
            response = await client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            logger.error(
                "Shopify request failed",
                shop=self.shop,
                method=method,
                path=path,
                error=str(e),
            )
            raise ShopifyClientError(self.shop, f"Request failed: {e}") from e

        if response.status_code >= 300:
            logger.warning(
                "Shopify request rejected",
                shop=self.shop,
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise ShopifyClientError(
                self.shop,
                f"{method} {path} failed: {response.text}",
                response.status_code,
            )

        if not response.content:
            return {}
        return response.json()

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a GraphQL Admin API document.

        Raises:
            ShopifyClientError: On transport errors, non-2xx responses or
                top-level GraphQL errors.
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        body = await self._request("POST", "/graphql.json", json=payload)
        if body.get("errors"):
            raise ShopifyClientError(self.shop, f"GraphQL errors: {body['errors']}")
        return body.get("data") or {}

    # ------------------------------------------------------------------
    # Fulfillment orders
    # ------------------------------------------------------------------

    async def get_fulfillment_orders(self, order_id: str) -> list[FulfillmentOrder]:
        """List the fulfillment orders of an order, in creation order."""
        body = await self._request("GET", f"/orders/{order_id}/fulfillment_orders.json")
        return [FulfillmentOrder.from_api_response(fo) for fo in body.get("fulfillment_orders", [])]

    async def send_fulfillment_request(
        self, fulfillment_order_id: str, message: str = "Fulfill this ASAP please."
    ) -> None:
        """Submit a fulfillment request to the fulfillment service."""
        await self._request(
            "POST",
            f"/fulfillment_orders/{fulfillment_order_id}/fulfillment_request.json",
            json={"fulfillment_request": {"message": message}},
        )

    async def accept_fulfillment_request(
        self,
        fulfillment_order_id: str,
        message: str = "We are fulfilling asap. Give us 3-10 business days to produce and ship.",
    ) -> None:
        """Accept a submitted fulfillment request."""
        await self._request(
            "POST",
            f"/fulfillment_orders/{fulfillment_order_id}/fulfillment_request/accept.json",
            json={"fulfillment_request": {"message": message}},
        )

    async def accept_cancellation_request(
        self, fulfillment_order_id: str, message: str = "Cancellation accepted."
    ) -> None:
        """Accept a merchant's cancellation request."""
        await self._request(
            "POST",
            f"/fulfillment_orders/{fulfillment_order_id}/cancellation_request/accept.json",
            json={"cancellation_request": {"message": message}},
        )

    # ------------------------------------------------------------------
    # Fulfillments
    # ------------------------------------------------------------------

    async def create_fulfillment(self, fulfillment_order_id: str) -> Fulfillment:
        """Fulfill every line item of a fulfillment order."""
        body = await self._request(
            "POST",
            "/fulfillments.json",
            json={
                "fulfillment": {
                    "line_items_by_fulfillment_order": [
                        {"fulfillment_order_id": fulfillment_order_id}
                    ]
                }
            },
        )
        return Fulfillment.from_api_response(body["fulfillment"])

    async def update_tracking(
        self,
        fulfillment_id: str,
        company: str | None,
        number: str | None,
        url: str | None,
    ) -> None:
        """Attach tracking info to a fulfillment and notify the customer."""
        await self._request(
            "POST",
            f"/fulfillments/{fulfillment_id}/update_tracking.json",
            json={
                "fulfillment": {
                    "notify_customer": True,
                    "tracking_info": {"company": company, "number": number, "url": url},
                }
            },
        )

    # ------------------------------------------------------------------
    # Orders & customers
    # ------------------------------------------------------------------

    async def create_order(self, order: dict[str, Any]) -> dict[str, Any]:
        """Create an order and return the created order resource."""
        body = await self._request("POST", "/orders.json", json={"order": order})
        return body.get("order") or {}

    async def create_customer(self, customer: dict[str, Any]) -> str | None:
        """Create a customer.

        Returns:
            The new customer id, or None if Shopify rejected it as a
            duplicate (422).
        """
        try:
            body = await self._request("POST", "/customers.json", json={"customer": customer})
        except ShopifyClientError as e:
            if e.status_code == 422:
                return None
            raise
        created = body.get("customer") or {}
        return str(created["id"]) if created.get("id") else None

    async def search_customers(self, email: str) -> list[str]:
        """Find customer ids by email."""
        body = await self._request(
            "GET",
            "/customers/search.json",
            params={"query": f'email:"{email}"', "fields": "id,email"},
        )
        return [str(c["id"]) for c in body.get("customers", []) if c.get("id")]

    # ------------------------------------------------------------------
    # Billing
    # ------------------------------------------------------------------

    async def get_active_subscriptions(self) -> list[AppSubscription]:
        """List the app's active subscriptions on this store."""
        data = await self.graphql(ACTIVE_SUBSCRIPTIONS_QUERY)
        installation = data.get("currentAppInstallation") or {}
        return [
            AppSubscription.from_api_response(s)
            for s in installation.get("activeSubscriptions", [])
        ]

    async def create_usage_record(
        self,
        subscription_line_item_id: str,
        amount: Decimal,
        description: str,
        currency: str = "USD",
    ) -> str | None:
        """Create a usage charge against a subscription line item.

        Returns:
            The usage record id, or None if Shopify reported user errors.
        """
        data = await self.graphql(
            USAGE_RECORD_CREATE_MUTATION,
            {
                "description": description,
                "price": {"amount": str(amount), "currencyCode": currency},
                "subscriptionLineItemId": subscription_line_item_id,
            },
        )
        result = data.get("appUsageRecordCreate") or {}
        if result.get("userErrors"):
            logger.warning(
                "Usage record rejected",
                shop=self.shop,
                errors=result["userErrors"],
            )
            return None
        record = result.get("appUsageRecord") or {}
        return record.get("id") or None


# ============================================================================
# Shopify Client Factory
# ============================================================================


class ShopifyClientFactory:
    """Factory for Shopify clients.

    Manages client lifecycle for the merchant stores touched during one
    invocation plus the POD partner store.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport
        self._clients: dict[str, ShopifyClient] = {}

    def for_shop(self, shop: str, access_token: str) -> ShopifyClient:
        """Get a client for a store, given its plaintext token."""
        key = f"{shop}:{access_token}"
        if key not in self._clients:
            self._clients[key] = ShopifyClient(shop, access_token, transport=self._transport)
        return self._clients[key]

    def for_pod_store(self) -> ShopifyClient:
        """Get a client for the POD partner store."""
        return self.for_shop(settings.pod_shop, settings.pod_access_token)

    async def close_all(self) -> None:
        """Close all clients."""
        for client in self._clients.values():
            await client.close()
        self._clients.clear()

    async def __aenter__(self) -> "ShopifyClientFactory":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close_all()


_client_factory: ShopifyClientFactory | None = None


def get_shopify_clients() -> ShopifyClientFactory:
    """Get the shared Shopify client factory.

    Returns:
        ShopifyClientFactory instance.
    """
    global _client_factory
    if _client_factory is None:
        _client_factory = ShopifyClientFactory()
    return _client_factory


async def close_shopify_clients() -> None:
    """Close and drop the shared client factory."""
    global _client_factory
    if _client_factory is not None:
        await _client_factory.close_all()
        _client_factory = None
