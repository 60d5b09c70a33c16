"""Order intake application service.

Turns a merchant's paid order (or a wholesale request) into an order record:
- Resolving the merchant from the order status URL
- Mapping line items to POD variants through the product documents
- Quoting shipping with ShipEngine
- Finding or creating the customer on the POD store
- Building the POD order submission body

Records are created at most once per (domain, order id). Creating the record
is what starts billing and dispatch.
"""

import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from urllib.parse import urlsplit

import structlog

from podbridge.domain.entities import (
    RETAIL_MARKUP,
    Address,
    Customer,
    LineItem,
    MerchantOrder,
    MerchantRecord,
    OrderRecord,
    PodLineItem,
    ProductRecord,
)
from podbridge.domain.exceptions import MerchantNotFoundError, ProductMappingError
from podbridge.infrastructure.config import settings
from podbridge.infrastructure.repositories import (
    MerchantRepository,
    OrderRepository,
    ProductRepository,
)
from podbridge.infrastructure.shipengine_client import (
    ShipEngineClient,
    ShipEngineClientError,
    get_shipengine_client,
)
from podbridge.infrastructure.shopify_client import (
    ShopifyClientError,
    ShopifyClientFactory,
    get_shopify_clients,
)

logger = structlog.get_logger()

SHIPPING_TITLE = "Standard Shipping"


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class IntakeResult:
    """Result of taking in an order.

    ``record`` is None when the order was skipped; ``error_code`` says why.
    """

    record: OrderRecord | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def skipped(cls, error_code: str, error: str) -> "IntakeResult":
        return cls(success=False, error=error, error_code=error_code)


# ============================================================================
# Helpers
# ============================================================================


def merchant_domain_candidates(order_status_url: str) -> list[str]:
    """Domains to try in the domain map for an order status URL.

    Example:
        >>> merchant_domain_candidates("https://acme.com/123/orders/abc")
        ['acme.myshopify.com', 'acme.com']
    """
    url = order_status_url.strip()
    host = urlsplit(url).netloc if "://" in url else url.split("/")[0]
    if not host:
        return []
    candidates = [f"{host.split('.')[0]}.myshopify.com", host]
    return list(dict.fromkeys(candidates))


def generate_wholesale_order_id() -> str:
    """Random 13-digit order id for wholesale orders."""
    return str(random.randint(10**12, 10**13 - 1))


def generate_wholesale_order_number() -> str:
    return f"WHOLESALE-{random.randint(100000, 999999)}"


def build_pod_order_payload(
    domain: str,
    merchant_order_id: str,
    pod_line_items: list[PodLineItem],
    customer: Customer,
    shipping_rate: Decimal,
) -> dict[str, Any]:
    """Build the order body submitted to the POD store.

    The tags carry the merchant domain and order id so the shipped POD order
    can be traced back to its record.
    """
    payload: dict[str, Any] = {
        "line_items": [
            {"variant_id": li.pod_variant_id, "quantity": str(li.quantity)}
            for li in pod_line_items
        ],
        "currency": "USD",
        "financial_status": "paid",
        "tags": f"{domain}, {merchant_order_id}",
        "shipping_lines": [
            {
                "custom": True,
                "price": str(shipping_rate + settings.usage_surcharge),
                "title": SHIPPING_TITLE,
            }
        ],
        "shipping_address": customer.shipping_address.to_dict(),
    }
    if customer.id:
        payload["customer"] = {"id": customer.id}
    return payload


# ============================================================================
# Intake Service
# ============================================================================


class IntakeService:
    """Application service for order intake."""

    def __init__(
        self,
        merchant_repo: MerchantRepository | None = None,
        order_repo: OrderRepository | None = None,
        product_repo: ProductRepository | None = None,
        clients: ShopifyClientFactory | None = None,
        shipengine: ShipEngineClient | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            merchant_repo: Merchant documents.
            order_repo: Order records.
            product_repo: Product documents.
            clients: Shopify client factory.
            shipengine: Rates client.
            request_id: Request ID for correlation.
        """
        self.merchant_repo = merchant_repo or MerchantRepository()
        self.order_repo = order_repo or OrderRepository()
        self.product_repo = product_repo or ProductRepository()
        self.clients = clients or get_shopify_clients()
        self.shipengine = shipengine or get_shipengine_client()
        self.request_id = request_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def resolve_merchant(self, order_status_url: str) -> MerchantRecord | None:
        """Find the merchant an order belongs to.

        Tries ``{first label}.myshopify.com`` then the URL host, each through
        the domain map.
        """
        for candidate in merchant_domain_candidates(order_status_url):
            myshopify_domain = await self.merchant_repo.lookup_domain(candidate)
            if not myshopify_domain:
                continue
            merchant = await self.merchant_repo.get(myshopify_domain)
            if merchant:
                return merchant
        return None

    async def map_line_items(self, domain: str, line_items: list[LineItem]) -> list[PodLineItem]:
        """Map merchant line items to POD variants.

        Items without a product document or matching variant are dropped.
        """
        products: dict[str, ProductRecord | None] = {}
        pod_items: list[PodLineItem] = []

        for li in line_items:
            if li.product_id not in products:
                products[li.product_id] = await self.product_repo.get(domain, li.product_id)
            product = products[li.product_id]
            if product is None:
                logger.info("Line item has no POD product", domain=domain, product_id=li.product_id)
                continue

            variant = product.find_variant(li.variant_id)
            if variant is None:
                logger.info(
                    "Line item variant not mapped",
                    domain=domain,
                    product_id=li.product_id,
                    variant_id=li.variant_id,
                )
                continue

            pod_items.append(
                PodLineItem(
                    pod_variant_id=variant.pod_variant_id,
                    merchant_variant_id=variant.merchant_variant_id,
                    quantity=li.quantity,
                    weight=li.weight or settings.default_item_weight_grams,
                    cost=variant.cost,
                    price=li.price if li.price else variant.cost * RETAIL_MARKUP,
                    type=product.type,
                    title=li.title or product.title,
                    image=product.image_for(variant),
                )
            )

        return pod_items

    async def quote_shipping(self, address: Address, pod_line_items: list[PodLineItem]) -> Decimal:
        """Quote shipping for the order, 0 when the quote fails."""
        weight = sum(li.weight for li in pod_line_items)
        try:
            return await self.shipengine.quote(address.to_shipengine(), weight)
        except ShipEngineClientError as e:
            logger.warning("Shipping quote failed, using 0", error=e.message, weight_grams=weight)
            return Decimal("0")

    async def ensure_customer(self, email: str, address: Address) -> str | None:
        """Create the customer on the POD store or find the existing one.

        Returns:
            The POD customer id, or None if neither step succeeded.
        """
        client = self.clients.for_pod_store()
        payload = {
            "first_name": address.first_name,
            "last_name": address.last_name,
            "email": email,
            "phone": "",
            "verified_email": True,
            "addresses": [
                {
                    "address1": address.address1,
                    "city": address.city,
                    "province": address.province,
                    "zip": address.zip,
                    "first_name": address.first_name,
                    "last_name": address.last_name,
                    "country": address.country or "US",
                    "default": True,
                }
            ],
        }
        try:
            customer_id = await client.create_customer(payload)
            if customer_id:
                return customer_id
            found = await client.search_customers(email)
            return found[0] if found else None
        except ShopifyClientError as e:
            logger.warning("POD customer lookup failed", email=email, error=e.message)
            return None

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def _build_record(
        self,
        merchant: MerchantRecord,
        merchant_order: MerchantOrder,
        pod_line_items: list[PodLineItem],
        email: str,
        address: Address,
        is_wholesale: bool = False,
    ) -> OrderRecord:
        customer = Customer(email=email, shipping_address=address)
        customer.id = await self.ensure_customer(email, address)
        shipping_rate = await self.quote_shipping(address, pod_line_items)
        domain = merchant.myshopify_domain

        return OrderRecord(
            id=merchant_order.order_id,
            domain=domain,
            myshopify_domain=merchant.myshopify_domain,
            timezone=merchant.timezone,
            access_token=merchant.access_token,
            location_id=merchant.location_id,
            merchant_order=merchant_order,
            customer=customer,
            pod_line_items=pod_line_items,
            shipping_rate=shipping_rate,
            pod_order_payload=build_pod_order_payload(
                domain, merchant_order.order_id, pod_line_items, customer, shipping_rate
            ),
            is_wholesale=is_wholesale,
        )

    async def intake(self, order_event: dict[str, Any]) -> IntakeResult:
        """Take in a paid merchant order.

        Args:
            order_event: Shopify order payload from the order webhook.

        Returns:
            IntakeResult with the persisted record, or a skip reason.
        """
        order_id = str(order_event.get("id") or "")
        merchant = await self.resolve_merchant(order_event.get("order_status_url") or "")
        if merchant is None:
            logger.warning("Merchant not found for order", order_id=order_id)
            return IntakeResult.skipped("MERCHANT_NOT_FOUND", "Merchant not found")

        domain = merchant.myshopify_domain
        if await self.order_repo.get_raw(domain, order_id):
            logger.info("Order already taken in", domain=domain, order_id=order_id)
            return IntakeResult.skipped("ALREADY_EXISTS", "Order already exists")

        line_items = [LineItem.from_dict(li) for li in order_event.get("line_items", [])]
        for li in line_items:
            li.weight = li.weight or settings.default_item_weight_grams

        pod_line_items = await self.map_line_items(domain, line_items)
        if not pod_line_items:
            logger.info("Order has no POD items", domain=domain, order_id=order_id)
            return IntakeResult.skipped("NO_POD_ITEMS", "No line items map to POD variants")

        merchant_order = MerchantOrder(
            order_id=order_id,
            order_number=str(order_event.get("order_number") or ""),
            line_items=line_items,
        )
        record = await self._build_record(
            merchant,
            merchant_order,
            pod_line_items,
            order_event.get("email") or "",
            Address.from_dict(order_event.get("shipping_address")),
        )

        if not await self.order_repo.create(record):
            logger.info("Order created concurrently", domain=domain, order_id=order_id)
            return IntakeResult.skipped("ALREADY_EXISTS", "Order already exists")

        logger.info(
            "Order taken in",
            domain=domain,
            order_id=order_id,
            pod_items=len(pod_line_items),
            shipping_rate=str(record.shipping_rate),
            request_id=self.request_id,
        )
        return IntakeResult(record=record)

    async def create_wholesale(
        self,
        domain: str,
        product_id: str,
        color: str,
        quantity: int,
        email: str,
        address: Address,
    ) -> OrderRecord:
        """Create a wholesale order for one product color.

        Raises:
            MerchantNotFoundError: If the merchant does not exist.
            ProductMappingError: If the product is missing or no variant
                matches the color.
        """
        merchant = await self.merchant_repo.get(domain)
        if merchant is None:
            raise MerchantNotFoundError(domain)

        product = await self.product_repo.get(domain, product_id)
        if product is None:
            raise ProductMappingError(domain, product_id, "product not found")

        variant = product.find_variant_by_color(color)
        if variant is None:
            raise ProductMappingError(domain, product_id, f"no variant for color '{color}'")

        pod_item = PodLineItem(
            pod_variant_id=variant.pod_variant_id,
            merchant_variant_id=variant.merchant_variant_id,
            quantity=quantity,
            weight=product.weight or settings.default_item_weight_grams,
            cost=variant.cost,
            price=variant.cost * RETAIL_MARKUP,
            type=product.type,
            title=product.title,
            image=product.image_for(variant),
        )
        merchant_order = MerchantOrder(
            order_id=generate_wholesale_order_id(),
            order_number=generate_wholesale_order_number(),
            line_items=[
                LineItem(
                    product_id=product.id,
                    variant_id=variant.merchant_variant_id,
                    title=product.title,
                    quantity=quantity,
                    price=pod_item.price,
                    weight=pod_item.weight,
                    sku=variant.sku,
                    variant_title=color,
                )
            ],
        )

        record = await self._build_record(
            merchant, merchant_order, [pod_item], email, address, is_wholesale=True
        )
        await self.order_repo.create(record)

        logger.info(
            "Wholesale order created",
            domain=domain,
            order_id=record.id,
            product_id=product_id,
            quantity=quantity,
            request_id=self.request_id,
        )
        return record


def get_intake_service(request_id: str | None = None) -> IntakeService:
    """Get intake service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        IntakeService instance.
    """
    return IntakeService(request_id=request_id)
