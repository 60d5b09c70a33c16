"""Domain entities for the PodBridge system.

Entities are plain dataclasses persisted as documents. Each one knows how
to serialize itself to and from its stored document shape; amounts are
kept as ``Decimal`` in memory and as strings in documents.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from podbridge.domain.exceptions import OrderNotCancellableError
from podbridge.domain.state_machines import FulfillmentStatus, validate_fulfillment_transition

DEFAULT_ITEM_WEIGHT_GRAMS = 85
RETAIL_MARKUP = Decimal("2.5")


def to_decimal(value: Any, default: str = "0") -> Decimal:
    """Coerce a stored or API value to ``Decimal``."""
    if value is None or value == "":
        return Decimal(default)
    return Decimal(str(value))


def now_ts() -> float:
    """Current unix time in seconds."""
    return time.time()


# ============================================================================
# SKU Colors
# ============================================================================


COLOR_SKU_CODES: dict[str, str] = {
    "GREEN": "GRN",
    "BLUE": "NVY",
    "WHITE": "WHT",
    "BLACK": "BLK",
    "GRAY": "GRY",
    "GREY": "GRY",
    "#2B6B3F": "FRT",
    "#37424E": "CHR",
    "#82C8E4": "SKY",
    "#575B45": "LDN",
    "#8A8D92": "HTR",
    "#F6AA79": "PCH",
    "KHAKI": "KHK",
    "RED": "RED",
    "MAROON": "MRN",
    "ROYAL": "RYL",
}


def color_sku_code(color: str) -> str:
    """Convert a color name (or ``a/b`` pair) to its SKU abbreviation.

    Example:
        >>> color_sku_code("Black/White")
        'BLK/WHT'
    """
    parts = color.upper().split("/")
    return "/".join(COLOR_SKU_CODES.get(p, p) for p in parts)


# ============================================================================
# Value Types
# ============================================================================


@dataclass
class Address:
    """Shipping address in Shopify's shape."""

    address1: str = ""
    city: str = ""
    zip: str = ""
    country_code: str = "US"
    first_name: str = ""
    last_name: str = ""
    address2: str = ""
    province: str = ""
    province_code: str = ""
    country: str = ""
    phone: str = ""
    company: str | None = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Address":
        """Create from a Shopify address object."""
        data = data or {}
        return cls(
            address1=data.get("address1") or "",
            city=data.get("city") or "",
            zip=data.get("zip") or "",
            country_code=data.get("country_code") or "US",
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            address2=data.get("address2") or "",
            province=data.get("province") or "",
            province_code=data.get("province_code") or "",
            country=data.get("country") or "",
            phone=data.get("phone") or "",
            company=data.get("company"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "company": self.company,
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "province": self.province,
            "province_code": self.province_code,
            "country": self.country,
            "country_code": self.country_code,
            "zip": self.zip,
            "phone": self.phone,
        }

    def to_shipengine(self) -> dict[str, Any]:
        """Format as a ShipEngine ``ship_to`` address."""
        return {
            "name": self.name or "Customer",
            "phone": self.phone,
            "address_line1": self.address1,
            "address_line2": self.address2 or None,
            "city_locality": self.city,
            "state_province": self.province_code or self.province,
            "postal_code": self.zip,
            "country_code": self.country_code,
            "address_residential_indicator": "yes",
        }


@dataclass
class LineItem:
    """A line item of the merchant's order."""

    product_id: str
    variant_id: str
    title: str
    quantity: int
    price: Decimal | None = None
    weight: int = 0
    sku: str = ""
    variant_title: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineItem":
        """Create from a Shopify order line item or a stored line item."""
        price = data.get("price")
        return cls(
            product_id=str(data.get("product_id") or ""),
            variant_id=str(data.get("variant_id") or ""),
            title=data.get("title") or "",
            quantity=int(data.get("quantity") or 0),
            price=to_decimal(price) if price not in (None, "") else None,
            weight=int(data.get("grams", data.get("weight")) or 0),
            sku=data.get("sku") or "",
            variant_title=data.get("variant_title") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "title": self.title,
            "quantity": self.quantity,
            "price": str(self.price) if self.price is not None else None,
            "weight": self.weight,
            "sku": self.sku,
            "variant_title": self.variant_title,
        }


@dataclass
class PodLineItem:
    """A line item resolved to a POD partner variant.

    Attributes:
        pod_variant_id: Variant id on the POD store.
        merchant_variant_id: Variant id on the merchant store.
        quantity: Units ordered.
        weight: Unit weight in grams.
        cost: Wholesale unit cost charged to the merchant.
        price: Retail unit price.
        type: Product type, used for analytics.
        image: Mockup image URL.
    """

    pod_variant_id: str
    merchant_variant_id: str
    quantity: int
    weight: int
    cost: Decimal
    price: Decimal
    type: str = ""
    title: str = ""
    image: str = ""

    @property
    def line_cost(self) -> Decimal:
        return self.cost * self.quantity

    @property
    def line_price(self) -> Decimal:
        return self.price * self.quantity

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PodLineItem":
        return cls(
            pod_variant_id=str(data.get("pod_variant_id") or ""),
            merchant_variant_id=str(data.get("merchant_variant_id") or ""),
            quantity=int(data.get("quantity") or 0),
            weight=int(data.get("weight") or 0),
            cost=to_decimal(data.get("cost")),
            price=to_decimal(data.get("price")),
            type=data.get("type") or "",
            title=data.get("title") or "",
            image=data.get("image") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pod_variant_id": self.pod_variant_id,
            "merchant_variant_id": self.merchant_variant_id,
            "quantity": self.quantity,
            "weight": self.weight,
            "cost": str(self.cost),
            "price": str(self.price),
            "type": self.type,
            "title": self.title,
            "image": self.image,
        }


@dataclass
class Customer:
    """The POD-side customer an order ships to."""

    email: str
    id: str | None = None
    shipping_address: Address = field(default_factory=Address)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Customer":
        data = data or {}
        customer_id = data.get("id")
        return cls(
            email=data.get("email") or "",
            id=str(customer_id) if customer_id else None,
            shipping_address=Address.from_dict(data.get("shipping_address")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "shipping_address": self.shipping_address.to_dict(),
        }


@dataclass
class MerchantOrder:
    """Snapshot of the merchant-side order."""

    order_id: str
    order_number: str
    line_items: list[LineItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "MerchantOrder":
        data = data or {}
        return cls(
            order_id=str(data.get("order_id") or ""),
            order_number=str(data.get("order_number") or ""),
            line_items=[LineItem.from_dict(li) for li in data.get("line_items", [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "line_items": [li.to_dict() for li in self.line_items],
        }


@dataclass
class StatusChange:
    """One entry of an order's fulfillment status history."""

    from_status: str
    to_status: str
    reason: str = ""
    actor: str = "system"
    at: float = field(default_factory=now_ts)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusChange":
        return cls(
            from_status=data.get("from", ""),
            to_status=data.get("to", ""),
            reason=data.get("reason", ""),
            actor=data.get("actor", "system"),
            at=float(data.get("at") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_status,
            "to": self.to_status,
            "reason": self.reason,
            "actor": self.actor,
            "at": self.at,
        }


# ============================================================================
# Order Record
# ============================================================================


@dataclass(kw_only=True)
class OrderRecord:
    """Order record aggregate.

    Persisted at ``shopify_pod/{domain}/orders/{id}``. Created once at intake
    and advanced through billing, POD dispatch and fulfillment.

    Attributes:
        id: Merchant platform order id.
        domain: Merchant key (``*.myshopify.com``).
        access_token: Encrypted merchant token copied at intake.
        location_id: Merchant's fulfillment-service location.
        shipping_rate: Quoted shipping cost, 0 when quoting failed.
        pod_order_payload: Order body submitted to the POD store.
        pod_created: Set once the POD order exists; never cleared.
        fulfillment_id: Merchant fulfillment-order id, empty when unresolved.
        analytics_buckets: Daily/monthly aggregate ids the order was counted in.
    """

    id: str
    domain: str
    myshopify_domain: str
    timezone: str
    access_token: str
    location_id: str
    merchant_order: MerchantOrder
    customer: Customer
    pod_line_items: list[PodLineItem]
    shipping_rate: Decimal = Decimal("0")
    currency: str = "USD"
    pod_order_payload: dict[str, Any] = field(default_factory=dict)
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.DEACTIVE
    fulfillment_id: str = ""
    tracking_number: str = ""
    tracking_url: str = ""
    tracking_company: str = ""
    pod_order_id: str = ""
    pod_created: bool = False
    is_wholesale: bool = False
    status_history: list[StatusChange] = field(default_factory=list)
    analytics_buckets: dict[str, str] = field(default_factory=dict)
    created_at: float = field(default_factory=now_ts)
    updated_at: float = field(default_factory=now_ts)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def total_quantity(self) -> int:
        """Sum of POD line item quantities."""
        return sum(li.quantity for li in self.pod_line_items)

    @property
    def total_cost(self) -> Decimal:
        """Wholesale cost of the items, excluding shipping."""
        return sum((li.line_cost for li in self.pod_line_items), Decimal("0"))

    @property
    def total_price(self) -> Decimal:
        """Retail value of the items."""
        return sum((li.line_price for li in self.pod_line_items), Decimal("0"))

    @property
    def total_weight(self) -> int:
        """Parcel weight in grams (unit weights, quantity not applied)."""
        return sum(li.weight for li in self.pod_line_items)

    # -------------------------------------------------------------------------
    # State Transitions
    # -------------------------------------------------------------------------

    def _touch(self) -> None:
        self.updated_at = now_ts()

    def transition_to(
        self,
        target: FulfillmentStatus,
        reason: str = "",
        actor: str = "system",
    ) -> None:
        """Move to a new fulfillment status and record it in the history.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed.
        """
        validate_fulfillment_transition(self.id, self.fulfillment_status, target)
        if target == self.fulfillment_status:
            self._touch()
            return
        self.status_history.append(
            StatusChange(
                from_status=self.fulfillment_status.value,
                to_status=target.value,
                reason=reason,
                actor=actor,
            )
        )
        self.fulfillment_status = target
        self._touch()

    def block_for_billing(self, reason: str) -> None:
        """Park the order until the usage gate allows it."""
        self.pod_created = False
        self.transition_to(FulfillmentStatus.BILLING, reason=reason)

    def mark_dispatched(self, pod_order_id: str, fulfillment_id: str, reason: str = "") -> None:
        """Record a successfully placed POD order."""
        self.transition_to(FulfillmentStatus.PENDING, reason=reason or "pod order created")
        self.pod_created = True
        self.pod_order_id = pod_order_id
        self.fulfillment_id = fulfillment_id

    def record_tracking(
        self,
        number: str | None,
        url: str | None = None,
        company: str | None = None,
    ) -> None:
        self.tracking_number = number or ""
        self.tracking_url = url or ""
        self.tracking_company = company or ""
        self._touch()

    def activate(self, fulfillment_id: str | None = None) -> None:
        """Mark the order fulfilled on the merchant store."""
        if fulfillment_id:
            self.fulfillment_id = fulfillment_id
        self.transition_to(FulfillmentStatus.ACTIVE, reason="fulfilled")

    def cancel(self, reason: str, cancelled_by: str = "system") -> None:
        """Cancel the order.

        Raises:
            OrderNotCancellableError: If the order is already terminal.
        """
        if not self.fulfillment_status.is_cancellable():
            raise OrderNotCancellableError(self.id, self.fulfillment_status.value)
        self.transition_to(FulfillmentStatus.CANCELLED, reason=reason, actor=cancelled_by)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "domain": self.domain,
            "myshopify_domain": self.myshopify_domain,
            "timezone": self.timezone,
            "access_token": self.access_token,
            "location_id": self.location_id,
            "merchant_order": self.merchant_order.to_dict(),
            "customer": self.customer.to_dict(),
            "pod_line_items": [li.to_dict() for li in self.pod_line_items],
            "shipping_rate": str(self.shipping_rate),
            "currency": self.currency,
            "pod_order_payload": self.pod_order_payload,
            "fulfillment_status": self.fulfillment_status.value,
            "fulfillment_id": self.fulfillment_id,
            "tracking_number": self.tracking_number,
            "tracking_url": self.tracking_url,
            "tracking_company": self.tracking_company,
            "pod_order_id": self.pod_order_id,
            "pod_created": self.pod_created,
            "is_wholesale": self.is_wholesale,
            "status_history": [h.to_dict() for h in self.status_history],
            "analytics_buckets": dict(self.analytics_buckets),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "OrderRecord":
        return cls(
            id=str(data["id"]),
            domain=data.get("domain", ""),
            myshopify_domain=data.get("myshopify_domain", ""),
            timezone=data.get("timezone") or "UTC",
            access_token=data.get("access_token", ""),
            location_id=str(data.get("location_id") or ""),
            merchant_order=MerchantOrder.from_dict(data.get("merchant_order")),
            customer=Customer.from_dict(data.get("customer")),
            pod_line_items=[PodLineItem.from_dict(li) for li in data.get("pod_line_items", [])],
            shipping_rate=to_decimal(data.get("shipping_rate")),
            currency=data.get("currency") or "USD",
            pod_order_payload=data.get("pod_order_payload") or {},
            fulfillment_status=FulfillmentStatus(
                data.get("fulfillment_status") or FulfillmentStatus.DEACTIVE.value
            ),
            fulfillment_id=str(data.get("fulfillment_id") or ""),
            tracking_number=data.get("tracking_number") or "",
            tracking_url=data.get("tracking_url") or "",
            tracking_company=data.get("tracking_company") or "",
            pod_order_id=str(data.get("pod_order_id") or ""),
            pod_created=bool(data.get("pod_created", False)),
            is_wholesale=bool(data.get("is_wholesale", False)),
            status_history=[StatusChange.from_dict(h) for h in data.get("status_history", [])],
            analytics_buckets=dict(data.get("analytics_buckets") or {}),
            created_at=float(data.get("created_at") or 0),
            updated_at=float(data.get("updated_at") or 0),
        )


# ============================================================================
# Merchant Record
# ============================================================================


@dataclass(kw_only=True)
class MerchantRecord:
    """An installed merchant store, keyed by ``myshopify_domain``.

    Only the fields the fulfillment flow reads are modelled; everything
    else in the stored document is carried through ``extra`` untouched.
    """

    myshopify_domain: str
    access_token: str
    location_id: str = ""
    fulfillment_service_id: str = ""
    timezone: str = "UTC"
    usage: Decimal = Decimal("0")
    capped_usage: Decimal = Decimal("5000")
    webhooks: dict[str, Any] = field(default_factory=dict)
    shop_name: str = ""
    shop_domain: str = ""
    custom_domain: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _FIELDS = (
        "id",
        "myshopify_domain",
        "access_token",
        "fulfillment",
        "timezone",
        "usage",
        "capped_usage",
        "webhooks",
        "shop_name",
        "shop_domain",
        "custom_domain",
    )

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "MerchantRecord":
        fulfillment = data.get("fulfillment") or {}
        return cls(
            myshopify_domain=data.get("myshopify_domain") or data.get("id", ""),
            access_token=data.get("access_token", ""),
            location_id=str(fulfillment.get("location_id") or ""),
            fulfillment_service_id=str(fulfillment.get("id") or ""),
            timezone=data.get("timezone") or "UTC",
            usage=to_decimal(data.get("usage")),
            capped_usage=to_decimal(data.get("capped_usage"), "5000"),
            webhooks=dict(data.get("webhooks") or {}),
            shop_name=data.get("shop_name", ""),
            shop_domain=data.get("shop_domain", ""),
            custom_domain=data.get("custom_domain", ""),
            extra={k: v for k, v in data.items() if k not in cls._FIELDS},
        )

    def to_document(self) -> dict[str, Any]:
        return {
            **self.extra,
            "id": self.myshopify_domain,
            "myshopify_domain": self.myshopify_domain,
            "access_token": self.access_token,
            "fulfillment": {
                "location_id": self.location_id,
                "id": self.fulfillment_service_id,
            },
            "timezone": self.timezone,
            "usage": str(self.usage),
            "capped_usage": str(self.capped_usage),
            "webhooks": self.webhooks,
            "shop_name": self.shop_name,
            "shop_domain": self.shop_domain,
            "custom_domain": self.custom_domain,
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Document without the access token."""
        doc = self.to_document()
        doc.pop("access_token", None)
        return doc


# ============================================================================
# Product Record
# ============================================================================


@dataclass
class VariantMapping:
    """Pairs a merchant variant with its POD variant."""

    merchant_variant_id: str
    pod_variant_id: str
    sku: str
    cost: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VariantMapping":
        return cls(
            merchant_variant_id=str(data.get("merchant_variants_id") or ""),
            pod_variant_id=str(data.get("pod_variants_id") or ""),
            sku=data.get("SKU") or "",
            cost=to_decimal(data.get("cost")),
        )


@dataclass(kw_only=True)
class ProductRecord:
    """A merchant product generated from a POD blank."""

    id: str
    title: str = ""
    type: str = ""
    weight: int = DEFAULT_ITEM_WEIGHT_GRAMS
    base_sku: str = ""
    merged_variants: list[VariantMapping] = field(default_factory=list)
    mockup_urls: dict[str, list[dict[str, str]]] = field(default_factory=dict)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "ProductRecord":
        mockups = data.get("mockup_urls") or {}
        # Older documents store a flat list of front images
        if isinstance(mockups, list):
            mockups = {"front": mockups, "back": []}
        return cls(
            id=str(data.get("id") or data.get("product_id") or ""),
            title=data.get("title", ""),
            type=data.get("type", ""),
            weight=int(data.get("weight") or DEFAULT_ITEM_WEIGHT_GRAMS),
            base_sku=data.get("base_sku", ""),
            merged_variants=[VariantMapping.from_dict(v) for v in data.get("merged_variants", [])],
            mockup_urls={
                "front": list(mockups.get("front") or []),
                "back": list(mockups.get("back") or []),
            },
        )

    @property
    def images(self) -> list[dict[str, str]]:
        """Front mockups, falling back to back mockups."""
        return self.mockup_urls.get("front") or self.mockup_urls.get("back") or []

    def find_variant(self, merchant_variant_id: str) -> VariantMapping | None:
        for variant in self.merged_variants:
            if variant.merchant_variant_id == str(merchant_variant_id):
                return variant
        return None

    def find_variant_by_color(self, color: str) -> VariantMapping | None:
        """Last variant whose SKU contains the color's SKU code."""
        code = color_sku_code(color).lower()
        match = None
        for variant in self.merged_variants:
            if code in variant.sku.lower():
                match = variant
        return match

    def image_for(self, variant: VariantMapping) -> str:
        """Mockup URL whose alt color matches the variant SKU, else the first one."""
        images = self.images
        sku = variant.sku.lower()
        for image in images:
            alt = image.get("alt") or ""
            if alt and color_sku_code(alt).lower() in sku:
                return image.get("url", "")
        return images[0].get("url", "") if images else ""


# ============================================================================
# Analytics Aggregate
# ============================================================================


@dataclass
class AnalyticsOrderEntry:
    """One order counted in an analytics bucket."""

    id: str
    created_at: float
    total_items: int
    total_price: Decimal
    shipping_cost: Decimal
    fulfilled_date: float = 0
    fulfilled_time: float = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalyticsOrderEntry":
        return cls(
            id=str(data.get("id") or ""),
            created_at=float(data.get("created_at") or 0),
            total_items=int(data.get("total_items") or 0),
            total_price=to_decimal(data.get("total_price")),
            shipping_cost=to_decimal(data.get("shipping_cost")),
            fulfilled_date=float(data.get("fulfilled_date") or 0),
            fulfilled_time=float(data.get("fulfilled_time") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "total_items": self.total_items,
            "total_price": str(self.total_price),
            "shipping_cost": str(self.shipping_cost),
            "fulfilled_date": self.fulfilled_date,
            "fulfilled_time": self.fulfilled_time,
        }


@dataclass(kw_only=True)
class AnalyticsAggregate:
    """Daily or monthly order totals for a merchant.

    The id is the unix timestamp of the bucket start in the merchant's
    timezone.
    """

    id: str
    timezone: str
    total_orders: int = 0
    total_items: int = 0
    total_revenue: Decimal = Decimal("0")
    orders: list[AnalyticsOrderEntry] = field(default_factory=list)
    top_sellers: dict[str, int] = field(default_factory=dict)
    top_types: dict[str, int] = field(default_factory=dict)
    created_at: float = field(default_factory=now_ts)
    updated_at: float = field(default_factory=now_ts)

    def add_order(self, order: OrderRecord, shipping_cost: Decimal) -> None:
        """Count an order in this bucket."""
        revenue = order.total_price
        self.total_orders += 1
        self.total_items += len(order.pod_line_items)
        self.total_revenue += revenue
        for li in order.merchant_order.line_items:
            self.top_sellers[li.title] = self.top_sellers.get(li.title, 0) + li.quantity
        for li in order.pod_line_items:
            self.top_types[li.type] = self.top_types.get(li.type, 0) + li.quantity
        self.orders.append(
            AnalyticsOrderEntry(
                id=order.id,
                created_at=now_ts(),
                total_items=len(order.pod_line_items),
                total_price=revenue,
                shipping_cost=shipping_cost,
            )
        )
        self.updated_at = now_ts()

    def mark_fulfilled(self, order_id: str, fulfilled_at: float) -> bool:
        """Stamp the fulfillment time on an order entry.

        Returns:
            False if the order is not counted in this bucket.
        """
        found = False
        for entry in self.orders:
            if entry.id == order_id:
                entry.fulfilled_date = fulfilled_at
                entry.fulfilled_time = fulfilled_at - entry.created_at
                found = True
        if found:
            self.updated_at = now_ts()
        return found

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timezone": self.timezone,
            "total_orders": self.total_orders,
            "total_items": self.total_items,
            "total_revenue": str(self.total_revenue),
            "orders": [o.to_dict() for o in self.orders],
            "top_sellers": dict(self.top_sellers),
            "top_types": dict(self.top_types),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "AnalyticsAggregate":
        return cls(
            id=str(data.get("id") or ""),
            timezone=data.get("timezone") or "UTC",
            total_orders=int(data.get("total_orders") or 0),
            total_items=int(data.get("total_items") or 0),
            total_revenue=to_decimal(data.get("total_revenue")),
            orders=[AnalyticsOrderEntry.from_dict(o) for o in data.get("orders", [])],
            top_sellers=dict(data.get("top_sellers") or {}),
            top_types=dict(data.get("top_types") or {}),
            created_at=float(data.get("created_at") or 0),
            updated_at=float(data.get("updated_at") or 0),
        )
