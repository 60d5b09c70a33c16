"""API schemas for PodBridge.

Pydantic models for request/response validation and serialization.
Order and merchant documents are returned as stored, minus access tokens.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: list[ErrorDetail] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class AddressSchema(BaseModel):
    """Shipping address in Shopify's shape."""

    first_name: str = ""
    last_name: str = ""
    address1: str = Field(..., min_length=1)
    address2: str = ""
    city: str = Field(..., min_length=1)
    province: str = ""
    province_code: str = ""
    zip: str = Field(..., min_length=1)
    country: str = "United States"
    country_code: str = "US"
    phone: str = ""
    company: str | None = None


# ============================================================================
# Order Schemas
# ============================================================================


def public_order(doc: dict[str, Any]) -> dict[str, Any]:
    """Order document without the merchant access token."""
    return {k: v for k, v in doc.items() if k != "access_token"}


class OrderListResponse(BaseModel):
    """All orders of a merchant, newest first."""

    orders: list[dict[str, Any]] = Field(default_factory=list)


class OrderPageResponse(BaseModel):
    """A page of orders with the cursors of its first and last entries."""

    orders: list[dict[str, Any]] = Field(default_factory=list)
    first_cursor: float | None = Field(
        default=None, description="created_at of the newest order on the page"
    )
    last_cursor: float | None = Field(
        default=None, description="created_at of the oldest order on the page"
    )


class DeleteOrdersResponse(BaseModel):
    """Result of deleting orders."""

    deleted: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)


class WholesaleCustomerSchema(BaseModel):
    """Recipient of a wholesale order."""

    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    address: AddressSchema


class WholesaleOrderRequest(BaseModel):
    """Request to create a wholesale order for one product color."""

    product_id: str = Field(..., min_length=1, description="Merchant product id")
    color: str = Field(..., min_length=1, description="Variant color, e.g. 'Black'")
    quantity: int = Field(..., ge=1, le=10000)
    customer: WholesaleCustomerSchema


class OrderCancelRequest(BaseModel):
    """Request to cancel an order."""

    reason: str = Field(default="cancelled by merchant", max_length=500)


class FulfillResponse(BaseModel):
    """Result of charging and fulfilling an order."""

    outcome: str
    order: dict[str, Any] | None = None
    cost: str | None = Field(default=None, description="Usage charge, when evaluated")
    fulfillment_action: str | None = None


# ============================================================================
# Event Schemas
# ============================================================================


class PubSubMessage(BaseModel):
    """Message of a Pub/Sub push delivery."""

    data: str = Field(default="", description="Base64-encoded JSON payload")
    attributes: dict[str, str] = Field(default_factory=dict)
    message_id: str | None = Field(default=None, alias="messageId")

    model_config = ConfigDict(populate_by_name=True)


class PubSubEnvelope(BaseModel):
    """Pub/Sub push delivery envelope."""

    message: PubSubMessage
    subscription: str = ""


class EventResponse(BaseModel):
    """Acknowledgement of a handled event."""

    status: str = Field(..., description="'processed' or 'skipped'")
    reason: str | None = None
    order_id: str | None = None


class OrderCreatedTrigger(BaseModel):
    """Order-record created event."""

    domain: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)


class FulfillmentOrderNotification(BaseModel):
    """Fulfillment-order notification from a merchant store."""

    shop: str = Field(..., min_length=1, description="Shop handle or myshopify domain")
    order_id: str = Field(..., min_length=1)
    location_id: str | None = None


class FulfillmentOrderNotificationResponse(BaseModel):
    """Outcome of a fulfillment-order notification."""

    fulfillment_id: str
    request_status: str
    action: str
