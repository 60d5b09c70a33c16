"""Merchant fulfillment-order resolution.

Our fulfillment service owns the fulfillment orders assigned to its location
on the merchant store. An order can collect several of them (for example
after a reroute), so the most recent one assigned to our location wins.
"""

from dataclasses import dataclass

import structlog

from podbridge.infrastructure.shopify_client import (
    FulfillmentOrder,
    ShopifyClient,
    ShopifyClientError,
)

logger = structlog.get_logger()


@dataclass
class FulfillmentResolution:
    """Outcome of resolving an order's fulfillment order.

    Attributes:
        fulfillment_id: Fulfillment-order id to keep on the record, empty
            when there is none we can fulfill.
        request_status: ``request_status`` of the chosen fulfillment order.
        action: What was done about it.
    """

    fulfillment_id: str = ""
    request_status: str = ""
    action: str = "none"

    @property
    def resolved(self) -> bool:
        return bool(self.fulfillment_id)


# Request statuses a fulfillment can still be created against
FULFILLABLE_REQUEST_STATUSES = ("submitted", "accepted")


def latest_for_location(
    fulfillment_orders: list[FulfillmentOrder], location_id: str
) -> FulfillmentOrder | None:
    """Last fulfillment order assigned to the location."""
    matches = [fo for fo in fulfillment_orders if fo.assigned_location_id == str(location_id)]
    return matches[-1] if matches else None


async def find_fulfillment_order_id(client: ShopifyClient, order_id: str, location_id: str) -> str:
    """Look up the fulfillment-order id without acting on it.

    Returns:
        The id, or an empty string if none matches, the latest match can no
        longer be fulfilled (for example after a cancellation) or the lookup
        failed.
    """
    try:
        fulfillment_orders = await client.get_fulfillment_orders(order_id)
    except ShopifyClientError as e:
        logger.warning("Fulfillment order lookup failed", order_id=order_id, error=e.message)
        return ""
    latest = latest_for_location(fulfillment_orders, location_id)
    if latest is None:
        return ""
    if latest.request_status not in FULFILLABLE_REQUEST_STATUSES:
        logger.info(
            "Fulfillment order not fulfillable",
            order_id=order_id,
            fulfillment_order_id=latest.id,
            request_status=latest.request_status,
        )
        return ""
    return latest.id


async def release_fulfillment_order(client: ShopifyClient, order_id: str, fulfillment_order_id: str) -> str:
    """Let go of a fulfillment order when an order is cancelled by hand.

    A pending cancellation request from the merchant is accepted. Any other
    state is left alone on the merchant store.

    Returns:
        ``cancellation_accepted``, ``local_only``, ``lookup_failed`` or ``failed``.
    """
    try:
        fulfillment_orders = await client.get_fulfillment_orders(order_id)
    except ShopifyClientError as e:
        logger.warning("Fulfillment order lookup failed", order_id=order_id, error=e.message)
        return "lookup_failed"

    current = next((fo for fo in fulfillment_orders if fo.id == str(fulfillment_order_id)), None)
    if current is None or current.request_status != "cancellation_requested":
        return "local_only"

    try:
        await client.accept_cancellation_request(current.id)
    except ShopifyClientError as e:
        logger.warning(
            "Cancellation request handling failed",
            order_id=order_id,
            fulfillment_order_id=current.id,
            error=e.message,
        )
        return "failed"
    return "cancellation_accepted"


async def resolve_fulfillment_order(
    client: ShopifyClient, order_id: str, location_id: str
) -> FulfillmentResolution:
    """Resolve and accept the fulfillment order of a merchant order.

    Acts on the last fulfillment order assigned to our location:

    - ``submitted``: accept the request
    - ``unsubmitted``: submit the request, then accept it
    - ``cancellation_requested``: accept the cancellation, no id kept
    - ``accepted``: keep the id as is
    - anything else, or any API failure: no id kept
    """
    try:
        fulfillment_orders = await client.get_fulfillment_orders(order_id)
    except ShopifyClientError as e:
        logger.warning("Fulfillment order lookup failed", order_id=order_id, error=e.message)
        return FulfillmentResolution(action="lookup_failed")

    latest = latest_for_location(fulfillment_orders, location_id)
    if latest is None:
        logger.info("No fulfillment order for location", order_id=order_id, location_id=location_id)
        return FulfillmentResolution()

    status = latest.request_status
    try:
        if status == "submitted":
            await client.accept_fulfillment_request(latest.id)
            return FulfillmentResolution(latest.id, status, "accepted")
        if status == "unsubmitted":
            await client.send_fulfillment_request(latest.id)
            await client.accept_fulfillment_request(latest.id)
            return FulfillmentResolution(latest.id, status, "requested_and_accepted")
        if status == "cancellation_requested":
            await client.accept_cancellation_request(latest.id)
            return FulfillmentResolution("", status, "cancellation_accepted")
        if status == "accepted":
            return FulfillmentResolution(latest.id, status, "already_accepted")
    except ShopifyClientError as e:
        logger.warning(
            "Fulfillment request handling failed",
            order_id=order_id,
            fulfillment_order_id=latest.id,
            request_status=status,
            error=e.message,
        )
        return FulfillmentResolution("", status, "failed")

    logger.info(
        "Fulfillment order not actionable",
        order_id=order_id,
        fulfillment_order_id=latest.id,
        request_status=status,
    )
    return FulfillmentResolution("", status, "ignored")
